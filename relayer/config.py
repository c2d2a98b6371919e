"""
Configuration management using Pydantic

This module provides application-wide configuration using Pydantic BaseSettings
with support for environment variables and type validation.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field

from relayer.utils.validators import NULL_ADDRESS


class Settings(BaseSettings):
    """
    Application configuration settings.

    All settings can be overridden using environment variables.
    For example, BACKEND_PORT will override backend_port.
    """

    # API Configuration
    backend_host: str = Field(default="localhost", description="Backend server host")
    backend_port: int = Field(default=3000, description="Backend server port")
    allowed_origins: List[str] = Field(
        default=["*"],
        description="CORS allowed origins"
    )
    default_page: int = Field(default=1, description="Default page when the request omits one")
    default_per_page: int = Field(default=20, description="Default page size")
    max_per_page: int = Field(default=1000, description="Maximum page size accepted")

    # Order Book Parameters
    order_expiration_buffer_seconds: int = Field(
        default=10,
        description="Orders expiring within this many seconds are treated as expired"
    )
    collateral_batch_limit: int = Field(
        default=400,
        description="Maximum (holder, token) pairs per balance-checker call"
    )
    exchange_proxy_address: str = Field(
        default="0xdef1c0ded9bec7f1a1670819833240f027b25eff",
        description="Spender whose allowance bounds maker collateral"
    )
    fee_recipient_address: str = Field(
        default=NULL_ADDRESS,
        description="Fee recipient advertised to order makers"
    )
    taker_fee_unit_amount: int = Field(
        default=0,
        description="Taker token fee advertised in order config, in raw units"
    )
    governance_address: str = Field(
        default=NULL_ADDRESS,
        description="Fee recipient that triggers the governance fee pre-check"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_dir: str = Field(
        default="",
        description="Directory for log files, empty for console only"
    )
    use_json_logs: bool = Field(
        default=False,
        description="Emit structured JSON log lines"
    )

    class Config:
        env_file = "relayer/.env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    return settings
