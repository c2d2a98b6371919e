"""
Logging configuration and utilities for the relayer.

Provides structured logging with JSON format for production environments
and human-readable format for development.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.order import Order


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Converts log records to JSON format with additional context fields.
    """

    EXTRA_FIELDS = (
        "order_hash",
        "market",
        "maker",
        "expiry",
        "execution_time_ms",
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class RelayerLogger:
    """
    Centralized logger for the relayer.

    Wraps a stdlib logger with domain helpers for expired-order alerts,
    collateral snapshots and aggregation timings.
    """

    def __init__(
        self,
        name: str = "Relayer",
        log_level: str = "INFO",
        log_dir: Optional[Path] = None,
        use_json: bool = False,
    ):
        """
        Initialize the relayer logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (None for console only)
            use_json: Use JSON formatting (for production)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(self._formatter(use_json))
        self.logger.addHandler(console_handler)

        if log_dir:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)

            self.logger.addHandler(
                self._create_file_handler(log_dir / "application.log", use_json)
            )

            # Expired-order alerts get their own file so they can be tailed
            self.alert_logger = logging.getLogger(f"{name}.alerts")
            self.alert_logger.setLevel(logging.INFO)
            self.alert_logger.addHandler(
                self._create_file_handler(log_dir / "alerts.log", use_json)
            )

            error_handler = self._create_file_handler(log_dir / "errors.log", use_json)
            error_handler.setLevel(logging.ERROR)
            self.logger.addHandler(error_handler)
        else:
            self.alert_logger = self.logger

    @staticmethod
    def _formatter(use_json: bool) -> logging.Formatter:
        if use_json:
            return JSONFormatter()
        return logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def _create_file_handler(self, filepath: Path, use_json: bool) -> logging.FileHandler:
        """Create a file handler with appropriate formatter."""
        handler = logging.FileHandler(filepath)
        handler.setFormatter(self._formatter(use_json))
        return handler

    def log_expired_orders(self, orders: Iterable["Order"]) -> int:
        """
        Alert on orders found expired during an aggregation pass.

        Returns:
            Number of orders reported
        """
        count = 0
        for order in orders:
            self.alert_logger.warning(
                f"Expired order encountered: {order.order_hash} (expiry {order.expiry})",
                extra={
                    "order_hash": order.order_hash,
                    "maker": order.maker,
                    "expiry": order.expiry,
                },
            )
            count += 1
        return count

    def log_collateral_fetch(
        self,
        pair_count: int,
        batch_count: int,
        execution_time_ms: Optional[float] = None,
    ):
        """Log a collateral snapshot fetch."""
        self.logger.debug(
            f"Collateral snapshot: {pair_count} pairs in {batch_count} batches",
            extra={"execution_time_ms": execution_time_ms},
        )

    def log_aggregation(
        self,
        market: str,
        bids: int,
        asks: int,
        execution_time_ms: Optional[float] = None,
    ):
        """Log the outcome of one aggregation pass."""
        self.logger.info(
            f"Aggregated {market}: {bids} bids, {asks} asks",
            extra={"market": market, "execution_time_ms": execution_time_ms},
        )

    def log_error(
        self,
        message: str,
        exception: Optional[Exception] = None,
        **kwargs
    ):
        """Log error with optional exception."""
        if exception:
            self.logger.error(message, exc_info=exception, extra=kwargs)
        else:
            self.logger.error(message, extra=kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(message, extra=kwargs)


# Global logger instance
_logger: Optional[RelayerLogger] = None


def get_logger(
    name: str = "Relayer",
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    use_json: bool = False,
) -> RelayerLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        log_level: Logging level
        log_dir: Directory for log files
        use_json: Use JSON formatting

    Returns:
        RelayerLogger instance
    """
    global _logger

    if _logger is None:
        _logger = RelayerLogger(name, log_level, log_dir, use_json)

    return _logger
