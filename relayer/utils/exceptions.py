"""
Custom exceptions for the order book relayer

This module defines a hierarchy of exceptions used throughout the relayer
to handle caller constraint violations and collaborator failures in a
structured and meaningful way.
"""

from typing import Dict, List, Optional


class BaseRelayerException(Exception):
    """Base exception class for all relayer exceptions."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationErrorCodes:
    """Machine-readable codes attached to validation errors."""
    REQUIRED_FIELD = "RequiredField"
    VALUE_OUT_OF_RANGE = "ValueOutOfRange"
    INVALID_ADDRESS = "InvalidAddress"


class ValidationErrorReasons:
    """Human-readable reasons shared between raise sites and tests."""
    UNFILLABLE_REQUIRES_MAKER_ADDRESS = "UnfillableRequiresMakerAddress"
    TOKENS_MUST_DIFFER = "BaseTokenAndQuoteTokenMustDiffer"


class ValidationException(BaseRelayerException):
    """
    Raised when a caller-supplied query is structurally invalid.

    No partial computation is performed once this is raised.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, str]]] = None,
        details: dict = None,
    ):
        details = dict(details or {})
        details["errors"] = list(errors or [])
        super().__init__(message, details)

    @property
    def errors(self) -> List[Dict[str, str]]:
        """Field-level validation errors."""
        return self.details["errors"]

    @classmethod
    def for_field(cls, field: str, code: str, reason: str) -> "ValidationException":
        """Build an exception describing a single offending field."""
        return cls(
            f"Validation failed for '{field}': {reason}",
            errors=[{"field": field, "code": code, "reason": reason}],
        )


class InvalidOrderException(BaseRelayerException):
    """Raised when a persisted order record violates the order invariants."""
    pass


class OrderNotFoundException(BaseRelayerException):
    """Raised when attempting to access an order that doesn't exist."""
    pass


class CollaboratorException(BaseRelayerException):
    """Raised when an external collaborator (store, oracle, discovery) fails."""
    pass


class OrderSourceException(CollaboratorException):
    """Raised when the order store cannot be queried."""
    pass


class CollateralOracleException(CollaboratorException):
    """Raised when a collateral oracle batch fails or returns a malformed result."""
    pass


class PoolSourceException(CollaboratorException):
    """Raised when pool discovery fails."""
    pass


class DuplicateOrderException(BaseRelayerException):
    """Raised when attempting to add an order that already exists."""
    pass
