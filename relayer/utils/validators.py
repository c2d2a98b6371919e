"""
Input validation utilities

This module provides validation functions for addresses, integer token
amounts and pagination parameters so that everything reaching the
aggregation core is already in canonical form.
"""

import re
from typing import Any, Optional, Tuple

from .exceptions import (
    InvalidOrderException,
    ValidationErrorCodes,
    ValidationException,
)

NULL_ADDRESS = "0x" + "0" * 40

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-f]{40}$")


def normalize_address(address: str) -> str:
    """
    Normalize a hex address to its canonical lowercase form.

    Args:
        address: Hex address, any case, with 0x prefix

    Returns:
        Lowercase 0x-prefixed address

    Raises:
        InvalidOrderException: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str):
        raise InvalidOrderException(
            f"Invalid address: {address!r}",
            details={"address": address}
        )

    normalized = address.strip().lower()
    if not _ADDRESS_PATTERN.match(normalized):
        raise InvalidOrderException(
            f"Invalid address: {address}",
            details={"address": address}
        )
    return normalized


def validate_address(address: str, field: str) -> str:
    """
    Validate a caller-supplied address.

    Args:
        address: Address to validate
        field: Name of the request field, reported on failure

    Returns:
        Normalized address

    Raises:
        ValidationException: If the address is malformed
    """
    try:
        return normalize_address(address)
    except InvalidOrderException:
        raise ValidationException.for_field(
            field,
            ValidationErrorCodes.INVALID_ADDRESS,
            f"{address} is not a valid address",
        )


def validate_optional_address(address: Optional[str], field: str) -> Optional[str]:
    """Validate an address that may be omitted; the null address counts as omitted."""
    if address is None:
        return None
    normalized = validate_address(address, field)
    if normalized == NULL_ADDRESS:
        return None
    return normalized


def sanitize_amount(value: Any, field: str) -> int:
    """
    Convert a raw token amount to a non-negative int.

    Accepts ints and base-10 integer strings. Floats are rejected outright,
    amounts never pass through binary floating point.

    Args:
        value: Raw amount
        field: Field name for error context

    Returns:
        Integer amount

    Raises:
        InvalidOrderException: If the value is not a non-negative integer
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidOrderException(
            f"Invalid integer amount for {field}: {value!r}",
            details={"field": field, "value": value}
        )

    try:
        amount = int(value)
    except (ValueError, TypeError) as e:
        raise InvalidOrderException(
            f"Invalid integer amount for {field}: {value!r}",
            details={"field": field, "value": value, "error": str(e)}
        )

    if amount < 0:
        raise InvalidOrderException(
            f"{field} must be non-negative, got {amount}",
            details={"field": field, "value": amount}
        )
    return amount


def validate_pagination(page: int, per_page: int, max_per_page: int) -> Tuple[int, int]:
    """
    Validate 1-based pagination parameters.

    Raises:
        ValidationException: If page or per_page is out of range
    """
    if page < 1:
        raise ValidationException.for_field(
            "page",
            ValidationErrorCodes.VALUE_OUT_OF_RANGE,
            f"page must be >= 1, got {page}",
        )
    if per_page < 1 or per_page > max_per_page:
        raise ValidationException.for_field(
            "perPage",
            ValidationErrorCodes.VALUE_OUT_OF_RANGE,
            f"perPage must be between 1 and {max_per_page}, got {per_page}",
        )
    return page, per_page
