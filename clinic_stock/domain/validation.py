"""
Lightweight domain validation helpers.

Pure checks with no I/O.  Every service validates its inputs with these
before any repository lookup, so malformed input never reaches storage.
"""

from __future__ import annotations

from typing import Any

from clinic_stock.exceptions import ValidationError


def normalize_code(code: Any) -> str:
    """Trim and upper-case a supply code; reject empty codes."""
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("code", "Supply code must not be empty")
    return code.strip().upper()


def require_text(value: Any, field: str) -> str:
    """Return ``value`` stripped; reject None, non-strings and blanks."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} must not be empty")
    return value.strip()


def require_positive_int(value: Any, field: str) -> int:
    """Reject zero, negatives, bools and non-integers."""
    # bool is an int subclass; True must not count as quantity 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, f"{field} must be an integer")
    if value <= 0:
        raise ValidationError(field, f"{field} must be positive, got {value}")
    return value


def require_non_negative_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, f"{field} must be an integer")
    if value < 0:
        raise ValidationError(field, f"{field} must not be negative, got {value}")
    return value
