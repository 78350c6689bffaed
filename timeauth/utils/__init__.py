"""
Utils module - Utility functions and helpers.

This module contains utility functions used throughout timeauth.
"""

from timeauth.utils.timestamps import from_iso, to_iso, utc_now
from timeauth.utils.validators import (
    ValidationError,
    validate_email,
    validate_registration,
    validate_secret,
    validate_username,
)

__all__ = [
    "from_iso",
    "to_iso",
    "utc_now",
    "ValidationError",
    "validate_email",
    "validate_registration",
    "validate_secret",
    "validate_username",
]
