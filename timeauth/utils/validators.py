"""
Validation Utilities
====================

Input validation for registration data.

Checks run in a fixed order (username, email, secret) so that the first
failure reported to the caller is deterministic. Only minimum lengths and
the presence of '@' are enforced; there are no upper bounds.
"""

from __future__ import annotations

from typing import Optional

from timeauth.security.constants import MIN_SECRET_LENGTH, MIN_USERNAME_LENGTH


class ValidationError(ValueError):
    """
    Raised when validation fails.

    Attributes:
        field_name: The input field that failed ("username", "email", "secret")
    """

    def __init__(self, field_name: str, message: str) -> None:
        super().__init__(message)
        self.field_name = field_name


def validate_string_safe(
    value: Optional[str],
    min_length: int = 0,
    field_name: str = "value",
) -> str:
    """
    Validate that a value is a non-empty string of at least ``min_length``.

    Args:
        value: The string to validate
        min_length: Minimum allowed length
        field_name: Name of the field for error messages

    Returns:
        Validated string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str) or not value:
        raise ValidationError(field_name, f"{field_name} is required")

    if len(value) < min_length:
        raise ValidationError(
            field_name, f"{field_name} must be at least {min_length} characters"
        )

    return value


def validate_username(username: Optional[str]) -> str:
    """Username must be present and at least MIN_USERNAME_LENGTH characters."""
    return validate_string_safe(
        username, min_length=MIN_USERNAME_LENGTH, field_name="username"
    )


def validate_email(email: Optional[str]) -> str:
    """Email must be present and contain an '@'."""
    value = validate_string_safe(email, field_name="email")
    if "@" not in value:
        raise ValidationError("email", "email must contain '@'")
    return value


def validate_secret(secret: Optional[str]) -> str:
    """Secret must be present and at least MIN_SECRET_LENGTH characters."""
    return validate_string_safe(
        secret, min_length=MIN_SECRET_LENGTH, field_name="secret"
    )


def validate_registration(
    username: Optional[str],
    email: Optional[str],
    secret: Optional[str],
) -> None:
    """
    Validate a registration triple, first failure wins.

    Raises:
        ValidationError: For the first field that fails
    """
    validate_username(username)
    validate_email(email)
    validate_secret(secret)
