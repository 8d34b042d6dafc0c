"""
Input Validation Layer for Guildhall

Purpose
-------
Provide a centralized validation layer for all caller-supplied input to the
guild subsystem. Enforces type safety, bounds checking and format validation
before any database transaction is opened.

Responsibilities
----------------
- Sanitize free-text input (trim, truncate to the storage limit)
- Validate and convert integers (account ids, page numbers) with bounds
- Validate guild names against the configured length and charset rules
- Raise ValidationError with user-friendly error messages

Non-Responsibilities
--------------------
- Business rules such as name uniqueness (service layer concern)
- Authorization and permissions (GuildPermissionService)

Observability
-------------
Every validation failure is logged at debug level with field_name, raw_value
(repr) and reason.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional

from guildhall.core.config.manager import ConfigManager
from guildhall.core.logging.logger import get_logger
from guildhall.modules.shared.constants import (
    DEFAULT_GUILD_NAME_MAX_LENGTH,
    DEFAULT_GUILD_NAME_MIN_LENGTH,
    GUILD_NAME_ALLOWED_CHARS,
    MAX_TEXT_LENGTH,
)
from guildhall.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

# ASCII \s only; Unicode whitespace and control characters are rejected
_GUILD_NAME_PATTERN = re.compile(f"[{GUILD_NAME_ALLOWED_CHARS}]+", re.ASCII)


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log at debug level and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Centralized input validation.

    All validation methods are stateless, return the validated value on
    success, and raise ValidationError on failure.
    """

    # =========================================================================
    # SANITIZATION
    # =========================================================================

    @staticmethod
    def sanitize(value: Optional[str], max_length: int = MAX_TEXT_LENGTH) -> str:
        """Trim surrounding whitespace and truncate to `max_length`."""
        if value is None:
            return ""
        return str(value).strip()[:max_length]

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Raises:
            ValidationError: If the value is missing, not integral, or out of range
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a whole number, got '{value}'",
            )

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=1,
            max_value=max_value,
        )

    @staticmethod
    def validate_account_id(value: Any, field_name: str = "account_id") -> int:
        return InputValidator.validate_positive_integer(
            value, field_name=field_name, max_value=2**63 - 1
        )

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_required_name(value: Any, field_name: str) -> str:
        """Sanitize a character or guild reference and require it to be non-empty."""
        name = InputValidator.sanitize(value)
        if not name:
            _raise_validation_error(field_name, value, "Value is required")
        return name

    # =========================================================================
    # GUILD NAME VALIDATION
    # =========================================================================

    @staticmethod
    def validate_guild_name(value: Any, field_name: str = "name") -> str:
        """
        Validate a new guild name.

        Names are sanitized first, then must be within the configured length
        bounds (default 3-20) and contain only letters, digits and spaces.
        """
        name = InputValidator.sanitize(value)

        min_length = int(
            ConfigManager.get("guilds.name_min_length", DEFAULT_GUILD_NAME_MIN_LENGTH)
        )
        max_length = int(
            ConfigManager.get("guilds.name_max_length", DEFAULT_GUILD_NAME_MAX_LENGTH)
        )

        if len(name) < min_length or len(name) > max_length:
            _raise_validation_error(
                field_name,
                name,
                f"Guild name must be between {min_length} and {max_length} characters",
            )

        if not _GUILD_NAME_PATTERN.fullmatch(name):
            _raise_validation_error(
                field_name,
                name,
                "Guild name can only contain letters, numbers, and spaces",
            )

        return name
