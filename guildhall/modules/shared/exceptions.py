"""
Domain exceptions: the guild rules a request can break.

Services raise these for expected outcomes (a missing guild, a duplicate
invite, a Member trying to kick). They are logged at INFO, never retried,
and map 1:1 onto an HTTP status through ``http_status``.

Validation errors are raised before any transaction opens; the others are
raised inside one and roll it back.
"""

from __future__ import annotations

from typing import Any, Optional

from guildhall.core.exceptions import ErrorSeverity, GuildhallError


class GuildhallDomainException(GuildhallError):
    SEVERITY = ErrorSeverity.INFO
    HTTP_STATUS = 400


class ValidationError(GuildhallDomainException):
    """Malformed or out-of-range input (400)."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(GuildhallDomainException):
    """
    A guild, character, membership or invite does not exist (404).

    >>> NotFoundError("Invite", "Ravens").error_code
    'INVITE_NOT_FOUND'
    """

    HTTP_STATUS = 404

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        message = f"{resource_type} not found"
        if identifier is not None:
            message = f"{message}: {identifier}"
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ConflictError(GuildhallDomainException):
    """
    The request would break a uniqueness rule (409): a taken guild name, a
    character already in or owning a guild, a duplicate invite.
    """

    HTTP_STATUS = 409

    def __init__(self, resource_type: str, reason: str) -> None:
        self.resource_type = resource_type
        self.reason = reason
        super().__init__(
            f"{resource_type} conflict: {reason}",
            details={"resource_type": resource_type, "reason": reason},
            error_code=f"{resource_type.upper()}_CONFLICT",
        )


class ForbiddenError(GuildhallDomainException):
    """The caller's rank does not allow the action (403)."""

    HTTP_STATUS = 403

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Forbidden '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"FORBIDDEN_{action.upper()}",
        )
