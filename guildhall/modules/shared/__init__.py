"""
Shared building blocks for Guildhall domain modules.

Exposes the domain exception hierarchy. Import base classes from their
modules directly (``guildhall.modules.shared.base_service``,
``guildhall.modules.shared.base_repository``).
"""

from guildhall.modules.shared.exceptions import (
    ConflictError,
    ForbiddenError,
    GuildhallDomainException,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "GuildhallDomainException",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ForbiddenError",
]
