"""
Database subsystem for Guildhall.

Provides the async SQLAlchemy engine, session management and the ORM base
classes and mixins for model definitions.
"""

from guildhall.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from guildhall.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
