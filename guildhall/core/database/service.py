"""
DatabaseService - the one async engine behind every guild operation.

Services never touch the engine directly. They open a scope:

>>> async with DatabaseService.get_transaction() as session:
...     session.add(Guild(name="Ravens", owner_id=thorin.id))

>>> async with DatabaseService.get_session() as session:
...     guilds = (await session.scalars(select(Guild))).all()

A transaction commits when its block exits cleanly and rolls back on any
exception. A read session never commits. Both are bounded by
``Config.DATABASE_QUERY_TIMEOUT`` (plus ``statement_timeout`` on Postgres).
Failures leave a scope as Guildhall errors:

- deadline exceeded -> DatabaseTimeoutError
- unique constraint violation -> ConflictError
- any other IntegrityError (such as a foreign key) -> DatabaseError
- any other SQLAlchemyError -> DatabaseError
- domain exceptions raised inside the block -> unchanged

There are no automatic retries; ``is_retryable`` tells the caller whether one
makes sense.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, QueuePool

from guildhall.core.config.config import Config
from guildhall.core.database.base import Base
from guildhall.core.exceptions import DatabaseError, DatabaseTimeoutError
from guildhall.core.logging.logger import get_logger
from guildhall.modules.shared.exceptions import ConflictError

logger = get_logger(__name__)

# PostgreSQL SQLSTATE for unique_violation
_PG_UNIQUE_VIOLATION = "23505"


class DatabaseInitializationError(RuntimeError):
    """The engine could not be created from the configured URL."""


class DatabaseNotInitializedError(RuntimeError):
    """A scope was requested before ``DatabaseService.initialize()``."""


@dataclass(frozen=True)
class _EngineSettings:
    """Config values frozen for the lifetime of one engine."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    query_timeout: float

    @classmethod
    def from_config(cls, database_url: Optional[str]) -> "_EngineSettings":
        url = database_url or Config.DATABASE_URL
        if not url or not isinstance(url, str):
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )
        pooled = not (Config.is_testing() or url.startswith("sqlite"))
        return cls(
            url=url,
            echo=Config.DATABASE_ECHO,
            pool_class=QueuePool if pooled else NullPool,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            query_timeout=float(Config.DATABASE_QUERY_TIMEOUT),
        )

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"

    def engine_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"echo": self.echo, "poolclass": self.pool_class}
        if self.pool_class is QueuePool:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=True,
            )
        return kwargs


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(
        getattr(orig, "__cause__", None), "sqlstate", None
    )
    if sqlstate is not None:
        return sqlstate == _PG_UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


def _translate(exc: BaseException, operation: str, timeout: float) -> Optional[Exception]:
    """Guildhall error for a driver-level failure; None to re-raise as is."""
    if isinstance(exc, TimeoutError):
        logger.warning(
            f"Database {operation} exceeded deadline; rolled back",
            extra={"timeout_seconds": timeout},
        )
        return DatabaseTimeoutError(operation, timeout)

    if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
        logger.info(
            f"Database {operation} hit a uniqueness constraint; rolled back",
            extra={"error": str(exc.orig)},
        )
        return ConflictError("Record", "a conflicting record already exists")

    if isinstance(exc, SQLAlchemyError):
        logger.error(
            f"Database {operation} failed; rolled back",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=exc,
        )
        return DatabaseError(operation, exc)

    return None


class DatabaseService:
    """Classmethod singleton; ``initialize()`` once at startup."""

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_EngineSettings] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @classmethod
    async def initialize(cls, database_url: Optional[str] = None) -> None:
        """
        Create the engine and session factory. A second call is a no-op.

        Args:
            database_url: Overrides ``Config.DATABASE_URL``

        Raises:
            DatabaseInitializationError: Missing URL or engine creation failed
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                settings = _EngineSettings.from_config(database_url)
                engine = create_async_engine(settings.url, **settings.engine_kwargs())
            except DatabaseInitializationError:
                logger.error("DATABASE_URL is not configured")
                raise
            except Exception as exc:
                logger.error("Database engine creation failed", exc_info=True)
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            if settings.is_sqlite:
                event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

            cls._engine = engine
            cls._config_snapshot = settings
            cls._session_factory = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.info(
                "DatabaseService initialized",
                extra={
                    "url_scheme": settings.url_scheme,
                    "pool_class": settings.pool_class.__name__,
                    "query_timeout": settings.query_timeout,
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        async with cls._init_lock:
            engine, cls._engine = cls._engine, None
            cls._session_factory = None
            cls._config_snapshot = None
            if engine is not None:
                await engine.dispose()
                logger.info("DatabaseService shut down")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None or cls._session_factory is None:
            logger.error("DatabaseService used before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._engine

    # ------------------------------------------------------------------ #
    # Schema
    # ------------------------------------------------------------------ #

    @classmethod
    async def create_tables(cls) -> None:
        """Create every table on ``Base.metadata``; existing tables are kept."""
        engine = cls._require_engine()

        import guildhall.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database tables created",
            extra={"table_count": len(Base.metadata.tables)},
        )

    @classmethod
    async def drop_tables(cls) -> None:
        """
        Drop every table and its rows.

        Raises:
            RuntimeError: In the production environment
        """
        engine = cls._require_engine()
        if Config.is_production():
            raise RuntimeError("Cannot drop tables in production environment")

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Database tables dropped")

    @classmethod
    async def health_check(cls) -> bool:
        """``SELECT 1`` within the deadline. Never raises."""
        if cls._engine is None or cls._config_snapshot is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        try:
            async with asyncio.timeout(cls._config_snapshot.query_timeout):
                async with cls._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        return True

    # ------------------------------------------------------------------ #
    # Scopes
    # ------------------------------------------------------------------ #

    @classmethod
    @asynccontextmanager
    async def _scope(
        cls, operation: str, commit: bool
    ) -> AsyncGenerator[AsyncSession, None]:
        cls._require_engine()
        assert cls._session_factory is not None and cls._config_snapshot is not None
        settings = cls._config_snapshot
        start = time.perf_counter()

        async with cls._session_factory() as session:
            try:
                async with asyncio.timeout(settings.query_timeout):
                    if settings.is_postgres:
                        timeout_ms = int(settings.query_timeout * 1000)
                        await session.execute(
                            text(f"SET LOCAL statement_timeout = {timeout_ms}")
                        )
                    yield session
                    if commit:
                        await session.commit()
            except BaseException as exc:
                await session.rollback()
                translated = _translate(exc, operation, settings.query_timeout)
                if translated is None:
                    raise
                raise translated from exc
            finally:
                logger.debug(
                    f"Database {operation} closed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

    @classmethod
    def get_session(cls) -> AbstractAsyncContextManager[AsyncSession]:
        """
        Read-only scope: no commit, closed on exit.

        Raises:
            DatabaseNotInitializedError: Before ``initialize()``
            DatabaseTimeoutError: Deadline exceeded
            DatabaseError: Any other driver failure
        """
        return cls._scope("read", commit=False)

    @classmethod
    def get_transaction(cls) -> AbstractAsyncContextManager[AsyncSession]:
        """
        Atomic scope for every guild mutation: commit on success, rollback on
        any exception. Never call ``session.commit()`` inside the block.

        Raises:
            DatabaseNotInitializedError: Before ``initialize()``
            DatabaseTimeoutError: Deadline exceeded
            ConflictError: Unique constraint violated
            DatabaseError: Any other driver failure
        """
        return cls._scope("transaction", commit=True)
