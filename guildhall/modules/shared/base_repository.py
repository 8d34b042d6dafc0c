"""
BaseRepository - typed row access for one model.

Services own the session and the transaction; a repository only builds
statements, runs them on the session it is handed and traces each call at
DEBUG. No business rules live here.

    invites = BaseRepository[GuildInvite](GuildInvite, logger)
    invite = await invites.find_one_where(
        session,
        GuildInvite.guild_id == guild_id,
        GuildInvite.character_id == character_id,
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    def __init__(self, model_class: Type[ModelT], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def model_name(self) -> str:
        return self.model_class.__name__

    def _trace(self, action: str, **fields: Any) -> None:
        self.log.debug(
            f"{self.model_name}.{action}",
            extra={"model": self.model_name, "repository_action": action, **fields},
        )

    def _rows(
        self,
        conditions: Sequence[ColumnElement[bool]],
        order_by: Optional[List[Any]],
    ) -> Select:
        stmt = select(self.model_class).where(*conditions)
        return stmt.order_by(*order_by) if order_by else stmt

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[ModelT]:
        """Row by primary key, or None."""
        instance = await session.get(self.model_class, id_value)
        self._trace("get", id=id_value, found=instance is not None)
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[List[Any]] = None,
    ) -> Optional[ModelT]:
        """First matching row under `order_by`, or None."""
        result = await session.execute(self._rows(conditions, order_by).limit(1))
        instance = result.scalars().first()
        self._trace("find_one_where", found=instance is not None)
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[List[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        stmt = self._rows(conditions, order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        instances = list((await session.scalars(stmt)).all())
        self._trace("find_many_where", found_count=len(instances), limit=limit)
        return instances

    async def count(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        total = (await session.execute(stmt)).scalar_one()
        self._trace("count", count=total)
        return total

    # -------------------------------------------------------------------------
    # Writes (flushed or committed by the caller's transaction)
    # -------------------------------------------------------------------------

    def add(self, session: AsyncSession, instance: ModelT) -> ModelT:
        session.add(instance)
        self._trace("add")
        return instance

    async def delete(self, session: AsyncSession, instance: ModelT) -> None:
        await session.delete(instance)
        self._trace("delete", id=getattr(instance, "id", None))

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
