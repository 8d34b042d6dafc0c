"""
Guild-specific repository queries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import func

from guildhall.database.models.social.guild import Guild
from guildhall.modules.shared.base_repository import BaseRepository
from guildhall.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class GuildRepository(BaseRepository[Guild]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Guild, logger)

    async def find_by_name(self, session: AsyncSession, name: str) -> Optional[Guild]:
        """Case-insensitive name lookup."""
        return await self.find_one_where(
            session, func.lower(Guild.name) == func.lower(name)
        )

    async def require_by_name(self, session: AsyncSession, name: str) -> Guild:
        guild = await self.find_by_name(session, name)
        if guild is None:
            raise NotFoundError("Guild", name)
        return guild

    async def find_owned_by(
        self, session: AsyncSession, character_id: int
    ) -> Optional[Guild]:
        return await self.find_one_where(session, Guild.owner_id == character_id)
