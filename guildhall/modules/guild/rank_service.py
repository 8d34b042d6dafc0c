"""
GuildRankService - the rank catalog of each guild
=================================================

Handles:
- Seeding the three default ranks when a guild is created
- Listing a guild's ranks, highest authority first
- Resolving the lowest rank for newly accepted members

Ranks are immutable once seeded. Every method joins the caller's session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Type

from guildhall.core.exceptions import DatabaseError
from guildhall.database.models.social.guild_rank import GuildRank, RankTier
from guildhall.modules.shared.base_repository import BaseRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.constants import DEFAULT_RANKS

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus


class GuildRankService(BaseService):
    """
    Business Logic:
    - Every guild has exactly Leader(3), Vice Leader(2) and Member(1)
    - Rank levels are guild-scoped; compare them through RankTier
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._rank_repo = BaseRepository[GuildRank](GuildRank, self.log)

    async def seed_default_ranks(
        self, session: AsyncSession, guild_id: int
    ) -> Dict[RankTier, GuildRank]:
        """
        Insert the default ranks for a new guild.

        Must run inside the transaction that inserted the guild.

        Returns:
            Mapping of tier to the flushed rank row (ids populated)
        """
        ranks: Dict[RankTier, GuildRank] = {}
        for name, level in DEFAULT_RANKS:
            rank = GuildRank(guild_id=guild_id, name=name, level=level)
            self._rank_repo.add(session, rank)
            ranks[RankTier(level)] = rank

        await self._rank_repo.flush(session)

        self.log.debug(
            "Default ranks seeded",
            extra={
                "guild_id": guild_id,
                "rank_ids": {tier.name: rank.id for tier, rank in ranks.items()},
            },
        )
        return ranks

    async def list_ranks(self, session: AsyncSession, guild_id: int) -> List[GuildRank]:
        return await self._rank_repo.find_many_where(
            session,
            GuildRank.guild_id == guild_id,
            order_by=[GuildRank.level.desc()],
        )

    async def lowest_rank(self, session: AsyncSession, guild_id: int) -> GuildRank:
        """
        Raises:
            DatabaseError: If the guild has no ranks (broken seeding)
        """
        rank = await self._rank_repo.find_one_where(
            session,
            GuildRank.guild_id == guild_id,
            order_by=[GuildRank.level.asc()],
        )
        if rank is None:
            raise DatabaseError(
                "lowest_rank", LookupError(f"guild {guild_id} has no ranks")
            )
        return rank

    @staticmethod
    def serialize(rank: GuildRank) -> Dict[str, object]:
        return {"id": rank.id, "name": rank.name, "level": rank.level}
