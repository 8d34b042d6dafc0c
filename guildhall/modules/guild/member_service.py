"""
GuildMemberService - Business logic for guild membership
========================================================

Handles:
- The character <-> guild relation (one membership per character)
- Occupancy checks: already a member, already an owner
- Rank level lookups for authorization
- Sorted member listings annotated with level, vocation, rank and presence
- Member counts for guild listings

Every method joins the caller's session; opening and committing
transactions is the job of the public operations that call in here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Type

from sqlalchemy import case, func, select

from guildhall.database.models.core.character import Character
from guildhall.database.models.social.guild import Guild
from guildhall.database.models.social.guild_member import GuildMember
from guildhall.database.models.social.guild_rank import GuildRank, RankTier
from guildhall.modules.guild.repository import GuildRepository
from guildhall.modules.shared.base_repository import BaseRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.constants import DEFAULT_RANKS
from guildhall.modules.shared.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus
    from guildhall.modules.character.directory_service import CharacterDirectoryService
    from guildhall.modules.character.presence_service import PresenceService

LEADER_RANK_NAME = DEFAULT_RANKS[0][0]


class GuildMemberService(BaseService):
    """
    GuildMemberService owns the guild_membership table.

    Business Logic:
    - A character has at most one membership row system-wide
    - A character owning a guild cannot join another one
    - The owner's membership row is never removed
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        character_directory: CharacterDirectoryService,
        presence: PresenceService,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._guild_repo = GuildRepository(self.log)
        self._member_repo = BaseRepository[GuildMember](GuildMember, self.log)
        self._directory = character_directory
        self._presence = presence

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def membership_of(
        self, session: AsyncSession, character_id: int
    ) -> Optional[GuildMember]:
        return await self._member_repo.find_one_where(
            session, GuildMember.character_id == character_id
        )

    async def membership_in(
        self, session: AsyncSession, character_id: int, guild_id: int
    ) -> Optional[GuildMember]:
        return await self._member_repo.find_one_where(
            session,
            GuildMember.character_id == character_id,
            GuildMember.guild_id == guild_id,
        )

    async def rank_level_of(
        self, session: AsyncSession, character_id: int, guild_id: int
    ) -> int:
        """Stored rank level of the character in the guild, 0 if not a member."""
        stmt = (
            select(GuildRank.level)
            .join(GuildMember, GuildMember.rank_id == GuildRank.id)
            .where(
                GuildMember.character_id == character_id,
                GuildMember.guild_id == guild_id,
            )
        )
        level = (await session.execute(stmt)).scalar_one_or_none()
        return level or 0

    async def ensure_unaffiliated(
        self,
        session: AsyncSession,
        character_id: int,
        allow_owner_of: Optional[int] = None,
    ) -> None:
        """
        Raise ConflictError if the character is in or owns a guild.

        Args:
            allow_owner_of: Guild id whose ownership is not a conflict (the
                guild being created for this founder)
        """
        if await self.membership_of(session, character_id) is not None:
            raise ConflictError("GuildMember", "Character is already in a guild")

        owned = await self._guild_repo.find_owned_by(session, character_id)
        if owned is not None and owned.id != allow_owner_of:
            raise ConflictError("Guild", "Character already owns a guild")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add(
        self,
        session: AsyncSession,
        character_id: int,
        guild_id: int,
        rank_id: int,
        allow_owner_of: Optional[int] = None,
    ) -> GuildMember:
        """
        Insert a membership row.

        Raises:
            ConflictError: Character already has a membership or owns
                another guild
        """
        await self.ensure_unaffiliated(session, character_id, allow_owner_of)

        member = GuildMember(
            character_id=character_id,
            guild_id=guild_id,
            rank_id=rank_id,
            nick="",
        )
        self._member_repo.add(session, member)
        await self._member_repo.flush(session)

        self.log.debug(
            "Membership added",
            extra={"character_id": character_id, "guild_id": guild_id, "rank_id": rank_id},
        )
        return member

    async def remove(
        self, session: AsyncSession, character_id: int, guild: Guild
    ) -> GuildMember:
        """
        Delete a membership row.

        Raises:
            ForbiddenError: Character is the guild's owner
            NotFoundError: Character is not a member of the guild
        """
        if guild.owner_id == character_id:
            raise ForbiddenError("remove_member", "The guild owner cannot be removed")

        member = await self.membership_in(session, character_id, guild.id)
        if member is None:
            raise NotFoundError("GuildMember", character_id)

        await self._member_repo.delete(session, member)
        await self._member_repo.flush(session)

        self.log.debug(
            "Membership removed",
            extra={"character_id": character_id, "guild_id": guild.id},
        )
        return member

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    async def list_members(
        self, session: AsyncSession, guild: Guild
    ) -> List[Dict[str, Any]]:
        """
        Members sorted by rank level desc, character level desc, name asc.

        If the owner has no membership row, a Leader entry is synthesized for
        display only; nothing is written back.
        """
        stmt = (
            select(GuildMember, Character, GuildRank)
            .join(Character, GuildMember.character_id == Character.id)
            .join(GuildRank, GuildMember.rank_id == GuildRank.id)
            .where(GuildMember.guild_id == guild.id)
        )
        rows = (await session.execute(stmt)).all()

        character_ids = [character.id for _, character, _ in rows]
        if guild.owner_id not in character_ids:
            character_ids.append(guild.owner_id)
        online = await self._presence.online_ids(session, character_ids)

        members: List[Dict[str, Any]] = [
            self._member_entry(
                character,
                rank_name=rank.name,
                rank_level=rank.level,
                nick=member.nick,
                is_online=character.id in online,
            )
            for member, character, rank in rows
        ]

        if not any(entry["player_id"] == guild.owner_id for entry in members):
            owner = await self._directory.get(session, guild.owner_id)
            if owner is not None:
                self.log.warning(
                    "Guild owner has no membership row; showing synthesized Leader entry",
                    extra={"guild_id": guild.id, "owner_id": guild.owner_id},
                )
                members.append(
                    self._member_entry(
                        owner,
                        rank_name=LEADER_RANK_NAME,
                        rank_level=int(RankTier.LEADER),
                        nick="",
                        is_online=owner.id in online,
                    )
                )

        members.sort(key=lambda m: (-m["rank_level"], -m["level"], m["name"]))
        return members

    def _member_entry(
        self,
        character: Character,
        *,
        rank_name: str,
        rank_level: int,
        nick: str,
        is_online: bool,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "player_id": character.id,
            "name": character.name,
            "level": character.level,
            "vocation": self._directory.vocation_name(character.vocation),
            "rank": rank_name,
            "rank_level": rank_level,
            "status": self._presence.status_label(is_online),
        }
        if nick:
            entry["nick"] = nick
        return entry

    async def member_counts(
        self, session: AsyncSession, guilds: Iterable[Guild]
    ) -> Dict[int, int]:
        """
        Member count per guild for listings.

        Distinct members, plus one when the owner lacks a membership row,
        never less than one.
        """
        guild_list = list(guilds)
        if not guild_list:
            return {}

        stmt = (
            select(
                GuildMember.guild_id,
                func.count(func.distinct(GuildMember.character_id)),
                func.max(case((GuildMember.character_id == Guild.owner_id, 1), else_=0)),
            )
            .join(Guild, Guild.id == GuildMember.guild_id)
            .where(GuildMember.guild_id.in_([g.id for g in guild_list]))
            .group_by(GuildMember.guild_id)
        )
        rows = {
            guild_id: (count, owner_present)
            for guild_id, count, owner_present in (await session.execute(stmt)).all()
        }

        counts: Dict[int, int] = {}
        for guild in guild_list:
            count, owner_present = rows.get(guild.id, (0, 0))
            counts[guild.id] = max(count + (0 if owner_present else 1), 1)
        return counts
