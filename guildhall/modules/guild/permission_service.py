"""
GuildPermissionService - Business logic for guild authorization
===============================================================

Handles:
- Deriving a caller's effective rank in a guild (owner, member, none)
- Permission decisions for inviting and kicking
- Leaving a guild
- Kicking a member from a guild

Rank comparisons go through RankTier; the owner is a virtual tier above
Leader and is never stored in guild_ranks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

from guildhall.core.database.service import DatabaseService
from guildhall.core.logging.logger import LogContext
from guildhall.core.validation.input_validator import InputValidator
from guildhall.database.models.social.guild_rank import RankTier
from guildhall.modules.guild.repository import GuildRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus
    from guildhall.database.models.core.character import Character
    from guildhall.database.models.social.guild import Guild
    from guildhall.modules.character.directory_service import CharacterDirectoryService
    from guildhall.modules.guild.member_service import GuildMemberService


@dataclass(frozen=True)
class EffectiveRank:
    """
    A caller's standing in one guild.

    `character_id` is the caller's character that grants the tier, or None
    when the caller has no standing.
    """

    tier: RankTier
    character_id: Optional[int] = None

    @property
    def is_member(self) -> bool:
        return self.tier >= RankTier.MEMBER

    @property
    def is_owner(self) -> bool:
        return self.tier is RankTier.OWNER


NO_RANK = EffectiveRank(RankTier.NONE)


class GuildPermissionService(BaseService):
    """
    GuildPermissionService handles guild authorization.

    Business Logic:
    - Owner outranks every stored rank
    - Inviting and kicking require Vice Leader or above
    - The owner can neither leave nor be kicked
    - Non-members cannot leave
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        member_service: GuildMemberService,
        character_directory: CharacterDirectoryService,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._guild_repo = GuildRepository(self.log)
        self._members = member_service
        self._directory = character_directory

    # -------------------------------------------------------------------------
    # Policy
    # -------------------------------------------------------------------------

    async def effective_rank(
        self, session: AsyncSession, account_id: int, guild: Guild
    ) -> EffectiveRank:
        """
        Standing of the account's best character in the guild.

        Owner if any character owns the guild, else the highest stored rank
        held by any character, else NO_RANK.
        """
        characters = await self._directory.list_for_account(session, account_id)
        return await self.effective_rank_of(session, characters, guild)

    async def effective_rank_of(
        self, session: AsyncSession, characters: List[Character], guild: Guild
    ) -> EffectiveRank:
        for character in characters:
            if character.id == guild.owner_id:
                return EffectiveRank(RankTier.OWNER, character.id)

        best: Optional[EffectiveRank] = None
        for character in characters:
            level = await self._members.rank_level_of(session, character.id, guild.id)
            if level <= 0:
                continue
            candidate = EffectiveRank(RankTier.from_level(level), character.id)
            if best is None or candidate.tier > best.tier:
                best = candidate

        return best or NO_RANK

    @staticmethod
    def can_invite(rank: EffectiveRank) -> bool:
        return rank.tier >= RankTier.VICE_LEADER

    @staticmethod
    def can_kick(rank: EffectiveRank) -> bool:
        return rank.tier >= RankTier.VICE_LEADER

    async def leave(
        self, session: AsyncSession, character_id: int, guild: Guild
    ) -> None:
        """
        Remove a non-owner member from the guild.

        Raises:
            ForbiddenError: Character owns the guild or is not a member
        """
        if guild.owner_id == character_id:
            raise ForbiddenError(
                "leave_guild",
                "Guild owner cannot leave the guild",
            )
        if await self._members.membership_in(session, character_id, guild.id) is None:
            raise ForbiddenError("leave_guild", "You are not a member of this guild")

        await self._members.remove(session, character_id, guild)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def leave_guild(
        self,
        caller_account_id: int,
        guild_name: str,
        character_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Leave a guild with one of the caller's characters.

        Without `character_name`, the account's member character in that
        guild is used.

        Raises:
            ValidationError: Bad input, or the account has no characters
            NotFoundError: Guild or named character not found
            ForbiddenError: Character owns the guild or is not a member
        """
        account_id = InputValidator.validate_account_id(caller_account_id)
        guild_name = InputValidator.validate_required_name(guild_name, "guild_name")
        if character_name is not None:
            character_name = InputValidator.validate_required_name(
                character_name, "character_name"
            )

        async with LogContext(
            account_id=account_id, guild_name=guild_name, operation="leave_guild"
        ):
            try:
                async with DatabaseService.get_transaction() as session:
                    guild = await self._guild_repo.require_by_name(session, guild_name)
                    character = await self._resolve_leaving_character(
                        session, account_id, guild, character_name
                    )
                    await self.leave(session, character.id, guild)
                    guild_id, character_id = guild.id, character.id
            except Exception as exc:
                self.log_error("leave_guild", exc, account_id=account_id)
                raise

            await self.emit_event(
                "guild.member_left",
                {"guild_id": guild_id, "character_id": character_id},
            )
            self.log_operation(
                "leave_guild",
                account_id=account_id,
                guild_id=guild_id,
                character_id=character_id,
            )
            return {}

    async def _resolve_leaving_character(
        self,
        session: AsyncSession,
        account_id: int,
        guild: Guild,
        character_name: Optional[str],
    ) -> Character:
        if character_name is not None:
            character = await self._directory.find_owned(
                session, account_id, character_name
            )
            if character is None:
                raise NotFoundError("Character", character_name)
            return character

        characters = await self._directory.list_for_account(session, account_id)
        if not characters:
            raise ValidationError(
                "character", "You need at least one character to leave a guild"
            )

        owner = None
        for character in characters:
            if character.id == guild.owner_id:
                owner = character
                continue
            if await self._members.membership_in(session, character.id, guild.id):
                return character

        # Owner or non-member; leave() raises the matching Forbidden
        return owner or characters[0]

    async def kick_player(
        self,
        caller_account_id: int,
        guild_name: str,
        player_name: str,
    ) -> Dict[str, Any]:
        """
        Remove a member from a guild.

        Raises:
            ValidationError: Bad input, or the account has no characters
            NotFoundError: Guild or target not found, or target not a member
            ForbiddenError: Caller below Vice Leader, or target is the owner
        """
        account_id = InputValidator.validate_account_id(caller_account_id)
        guild_name = InputValidator.validate_required_name(guild_name, "guild_name")
        player_name = InputValidator.validate_required_name(player_name, "player_name")

        async with LogContext(
            account_id=account_id, guild_name=guild_name, operation="kick_player"
        ):
            try:
                async with DatabaseService.get_transaction() as session:
                    guild = await self._guild_repo.require_by_name(session, guild_name)

                    characters = await self._directory.list_for_account(
                        session, account_id
                    )
                    if not characters:
                        raise ValidationError(
                            "character",
                            "You need at least one character to kick a player",
                        )

                    rank = await self.effective_rank_of(session, characters, guild)
                    if not self.can_kick(rank):
                        raise ForbiddenError(
                            "kick_player",
                            "You must be the guild owner or a vice-leader to kick players",
                        )

                    target = await self._directory.find_by_name(session, player_name)
                    if target is None:
                        raise NotFoundError("Character", player_name)

                    if target.id == guild.owner_id:
                        raise ForbiddenError("kick_player", "Cannot kick the guild owner")

                    await self._members.remove(session, target.id, guild)
                    guild_id, target_id = guild.id, target.id
                    kicked_by = rank.character_id
            except Exception as exc:
                self.log_error(
                    "kick_player", exc, account_id=account_id, player_name=player_name
                )
                raise

            await self.emit_event(
                "guild.member_kicked",
                {
                    "guild_id": guild_id,
                    "character_id": target_id,
                    "kicked_by": kicked_by,
                },
            )
            self.log_operation(
                "kick_player",
                account_id=account_id,
                guild_id=guild_id,
                character_id=target_id,
            )
            return {}
