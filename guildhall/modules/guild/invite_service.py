"""
GuildInviteService - Business logic for guild invitations
=========================================================

Handles:
- Creating invitations (one per character and guild)
- Accepting invitations (creates membership at the lowest rank)
- Pending invitations per account and per guild

Invites do not expire; they live until accepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

from sqlalchemy import select

from guildhall.core.database.service import DatabaseService
from guildhall.core.logging.logger import LogContext
from guildhall.core.validation.input_validator import InputValidator
from guildhall.database.models.core.character import Character
from guildhall.database.models.social.guild import Guild
from guildhall.database.models.social.guild_invite import GuildInvite
from guildhall.modules.guild.repository import GuildRepository
from guildhall.modules.shared.base_repository import BaseRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus
    from guildhall.modules.character.directory_service import CharacterDirectoryService
    from guildhall.modules.guild.member_service import GuildMemberService
    from guildhall.modules.guild.permission_service import GuildPermissionService
    from guildhall.modules.guild.rank_service import GuildRankService


class GuildInviteService(BaseService):
    """
    GuildInviteService handles guild invitation operations.

    Business Logic:
    - Owner and Vice Leaders and above can invite
    - Cannot invite a character that is in or owns a guild
    - At most one pending invite per character and guild
    - Accepting joins at the guild's lowest rank and consumes the invite
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        member_service: GuildMemberService,
        rank_service: GuildRankService,
        permission_service: GuildPermissionService,
        character_directory: CharacterDirectoryService,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._guild_repo = GuildRepository(self.log)
        self._invite_repo = BaseRepository[GuildInvite](GuildInvite, self.log)
        self._members = member_service
        self._ranks = rank_service
        self._permissions = permission_service
        self._directory = character_directory

    # -------------------------------------------------------------------------
    # Store operations
    # -------------------------------------------------------------------------

    async def find(
        self, session: AsyncSession, character_id: int, guild_id: int
    ) -> Optional[GuildInvite]:
        return await self._invite_repo.find_one_where(
            session,
            GuildInvite.character_id == character_id,
            GuildInvite.guild_id == guild_id,
        )

    async def create(
        self, session: AsyncSession, character_id: int, guild_id: int
    ) -> GuildInvite:
        """
        Record a pending invite.

        Raises:
            NotFoundError: Character does not exist
            ConflictError: Character is in or owns a guild, or the invite
                already exists
        """
        if await self._directory.get(session, character_id) is None:
            raise NotFoundError("Character", character_id)

        await self._members.ensure_unaffiliated(session, character_id)

        if await self.find(session, character_id, guild_id) is not None:
            raise ConflictError("Invite", "Player already has a pending invite")

        invite = GuildInvite(character_id=character_id, guild_id=guild_id)
        self._invite_repo.add(session, invite)
        await self._invite_repo.flush(session)
        return invite

    async def accept(
        self, session: AsyncSession, character_id: int, guild_id: int
    ) -> int:
        """
        Turn a pending invite into a membership.

        Returns:
            Id of the rank the character joined with

        Raises:
            NotFoundError: No pending invite for the pair
            ConflictError: Character is in or owns a guild
        """
        invite = await self.find(session, character_id, guild_id)
        if invite is None:
            raise NotFoundError("Invite", f"{character_id}@{guild_id}")

        rank = await self._ranks.lowest_rank(session, guild_id)
        await self._members.add(session, character_id, guild_id, rank.id)

        await self._invite_repo.delete(session, invite)
        await self._invite_repo.flush(session)
        return rank.id

    async def has_pending(
        self, session: AsyncSession, guild_id: int, account_id: int
    ) -> bool:
        stmt = (
            select(GuildInvite.character_id)
            .join(Character, Character.id == GuildInvite.character_id)
            .where(
                GuildInvite.guild_id == guild_id,
                Character.account_id == account_id,
            )
            .limit(1)
        )
        return (await session.execute(stmt)).first() is not None

    async def list_pending_for_account(
        self, session: AsyncSession, account_id: int
    ) -> List[Dict[str, Any]]:
        """Invites across all of the account's characters, newest first."""
        stmt = (
            select(GuildInvite, Guild, Character)
            .join(Guild, Guild.id == GuildInvite.guild_id)
            .join(Character, Character.id == GuildInvite.character_id)
            .where(Character.account_id == account_id)
            .order_by(GuildInvite.invited_at.desc(), Guild.name)
        )
        rows = (await session.execute(stmt)).all()
        return [
            {
                "guild_id": guild.id,
                "guild_name": guild.name,
                "guild_level": guild.level,
                "guild_points": guild.points,
                "player_name": character.name,
                "invited_at": invite.invited_at.isoformat(),
            }
            for invite, guild, character in rows
        ]

    async def list_for_guild(
        self, session: AsyncSession, guild_id: int
    ) -> List[Dict[str, Any]]:
        """Pending invites of a guild, newest first."""
        stmt = (
            select(GuildInvite, Character)
            .join(Character, Character.id == GuildInvite.character_id)
            .where(GuildInvite.guild_id == guild_id)
            .order_by(GuildInvite.invited_at.desc(), Character.name)
        )
        rows = (await session.execute(stmt)).all()
        return [
            {
                "player_id": character.id,
                "player_name": character.name,
                "level": character.level,
                "vocation": self._directory.vocation_name(character.vocation),
                "invited_at": invite.invited_at.isoformat(),
            }
            for invite, character in rows
        ]

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def invite_player(
        self,
        caller_account_id: int,
        guild_name: str,
        player_name: str,
    ) -> Dict[str, Any]:
        """
        Invite a character to a guild.

        Raises:
            ValidationError: Bad input
            NotFoundError: Guild or target character not found
            ForbiddenError: Caller is not the owner or a Vice Leader and above
            ConflictError: Target is in or owns a guild, or already invited
        """
        account_id = InputValidator.validate_account_id(caller_account_id)
        guild_name = InputValidator.validate_required_name(guild_name, "guild_name")
        player_name = InputValidator.validate_required_name(player_name, "player_name")

        async with LogContext(
            account_id=account_id, guild_name=guild_name, operation="invite_player"
        ):
            try:
                async with DatabaseService.get_transaction() as session:
                    guild = await self._guild_repo.require_by_name(session, guild_name)

                    rank = await self._permissions.effective_rank(
                        session, account_id, guild
                    )
                    if not rank.is_member:
                        raise ForbiddenError(
                            "invite_player", "You are not a member of this guild"
                        )
                    if not self._permissions.can_invite(rank):
                        raise ForbiddenError(
                            "invite_player",
                            "Only guild owner or vice leaders can invite players",
                        )

                    target = await self._directory.find_by_name(session, player_name)
                    if target is None:
                        raise NotFoundError("Character", player_name)

                    invite = await self.create(session, target.id, guild.id)
                    guild_id, target_id = guild.id, target.id
                    invited_at = invite.invited_at
                    invited_by = rank.character_id
            except Exception as exc:
                self.log_error(
                    "invite_player", exc, account_id=account_id, player_name=player_name
                )
                raise

            await self.emit_event(
                "guild.invite_created",
                {
                    "guild_id": guild_id,
                    "character_id": target_id,
                    "invited_by": invited_by,
                    "invited_at": invited_at.isoformat(),
                },
            )
            self.log_operation(
                "invite_player",
                account_id=account_id,
                guild_id=guild_id,
                character_id=target_id,
            )
            return {}

    async def accept_invite(
        self,
        caller_account_id: int,
        guild_name: str,
        character_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Accept a pending invite with one of the caller's characters.

        Without `character_name`, the account's character holding an invite
        to that guild is used.

        Raises:
            ValidationError: Bad input, or the account has no characters
            NotFoundError: Guild, named character or invite not found
            ConflictError: Character is in or owns a guild
        """
        account_id = InputValidator.validate_account_id(caller_account_id)
        guild_name = InputValidator.validate_required_name(guild_name, "guild_name")
        if character_name is not None:
            character_name = InputValidator.validate_required_name(
                character_name, "character_name"
            )

        async with LogContext(
            account_id=account_id, guild_name=guild_name, operation="accept_invite"
        ):
            try:
                async with DatabaseService.get_transaction() as session:
                    guild = await self._guild_repo.require_by_name(session, guild_name)
                    character = await self._resolve_invited_character(
                        session, account_id, guild, character_name
                    )
                    rank_id = await self.accept(session, character.id, guild.id)
                    guild_id, character_id = guild.id, character.id
            except Exception as exc:
                self.log_error("accept_invite", exc, account_id=account_id)
                raise

            await self.emit_event(
                "guild.invite_accepted",
                {"guild_id": guild_id, "character_id": character_id, "rank_id": rank_id},
            )
            self.log_operation(
                "accept_invite",
                account_id=account_id,
                guild_id=guild_id,
                character_id=character_id,
            )
            return {}

    async def _resolve_invited_character(
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
                "character",
                "You need at least one character to accept a guild invite",
            )

        for character in characters:
            if await self.find(session, character.id, guild.id) is not None:
                return character

        raise NotFoundError("Invite", guild.name)

    async def get_pending_invites(self, caller_account_id: int) -> List[Dict[str, Any]]:
        account_id = InputValidator.validate_account_id(caller_account_id)

        async with LogContext(account_id=account_id, operation="get_pending_invites"):
            try:
                async with DatabaseService.get_session() as session:
                    invites = await self.list_pending_for_account(session, account_id)
            except Exception as exc:
                self.log_error("get_pending_invites", exc, account_id=account_id)
                raise

            self.log.debug(
                "Pending invites fetched",
                extra={"account_id": account_id, "count": len(invites)},
            )
            return invites
