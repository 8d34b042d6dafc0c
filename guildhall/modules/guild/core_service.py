"""
GuildService - Business logic for the guild registry
====================================================

Handles:
- Guild creation (guild, default ranks and founder membership in one transaction)
- Paged guild listing with case-insensitive search
- The guild detail view, with viewer-specific flags

Creation is all-or-nothing: a failure at any step rolls back the guild, its
ranks and the founder membership together.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Type

from sqlalchemy import func, select

from guildhall.core.database.service import DatabaseService
from guildhall.core.logging.logger import LogContext
from guildhall.core.validation.input_validator import InputValidator
from guildhall.database.models.core.character import Character
from guildhall.database.models.social.guild import Guild
from guildhall.database.models.social.guild_rank import RankTier
from guildhall.modules.guild.repository import GuildRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.constants import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_MIN_GUILD_CREATION_LEVEL,
    DEFAULT_PAGE,
    MAX_LIST_LIMIT,
    UNKNOWN_OWNER_NAME,
)
from guildhall.modules.shared.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus
    from guildhall.modules.character.directory_service import CharacterDirectoryService
    from guildhall.modules.guild.invite_service import GuildInviteService
    from guildhall.modules.guild.member_service import GuildMemberService
    from guildhall.modules.guild.permission_service import GuildPermissionService
    from guildhall.modules.guild.rank_service import GuildRankService


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class GuildService(BaseService):
    """
    GuildService is the guild registry.

    Business Logic:
    - Guild names are unique regardless of case
    - Founders must meet the configured minimum level
    - A founder may not already be in or own a guild
    - Every guild starts with Leader, Vice Leader and Member ranks and the
      founder as Leader
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        member_service: GuildMemberService,
        rank_service: GuildRankService,
        invite_service: GuildInviteService,
        permission_service: GuildPermissionService,
        character_directory: CharacterDirectoryService,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._guild_repo = GuildRepository(self.log)
        self._members = member_service
        self._ranks = rank_service
        self._invites = invite_service
        self._permissions = permission_service
        self._directory = character_directory

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_guild(
        self,
        caller_account_id: int,
        name: str,
        character_name: str,
        motd: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a guild founded by one of the caller's characters.

        Returns:
            {"id": guild id, "name": guild name}

        Raises:
            ValidationError: Bad guild name or character name
            NotFoundError: Founder does not exist on the caller's account
            ForbiddenError: Founder is below the minimum creation level
            ConflictError: Founder is in or owns a guild, or the name is taken
        """
        account_id = InputValidator.validate_account_id(caller_account_id)
        name = InputValidator.validate_guild_name(name)
        character_name = InputValidator.validate_required_name(
            character_name, "character_name"
        )
        motd = InputValidator.sanitize(motd) or None
        min_level = self.get_int_config(
            "guilds.min_creation_level", DEFAULT_MIN_GUILD_CREATION_LEVEL
        )

        async with LogContext(
            account_id=account_id, guild_name=name, operation="create_guild"
        ):
            try:
                async with DatabaseService.get_transaction() as session:
                    founder = await self._directory.find_owned(
                        session, account_id, character_name
                    )
                    if founder is None:
                        raise NotFoundError("Character", character_name)

                    if founder.level < min_level:
                        raise ForbiddenError(
                            "create_guild",
                            f"Character must be level {min_level} or higher to create a guild",
                        )

                    await self._members.ensure_unaffiliated(session, founder.id)

                    if await self._guild_repo.find_by_name(session, name) is not None:
                        raise ConflictError("Guild", "Guild name already exists")

                    guild = Guild(
                        name=name,
                        owner_id=founder.id,
                        motd=motd,
                        balance=0,
                        points=0,
                        level=1,
                    )
                    self._guild_repo.add(session, guild)
                    await self._guild_repo.flush(session)

                    ranks = await self._ranks.seed_default_ranks(session, guild.id)
                    await self._members.add(
                        session,
                        founder.id,
                        guild.id,
                        ranks[RankTier.LEADER].id,
                        allow_owner_of=guild.id,
                    )
                    guild_id, founder_id = guild.id, founder.id
            except Exception as exc:
                self.log_error(
                    "create_guild",
                    exc,
                    account_id=account_id,
                    character_name=character_name,
                )
                raise

            await self.emit_event(
                "guild.created",
                {"guild_id": guild_id, "name": name, "owner_id": founder_id},
            )
            self.log_operation(
                "create_guild",
                account_id=account_id,
                guild_id=guild_id,
                owner_id=founder_id,
            )
            return {"id": guild_id, "name": name}

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def _resolve_paging(self, page: Any, limit: Any) -> Tuple[int, int]:
        """Out-of-range or malformed paging falls back to the defaults."""
        default_limit = self.get_int_config("guilds.list_default_limit", DEFAULT_LIST_LIMIT)
        max_limit = self.get_int_config("guilds.list_max_limit", MAX_LIST_LIMIT)

        try:
            page_value = int(page) if page is not None else DEFAULT_PAGE
        except (TypeError, ValueError):
            page_value = DEFAULT_PAGE
        if page_value <= 0:
            page_value = DEFAULT_PAGE

        try:
            limit_value = int(limit) if limit is not None else default_limit
        except (TypeError, ValueError):
            limit_value = default_limit
        if limit_value <= 0 or limit_value > max_limit:
            limit_value = default_limit

        return page_value, limit_value

    async def list_guilds(
        self,
        page: Any = None,
        limit: Any = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Page of guilds ordered by level desc, points desc, name asc.

        Returns:
            {"guilds": [...], "pagination": {"page", "limit", "total", "total_pages"}}
        """
        page_value, limit_value = self._resolve_paging(page, limit)
        search_term = InputValidator.sanitize(search)

        conditions = []
        if search_term:
            conditions.append(
                func.lower(Guild.name).like(
                    f"%{_escape_like(search_term.lower())}%", escape="\\"
                )
            )

        async with LogContext(operation="list_guilds"):
            try:
                async with DatabaseService.get_session() as session:
                    total = await self._guild_repo.count(session, *conditions)

                    stmt = (
                        select(Guild, Character.name)
                        .outerjoin(Character, Character.id == Guild.owner_id)
                        .where(*conditions)
                        .order_by(Guild.level.desc(), Guild.points.desc(), Guild.name.asc())
                        .limit(limit_value)
                        .offset((page_value - 1) * limit_value)
                    )
                    rows = (await session.execute(stmt)).all()
                    counts = await self._members.member_counts(
                        session, [guild for guild, _ in rows]
                    )
            except Exception as exc:
                self.log_error("list_guilds", exc, search=search_term)
                raise

            guilds = [
                {
                    "id": guild.id,
                    "name": guild.name,
                    "level": guild.level,
                    "owner_name": owner_name or UNKNOWN_OWNER_NAME,
                    "member_count": counts.get(guild.id, 1),
                    "points": guild.points,
                }
                for guild, owner_name in rows
            ]

            self.log.debug(
                "Guild list fetched",
                extra={"page": page_value, "limit": limit_value, "total": total},
            )
            return {
                "guilds": guilds,
                "pagination": {
                    "page": page_value,
                    "limit": limit_value,
                    "total": total,
                    "total_pages": (total + limit_value - 1) // limit_value,
                },
            }

    # -------------------------------------------------------------------------
    # Details
    # -------------------------------------------------------------------------

    async def get_guild_details(
        self,
        name: str,
        viewer_account_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Full guild view: guild fields, ranks, sorted members, pending invites.

        With `viewer_account_id`, adds `has_pending_invite`, `is_member` and
        `can_invite` for that account's characters.

        Raises:
            ValidationError: Empty name or malformed viewer id
            NotFoundError: Guild not found
        """
        name = InputValidator.validate_required_name(name, "name")
        viewer_id = (
            InputValidator.validate_account_id(viewer_account_id, "viewer_account_id")
            if viewer_account_id is not None
            else None
        )

        async with LogContext(
            account_id=viewer_id, guild_name=name, operation="get_guild_details"
        ):
            try:
                async with DatabaseService.get_session() as session:
                    guild = await self._guild_repo.require_by_name(session, name)

                    owner = await self._directory.get(session, guild.owner_id)
                    members = await self._members.list_members(session, guild)
                    ranks = await self._ranks.list_ranks(session, guild.id)
                    invites = await self._invites.list_for_guild(session, guild.id)

                    details: Dict[str, Any] = {
                        "id": guild.id,
                        "name": guild.name,
                        "level": guild.level,
                        "owner_id": guild.owner_id,
                        "owner_name": owner.name if owner else UNKNOWN_OWNER_NAME,
                        "created_at": guild.created_at.isoformat(),
                        "balance": guild.balance,
                        "points": guild.points,
                        "member_count": len(members),
                        "members": members,
                        "ranks": [self._ranks.serialize(rank) for rank in ranks],
                        "pending_invites": invites,
                    }
                    if guild.motd:
                        details["motd"] = guild.motd

                    if viewer_id is not None:
                        characters = await self._directory.list_for_account(
                            session, viewer_id
                        )
                        rank = await self._permissions.effective_rank_of(
                            session, characters, guild
                        )
                        details["has_pending_invite"] = await self._invites.has_pending(
                            session, guild.id, viewer_id
                        )
                        details["is_member"] = rank.is_member
                        details["can_invite"] = self._permissions.can_invite(rank)
            except Exception as exc:
                self.log_error("get_guild_details", exc, viewer_account_id=viewer_id)
                raise

            return details
