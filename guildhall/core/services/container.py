"""
ServiceContainer - builds and hands out the guild services.

Every service gets the shared ``config_manager``, ``event_bus`` and its own
logger; the wiring plan below adds the services it builds on. The plan is
ordered leaves first, so each dependency exists before anything that needs it.

    container = ServiceContainer(ConfigManager, EventBus(), logger)
    await container.initialize()
    await container.guild.create_guild(account_id, "Ravens", "Thorin")
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Type

from guildhall.core.logging.logger import get_logger
from guildhall.modules.character import CharacterDirectoryService, PresenceService
from guildhall.modules.guild import (
    GuildInviteService,
    GuildMemberService,
    GuildPermissionService,
    GuildRankService,
    GuildService,
)

if TYPE_CHECKING:
    from logging import Logger

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus

# (name, class, {constructor keyword: name of an earlier service})
_WIRING: Tuple[Tuple[str, type, Dict[str, str]], ...] = (
    ("character_directory", CharacterDirectoryService, {}),
    ("presence", PresenceService, {}),
    ("guild_rank", GuildRankService, {}),
    (
        "guild_member",
        GuildMemberService,
        {"character_directory": "character_directory", "presence": "presence"},
    ),
    (
        "guild_permission",
        GuildPermissionService,
        {"member_service": "guild_member", "character_directory": "character_directory"},
    ),
    (
        "guild_invite",
        GuildInviteService,
        {
            "member_service": "guild_member",
            "rank_service": "guild_rank",
            "permission_service": "guild_permission",
            "character_directory": "character_directory",
        },
    ),
    (
        "guild",
        GuildService,
        {
            "member_service": "guild_member",
            "rank_service": "guild_rank",
            "invite_service": "guild_invite",
            "permission_service": "guild_permission",
            "character_directory": "character_directory",
        },
    ),
)


class ServiceContainer:
    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._services: Dict[str, Any] = {}
        self._init_seconds: Optional[float] = None

    @property
    def is_initialized(self) -> bool:
        return self._init_seconds is not None

    async def initialize(self) -> None:
        if self.is_initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        start = time.perf_counter()
        for name, service_class, dependencies in _WIRING:
            try:
                self._services[name] = service_class(
                    config_manager=self._config_manager,
                    event_bus=self._event_bus,
                    logger=get_logger(f"{service_class.__module__}.{service_class.__name__}"),
                    **{kwarg: self._services[dep] for kwarg, dep in dependencies.items()},
                )
            except Exception:
                self._logger.critical(f"Failed to build {name}", exc_info=True)
                self._services.clear()
                raise
            self._logger.debug(f"Built {name}")

        self._init_seconds = time.perf_counter() - start
        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._services),
                "total_time_seconds": round(self._init_seconds, 3),
            },
        )

    async def shutdown(self) -> None:
        if not self.is_initialized:
            return
        self._services.clear()
        self._init_seconds = None
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self.is_initialized,
            "service_count": len(self._services),
            "total_init_time_seconds": (
                round(self._init_seconds, 3) if self._init_seconds is not None else None
            ),
            "all_services_available": self.is_initialized
            and len(self._services) == len(_WIRING),
        }

    def _get(self, name: str) -> Any:
        if not self.is_initialized:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return self._services[name]

    @property
    def character_directory(self) -> CharacterDirectoryService:
        return self._get("character_directory")

    @property
    def presence(self) -> PresenceService:
        return self._get("presence")

    @property
    def guild(self) -> GuildService:
        return self._get("guild")

    @property
    def guild_rank(self) -> GuildRankService:
        return self._get("guild_rank")

    @property
    def guild_member(self) -> GuildMemberService:
        return self._get("guild_member")

    @property
    def guild_invite(self) -> GuildInviteService:
        return self._get("guild_invite")

    @property
    def guild_permission(self) -> GuildPermissionService:
        return self._get("guild_permission")
