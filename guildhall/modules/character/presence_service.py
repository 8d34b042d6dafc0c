"""
PresenceService - online/offline status of characters.

Display-only: presence never influences a guild decision.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Set, Type

from guildhall.database.models.core.character import OnlineCharacter
from guildhall.modules.shared.base_repository import BaseRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.constants import STATUS_OFFLINE, STATUS_ONLINE

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus


class PresenceService(BaseService):
    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._online_repo = BaseRepository[OnlineCharacter](OnlineCharacter, self.log)

    async def online_ids(
        self, session: AsyncSession, character_ids: Iterable[int]
    ) -> Set[int]:
        ids = list(set(character_ids))
        if not ids:
            return set()
        rows = await self._online_repo.find_many_where(
            session, OnlineCharacter.player_id.in_(ids)
        )
        return {row.player_id for row in rows}

    @staticmethod
    def status_label(is_online: bool) -> str:
        return STATUS_ONLINE if is_online else STATUS_OFFLINE
