"""
CharacterDirectoryService - read access to characters and their accounts
=======================================================================

Handles:
- Character lookup by id or name (exact or case-insensitive)
- Character lookup scoped to an owning account
- Listing an account's characters
- Vocation id to display name resolution

The guild subsystem never writes characters; every method here joins the
caller's session and performs reads only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Type

from sqlalchemy import func

from guildhall.database.models.core.character import Character
from guildhall.modules.shared.base_repository import BaseRepository
from guildhall.modules.shared.base_service import BaseService
from guildhall.modules.shared.constants import UNKNOWN_VOCATION_NAME, VOCATION_NAMES

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus


class CharacterDirectoryService(BaseService):
    """
    Resolves characters to their owning account, level and vocation.
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._character_repo = BaseRepository[Character](Character, self.log)

    @staticmethod
    def vocation_name(vocation_id: int) -> str:
        return VOCATION_NAMES.get(vocation_id, UNKNOWN_VOCATION_NAME)

    async def get(self, session: AsyncSession, character_id: int) -> Optional[Character]:
        return await self._character_repo.get(session, character_id)

    async def find_by_name(
        self, session: AsyncSession, name: str
    ) -> Optional[Character]:
        """Case-insensitive lookup; an exact-case match wins if several exist."""
        return await self._character_repo.find_one_where(
            session,
            func.lower(Character.name) == func.lower(name),
            order_by=[(Character.name == name).desc(), Character.id],
        )

    async def find_owned(
        self, session: AsyncSession, account_id: int, name: str
    ) -> Optional[Character]:
        """Exact-name lookup restricted to characters of `account_id`."""
        return await self._character_repo.find_one_where(
            session,
            Character.name == name,
            Character.account_id == account_id,
        )

    async def list_for_account(
        self, session: AsyncSession, account_id: int
    ) -> List[Character]:
        return await self._character_repo.find_many_where(
            session,
            Character.account_id == account_id,
            order_by=[Character.id],
        )
