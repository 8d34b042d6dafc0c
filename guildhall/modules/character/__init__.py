"""
Character collaborators consumed by the guild subsystem.
"""

from guildhall.modules.character.directory_service import CharacterDirectoryService
from guildhall.modules.character.presence_service import PresenceService

__all__ = [
    "CharacterDirectoryService",
    "PresenceService",
]
