"""
Guildhall ORM models.

Importing this package registers every table on ``Base.metadata``.
"""

from guildhall.core.database.base import Base

from .core import Character, OnlineCharacter
from .social import Guild, GuildInvite, GuildMember, GuildRank, RankTier

__all__ = [
    "Base",
    "Character",
    "OnlineCharacter",
    "Guild",
    "GuildRank",
    "RankTier",
    "GuildMember",
    "GuildInvite",
]
