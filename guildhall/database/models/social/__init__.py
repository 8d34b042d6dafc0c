"""
Social domain ORM models.

Exports:
- Guild
- GuildRank, RankTier
- GuildMember
- GuildInvite
"""

from .guild import Guild
from .guild_invite import GuildInvite
from .guild_member import GuildMember
from .guild_rank import GuildRank, RankTier

__all__ = [
    "Guild",
    "GuildRank",
    "RankTier",
    "GuildMember",
    "GuildInvite",
]
