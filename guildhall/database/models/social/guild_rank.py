"""
GuildRank - guild-scoped authority levels, plus the RankTier ordering.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildhall.core.database.base import Base, IdMixin

if TYPE_CHECKING:
    from .guild import Guild


class RankTier(enum.IntEnum):
    """
    Ordered authority tiers.

    OWNER is virtual: it is never stored in guild_ranks and always outranks
    LEADER.
    """

    NONE = 0
    MEMBER = 1
    VICE_LEADER = 2
    LEADER = 3
    OWNER = 999

    @classmethod
    def from_level(cls, level: int) -> "RankTier":
        """Map a stored rank level to its tier; unknown levels clamp down."""
        if level >= cls.OWNER:
            return cls.OWNER
        for tier in (cls.LEADER, cls.VICE_LEADER, cls.MEMBER):
            if level >= tier:
                return tier
        return cls.NONE


class GuildRank(Base, IdMixin):
    """
    Rank row. Exactly three exist per guild (Leader, Vice Leader, Member).
    """

    __tablename__ = "guild_ranks"
    __table_args__ = (
        UniqueConstraint("guild_id", "level", name="uq_guild_ranks_guild_level"),
    )

    guild_id: Mapped[int] = mapped_column(
        ForeignKey("guilds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    guild: Mapped["Guild"] = relationship(back_populates="ranks")
