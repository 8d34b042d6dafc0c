"""
GuildMember - association of characters to guilds.
Pure schema only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildhall.core.database.base import Base, TimestampMixin

if TYPE_CHECKING:
    from .guild import Guild
    from .guild_rank import GuildRank


class GuildMember(Base, TimestampMixin):
    """
    Guild membership row.

    Schema-only:
    - character_id (primary key: a character belongs to at most one guild)
    - guild_id (FK to guilds)
    - rank_id (FK to guild_ranks, never null)
    - nick (optional display nickname, empty when unset)
    """

    __tablename__ = "guild_membership"

    character_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"),
        primary_key=True,
    )
    guild_id: Mapped[int] = mapped_column(
        ForeignKey("guilds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rank_id: Mapped[int] = mapped_column(
        ForeignKey("guild_ranks.id", ondelete="RESTRICT"),
        nullable=False,
    )
    nick: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    guild: Mapped["Guild"] = relationship(back_populates="members")
    rank: Mapped["GuildRank"] = relationship()
