"""
GuildInvite - pending invitation of a character to a guild.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildhall.core.database.base import Base, utc_now

if TYPE_CHECKING:
    from .guild import Guild


class GuildInvite(Base):
    """
    Guild invitation.

    Schema-only:
    - (character_id, guild_id) composite primary key: one invite per pair
    - invited_at (timestamp the invite was created)
    """

    __tablename__ = "guild_invites"

    character_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"),
        primary_key=True,
    )
    guild_id: Mapped[int] = mapped_column(
        ForeignKey("guilds.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    invited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    guild: Mapped["Guild"] = relationship(back_populates="invites")
