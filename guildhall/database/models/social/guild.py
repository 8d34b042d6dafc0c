"""
Guild - named group owned by one character.
Pure schema.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guildhall.core.database.base import Base, IdMixin, TimestampMixin

if TYPE_CHECKING:
    from .guild_invite import GuildInvite
    from .guild_member import GuildMember
    from .guild_rank import GuildRank


class Guild(Base, IdMixin, TimestampMixin):
    """
    Player-created guild.

    Schema-only:
    - name (unique under case-insensitive comparison)
    - owner_id (founding character; one guild per owner)
    - motd, balance, points, level
    - created_at / updated_at (from TimestampMixin)
    """

    __tablename__ = "guilds"
    __table_args__ = (
        Index("ix_guilds_ranking", "level", "points"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    motd: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    ranks: Mapped[List["GuildRank"]] = relationship(
        back_populates="guild",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    members: Mapped[List["GuildMember"]] = relationship(
        back_populates="guild",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invites: Mapped[List["GuildInvite"]] = relationship(
        back_populates="guild",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# Case-insensitive name uniqueness
Index("uq_guilds_name_lower", func.lower(Guild.name), unique=True)
