"""
Character - player-controlled entity owned by an account.

Pure schema. Rows are owned by the character directory; the guild subsystem
only reads them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from guildhall.core.database.base import Base, IdMixin, utc_now


class Character(Base, IdMixin):
    """
    Character row.

    Schema-only:
    - name (unique, case-sensitive as stored)
    - account_id (owning account)
    - level, vocation (vocation id, see VOCATION_NAMES)
    """

    __tablename__ = "players"
    __table_args__ = (
        Index("ix_players_account_id", "account_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    vocation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class OnlineCharacter(Base):
    """
    Presence row: a character is online while a row exists for it.
    """

    __tablename__ = "players_online"

    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"),
        primary_key=True,
    )
    since: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
