"""
Guildhall Domain Constants

Purpose
-------
Provide domain-level constants for guild rules and display data.

IMPORTANT:
Infrastructure concerns (database timeouts, logging config) belong in
guildhall.core.config.config. Values that operators tune at runtime are read
through ConfigManager; the constants below are their fallbacks.
"""

from __future__ import annotations

from typing import Dict, Final, Tuple

# ============================================================================
# INPUT LIMITS
# ============================================================================

MAX_TEXT_LENGTH: Final[int] = 255  # storage limit for names and motd

DEFAULT_GUILD_NAME_MIN_LENGTH: Final[int] = 3
DEFAULT_GUILD_NAME_MAX_LENGTH: Final[int] = 20
GUILD_NAME_ALLOWED_CHARS: Final[str] = r"a-zA-Z0-9\s"

# ============================================================================
# GUILD RULES
# ============================================================================

DEFAULT_MIN_GUILD_CREATION_LEVEL: Final[int] = 8

# Seeded ranks as (name, level), highest first
DEFAULT_RANKS: Final[Tuple[Tuple[str, int], ...]] = (
    ("Leader", 3),
    ("Vice Leader", 2),
    ("Member", 1),
)

# ============================================================================
# LISTING
# ============================================================================

DEFAULT_PAGE: Final[int] = 1
DEFAULT_LIST_LIMIT: Final[int] = 20
MAX_LIST_LIMIT: Final[int] = 100

UNKNOWN_OWNER_NAME: Final[str] = "Unknown"

# ============================================================================
# CHARACTER DISPLAY
# ============================================================================

VOCATION_NAMES: Final[Dict[int, str]] = {
    0: "None",
    1: "Sorcerer",
    2: "Druid",
    3: "Paladin",
    4: "Knight",
    5: "Master Sorcerer",
    6: "Elder Druid",
    7: "Royal Paladin",
    8: "Elite Knight",
}

UNKNOWN_VOCATION_NAME: Final[str] = "Unknown"

STATUS_ONLINE: Final[str] = "online"
STATUS_OFFLINE: Final[str] = "offline"
