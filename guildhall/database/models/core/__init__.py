"""
Core ORM models shared with the character directory.
"""

from .character import Character, OnlineCharacter

__all__ = [
    "Character",
    "OnlineCharacter",
]
