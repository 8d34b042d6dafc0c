"""
Guild Module
============

Business logic for guild creation, ranks, membership, invites and
authorization.

Exports:
- GuildService: Guild registry (create, list, details)
- GuildRankService: Rank catalog (seed, list, lowest rank)
- GuildMemberService: Membership store (add, remove, rank level, listings)
- GuildInviteService: Invite queue (invite, accept, pending invites)
- GuildPermissionService: Authorization policy (effective rank, leave, kick)
- EffectiveRank: A caller's standing in one guild
"""

from .core_service import GuildService
from .invite_service import GuildInviteService
from .member_service import GuildMemberService
from .permission_service import EffectiveRank, GuildPermissionService
from .rank_service import GuildRankService

__all__ = [
    "GuildService",
    "GuildRankService",
    "GuildMemberService",
    "GuildInviteService",
    "GuildPermissionService",
    "EffectiveRank",
]
