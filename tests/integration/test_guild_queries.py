"""
Integration Tests for guild listing and details
===============================================

Test Coverage
-------------
- Details: member ordering, presence, ranks, pending invites, viewer flags
- Display-only Leader entry for an owner without a membership row
- Listing: ordering, member counts, pagination defaults, escaped search
"""

import pytest
from sqlalchemy import delete, text, update

from guildhall.core.database.service import DatabaseService
from guildhall.database.models.core.character import Character
from guildhall.database.models.social import GuildMember
from guildhall.database.models.social.guild_rank import RankTier
from guildhall.modules.shared.exceptions import NotFoundError, ValidationError
from tests.conftest import (
    USE_POSTGRES,
    drop_membership,
    join,
    set_guild_stats,
    set_member_rank,
    set_online,
)


async def _found(services, seed_character, guild_name, founder_name, account_id):
    await seed_character(founder_name, account_id=account_id, level=40)
    return (await services.guild.create_guild(account_id, guild_name, founder_name))["id"]


@pytest.mark.integration
@pytest.mark.database
class TestGuildDetails:
    async def test_basic_fields(self, ravens, services):
        details = await services.guild.get_guild_details("Ravens")

        assert details["id"] == ravens.guild_id
        assert details["name"] == "Ravens"
        assert details["level"] == 1
        assert details["owner_id"] == ravens.thorin.id
        assert details["owner_name"] == "Thorin"
        assert details["balance"] == 0
        assert details["points"] == 0
        assert details["motd"] == "Welcome"
        assert isinstance(details["created_at"], str)
        assert details["member_count"] == 1
        assert details["pending_invites"] == []

    async def test_lookup_ignores_case(self, ravens, services):
        details = await services.guild.get_guild_details("rAvEnS")

        assert details["id"] == ravens.guild_id

    async def test_unknown_guild(self, ravens, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.guild.get_guild_details("Crows")

        assert exc_info.value.http_status == 404

    async def test_blank_name(self, services):
        with pytest.raises(ValidationError):
            await services.guild.get_guild_details("  ")

    async def test_motd_omitted_when_unset(self, services, seed_character):
        await _found(services, seed_character, "Crows", "Gloin", 4)

        details = await services.guild.get_guild_details("Crows")

        assert "motd" not in details

    async def test_ranks_highest_first(self, ravens, services):
        ranks = (await services.guild.get_guild_details("Ravens"))["ranks"]

        assert [(r["name"], r["level"]) for r in ranks] == [
            ("Leader", 3),
            ("Vice Leader", 2),
            ("Member", 1),
        ]
        assert all(isinstance(r["id"], int) for r in ranks)

    async def test_members_sorted_by_rank_then_level_then_name(
        self, ravens, services, seed_character
    ):
        await seed_character("Bifur", account_id=5, level=30)
        await join(services, "Ravens", 1, "Balin", 2)
        await join(services, "Ravens", 1, "Dwalin", 3)
        await join(services, "Ravens", 1, "Bifur", 5)
        await set_member_rank(ravens.dwalin.id, ravens.guild_id, RankTier.VICE_LEADER)

        members = (await services.guild.get_guild_details("Ravens"))["members"]

        assert [(m["name"], m["rank"], m["rank_level"]) for m in members] == [
            ("Thorin", "Leader", 3),
            ("Dwalin", "Vice Leader", 2),
            ("Balin", "Member", 1),
            ("Bifur", "Member", 1),
        ]

    async def test_member_entry_fields(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        members = (await services.guild.get_guild_details("Ravens"))["members"]

        thorin, balin = members
        assert thorin == {
            "player_id": ravens.thorin.id,
            "name": "Thorin",
            "level": 50,
            "vocation": "Elite Knight",
            "rank": "Leader",
            "rank_level": 3,
            "status": "online",
        }
        assert balin["vocation"] == "Elder Druid"
        assert balin["status"] == "offline"

    async def test_nick_included_only_when_set(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        async with DatabaseService.get_transaction() as session:
            await session.execute(
                update(GuildMember)
                .where(GuildMember.character_id == ravens.balin.id)
                .values(nick="Loremaster")
            )

        members = (await services.guild.get_guild_details("Ravens"))["members"]

        by_name = {m["name"]: m for m in members}
        assert by_name["Balin"]["nick"] == "Loremaster"
        assert "nick" not in by_name["Thorin"]

    async def test_status_follows_presence(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        await set_online(ravens.thorin.id, online=False)
        await set_online(ravens.balin.id)

        members = (await services.guild.get_guild_details("Ravens"))["members"]

        assert {m["name"]: m["status"] for m in members} == {
            "Thorin": "offline",
            "Balin": "online",
        }

    async def test_pending_invites(self, ravens, services):
        await services.guild_invite.invite_player(1, "Ravens", "Balin")

        invites = (await services.guild.get_guild_details("Ravens"))["pending_invites"]

        assert len(invites) == 1
        invite = invites[0]
        assert invite["player_id"] == ravens.balin.id
        assert invite["player_name"] == "Balin"
        assert invite["level"] == 30
        assert invite["vocation"] == "Elder Druid"
        assert isinstance(invite["invited_at"], str)

    async def test_viewer_flags_absent_without_viewer(self, ravens, services):
        details = await services.guild.get_guild_details("Ravens")

        assert "is_member" not in details
        assert "can_invite" not in details
        assert "has_pending_invite" not in details

    async def test_viewer_flags_for_owner(self, ravens, services):
        details = await services.guild.get_guild_details("Ravens", viewer_account_id=1)

        assert details["is_member"] is True
        assert details["can_invite"] is True
        assert details["has_pending_invite"] is False

    async def test_viewer_flags_for_invitee(self, ravens, services):
        await services.guild_invite.invite_player(1, "Ravens", "Balin")

        details = await services.guild.get_guild_details("Ravens", viewer_account_id=2)

        assert details["is_member"] is False
        assert details["can_invite"] is False
        assert details["has_pending_invite"] is True

    async def test_viewer_flags_for_plain_member(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        details = await services.guild.get_guild_details("Ravens", viewer_account_id=2)

        assert details["is_member"] is True
        assert details["can_invite"] is False
        assert details["has_pending_invite"] is False


@pytest.mark.integration
@pytest.mark.database
class TestOwnerWithoutMembership:
    async def test_leader_entry_is_synthesized(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        await drop_membership(ravens.thorin.id)

        details = await services.guild.get_guild_details("Ravens")

        assert [(m["name"], m["rank"], m["rank_level"]) for m in details["members"]] == [
            ("Thorin", "Leader", 3),
            ("Balin", "Member", 1),
        ]
        assert details["member_count"] == 2

    async def test_synthesized_entry_is_not_persisted(self, ravens, services):
        await drop_membership(ravens.thorin.id)

        await services.guild.get_guild_details("Ravens")

        async with DatabaseService.get_session() as session:
            assert await services.guild_member.membership_of(session, ravens.thorin.id) is None

    async def test_owner_keeps_rights(self, ravens, services):
        await drop_membership(ravens.thorin.id)

        details = await services.guild.get_guild_details("Ravens", viewer_account_id=1)

        assert details["is_member"] is True
        assert details["can_invite"] is True
        await services.guild_invite.invite_player(1, "Ravens", "Balin")


@pytest.mark.integration
@pytest.mark.database
class TestListGuilds:
    async def test_empty(self, services):
        result = await services.guild.list_guilds()

        assert result == {
            "guilds": [],
            "pagination": {"page": 1, "limit": 20, "total": 0, "total_pages": 0},
        }

    async def test_entry_fields(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        result = await services.guild.list_guilds()

        assert result["guilds"] == [
            {
                "id": ravens.guild_id,
                "name": "Ravens",
                "level": 1,
                "owner_name": "Thorin",
                "member_count": 2,
                "points": 0,
            }
        ]

    async def test_ordered_by_level_points_then_name(self, services, seed_character):
        ravens = await _found(services, seed_character, "Ravens", "Thorin", 1)
        crows = await _found(services, seed_character, "Crows", "Gloin", 2)
        eagles = await _found(services, seed_character, "Eagles", "Oin", 3)
        await _found(services, seed_character, "Hawks", "Ori", 4)
        await set_guild_stats(crows, level=2, points=10)
        await set_guild_stats(eagles, level=2, points=50)
        await set_guild_stats(ravens, level=1, points=0)

        result = await services.guild.list_guilds()

        assert [g["name"] for g in result["guilds"]] == [
            "Eagles",
            "Crows",
            "Hawks",
            "Ravens",
        ]

    async def test_member_count_counts_missing_owner_once(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        await drop_membership(ravens.thorin.id)

        guild = (await services.guild.list_guilds())["guilds"][0]

        assert guild["member_count"] == 2

    async def test_member_count_never_below_one(self, ravens, services):
        await drop_membership(ravens.thorin.id)

        guild = (await services.guild.list_guilds())["guilds"][0]

        assert guild["member_count"] == 1

    async def test_pagination(self, services, seed_character):
        for index, name in enumerate(["Crows", "Eagles", "Hawks"], start=1):
            await _found(services, seed_character, name, f"Founder{chr(64 + index)}", index)

        first = await services.guild.list_guilds(page=1, limit=2)
        second = await services.guild.list_guilds(page=2, limit=2)
        beyond = await services.guild.list_guilds(page=5, limit=2)

        assert [g["name"] for g in first["guilds"]] == ["Crows", "Eagles"]
        assert [g["name"] for g in second["guilds"]] == ["Hawks"]
        assert beyond["guilds"] == []
        assert second["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 3,
            "total_pages": 2,
        }

    @pytest.mark.parametrize(
        "page, limit, expected",
        [
            (0, None, (1, 20)),
            (-3, None, (1, 20)),
            ("abc", None, (1, 20)),
            (None, 0, (1, 20)),
            (None, 500, (1, 20)),
            (None, "abc", (1, 20)),
            ("2", "5", (2, 5)),
            (None, 100, (1, 100)),
        ],
    )
    async def test_paging_falls_back_to_defaults(self, services, page, limit, expected):
        pagination = (await services.guild.list_guilds(page=page, limit=limit))["pagination"]

        assert (pagination["page"], pagination["limit"]) == expected

    async def test_default_limit_is_configurable(self, services, config_manager):
        config_manager.set("guilds.list_default_limit", 7)

        pagination = (await services.guild.list_guilds())["pagination"]

        assert pagination["limit"] == 7

    async def test_search_is_case_insensitive_substring(self, services, seed_character):
        await _found(services, seed_character, "Ravens", "Thorin", 1)
        await _found(services, seed_character, "Crows", "Gloin", 2)
        await _found(services, seed_character, "Night Raven", "Oin", 3)

        result = await services.guild.list_guilds(search="RAV")

        assert sorted(g["name"] for g in result["guilds"]) == ["Night Raven", "Ravens"]
        assert result["pagination"]["total"] == 2

    @pytest.mark.parametrize("term", ["%", "_", "\\"])
    async def test_search_treats_wildcards_literally(self, ravens, services, term):
        result = await services.guild.list_guilds(search=term)

        assert result["guilds"] == []
        assert result["pagination"]["total"] == 0

    async def test_blank_search_lists_everything(self, ravens, services):
        result = await services.guild.list_guilds(search="   ")

        assert len(result["guilds"]) == 1

    @pytest.mark.skipif(USE_POSTGRES, reason="foreign keys cascade the guild away")
    async def test_missing_owner_character_shows_unknown(self, ravens, services):
        async with DatabaseService.get_transaction() as session:
            # per-connection, and the pool never reuses it
            await session.execute(text("PRAGMA foreign_keys=OFF"))
            await session.execute(delete(Character).where(Character.id == ravens.thorin.id))

        guild = (await services.guild.list_guilds())["guilds"][0]

        assert guild["owner_name"] == "Unknown"


@pytest.mark.integration
@pytest.mark.database
class TestPresence:
    async def test_online_ids(self, ravens, services):
        async with DatabaseService.get_session() as session:
            online = await services.presence.online_ids(
                session, [ravens.thorin.id, ravens.balin.id, ravens.thorin.id]
            )
            nobody = await services.presence.online_ids(session, [])

        assert online == {ravens.thorin.id}
        assert nobody == set()

    async def test_status_label(self, services):
        assert services.presence.status_label(True) == "online"
        assert services.presence.status_label(False) == "offline"
