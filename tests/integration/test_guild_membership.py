"""
Integration Tests for the invite / accept / leave / kick workflow
================================================================

Test Coverage
-------------
- Invite permissions and duplicate prevention
- Accept consumes the invite and joins at the lowest rank
- Leave and kick rules around the owner and non-members
- Domain events published after commit
"""

import pytest

from guildhall.core.database.service import DatabaseService
from guildhall.database.models.social.guild_rank import RankTier
from guildhall.modules.shared.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import join, set_member_rank


async def _membership(services, character_id):
    async with DatabaseService.get_session() as session:
        return await services.guild_member.membership_of(session, character_id)


async def _invite(services, character_id, guild_id):
    async with DatabaseService.get_session() as session:
        return await services.guild_invite.find(session, character_id, guild_id)


@pytest.mark.integration
@pytest.mark.database
class TestInvitePlayer:
    async def test_owner_invites(self, ravens, services):
        result = await services.guild_invite.invite_player(1, "Ravens", "Balin")

        invite = await _invite(services, ravens.balin.id, ravens.guild_id)
        assert result == {}
        assert invite is not None
        assert invite.invited_at is not None

    async def test_guild_and_player_names_ignore_case(self, ravens, services):
        await services.guild_invite.invite_player(1, "RAVENS", "balin")

        assert await _invite(services, ravens.balin.id, ravens.guild_id) is not None

    async def test_duplicate_invite_conflicts(self, ravens, services):
        await services.guild_invite.invite_player(1, "Ravens", "Balin")

        with pytest.raises(ConflictError) as exc_info:
            await services.guild_invite.invite_player(1, "Ravens", "Balin")

        assert exc_info.value.resource_type == "Invite"

    async def test_unknown_guild(self, ravens, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.guild_invite.invite_player(1, "Crows", "Balin")

        assert exc_info.value.resource_type == "Guild"

    async def test_unknown_player(self, ravens, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.guild_invite.invite_player(1, "Ravens", "Nobody")

        assert exc_info.value.resource_type == "Character"

    async def test_non_member_cannot_invite(self, ravens, services):
        with pytest.raises(ForbiddenError):
            await services.guild_invite.invite_player(3, "Ravens", "Balin")

    async def test_plain_member_cannot_invite(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        with pytest.raises(ForbiddenError):
            await services.guild_invite.invite_player(2, "Ravens", "Dwalin")

    async def test_vice_leader_can_invite(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        await set_member_rank(ravens.balin.id, ravens.guild_id, RankTier.VICE_LEADER)

        await services.guild_invite.invite_player(2, "Ravens", "Dwalin")

        assert await _invite(services, ravens.dwalin.id, ravens.guild_id) is not None

    async def test_cannot_invite_a_member(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        with pytest.raises(ConflictError):
            await services.guild_invite.invite_player(1, "Ravens", "Balin")

    async def test_cannot_invite_an_owner(self, ravens, services, seed_character):
        await seed_character("Gloin", account_id=4, level=40)
        await services.guild.create_guild(4, "Crows", "Gloin")

        with pytest.raises(ConflictError):
            await services.guild_invite.invite_player(1, "Ravens", "Gloin")

    async def test_blank_player_name_is_rejected(self, ravens, services):
        with pytest.raises(ValidationError):
            await services.guild_invite.invite_player(1, "Ravens", "   ")


@pytest.mark.integration
@pytest.mark.database
class TestAcceptInvite:
    async def test_accept_joins_at_lowest_rank_and_consumes_invite(self, ravens, services):
        await services.guild_invite.invite_player(1, "Ravens", "Balin")

        await services.guild_invite.accept_invite(2, "Ravens")

        member = await _membership(services, ravens.balin.id)
        assert member is not None
        assert member.guild_id == ravens.guild_id
        async with DatabaseService.get_session() as session:
            level = await services.guild_member.rank_level_of(
                session, ravens.balin.id, ravens.guild_id
            )
        assert level == RankTier.MEMBER
        assert await _invite(services, ravens.balin.id, ravens.guild_id) is None

    async def test_second_accept_is_not_found(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        with pytest.raises(NotFoundError) as exc_info:
            await services.guild_invite.accept_invite(2, "Ravens")

        assert exc_info.value.resource_type == "Invite"

    async def test_accept_without_invite(self, ravens, services):
        with pytest.raises(NotFoundError):
            await services.guild_invite.accept_invite(3, "Ravens")

    async def test_account_without_characters(self, ravens, services):
        with pytest.raises(ValidationError) as exc_info:
            await services.guild_invite.accept_invite(42, "Ravens")

        assert exc_info.value.field == "character"

    async def test_accept_picks_the_invited_character(self, ravens, services, seed_character):
        fili = await seed_character("Fili", account_id=2, level=12)
        await services.guild_invite.invite_player(1, "Ravens", "Fili")

        await services.guild_invite.accept_invite(2, "Ravens")

        assert await _membership(services, fili.id) is not None
        assert await _membership(services, ravens.balin.id) is None

    async def test_accept_by_character_name(self, ravens, services):
        await services.guild_invite.invite_player(1, "Ravens", "Balin")

        await services.guild_invite.accept_invite(2, "Ravens", character_name="Balin")

        assert await _membership(services, ravens.balin.id) is not None

    async def test_accept_with_foreign_character_name(self, ravens, services):
        await services.guild_invite.invite_player(1, "Ravens", "Balin")

        with pytest.raises(NotFoundError):
            await services.guild_invite.accept_invite(3, "Ravens", character_name="Balin")

    async def test_accept_while_in_another_guild_conflicts(
        self, ravens, services, seed_character
    ):
        await seed_character("Gloin", account_id=4, level=40)
        await services.guild.create_guild(4, "Crows", "Gloin")
        await services.guild_invite.invite_player(1, "Ravens", "Balin")
        await services.guild_invite.invite_player(4, "Crows", "Balin")
        await services.guild_invite.accept_invite(2, "Ravens")

        with pytest.raises(ConflictError):
            await services.guild_invite.accept_invite(2, "Crows")

        member = await _membership(services, ravens.balin.id)
        assert member.guild_id == ravens.guild_id
        crows = await services.guild.get_guild_details("Crows")
        assert [i["player_name"] for i in crows["pending_invites"]] == ["Balin"]


@pytest.mark.integration
@pytest.mark.database
class TestPendingInvites:
    async def test_lists_invites_across_characters_newest_first(
        self, ravens, services, seed_character
    ):
        await seed_character("Fili", account_id=2, level=12)
        await seed_character("Gloin", account_id=4, level=40)
        await services.guild.create_guild(4, "Crows", "Gloin")
        await services.guild_invite.invite_player(1, "Ravens", "Balin")
        await services.guild_invite.invite_player(4, "Crows", "Fili")

        invites = await services.guild_invite.get_pending_invites(2)

        assert [(i["guild_name"], i["player_name"]) for i in invites] == [
            ("Crows", "Fili"),
            ("Ravens", "Balin"),
        ]
        assert set(invites[0]) == {
            "guild_id",
            "guild_name",
            "guild_level",
            "guild_points",
            "player_name",
            "invited_at",
        }

    async def test_no_invites(self, ravens, services):
        assert await services.guild_invite.get_pending_invites(3) == []


@pytest.mark.integration
@pytest.mark.database
class TestLeaveGuild:
    async def test_member_leaves(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        result = await services.guild_permission.leave_guild(2, "Ravens")

        assert result == {}
        assert await _membership(services, ravens.balin.id) is None

    async def test_owner_cannot_leave(self, ravens, services):
        with pytest.raises(ForbiddenError):
            await services.guild_permission.leave_guild(1, "Ravens")

        assert await _membership(services, ravens.thorin.id) is not None

    async def test_non_member_cannot_leave(self, ravens, services):
        with pytest.raises(ForbiddenError):
            await services.guild_permission.leave_guild(3, "Ravens")

    async def test_account_without_characters(self, ravens, services):
        with pytest.raises(ValidationError):
            await services.guild_permission.leave_guild(42, "Ravens")

    async def test_unknown_guild(self, ravens, services):
        with pytest.raises(NotFoundError):
            await services.guild_permission.leave_guild(2, "Crows")

    async def test_member_character_preferred_over_owner(
        self, ravens, services, seed_character
    ):
        kili = await seed_character("Kili", account_id=1, level=15)
        await join(services, "Ravens", 1, "Kili", 1)

        await services.guild_permission.leave_guild(1, "Ravens")

        assert await _membership(services, kili.id) is None
        assert await _membership(services, ravens.thorin.id) is not None

    async def test_leave_by_character_name_as_owner(self, ravens, services):
        with pytest.raises(ForbiddenError):
            await services.guild_permission.leave_guild(1, "Ravens", character_name="Thorin")


@pytest.mark.integration
@pytest.mark.database
class TestKickPlayer:
    async def test_owner_kicks_member(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        result = await services.guild_permission.kick_player(1, "Ravens", "balin")

        assert result == {}
        assert await _membership(services, ravens.balin.id) is None

    async def test_vice_leader_kicks_member(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        await join(services, "Ravens", 1, "Dwalin", 3)
        await set_member_rank(ravens.balin.id, ravens.guild_id, RankTier.VICE_LEADER)

        await services.guild_permission.kick_player(2, "Ravens", "Dwalin")

        assert await _membership(services, ravens.dwalin.id) is None

    async def test_plain_member_cannot_kick(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)
        await join(services, "Ravens", 1, "Dwalin", 3)

        with pytest.raises(ForbiddenError):
            await services.guild_permission.kick_player(2, "Ravens", "Dwalin")

        assert await _membership(services, ravens.dwalin.id) is not None

    @pytest.mark.parametrize("kicker_level", [RankTier.VICE_LEADER, RankTier.LEADER])
    async def test_owner_cannot_be_kicked(self, ravens, services, kicker_level):
        await join(services, "Ravens", 1, "Balin", 2)
        await set_member_rank(ravens.balin.id, ravens.guild_id, kicker_level)

        with pytest.raises(ForbiddenError):
            await services.guild_permission.kick_player(2, "Ravens", "Thorin")

    async def test_owner_cannot_kick_self(self, ravens, services):
        with pytest.raises(ForbiddenError):
            await services.guild_permission.kick_player(1, "Ravens", "Thorin")

        assert await _membership(services, ravens.thorin.id) is not None

    async def test_kicking_a_non_member(self, ravens, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.guild_permission.kick_player(1, "Ravens", "Dwalin")

        assert exc_info.value.resource_type == "GuildMember"

    async def test_kicking_an_unknown_player(self, ravens, services):
        with pytest.raises(NotFoundError):
            await services.guild_permission.kick_player(1, "Ravens", "Nobody")

    async def test_non_member_cannot_kick(self, ravens, services):
        await join(services, "Ravens", 1, "Balin", 2)

        with pytest.raises(ForbiddenError):
            await services.guild_permission.kick_player(3, "Ravens", "Balin")


@pytest.mark.integration
@pytest.mark.database
class TestMembershipEvents:
    async def test_workflow_publishes_in_order(self, ravens, services, event_bus):
        seen = []

        def recorder(name):
            async def record(payload):
                seen.append((name, payload))

            return record

        for name in (
            "guild.invite_created",
            "guild.invite_accepted",
            "guild.member_left",
            "guild.member_kicked",
        ):
            event_bus.subscribe(name, recorder(name))

        await join(services, "Ravens", 1, "Balin", 2)
        await join(services, "Ravens", 1, "Dwalin", 3)
        await services.guild_permission.leave_guild(2, "Ravens")
        await services.guild_permission.kick_player(1, "Ravens", "Dwalin")

        assert [name for name, _ in seen] == [
            "guild.invite_created",
            "guild.invite_accepted",
            "guild.invite_created",
            "guild.invite_accepted",
            "guild.member_left",
            "guild.member_kicked",
        ]
        kicked = seen[-1][1]
        assert kicked == {
            "guild_id": ravens.guild_id,
            "character_id": ravens.dwalin.id,
            "kicked_by": ravens.thorin.id,
        }

    async def test_failed_operation_publishes_nothing(self, ravens, services, event_bus):
        seen = []

        async def record(payload):
            seen.append(payload)

        event_bus.subscribe("guild.*", record)

        with pytest.raises(ForbiddenError):
            await services.guild_permission.leave_guild(1, "Ravens")

        assert seen == []
