"""Tests for alliance membership and diplomacy."""

import pytest
from conftest import home

from villagewars.domain import alliances
from villagewars.domain.enums import (
    AllianceRank,
    BattleOutcome,
    DiplomacyStance,
    MovementType,
    RelationStatus,
)
from villagewars.domain.errors import InvalidActionError, NotFoundError
from villagewars.domain.movement import send_movement
from villagewars.domain.players import register_player


@pytest.fixture
def carol(world, now):
    return register_player(world, "Carol", now)


@pytest.fixture
def guild(world, alice, bob, now):
    guild = alliances.create_alliance(world, alice.id, "Iron Guild", "IRON", now)
    alliances.invite_player(world, alice.id, bob.id, now)
    alliances.accept_invitation(world, bob.id, guild.id, now)
    return guild


class TestMembership:
    def test_founder_leads(self, world, alice, now):
        guild = alliances.create_alliance(world, alice.id, "Iron Guild", "IRON", now)
        assert guild.members == {alice.id: AllianceRank.LEADER}
        assert alice.alliance_id == guild.id

    def test_name_and_tag_rules(self, world, alice, bob, now):
        alliances.create_alliance(world, alice.id, "Iron Guild", "IRON", now)
        with pytest.raises(InvalidActionError, match="tag"):
            alliances.create_alliance(world, bob.id, "Other", "TOOLONG", now)
        with pytest.raises(InvalidActionError, match="taken"):
            alliances.create_alliance(world, bob.id, "iron guild", "OTH", now)
        with pytest.raises(InvalidActionError, match="already belongs"):
            alliances.create_alliance(world, alice.id, "Second", "SEC", now)

    def test_invitation_flow(self, world, bob, guild):
        assert guild.members[bob.id] == AllianceRank.MEMBER
        assert bob.alliance_id == guild.id
        assert guild.invitations == {}

    def test_members_cannot_invite(self, world, bob, carol, guild, now):
        with pytest.raises(InvalidActionError, match="can invite"):
            alliances.invite_player(world, bob.id, carol.id, now)

    def test_decline(self, world, alice, carol, guild, now):
        alliances.invite_player(world, alice.id, carol.id, now)
        alliances.decline_invitation(world, carol.id, guild.id)
        with pytest.raises(NotFoundError):
            alliances.accept_invitation(world, carol.id, guild.id, now)

    def test_full_alliance_rejects_invites(self, world, alice, carol, guild, now):
        guild.max_members = 2
        with pytest.raises(InvalidActionError, match="full"):
            alliances.invite_player(world, alice.id, carol.id, now)

    def test_leader_cannot_abandon_members(self, world, alice, bob, guild, now):
        with pytest.raises(InvalidActionError, match="hand over"):
            alliances.leave_alliance(world, alice.id, now)
        alliances.leave_alliance(world, bob.id, now)
        assert bob.alliance_id is None
        alliances.leave_alliance(world, alice.id, now)
        assert guild.id not in world.alliances

    def test_kick_permissions(self, world, alice, bob, carol, guild, now):
        alliances.invite_player(world, alice.id, carol.id, now)
        alliances.accept_invitation(world, carol.id, guild.id, now)
        with pytest.raises(InvalidActionError, match="cannot kick"):
            alliances.kick_member(world, bob.id, carol.id, now)

        alliances.promote_member(world, alice.id, bob.id, AllianceRank.CO_LEADER, now)
        alliances.kick_member(world, bob.id, carol.id, now)
        assert carol.id not in guild.members
        with pytest.raises(InvalidActionError):
            alliances.kick_member(world, bob.id, alice.id, now)

    def test_promoting_to_leader_hands_over(self, world, alice, bob, guild, now):
        alliances.promote_member(world, alice.id, bob.id, AllianceRank.LEADER, now)
        assert guild.leader_id == bob.id
        assert guild.members[alice.id] == AllianceRank.CO_LEADER
        with pytest.raises(InvalidActionError, match="only the leader"):
            alliances.promote_member(world, alice.id, bob.id, AllianceRank.MEMBER, now)

    def test_disband_frees_members(self, world, alice, bob, guild, now):
        alliances.disband_alliance(world, alice.id, now)
        assert alice.alliance_id is None and bob.alliance_id is None
        assert not world.alliances


class TestDiplomacy:
    @pytest.fixture
    def rivals(self, world, carol, now):
        return alliances.create_alliance(world, carol.id, "Rivals", "RIV", now)

    def test_war_is_active_immediately(self, world, alice, guild, rivals, now):
        war = alliances.declare_war(world, alice.id, rivals.id, now)
        assert war.status == RelationStatus.ACTIVE
        assert war.scores == {guild.id: 0, rivals.id: 0}

    def test_nap_needs_acceptance_and_blocks_attacks(self, world, alice, carol, rivals, now):
        guild = alliances.create_alliance(world, alice.id, "Iron Guild", "IRON", now)
        nap = alliances.propose_relation(world, alice.id, rivals.id, DiplomacyStance.NAP, now)
        assert nap.status == RelationStatus.PROPOSED
        assert alliances.attack_block_reason(world, alice.id, carol.id) is None

        with pytest.raises(InvalidActionError, match="receiving alliance"):
            alliances.accept_relation(world, alice.id, nap.id, now)
        alliances.accept_relation(world, carol.id, nap.id, now)

        origin = home(world, alice)
        origin.troops = {"infantry": 5}
        with pytest.raises(InvalidActionError, match="active nap"):
            send_movement(
                world, alice.id, origin.id, home(world, carol).id, MovementType.ATTACK, now,
                troops={"infantry": 5},
            )

        alliances.end_relation(world, carol.id, nap.id, now)
        assert alliances.find_relation(world, guild.id, rivals.id) is None

    def test_one_open_relation_per_pair(self, world, alice, guild, rivals, now):
        alliances.declare_war(world, alice.id, rivals.id, now)
        with pytest.raises(InvalidActionError, match="already open"):
            alliances.propose_relation(world, alice.id, rivals.id, DiplomacyStance.NAP, now)

    def test_members_cannot_conduct_diplomacy(self, world, bob, guild, rivals, now):
        with pytest.raises(InvalidActionError, match="diplomacy"):
            alliances.declare_war(world, bob.id, rivals.id, now)

    def test_same_alliance_cannot_attack(self, world, alice, bob, guild):
        reason = alliances.attack_block_reason(world, alice.id, bob.id)
        assert reason == "cannot attack a member of your own alliance"

    def test_war_scores_count_kills(self, world, alice, carol, guild, rivals, now):
        war = alliances.declare_war(world, alice.id, rivals.id, now)
        alliances.record_battle_score(
            world, alice.id, carol.id, BattleOutcome.ATTACKER_WINS, 12, 3
        )
        assert war.scores == {guild.id: 12, rivals.id: 3}

    def test_disband_ends_relations(self, world, alice, guild, rivals, now):
        war = alliances.declare_war(world, alice.id, rivals.id, now)
        alliances.disband_alliance(world, alice.id, now)
        assert war.status == RelationStatus.ENDED


def test_rankings_follow_member_points(world, alice, bob, carol, now):
    alice.points, bob.points, carol.points = 100, 50, 400
    first = alliances.create_alliance(world, alice.id, "Iron Guild", "IRON", now)
    alliances.invite_player(world, alice.id, bob.id, now)
    alliances.accept_invitation(world, bob.id, first.id, now)
    second = alliances.create_alliance(world, carol.id, "Rivals", "RIV", now)

    ranking = alliances.alliance_rankings(world)

    assert [row["id"] for row in ranking] == [int(second.id), int(first.id)]
    stats = alliances.alliance_stats(world, first.id)
    assert stats["points"] == 150
    assert stats["member_count"] == 2
    assert stats["rank"] == 2
