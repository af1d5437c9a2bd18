"""Tests for troop and merchant movements."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest
from conftest import home

from villagewars.domain.enums import MovementStatus, MovementType, ReportType, ResourceType
from villagewars.domain.errors import InvalidActionError, NotFoundError
from villagewars.domain.movement import (
    cancel_movement,
    distance,
    process_arrivals,
    recall_support,
    send_movement,
    travel_seconds,
)
from villagewars.domain.players import found_village


def _arm(village, **troops):
    village.troops = dict(troops)


class TestSending:
    def test_travel_time_follows_slowest_unit(self, world, alice, bob, now):
        origin, target = home(world, alice), home(world, bob)
        _arm(origin, infantry=10, cavalry=5)

        movement = send_movement(
            world, alice.id, origin.id, target.id, MovementType.ATTACK, now,
            troops={"infantry": 10, "cavalry": 5},
        )

        expected = math.sqrt(2) / 5 * 3600
        assert distance(origin, target) == pytest.approx(math.sqrt(2))
        assert (movement.arrives_at - now).total_seconds() == pytest.approx(expected)
        assert origin.troops == {}

    def test_world_speed_shortens_travel(self, world, alice, bob, now):
        origin, target = home(world, alice), home(world, bob)
        normal = travel_seconds(world, origin, target, 5.0, now)
        world.speed = 4.0
        assert travel_seconds(world, origin, target, 5.0, now) == pytest.approx(normal / 4)

    def test_cannot_send_more_than_garrison(self, world, alice, bob, now):
        origin = home(world, alice)
        _arm(origin, infantry=3)
        with pytest.raises(InvalidActionError, match="has only 3 infantry"):
            send_movement(
                world, alice.id, origin.id, home(world, bob).id, MovementType.RAID, now,
                troops={"infantry": 4},
            )

    def test_empty_movement_rejected(self, world, alice, bob, now):
        origin = home(world, alice)
        with pytest.raises(InvalidActionError, match="at least one unit"):
            send_movement(
                world, alice.id, origin.id, home(world, bob).id, MovementType.SUPPORT, now,
                troops={"infantry": 0},
            )

    def test_unknown_unit_rejected(self, world, alice, bob, now):
        origin = home(world, alice)
        with pytest.raises(NotFoundError):
            send_movement(
                world, alice.id, origin.id, home(world, bob).id, MovementType.ATTACK, now,
                troops={"dragon": 1},
            )

    def test_same_village_rejected(self, world, alice, now):
        origin = home(world, alice)
        _arm(origin, infantry=1)
        with pytest.raises(InvalidActionError, match="must differ"):
            send_movement(
                world, alice.id, origin.id, origin.id, MovementType.SUPPORT, now,
                troops={"infantry": 1},
            )

    def test_cannot_send_from_foreign_village(self, world, alice, bob, now):
        with pytest.raises(InvalidActionError):
            send_movement(
                world, alice.id, home(world, bob).id, home(world, alice).id,
                MovementType.SUPPORT, now, troops={"infantry": 1},
            )

    def test_attack_range_limit(self, world, alice, bob, now):
        origin, target = home(world, alice), home(world, bob)
        target.x, target.y = 300, 300
        _arm(origin, infantry=1)
        with pytest.raises(InvalidActionError, match="attack range"):
            send_movement(
                world, alice.id, origin.id, target.id, MovementType.ATTACK, now,
                troops={"infantry": 1},
            )

    def test_spy_missions_only_take_scouts(self, world, alice, bob, now):
        origin = home(world, alice)
        _arm(origin, scout=2, infantry=1)
        with pytest.raises(InvalidActionError, match="only contain scouts"):
            send_movement(
                world, alice.id, origin.id, home(world, bob).id, MovementType.SPY, now,
                troops={"scout": 2, "infantry": 1},
            )

    def test_return_movements_are_server_only(self, world, alice, bob, now):
        with pytest.raises(InvalidActionError):
            send_movement(
                world, alice.id, home(world, alice).id, home(world, bob).id,
                MovementType.RETURN, now, troops={"infantry": 1},
            )


class TestTrade:
    def test_trade_needs_marketplace(self, world, alice, bob, now):
        with pytest.raises(InvalidActionError, match="marketplace"):
            send_movement(
                world, alice.id, home(world, alice).id, home(world, bob).id,
                MovementType.TRADE, now, resources={ResourceType.WOOD: 100},
            )

    def test_merchant_capacity(self, world, alice, bob, now):
        origin = home(world, alice)
        origin.buildings["marketplace"] = 1
        with pytest.raises(InvalidActionError, match="at most 500"):
            send_movement(
                world, alice.id, origin.id, home(world, bob).id, MovementType.TRADE, now,
                resources={ResourceType.WOOD: 300, ResourceType.CLAY: 201},
            )

    def test_delivery_credits_target(self, world, alice, bob, now):
        origin, target = home(world, alice), home(world, bob)
        origin.buildings["marketplace"] = 1
        movement = send_movement(
            world, alice.id, origin.id, target.id, MovementType.TRADE, now,
            resources={ResourceType.WOOD: 400},
        )
        assert origin.resources[ResourceType.WOOD] == pytest.approx(600.0)

        process_arrivals(world, movement.arrives_at)

        assert movement.status == MovementStatus.ARRIVED
        assert target.resources[ResourceType.WOOD] > 1400.0
        trade_reports = [r for r in world.reports.values() if r.report_type == ReportType.TRADE]
        assert {r.player_id for r in trade_reports} == {alice.id, bob.id}
        assert not any(m.return_of == movement.id for m in world.movements.values())


class TestSupport:
    def test_support_is_stationed_and_recalled(self, world, alice, bob, now):
        origin, host = home(world, alice), home(world, bob)
        _arm(origin, infantry=10)
        movement = send_movement(
            world, alice.id, origin.id, host.id, MovementType.SUPPORT, now,
            troops={"infantry": 10},
        )
        process_arrivals(world, movement.arrives_at)
        assert host.stationed == {origin.id: {"infantry": 10}}
        assert host.troops == {}

        later = movement.arrives_at + timedelta(hours=1)
        returning = recall_support(world, alice.id, host.id, origin.id, later)
        assert host.stationed == {}
        assert returning.movement_type == MovementType.RETURN

        process_arrivals(world, returning.arrives_at)
        assert origin.troops == {"infantry": 10}

    def test_support_to_own_village_joins_garrison(self, world, alice, now):
        origin = home(world, alice)
        second = found_village(world, alice.id, "Outpost", 210, 210, now)
        _arm(origin, infantry=4)
        movement = send_movement(
            world, alice.id, origin.id, second.id, MovementType.SUPPORT, now,
            troops={"infantry": 4},
        )
        process_arrivals(world, movement.arrives_at)
        assert second.troops == {"infantry": 4}
        assert second.stationed == {}

    def test_recall_without_stationed_troops(self, world, alice, bob, now):
        with pytest.raises(NotFoundError):
            recall_support(world, alice.id, home(world, bob).id, home(world, alice).id, now)


class TestCancellation:
    def test_cancel_turns_movement_around(self, world, alice, bob, now):
        origin = home(world, alice)
        _arm(origin, infantry=5)
        movement = send_movement(
            world, alice.id, origin.id, home(world, bob).id, MovementType.ATTACK, now,
            troops={"infantry": 5},
        )
        later = now + timedelta(seconds=100)

        returning = cancel_movement(world, alice.id, movement.id, later)

        assert movement.status == MovementStatus.CANCELLED
        assert returning.arrives_at == later + timedelta(seconds=100)
        process_arrivals(world, returning.arrives_at)
        assert origin.troops == {"infantry": 5}
        assert not world.battles

    def test_only_owner_can_cancel(self, world, alice, bob, now):
        origin = home(world, alice)
        _arm(origin, infantry=5)
        movement = send_movement(
            world, alice.id, origin.id, home(world, bob).id, MovementType.ATTACK, now,
            troops={"infantry": 5},
        )
        with pytest.raises(InvalidActionError, match="another player"):
            cancel_movement(world, bob.id, movement.id, now)

    def test_arrived_movement_cannot_be_cancelled(self, world, alice, bob, now):
        origin = home(world, alice)
        _arm(origin, infantry=5)
        movement = send_movement(
            world, alice.id, origin.id, home(world, bob).id, MovementType.SUPPORT, now,
            troops={"infantry": 5},
        )
        process_arrivals(world, movement.arrives_at)
        with pytest.raises(InvalidActionError):
            cancel_movement(world, alice.id, movement.id, movement.arrives_at)


def test_arrival_at_vanished_village_fails_without_blocking_others(world, alice, bob, now):
    origin, target = home(world, alice), home(world, bob)
    outpost = found_village(world, alice.id, "Outpost", 201, 201, now)
    _arm(origin, infantry=5, cavalry=1)
    doomed = send_movement(
        world, alice.id, origin.id, target.id, MovementType.ATTACK, now,
        troops={"infantry": 5},
    )
    reinforcement = send_movement(
        world, alice.id, origin.id, outpost.id, MovementType.SUPPORT, now,
        troops={"cavalry": 1},
    )
    del world.villages[target.id]

    resolved = process_arrivals(world, max(doomed.arrives_at, reinforcement.arrives_at))

    assert resolved == [reinforcement]
    assert doomed.status == MovementStatus.FAILED
    assert outpost.troops == {"cavalry": 1}
