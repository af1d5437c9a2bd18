"""Tests for the construction queue."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import home, stock

from villagewars.domain.buildings import (
    complete_constructions,
    construction_seconds,
    demolish,
    pending_items,
    queue_upgrade,
    upgrade_cost,
)
from villagewars.domain.enums import QueueKind, QueueStatus, ResourceType
from villagewars.domain.errors import (
    InsufficientResourcesError,
    InvalidActionError,
    NotFoundError,
    RequirementNotMetError,
)


def test_upgrade_cost_grows_per_level(world):
    main = world.building_types["main_building"]
    assert upgrade_cost(main, 1) == {
        ResourceType.WOOD: 70,
        ResourceType.CLAY: 40,
        ResourceType.IRON: 60,
        ResourceType.CROP: 20,
    }
    assert upgrade_cost(main, 2)[ResourceType.WOOD] == 105


def test_main_building_shortens_construction(world, alice, now):
    village = home(world, alice)
    main = world.building_types["main_building"]
    assert construction_seconds(world, village, main, 2, now) == pytest.approx(600 * 1.3 * 0.97)
    village.buildings["main_building"] = 10
    assert construction_seconds(world, village, main, 2, now) == pytest.approx(600 * 1.3 * 0.7)


def test_queue_upgrade_charges_and_schedules(world, alice, now):
    village = home(world, alice)
    item = queue_upgrade(world, alice.id, village.id, "main_building", now)

    assert item.amount == 2
    assert item.started_at == now
    assert item.completes_at > now
    assert village.resources[ResourceType.WOOD] == pytest.approx(1000 - 105)


def test_second_entry_starts_after_first(world, alice, now):
    village = home(world, alice)
    first = queue_upgrade(world, alice.id, village.id, "woodcutter", now)
    second = queue_upgrade(world, alice.id, village.id, "woodcutter", now)

    assert second.started_at == first.completes_at
    assert second.amount == 3


def test_queue_is_limited(world, alice, now):
    village = home(world, alice)
    stock(village)
    queue_upgrade(world, alice.id, village.id, "woodcutter", now)
    queue_upgrade(world, alice.id, village.id, "clay_pit", now)
    with pytest.raises(InvalidActionError, match="queue is full"):
        queue_upgrade(world, alice.id, village.id, "iron_mine", now)


def test_requirements_are_checked(world, alice, now):
    village = home(world, alice)
    stock(village)
    with pytest.raises(RequirementNotMetError, match="main_building level 3"):
        queue_upgrade(world, alice.id, village.id, "barracks", now)


def test_missing_resources_leave_village_untouched(world, alice, now):
    village = home(world, alice)
    village.resources[ResourceType.IRON] = 10.0
    with pytest.raises(InsufficientResourcesError):
        queue_upgrade(world, alice.id, village.id, "main_building", now)
    assert pending_items(world, village.id, QueueKind.CONSTRUCTION) == []
    assert village.resources[ResourceType.WOOD] == 1000.0


def test_cannot_build_in_foreign_village(world, alice, bob, now):
    with pytest.raises(InvalidActionError, match="does not belong"):
        queue_upgrade(world, alice.id, home(world, bob).id, "main_building", now)


def test_unknown_building(world, alice, now):
    with pytest.raises(NotFoundError):
        queue_upgrade(world, alice.id, home(world, alice).id, "castle", now)


def test_max_level_is_enforced(world, alice, now):
    village = home(world, alice)
    village.buildings["crop_field"] = 20
    with pytest.raises(InvalidActionError, match="maximum level"):
        queue_upgrade(world, alice.id, village.id, "crop_field", now)


def test_complete_constructions_applies_level(world, alice, now):
    village = home(world, alice)
    item = queue_upgrade(world, alice.id, village.id, "main_building", now)

    assert complete_constructions(world, item.completes_at - timedelta(seconds=1)) == []
    done = complete_constructions(world, item.completes_at)

    assert done == [item]
    assert item.status == QueueStatus.COMPLETED
    assert village.buildings["main_building"] == 2
    assert village.population == 60
    assert world.events[-1].event_type == "building_completed"


def test_demolish_refunds_half_and_removes_level_one(world, alice, now):
    village = home(world, alice)
    refund = demolish(world, alice.id, village.id, "woodcutter", now)

    assert refund == {
        ResourceType.WOOD: 20.0,
        ResourceType.CLAY: 50.0,
        ResourceType.IRON: 25.0,
        ResourceType.CROP: 30.0,
    }
    assert "woodcutter" not in village.buildings


def test_demolish_rejects_pending_upgrade(world, alice, now):
    village = home(world, alice)
    queue_upgrade(world, alice.id, village.id, "woodcutter", now)
    with pytest.raises(InvalidActionError, match="upgrade in progress"):
        demolish(world, alice.id, village.id, "woodcutter", now)


def test_demolish_unbuilt(world, alice, now):
    with pytest.raises(InvalidActionError, match="not built"):
        demolish(world, alice.id, home(world, alice).id, "wall", now)
