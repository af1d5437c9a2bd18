"""Tests for resource production, storage caps and payments."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NOW, home
from hypothesis import given, settings
from hypothesis import strategies as st

from villagewars.domain import models as dm
from villagewars.domain.enums import ResourceType
from villagewars.domain.errors import InsufficientResourcesError
from villagewars.domain.players import create_world, register_player
from villagewars.domain.resources import (
    add_resources,
    deduct_resources,
    hourly_production,
    missing_resources,
    storage_capacity,
    sync_resources,
)
from villagewars.domain.rules_config import DEFAULT_RULES, SpeedRules


def test_level_one_field_produces_720_per_hour(world, alice, now):
    village = home(world, alice)
    assert hourly_production(world, village, ResourceType.WOOD, now) == pytest.approx(720.0)


def test_production_scales_with_world_speed_and_rate(world, alice, now):
    village = home(world, alice)
    world.speed = 2.0
    rules = DEFAULT_RULES.with_speed(SpeedRules(resource_production_rate=1.5))
    assert hourly_production(world, village, ResourceType.CLAY, now, rules) == pytest.approx(2160.0)


def test_sync_accrues_elapsed_production(world, alice, now):
    village = home(world, alice)
    gained = sync_resources(world, village, now + timedelta(minutes=30))
    assert gained[ResourceType.WOOD] == pytest.approx(360.0)
    assert village.resources[ResourceType.WOOD] == pytest.approx(1360.0)
    assert village.resources_updated_at == now + timedelta(minutes=30)


def test_sync_ignores_time_going_backwards(world, alice, now):
    village = home(world, alice)
    assert sync_resources(world, village, now - timedelta(hours=1)) == {}
    assert village.resources[ResourceType.IRON] == 1000.0


def test_warehouse_raises_capacity(world, alice):
    village = home(world, alice)
    assert storage_capacity(village, ResourceType.WOOD) == 10_000
    village.buildings["warehouse"] = 2
    assert storage_capacity(village, ResourceType.WOOD) == 20_000
    assert storage_capacity(village, ResourceType.CROP) == 10_000


def _fresh_village():
    world = create_world(dm.WorldID(1), "Prop", NOW, with_artifacts=False)
    return world, home(world, register_player(world, "P", NOW))


@settings(max_examples=50, deadline=None)
@given(hours=st.floats(min_value=0.0, max_value=10_000.0))
def test_sync_never_exceeds_capacity(hours):
    world, village = _fresh_village()
    sync_resources(world, village, NOW + timedelta(hours=hours))
    for resource in ResourceType:
        assert 0.0 <= village.resources[resource] <= storage_capacity(village, resource)


def test_deduct_is_all_or_nothing(world, alice):
    village = home(world, alice)
    cost = {ResourceType.WOOD: 500, ResourceType.IRON: 5000}
    assert missing_resources(village, cost) == {"iron": 4000.0}
    with pytest.raises(InsufficientResourcesError) as excinfo:
        deduct_resources(village, cost)
    assert excinfo.value.missing == {"iron": 4000.0}
    assert village.resources[ResourceType.WOOD] == 1000.0


def test_add_resources_caps_and_reports_stored(world, alice):
    village = home(world, alice)
    village.resources[ResourceType.CROP] = 9_900.0
    stored = add_resources(village, {ResourceType.CROP: 500, ResourceType.WOOD: 0})
    assert stored == {ResourceType.CROP: 100.0}
    assert village.resources[ResourceType.CROP] == 10_000.0
