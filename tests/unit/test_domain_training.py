"""Tests for the training queue."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import home, stock

from villagewars.domain.enums import QueueStatus, ResourceType
from villagewars.domain.errors import InvalidActionError, NotFoundError, RequirementNotMetError
from villagewars.domain.training import (
    cancel_training,
    complete_training,
    queue_training,
    training_seconds,
)


@pytest.fixture
def barracks(world, alice):
    village = home(world, alice)
    village.buildings["barracks"] = 1
    stock(village)
    return village


def test_batch_time_and_barracks_discount(world, barracks, now):
    infantry = world.unit_types["infantry"]
    assert training_seconds(world, barracks, infantry, 10, now) == pytest.approx(300 * 1.9 * 0.95)
    assert training_seconds(world, barracks, infantry, 1, now) == pytest.approx(285.0)


def test_queue_training_charges_cost(world, alice, barracks, now):
    item = queue_training(world, alice.id, barracks.id, "infantry", 10, now)

    assert item.amount == 10
    assert item.cost[ResourceType.WOOD] == 1000
    assert barracks.resources[ResourceType.WOOD] == pytest.approx(8000.0)


def test_requires_barracks_level(world, alice, barracks, now):
    with pytest.raises(RequirementNotMetError, match="barracks level 3"):
        queue_training(world, alice.id, barracks.id, "archer", 1, now)


def test_rejects_bad_quantity_and_unit(world, alice, barracks, now):
    with pytest.raises(InvalidActionError, match="quantity"):
        queue_training(world, alice.id, barracks.id, "infantry", 0, now)
    with pytest.raises(NotFoundError):
        queue_training(world, alice.id, barracks.id, "dragon", 1, now)


def test_complete_training_delivers_troops(world, alice, barracks, now):
    item = queue_training(world, alice.id, barracks.id, "infantry", 5, now)
    complete_training(world, item.completes_at + timedelta(seconds=1))

    assert item.status == QueueStatus.COMPLETED
    assert barracks.troops == {"infantry": 5}
    assert barracks.population == 6 * 10 + 5


def test_cancel_refunds_half_and_pulls_queue_forward(world, alice, barracks, now):
    first = queue_training(world, alice.id, barracks.id, "infantry", 2, now)
    second = queue_training(world, alice.id, barracks.id, "scout", 1, now)
    duration = second.completes_at - second.started_at
    assert second.started_at == first.completes_at

    refund = cancel_training(world, alice.id, first.id, now)

    assert refund[ResourceType.WOOD] == pytest.approx(100.0)
    assert first.status == QueueStatus.CANCELLED
    assert second.started_at == now
    assert second.completes_at == now + duration


def test_cancel_twice_fails(world, alice, barracks, now):
    item = queue_training(world, alice.id, barracks.id, "infantry", 1, now)
    cancel_training(world, alice.id, item.id, now)
    with pytest.raises(InvalidActionError, match="already cancelled"):
        cancel_training(world, alice.id, item.id, now)
