"""Unit training queue rules."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .artifacts import effect_magnitude
from .buildings import check_requirements, pending_items, queue_start
from .enums import EffectType, QueueKind, QueueStatus, ResourceType
from .errors import InvalidActionError, NotFoundError
from .models import PlayerID, QueueItem, QueueItemID, UnitType, Village, VillageID, World
from .resources import add_resources, deduct_resources, scale_cost, sync_resources
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import owned_village, record_event, village_population

logger = logging.getLogger(__name__)


def get_unit_type(world: World, key: str) -> UnitType:
    unit_type = world.unit_types.get(key)
    if unit_type is None:
        raise NotFoundError("unit type", key)
    return unit_type


def barracks_factor(village: Village, rules: RulesConfig = DEFAULT_RULES) -> float:
    level = village.buildings.get("barracks", 0)
    return max(
        rules.training.barracks_min_factor,
        1 - rules.training.barracks_reduction_per_level * level,
    )


def training_seconds(
    world: World,
    village: Village,
    unit_type: UnitType,
    quantity: int,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> float:
    """Seconds needed to train ``quantity`` units as one batch."""

    seconds = unit_type.training_seconds * (1 + (quantity - 1) * rules.training.quantity_time_step)
    seconds *= barracks_factor(village, rules) * rules.speed.training_time_multiplier
    bonus = effect_magnitude(world, village.id, EffectType.TROOP_BONUS, now) / 100
    seconds *= max(0.0, 1 - bonus)
    seconds /= world.speed
    return max(1.0, seconds)


def training_cost(unit_type: UnitType, quantity: int) -> dict[ResourceType, int]:
    return {resource: amount * quantity for resource, amount in unit_type.cost.items()}


def queue_training(
    world: World,
    player_id: PlayerID,
    village_id: VillageID,
    unit_key: str,
    quantity: int,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> QueueItem:
    """Pay for and queue a batch of units."""

    if quantity <= 0:
        raise InvalidActionError("quantity must be positive")
    village = owned_village(world, player_id, village_id)
    unit_type = get_unit_type(world, unit_key)

    pending = pending_items(world, village.id, QueueKind.TRAINING)
    if len(pending) >= rules.training.max_queue_length:
        raise InvalidActionError(
            f"training queue is full ({rules.training.max_queue_length} entries)"
        )
    check_requirements(village, unit_type.requirements)

    sync_resources(world, village, now, rules)
    cost = training_cost(unit_type, quantity)
    deduct_resources(village, cost)

    started_at = queue_start(world, village.id, QueueKind.TRAINING, now)
    duration = training_seconds(world, village, unit_type, quantity, now, rules)
    item = QueueItem(
        id=QueueItemID(world.next_id()),
        village_id=village.id,
        kind=QueueKind.TRAINING,
        key=unit_key,
        amount=quantity,
        cost=cost,
        started_at=started_at,
        completes_at=started_at + timedelta(seconds=duration),
    )
    world.queue[item.id] = item
    logger.info("village %s training %s x%s", int(village.id), unit_key, quantity)
    return item


def cancel_training(
    world: World,
    player_id: PlayerID,
    item_id: QueueItemID,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> dict[ResourceType, float]:
    """Cancel a training batch, refund part of its cost and pull later batches forward."""

    item = world.queue.get(item_id)
    if item is None or item.kind != QueueKind.TRAINING:
        raise NotFoundError("training item", int(item_id))
    village = owned_village(world, player_id, item.village_id)
    if item.status != QueueStatus.IN_PROGRESS:
        raise InvalidActionError(f"training item {int(item_id)} is already {item.status}")

    freed_from = max(now, item.started_at)
    freed = item.completes_at - freed_from
    item.status = QueueStatus.CANCELLED
    for later in pending_items(world, village.id, QueueKind.TRAINING):
        if later.started_at >= item.completes_at:
            later.started_at -= freed
            later.completes_at -= freed

    sync_resources(world, village, now, rules)
    refund = scale_cost(item.cost, rules.training.cancel_refund)
    return add_resources(village, refund, rules)


def complete_training(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[QueueItem]:
    """Tick step: deliver every finished batch to its village."""

    due = sorted(
        (
            item
            for item in world.queue.values()
            if item.kind == QueueKind.TRAINING
            and item.status == QueueStatus.IN_PROGRESS
            and item.completes_at <= now
        ),
        key=lambda item: (item.completes_at, int(item.id)),
    )
    for item in due:
        item.status = QueueStatus.COMPLETED
        village = world.villages.get(item.village_id)
        if village is None:
            continue
        village.troops[item.key] = village.troops.get(item.key, 0) + item.amount
        village.population = village_population(village, rules.buildings.population_per_level)
        record_event(
            world,
            "training_completed",
            f"{item.amount} {item.key} trained in {village.name}",
            item.completes_at,
            player_id=village.player_id,
            village_id=village.id,
            data={"unit": item.key, "quantity": item.amount},
        )
    return due
