"""Construction queue rules: costs, timings, upgrades and demolition."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .artifacts import effect_magnitude
from .enums import EffectType, QueueKind, QueueStatus, ResourceType
from .errors import InvalidActionError, NotFoundError, RequirementNotMetError
from .models import BuildingType, PlayerID, QueueItem, QueueItemID, Village, VillageID, World
from .resources import add_resources, deduct_resources, scale_cost, sync_resources
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import owned_village, record_event, village_population

logger = logging.getLogger(__name__)


def get_building_type(world: World, key: str) -> BuildingType:
    building_type = world.building_types.get(key)
    if building_type is None:
        raise NotFoundError("building type", key)
    return building_type


def max_level(building_type: BuildingType, rules: RulesConfig = DEFAULT_RULES) -> int:
    return min(building_type.max_level, rules.buildings.max_level)


def upgrade_cost(
    building_type: BuildingType, level: int, rules: RulesConfig = DEFAULT_RULES
) -> dict[ResourceType, int]:
    """Cost of raising a building to ``level``."""

    factor = rules.buildings.upgrade_cost_multiplier ** (level - 1)
    return scale_cost(building_type.base_cost, factor)


def construction_seconds(
    world: World,
    village: Village,
    building_type: BuildingType,
    level: int,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> float:
    """Seconds needed to raise ``building_type`` to ``level`` in ``village``."""

    config = rules.buildings
    seconds = building_type.base_seconds * config.upgrade_time_multiplier ** (level - 1)
    seconds *= rules.speed.building_time_multiplier

    main_level = village.buildings.get("main_building", 0)
    reduction = min(
        config.main_building_time_reduction_cap,
        config.main_building_time_reduction_per_level * main_level,
    )
    bonus = effect_magnitude(world, village.id, EffectType.BUILDING_BONUS, now) / 100
    seconds *= (1 - reduction) * max(0.0, 1 - bonus)
    seconds /= world.speed
    return max(1.0, seconds)


def pending_items(world: World, village_id: VillageID, kind: QueueKind) -> list[QueueItem]:
    """In-progress queue entries for a village ordered by completion time."""

    items = [
        item
        for item in world.queue.values()
        if item.village_id == village_id
        and item.kind == kind
        and item.status == QueueStatus.IN_PROGRESS
    ]
    return sorted(items, key=lambda item: (item.completes_at, int(item.id)))


def queue_start(world: World, village_id: VillageID, kind: QueueKind, now: datetime) -> datetime:
    """Queued entries start once the previous entry of the same kind finishes."""

    pending = pending_items(world, village_id, kind)
    if not pending:
        return now
    return max(now, pending[-1].completes_at)


def check_requirements(
    village: Village, requirements: dict[str, int], *, population: int = 0
) -> None:
    for key, level in requirements.items():
        current = village.buildings.get(key, 0)
        if current < level:
            raise RequirementNotMetError(f"requires {key} level {level} (current {current})")
    if village.population < population:
        raise RequirementNotMetError(
            f"requires population {population} (current {village.population})"
        )


def queue_upgrade(
    world: World,
    player_id: PlayerID,
    village_id: VillageID,
    building_key: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> QueueItem:
    """Pay for and queue the next level of a building."""

    village = owned_village(world, player_id, village_id)
    building_type = get_building_type(world, building_key)

    pending = pending_items(world, village.id, QueueKind.CONSTRUCTION)
    if len(pending) >= rules.buildings.max_queue_length:
        raise InvalidActionError(
            f"construction queue is full ({rules.buildings.max_queue_length} entries)"
        )

    already_queued = sum(1 for item in pending if item.key == building_key)
    target_level = village.buildings.get(building_key, 0) + already_queued + 1
    if target_level > max_level(building_type, rules):
        raise InvalidActionError(f"{building_type.name} is already at its maximum level")

    check_requirements(
        village, building_type.requirements, population=building_type.population_required
    )

    sync_resources(world, village, now, rules)
    cost = upgrade_cost(building_type, target_level, rules)
    deduct_resources(village, cost)

    started_at = queue_start(world, village.id, QueueKind.CONSTRUCTION, now)
    duration = construction_seconds(world, village, building_type, target_level, now, rules)
    item = QueueItem(
        id=QueueItemID(world.next_id()),
        village_id=village.id,
        kind=QueueKind.CONSTRUCTION,
        key=building_key,
        amount=target_level,
        cost=cost,
        started_at=started_at,
        completes_at=started_at + timedelta(seconds=duration),
    )
    world.queue[item.id] = item
    logger.info(
        "village %s queued %s level %s (completes %s)",
        int(village.id),
        building_key,
        target_level,
        item.completes_at.isoformat(),
    )
    return item


def demolish(
    world: World,
    player_id: PlayerID,
    village_id: VillageID,
    building_key: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> dict[ResourceType, float]:
    """Remove one level of a building, refunding part of that level's cost."""

    village = owned_village(world, player_id, village_id)
    building_type = get_building_type(world, building_key)
    level = village.buildings.get(building_key, 0)
    if level <= 0:
        raise InvalidActionError(f"{building_type.name} is not built")
    queued = pending_items(world, village.id, QueueKind.CONSTRUCTION)
    if any(item.key == building_key for item in queued):
        raise InvalidActionError(f"{building_type.name} has an upgrade in progress")

    sync_resources(world, village, now, rules)
    refund = scale_cost(upgrade_cost(building_type, level, rules), rules.buildings.demolish_refund)
    if level == 1:
        del village.buildings[building_key]
    else:
        village.buildings[building_key] = level - 1
    stored = add_resources(village, refund, rules)
    village.population = village_population(village, rules.buildings.population_per_level)

    record_event(
        world,
        "building_demolished",
        f"{building_type.name} in {village.name} demolished to level {level - 1}",
        now,
        player_id=village.player_id,
        village_id=village.id,
        data={"building": building_key, "level": level - 1},
    )
    return stored


def complete_constructions(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[QueueItem]:
    """Tick step: finish every construction whose timer has elapsed."""

    due = sorted(
        (
            item
            for item in world.queue.values()
            if item.kind == QueueKind.CONSTRUCTION
            and item.status == QueueStatus.IN_PROGRESS
            and item.completes_at <= now
        ),
        key=lambda item: (item.completes_at, int(item.id)),
    )
    for item in due:
        village = world.villages.get(item.village_id)
        item.status = QueueStatus.COMPLETED
        if village is None:
            continue
        village.buildings[item.key] = max(village.buildings.get(item.key, 0), item.amount)
        village.population = village_population(village, rules.buildings.population_per_level)
        name = world.building_types[item.key].name if item.key in world.building_types else item.key
        record_event(
            world,
            "building_completed",
            f"{name} in {village.name} reached level {item.amount}",
            item.completes_at,
            player_id=village.player_id,
            village_id=village.id,
            data={"building": item.key, "level": item.amount},
        )
    return due
