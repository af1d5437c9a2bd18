"""Resource production, storage and payment rules."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from .artifacts import effect_magnitude
from .catalog import RESOURCE_FIELDS
from .enums import EffectType, ResourceType
from .errors import InsufficientResourcesError
from .models import Village, World
from .rules_config import DEFAULT_RULES, RulesConfig

STORAGE_BUILDINGS: dict[ResourceType, str] = {
    ResourceType.WOOD: "warehouse",
    ResourceType.CLAY: "warehouse",
    ResourceType.IRON: "warehouse",
    ResourceType.CROP: "granary",
}


def storage_capacity(
    village: Village, resource: ResourceType, rules: RulesConfig = DEFAULT_RULES
) -> int:
    level = village.buildings.get(STORAGE_BUILDINGS[resource], 0)
    return rules.resources.storage_capacity_base + level * rules.resources.storage_per_level


def hourly_production(
    world: World,
    village: Village,
    resource: ResourceType,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> float:
    """Units of ``resource`` the village produces per hour at ``now``."""

    level = village.buildings.get(RESOURCE_FIELDS[resource], 0)
    per_minute = (
        rules.resources.base_production_per_minute
        + rules.resources.production_per_level_per_minute * level
    )
    rate = rules.speed.resource_production_rate * world.speed
    bonus = effect_magnitude(world, village.id, EffectType.PRODUCTION_BONUS, now) / 100
    return per_minute * 60 * rate * (1 + bonus)


def production_summary(
    world: World, village: Village, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> dict[ResourceType, dict[str, float]]:
    return {
        resource: {
            "amount": village.resources.get(resource, 0.0),
            "per_hour": hourly_production(world, village, resource, now, rules),
            "capacity": storage_capacity(village, resource, rules),
        }
        for resource in ResourceType
    }


def sync_resources(
    world: World, village: Village, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> dict[ResourceType, float]:
    """Accrue production since ``resources_updated_at``; returns what was gained."""

    elapsed_hours = (now - village.resources_updated_at).total_seconds() / 3600
    gained: dict[ResourceType, float] = {}
    if elapsed_hours <= 0:
        return gained

    for resource in ResourceType:
        current = village.resources.get(resource, 0.0)
        capacity = storage_capacity(village, resource, rules)
        produced = hourly_production(world, village, resource, now, rules) * elapsed_hours
        updated = max(0.0, min(float(capacity), current + produced))
        gained[resource] = updated - current
        village.resources[resource] = updated

    village.resources_updated_at = now
    return gained


def has_resources(village: Village, cost: Mapping[ResourceType, float]) -> bool:
    return all(village.resources.get(resource, 0.0) >= amount for resource, amount in cost.items())


def missing_resources(village: Village, cost: Mapping[ResourceType, float]) -> dict[str, float]:
    missing: dict[str, float] = {}
    for resource, amount in cost.items():
        shortfall = amount - village.resources.get(resource, 0.0)
        if shortfall > 0:
            missing[str(resource)] = shortfall
    return missing


def deduct_resources(village: Village, cost: Mapping[ResourceType, float]) -> None:
    """Remove ``cost`` from the village or raise without touching it."""

    missing = missing_resources(village, cost)
    if missing:
        raise InsufficientResourcesError(missing)
    for resource, amount in cost.items():
        village.resources[resource] = village.resources.get(resource, 0.0) - amount


def add_resources(
    village: Village,
    amounts: Mapping[ResourceType, float],
    rules: RulesConfig = DEFAULT_RULES,
) -> dict[ResourceType, float]:
    """Store ``amounts`` up to capacity and return what actually fit."""

    stored: dict[ResourceType, float] = {}
    for resource, amount in amounts.items():
        if amount <= 0:
            continue
        current = village.resources.get(resource, 0.0)
        capacity = storage_capacity(village, resource, rules)
        updated = min(float(capacity), current + amount)
        stored[resource] = max(0.0, updated - current)
        village.resources[resource] = max(current, updated)
    return stored


def scale_cost(cost: Mapping[ResourceType, int], factor: float) -> dict[ResourceType, int]:
    return {resource: int(amount * factor) for resource, amount in cost.items()}


def produce_all(world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES) -> int:
    """Tick step: bring every village's stockpile up to ``now``."""

    for village in world.villages.values():
        sync_resources(world, village, now, rules)
    return len(world.villages)
