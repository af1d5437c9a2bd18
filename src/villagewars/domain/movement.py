"""Troop and merchant movements between villages."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from . import battle as battle_rules
from .alliances import attack_block_reason
from .artifacts import effect_magnitude
from .enums import EffectType, MovementStatus, MovementType, ReportStatus, ReportType, ResourceType
from .errors import GameError, InvalidActionError, NotFoundError
from .models import (
    Movement,
    MovementID,
    PlayerID,
    ResourceAmounts,
    TroopCounts,
    Village,
    VillageID,
    World,
)
from .resources import add_resources, deduct_resources, sync_resources
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import (
    add_report,
    get_village,
    merge_troops,
    owned_village,
    record_event,
    subtract_troops,
    village_population,
)

logger = logging.getLogger(__name__)

HOSTILE_TYPES = frozenset({MovementType.ATTACK, MovementType.RAID})
TROOP_TYPES = frozenset(
    {MovementType.ATTACK, MovementType.RAID, MovementType.SUPPORT, MovementType.SPY}
)
SCOUT_UNIT = "scout"


def distance(a: Village, b: Village) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def slowest_speed(world: World, troops: TroopCounts) -> float:
    speeds = [world.unit_types[key].speed for key, count in troops.items() if count > 0]
    if not speeds:
        raise InvalidActionError("a movement needs at least one unit")
    return min(speeds)


def travel_seconds(
    world: World,
    origin: Village,
    target: Village,
    speed: float,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> float:
    """Seconds to cover the distance between two villages at ``speed`` fields/hour."""

    bonus = effect_magnitude(world, origin.id, EffectType.SPEED_BONUS, now) / 100
    divisor = rules.speed.movement_speed_multiplier * world.speed * (1 + bonus)
    seconds = distance(origin, target) / speed * 3600 / divisor
    return max(float(rules.movement.min_travel_seconds), seconds)


def merchant_capacity(village: Village, rules: RulesConfig = DEFAULT_RULES) -> int:
    return village.buildings.get("marketplace", 0) * rules.movement.merchant_capacity_per_level


def _validate_troops(world: World, village: Village, troops: TroopCounts) -> TroopCounts:
    cleaned: TroopCounts = {}
    for key, count in troops.items():
        if key not in world.unit_types:
            raise NotFoundError("unit type", key)
        if count < 0:
            raise InvalidActionError(f"troop count for {key} cannot be negative")
        if count == 0:
            continue
        available = village.troops.get(key, 0)
        if available < count:
            raise InvalidActionError(f"{village.name} has only {available} {key}")
        cleaned[key] = count
    if not cleaned:
        raise InvalidActionError("a movement needs at least one unit")
    return cleaned


def _validate_cargo(resources: dict[ResourceType, int]) -> ResourceAmounts:
    cargo: ResourceAmounts = {}
    for resource, amount in resources.items():
        if amount < 0:
            raise InvalidActionError(f"{resource} amount cannot be negative")
        if amount:
            cargo[ResourceType(resource)] = amount
    if not cargo:
        raise InvalidActionError("a trade needs at least one resource")
    return cargo


def send_movement(
    world: World,
    player_id: PlayerID,
    from_village_id: VillageID,
    to_village_id: VillageID,
    movement_type: MovementType,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
    *,
    troops: TroopCounts | None = None,
    resources: dict[ResourceType, int] | None = None,
) -> Movement:
    """Dispatch troops or merchants after validating the request."""

    if movement_type == MovementType.RETURN:
        raise InvalidActionError("return movements are created by the server")
    origin = owned_village(world, player_id, from_village_id)
    target = get_village(world, to_village_id)
    if origin.id == target.id:
        raise InvalidActionError("origin and destination must differ")

    if movement_type in HOSTILE_TYPES:
        reason = attack_block_reason(world, player_id, target.player_id)
        if reason is not None:
            raise InvalidActionError(reason)
        if distance(origin, target) > rules.movement.max_attack_distance:
            raise InvalidActionError(
                f"target is beyond attack range ({rules.movement.max_attack_distance:g} fields)"
            )

    sent_troops: TroopCounts = {}
    cargo: ResourceAmounts = {}
    if movement_type in TROOP_TYPES:
        sent_troops = _validate_troops(world, origin, troops or {})
        if movement_type == MovementType.SPY and set(sent_troops) != {SCOUT_UNIT}:
            raise InvalidActionError("spy missions may only contain scouts")
        speed = slowest_speed(world, sent_troops)
    else:
        if origin.buildings.get("marketplace", 0) < 1:
            raise InvalidActionError("trading requires a marketplace")
        cargo = _validate_cargo(resources or {})
        capacity = merchant_capacity(origin, rules)
        if sum(cargo.values()) > capacity:
            raise InvalidActionError(f"merchants can carry at most {capacity} resources")
        speed = rules.movement.merchant_speed

    if cargo:
        sync_resources(world, origin, now, rules)
        deduct_resources(origin, cargo)
    if sent_troops:
        origin.troops = subtract_troops(origin.troops, sent_troops)
        origin.population = village_population(origin, rules.buildings.population_per_level)

    seconds = travel_seconds(world, origin, target, speed, now, rules)
    movement = Movement(
        id=MovementID(world.next_id()),
        movement_type=movement_type,
        player_id=player_id,
        from_village_id=origin.id,
        to_village_id=target.id,
        troops=sent_troops,
        resources=cargo,
        started_at=now,
        arrives_at=now + timedelta(seconds=seconds),
    )
    world.movements[movement.id] = movement
    logger.info(
        "movement %s (%s) from village %s to %s arrives %s",
        int(movement.id),
        movement_type,
        int(origin.id),
        int(target.id),
        movement.arrives_at.isoformat(),
    )
    return movement


def cancel_movement(
    world: World, player_id: PlayerID, movement_id: MovementID, now: datetime
) -> Movement:
    """Turn a travelling movement around; it gets home after the time already spent."""

    movement = world.movements.get(movement_id)
    if movement is None:
        raise NotFoundError("movement", int(movement_id))
    if movement.player_id != player_id:
        raise InvalidActionError("movement belongs to another player")
    if movement.status != MovementStatus.TRAVELLING:
        raise InvalidActionError(f"movement is {movement.status}")
    if movement.movement_type == MovementType.RETURN:
        raise InvalidActionError("returning movements cannot be cancelled")
    if movement.arrives_at <= now:
        raise InvalidActionError("movement has already arrived")

    movement.status = MovementStatus.CANCELLED
    elapsed = max(now - movement.started_at, timedelta(seconds=1))
    return _schedule_return(
        world, movement, now, arrives_at=now + elapsed, origin_id=movement.to_village_id
    )


def recall_support(
    world: World,
    player_id: PlayerID,
    host_village_id: VillageID,
    home_village_id: VillageID,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> Movement:
    """Send troops stationed in another village back home."""

    home = owned_village(world, player_id, home_village_id)
    host = get_village(world, host_village_id)
    troops = host.stationed.pop(home.id, None)
    if not troops:
        raise NotFoundError("stationed troops", int(home.id))
    seconds = travel_seconds(world, host, home, slowest_speed(world, troops), now, rules)
    movement = Movement(
        id=MovementID(world.next_id()),
        movement_type=MovementType.RETURN,
        player_id=player_id,
        from_village_id=host.id,
        to_village_id=home.id,
        troops=troops,
        resources={},
        started_at=now,
        arrives_at=now + timedelta(seconds=seconds),
    )
    world.movements[movement.id] = movement
    return movement


def _schedule_return(
    world: World,
    movement: Movement,
    now: datetime,
    *,
    arrives_at: datetime,
    origin_id: VillageID,
) -> Movement:
    returning = Movement(
        id=MovementID(world.next_id()),
        movement_type=MovementType.RETURN,
        player_id=movement.player_id,
        from_village_id=origin_id,
        to_village_id=movement.from_village_id,
        troops=dict(movement.troops),
        resources=dict(movement.resources),
        started_at=now,
        arrives_at=arrives_at,
        return_of=movement.id,
        battle_id=movement.battle_id,
    )
    world.movements[returning.id] = returning
    return returning


# ---------------------------------------------------------------------------
# Arrivals


def process_arrivals(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[Movement]:
    """Tick step: resolve every movement that has arrived, oldest first.

    A movement that cannot be resolved is marked failed and the remaining
    arrivals are still processed.
    """

    due = sorted(
        (
            movement
            for movement in world.movements.values()
            if movement.status == MovementStatus.TRAVELLING and movement.arrives_at <= now
        ),
        key=lambda movement: (movement.arrives_at, int(movement.id)),
    )
    resolved: list[Movement] = []
    for movement in due:
        try:
            _resolve_arrival(world, movement, rules)
        except GameError as exc:
            movement.status = MovementStatus.FAILED
            logger.warning("movement %s failed on arrival: %s", int(movement.id), exc)
            continue
        movement.status = MovementStatus.ARRIVED
        resolved.append(movement)
    return resolved


def _resolve_arrival(world: World, movement: Movement, rules: RulesConfig) -> None:
    arrived_at = movement.arrives_at
    kind = movement.movement_type

    if kind in HOSTILE_TYPES:
        battle_rules.resolve_attack(world, movement, arrived_at, rules)
        _return_survivors(world, movement, arrived_at, rules)
    elif kind == MovementType.SPY:
        caught = battle_rules.resolve_spy(world, movement, arrived_at, rules)
        if not caught:
            _return_survivors(world, movement, arrived_at, rules)
    elif kind == MovementType.SUPPORT:
        _station_support(world, movement, arrived_at)
    elif kind == MovementType.TRADE:
        _deliver_trade(world, movement, arrived_at, rules)
    elif kind == MovementType.RETURN:
        _arrive_home(world, movement, arrived_at, rules)


def _return_survivors(
    world: World, movement: Movement, now: datetime, rules: RulesConfig
) -> Movement | None:
    if not movement.troops:
        return None
    origin = get_village(world, movement.from_village_id)
    target = get_village(world, movement.to_village_id)
    seconds = travel_seconds(
        world, target, origin, slowest_speed(world, movement.troops), now, rules
    )
    return _schedule_return(
        world,
        movement,
        now,
        arrives_at=now + timedelta(seconds=seconds),
        origin_id=target.id,
    )


def _station_support(world: World, movement: Movement, now: datetime) -> None:
    target = get_village(world, movement.to_village_id)
    if target.player_id == movement.player_id:
        target.troops = merge_troops(target.troops, movement.troops)
    else:
        target.stationed[movement.from_village_id] = merge_troops(
            target.stationed.get(movement.from_village_id, {}), movement.troops
        )
    add_report(
        world,
        movement.player_id,
        ReportType.SUPPORT,
        ReportStatus.SUCCESS,
        f"Support arrived at {target.name}",
        battle_rules.summarize_troops(movement.troops, empty="No troops"),
        now,
        data={"troops": dict(movement.troops), "village_id": int(target.id)},
    )
    if target.player_id != movement.player_id:
        add_report(
            world,
            target.player_id,
            ReportType.SUPPORT,
            ReportStatus.SUCCESS,
            f"Reinforcements arrived at {target.name}",
            battle_rules.summarize_troops(movement.troops, empty="No troops"),
            now,
            data={
                "troops": dict(movement.troops),
                "from_village_id": int(movement.from_village_id),
            },
        )


def _deliver_trade(world: World, movement: Movement, now: datetime, rules: RulesConfig) -> None:
    target = get_village(world, movement.to_village_id)
    sync_resources(world, target, now, rules)
    stored = add_resources(target, movement.resources, rules)
    delivered = {str(resource): int(amount) for resource, amount in stored.items()}
    for player_id in {movement.player_id, target.player_id}:
        add_report(
            world,
            player_id,
            ReportType.TRADE,
            ReportStatus.SUCCESS,
            f"Merchants delivered resources to {target.name}",
            battle_rules.summarize_resources(movement.resources, empty="Nothing"),
            now,
            data={"sent": {str(r): a for r, a in movement.resources.items()}, "stored": delivered},
        )
    record_event(
        world,
        "trade_delivered",
        f"Merchants reached {target.name}",
        now,
        player_id=movement.player_id,
        village_id=target.id,
        data={"movement_id": int(movement.id)},
    )


def _arrive_home(world: World, movement: Movement, now: datetime, rules: RulesConfig) -> None:
    home = get_village(world, movement.to_village_id)
    home.troops = merge_troops(home.troops, movement.troops)
    home.population = village_population(home, rules.buildings.population_per_level)
    if movement.resources:
        sync_resources(world, home, now, rules)
        add_resources(home, movement.resources, rules)
