"""Battle resolution, espionage and battle simulation.

A battle compares the summed attack of the arriving troops with the summed
defence of everything in the target village (home troops and stationed
support), scaled by the village's defensive buildings and artifact effects.
Both powers receive a random variance before they are compared; the result
then selects a loss band for each side and, for an attacker victory, a loot
percentage. All randomness comes from :mod:`villagewars.utils.rng` so a
battle is reproducible from its seed.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from villagewars.utils.rng import generate_seed, percent_roll, roll_dice

from . import alliances
from .artifacts import deactivate_artifact, effect_magnitude
from .catalog import DEFENSIVE_BUILDINGS
from .enums import BattleOutcome, EffectType, MovementType, ReportStatus, ReportType, ResourceType
from .errors import InvalidActionError
from .models import (
    Battle,
    BattleID,
    Movement,
    ResourceAmounts,
    TroopCounts,
    Village,
    World,
)
from .resources import sync_resources
from .rules_config import DEFAULT_RULES, BattleRules, RulesConfig
from .state import (
    add_report,
    get_village,
    merge_troops,
    record_event,
    subtract_troops,
    total_troops,
    village_population,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures


@dataclass(slots=True)
class BattleRoll:
    """Outcome of comparing two forces, before losses are applied."""

    outcome: BattleOutcome
    attack_power: float
    defense_power: float
    attacker_loss_rate: float
    defender_loss_rate: float
    loot_rate: float


@dataclass(slots=True)
class SimulationSummary:
    """Aggregate of many simulated battles."""

    iterations: int
    attacker_win_rate: float
    defender_win_rate: float
    draw_rate: float
    average_attacker_losses: dict[str, float]
    average_defender_losses: dict[str, float]
    average_loot: dict[str, float]
    attack_power: dict[str, float]
    defense_power: dict[str, float]
    defensive_bonus: float = 0.0
    troops: TroopCounts = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Core calculations


def defensive_bonus(buildings: dict[str, int], rules: RulesConfig = DEFAULT_RULES) -> float:
    """Fractional defence bonus granted by a village's defensive buildings."""

    config = rules.battle
    per_level = {
        "wall": config.wall_bonus_per_level,
        "watchtower": config.watchtower_bonus_per_level,
        "trap": config.trap_bonus_per_level,
        "rally_point": config.rally_point_bonus_per_level,
    }
    bonus = sum(buildings.get(key, 0) * per_level[key] for key in DEFENSIVE_BUILDINGS)
    return min(config.defensive_bonus_cap, bonus)


def attack_power(world: World, troops: TroopCounts, attack_bonus_pct: float = 0.0) -> float:
    base = sum(count * world.unit_types[key].attack for key, count in troops.items())
    return base * (1 + attack_bonus_pct / 100)


def defense_power(
    world: World,
    troops: TroopCounts,
    building_bonus: float = 0.0,
    defense_bonus_pct: float = 0.0,
) -> float:
    base = sum(count * world.unit_types[key].defense for key, count in troops.items())
    return base * (1 + building_bonus) * (1 + defense_bonus_pct / 100)


def carry_capacity(world: World, troops: TroopCounts) -> int:
    return sum(count * world.unit_types[key].carry for key, count in troops.items())


def calculate_losses(troops: TroopCounts, rate: float) -> TroopCounts:
    """Per-unit losses, rounded down."""

    losses = {key: math.floor(count * rate) for key, count in troops.items()}
    return {key: lost for key, lost in losses.items() if lost > 0}


def roll_battle(
    world: World,
    attacking: TroopCounts,
    defending: TroopCounts,
    seed: str,
    *,
    building_bonus: float = 0.0,
    attack_bonus_pct: float = 0.0,
    defense_bonus_pct: float = 0.0,
    rules: RulesConfig = DEFAULT_RULES,
) -> BattleRoll:
    """Compare both forces and draw the loss and loot percentages."""

    config: BattleRules = rules.battle
    attack_variance = percent_roll(
        f"{seed}:attack_variance", config.power_variance_min, config.power_variance_span
    )
    defense_variance = percent_roll(
        f"{seed}:defense_variance", config.power_variance_min, config.power_variance_span
    )
    attack = attack_power(world, attacking, attack_bonus_pct) * attack_variance
    defense = defense_power(world, defending, building_bonus, defense_bonus_pct) * defense_variance

    if attack > defense:
        outcome = BattleOutcome.ATTACKER_WINS
        attacker_band = (config.winner_loss_base, config.winner_loss_span)
        defender_band = (config.loser_loss_base, config.loser_loss_span)
    elif defense > attack:
        outcome = BattleOutcome.DEFENDER_WINS
        attacker_band = (config.loser_loss_base, config.loser_loss_span)
        defender_band = (config.winner_loss_base, config.winner_loss_span)
    else:
        outcome = BattleOutcome.DRAW
        attacker_band = defender_band = (config.draw_loss_base, config.draw_loss_span)

    attacker_rate = percent_roll(f"{seed}:attacker_losses", *attacker_band)
    defender_rate = percent_roll(f"{seed}:defender_losses", *defender_band)
    loot_rate = 0.0
    if outcome == BattleOutcome.ATTACKER_WINS:
        loot_rate = percent_roll(f"{seed}:loot", config.loot_base, config.loot_span)

    return BattleRoll(
        outcome=outcome,
        attack_power=attack,
        defense_power=defense,
        attacker_loss_rate=attacker_rate,
        defender_loss_rate=defender_rate,
        loot_rate=loot_rate,
    )


def calculate_loot(
    stored: dict[ResourceType, float], loot_rate: float, capacity: int
) -> ResourceAmounts:
    """Take ``loot_rate`` of each stored resource, scaled down to fit ``capacity``."""

    loot = {resource: math.floor(amount * loot_rate) for resource, amount in stored.items()}
    total = sum(loot.values())
    if total > capacity:
        scale = capacity / total if total else 0.0
        loot = {resource: math.floor(amount * scale) for resource, amount in loot.items()}
    return {resource: amount for resource, amount in loot.items() if amount > 0}


# ---------------------------------------------------------------------------
# Resolution against the world


def resolve_attack(
    world: World, movement: Movement, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> Battle:
    """Fight an arriving attack or raid and record the battle and its reports.

    ``movement.troops`` is reduced to the survivors and ``movement.resources``
    receives the loot, ready for the return trip.
    """

    if movement.movement_type not in (MovementType.ATTACK, MovementType.RAID):
        raise InvalidActionError(f"{movement.movement_type} movements do not fight")
    origin = get_village(world, movement.from_village_id)
    target = get_village(world, movement.to_village_id)
    sync_resources(world, target, now, rules)

    defending = merge_troops(target.troops, *target.stationed.values())
    building_bonus = defensive_bonus(target.buildings, rules)
    seed = generate_seed(int(world.id), world.tick_count, f"battle:{int(movement.id)}")
    roll = roll_battle(
        world,
        movement.troops,
        defending,
        seed,
        building_bonus=building_bonus,
        attack_bonus_pct=effect_magnitude(world, origin.id, EffectType.ATTACK_BONUS, now),
        defense_bonus_pct=effect_magnitude(world, target.id, EffectType.DEFENSE_BONUS, now),
        rules=rules,
    )

    attacking = dict(movement.troops)
    attacker_losses = calculate_losses(attacking, roll.attacker_loss_rate)
    defender_losses = _apply_defender_losses(target, roll.defender_loss_rate)
    survivors = subtract_troops(attacking, attacker_losses)
    movement.troops = survivors

    loot: ResourceAmounts = {}
    if roll.outcome == BattleOutcome.ATTACKER_WINS and survivors:
        loot = calculate_loot(target.resources, roll.loot_rate, carry_capacity(world, survivors))
        for resource, amount in loot.items():
            target.resources[resource] = max(0.0, target.resources.get(resource, 0.0) - amount)
        movement.resources = merge_resources(movement.resources, loot)

    battle = Battle(
        id=BattleID(world.next_id()),
        attacker_id=movement.player_id,
        defender_id=target.player_id,
        attacker_village_id=origin.id,
        village_id=target.id,
        attacking_troops=attacking,
        defending_troops=defending,
        attacker_losses=attacker_losses,
        defender_losses=defender_losses,
        loot=loot,
        attack_power=roll.attack_power,
        defense_power=roll.defense_power,
        defensive_bonus=building_bonus,
        outcome=roll.outcome,
        occurred_at=now,
        is_raid=movement.movement_type == MovementType.RAID,
    )

    if roll.outcome == BattleOutcome.ATTACKER_WINS and not battle.is_raid:
        _reduce_loyalty(world, battle, origin, target, now, rules)

    target.population = village_population(target, rules.buildings.population_per_level)
    world.battles[battle.id] = battle
    movement.battle_id = battle.id
    _update_player_records(world, battle)
    alliances.record_battle_score(
        world,
        battle.attacker_id,
        battle.defender_id,
        battle.outcome,
        total_troops(defender_losses),
        total_troops(attacker_losses),
    )
    _write_battle_reports(world, battle, origin, target)
    record_event(
        world,
        "battle",
        f"{origin.name} attacked {target.name}: {battle.outcome}",
        now,
        player_id=battle.attacker_id,
        village_id=target.id,
        data={"battle_id": int(battle.id)},
    )
    logger.info(
        "battle %s at village %s: %s (attack %.1f vs defense %.1f)",
        int(battle.id),
        int(target.id),
        battle.outcome,
        battle.attack_power,
        battle.defense_power,
    )
    return battle


def merge_resources(*groups: ResourceAmounts) -> ResourceAmounts:
    merged: ResourceAmounts = {}
    for group in groups:
        for resource, amount in group.items():
            merged[resource] = merged.get(resource, 0) + amount
    return merged


def _apply_defender_losses(village: Village, rate: float) -> TroopCounts:
    """Apply the same loss rate to home troops and each stationed group."""

    home_losses = calculate_losses(village.troops, rate)
    village.troops = subtract_troops(village.troops, home_losses)
    all_losses = [home_losses]
    for origin_id in list(village.stationed):
        group = village.stationed[origin_id]
        losses = calculate_losses(group, rate)
        remaining = subtract_troops(group, losses)
        if remaining:
            village.stationed[origin_id] = remaining
        else:
            del village.stationed[origin_id]
        all_losses.append(losses)
    return merge_troops(*all_losses)


def _reduce_loyalty(
    world: World,
    battle: Battle,
    origin: Village,
    target: Village,
    now: datetime,
    rules: RulesConfig,
) -> None:
    config = rules.battle
    target.loyalty = max(float(config.loyalty_minimum), target.loyalty - config.loyalty_decrease)
    battle.loyalty_after = target.loyalty
    if target.loyalty > config.loyalty_minimum:
        return
    held = sorted(
        (artifact for artifact in world.artifacts.values() if artifact.village_id == target.id),
        key=lambda artifact: int(artifact.id),
    )
    if not held:
        return
    artifact = held[0]
    deactivate_artifact(world, artifact)
    artifact.village_id = origin.id
    battle.artifact_captured = artifact.id
    record_event(
        world,
        "artifact_captured",
        f"{artifact.name} captured from {target.name} by {origin.name}",
        now,
        player_id=battle.attacker_id,
        village_id=origin.id,
        data={"artifact_id": int(artifact.id), "battle_id": int(battle.id)},
    )


def _update_player_records(world: World, battle: Battle) -> None:
    attacker = world.players.get(battle.attacker_id)
    defender = world.players.get(battle.defender_id)
    if battle.outcome == BattleOutcome.ATTACKER_WINS:
        if attacker is not None:
            attacker.battles_won += 1
        if defender is not None:
            defender.battles_lost += 1
    elif battle.outcome == BattleOutcome.DEFENDER_WINS:
        if attacker is not None:
            attacker.battles_lost += 1
        if defender is not None:
            defender.battles_won += 1


def summarize_troops(troops: TroopCounts, empty: str = "No casualties") -> str:
    if not troops:
        return empty
    return ", ".join(f"{count} {key}" for key, count in sorted(troops.items()))


def summarize_resources(resources: ResourceAmounts, empty: str = "No loot") -> str:
    if not resources:
        return empty
    return ", ".join(f"{amount} {resource}" for resource, amount in sorted(resources.items()))


def _write_battle_reports(world: World, battle: Battle, origin: Village, target: Village) -> None:
    data: dict[str, object] = {
        "battle_id": int(battle.id),
        "attacker_losses": dict(battle.attacker_losses),
        "defender_losses": dict(battle.defender_losses),
        "loot": {str(resource): amount for resource, amount in battle.loot.items()},
        "attack_power": round(battle.attack_power, 2),
        "defense_power": round(battle.defense_power, 2),
        "outcome": str(battle.outcome),
    }
    content = (
        f"Attacker losses: {summarize_troops(battle.attacker_losses)}\n"
        f"Defender losses: {summarize_troops(battle.defender_losses)}\n"
        f"Loot: {summarize_resources(battle.loot)}"
    )
    if battle.artifact_captured is not None:
        content += f"\nArtifact captured: {world.artifacts[battle.artifact_captured].name}"

    status_for_attacker = {
        BattleOutcome.ATTACKER_WINS: ReportStatus.VICTORY,
        BattleOutcome.DEFENDER_WINS: ReportStatus.DEFEAT,
        BattleOutcome.DRAW: ReportStatus.DRAW,
    }[battle.outcome]
    status_for_defender = {
        BattleOutcome.ATTACKER_WINS: ReportStatus.DEFEAT,
        BattleOutcome.DEFENDER_WINS: ReportStatus.VICTORY,
        BattleOutcome.DRAW: ReportStatus.DRAW,
    }[battle.outcome]
    verb = "raided" if battle.is_raid else "attacked"
    add_report(
        world,
        battle.attacker_id,
        ReportType.ATTACK,
        status_for_attacker,
        f"{origin.name} {verb} {target.name}",
        content,
        battle.occurred_at,
        data=data,
        battle_id=battle.id,
    )
    add_report(
        world,
        battle.defender_id,
        ReportType.DEFENSE,
        status_for_defender,
        f"{target.name} was {verb} by {origin.name}",
        content,
        battle.occurred_at,
        data=data,
        battle_id=battle.id,
        is_important=battle.outcome == BattleOutcome.ATTACKER_WINS,
    )


# ---------------------------------------------------------------------------
# Espionage


def resolve_spy(
    world: World, movement: Movement, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> bool:
    """Resolve an arriving spy mission; returns True when the scouts were caught."""

    origin = get_village(world, movement.from_village_id)
    target = get_village(world, movement.to_village_id)
    sync_resources(world, target, now, rules)

    chance = min(100, target.buildings.get("trap", 0) * rules.battle.spy_catch_per_trap_level)
    seed = generate_seed(int(world.id), world.tick_count, f"spy:{int(movement.id)}")
    roll = roll_dice(seed, "1d100")["total"]
    caught = roll <= chance

    if caught:
        lost = dict(movement.troops)
        movement.troops = {}
        add_report(
            world,
            movement.player_id,
            ReportType.SPY,
            ReportStatus.FAILURE,
            f"Scouts from {origin.name} were caught at {target.name}",
            f"Lost: {summarize_troops(lost)}",
            now,
            data={"roll": roll, "chance": chance, "lost": lost},
        )
        add_report(
            world,
            target.player_id,
            ReportType.SPY,
            ReportStatus.SUCCESS,
            f"Scouts from {origin.name} caught at {target.name}",
            f"Captured: {summarize_troops(lost)}",
            now,
            data={"roll": roll, "chance": chance},
        )
        return True

    seen_troops = merge_troops(target.troops, *target.stationed.values())
    intel: dict[str, object] = {
        "resources": {str(resource): int(amount) for resource, amount in target.resources.items()},
        "troops": seen_troops,
        "buildings": dict(target.buildings),
        "loyalty": target.loyalty,
        "roll": roll,
        "chance": chance,
    }
    add_report(
        world,
        movement.player_id,
        ReportType.SPY,
        ReportStatus.SUCCESS,
        f"Scouting report on {target.name}",
        f"Troops: {summarize_troops(seen_troops, empty='None')}",
        now,
        data=intel,
    )
    return False


# ---------------------------------------------------------------------------
# Simulation


def simulate_battle(
    world: World,
    attacking: TroopCounts,
    defending: TroopCounts,
    *,
    defender_buildings: dict[str, int] | None = None,
    defender_resources: dict[ResourceType, float] | None = None,
    attack_bonus_pct: float = 0.0,
    defense_bonus_pct: float = 0.0,
    iterations: int | None = None,
    seed: str = "simulation",
    rules: RulesConfig = DEFAULT_RULES,
) -> SimulationSummary:
    """Run the battle formula repeatedly without touching the world."""

    _validate_units(world, attacking)
    _validate_units(world, defending)
    runs = iterations if iterations is not None else rules.battle.simulation_iterations
    if runs <= 0:
        raise InvalidActionError("iterations must be positive")

    building_bonus = defensive_bonus(defender_buildings or {}, rules)
    stored = defender_resources or {}
    outcomes = {outcome: 0 for outcome in BattleOutcome}
    attacker_losses = {key: 0 for key in attacking}
    defender_losses = {key: 0 for key in defending}
    loot_totals = {resource: 0 for resource in ResourceType}
    attack_samples: list[float] = []
    defense_samples: list[float] = []

    for index in range(runs):
        roll = roll_battle(
            world,
            attacking,
            defending,
            f"{seed}:{index}",
            building_bonus=building_bonus,
            attack_bonus_pct=attack_bonus_pct,
            defense_bonus_pct=defense_bonus_pct,
            rules=rules,
        )
        outcomes[roll.outcome] += 1
        attack_samples.append(roll.attack_power)
        defense_samples.append(roll.defense_power)
        lost = calculate_losses(attacking, roll.attacker_loss_rate)
        for key, count in lost.items():
            attacker_losses[key] += count
        for key, count in calculate_losses(defending, roll.defender_loss_rate).items():
            defender_losses[key] += count
        if roll.outcome == BattleOutcome.ATTACKER_WINS and stored:
            survivors = subtract_troops(attacking, lost)
            loot = calculate_loot(stored, roll.loot_rate, carry_capacity(world, survivors))
            for resource, amount in loot.items():
                loot_totals[resource] += amount

    return SimulationSummary(
        iterations=runs,
        attacker_win_rate=outcomes[BattleOutcome.ATTACKER_WINS] / runs,
        defender_win_rate=outcomes[BattleOutcome.DEFENDER_WINS] / runs,
        draw_rate=outcomes[BattleOutcome.DRAW] / runs,
        average_attacker_losses={key: total / runs for key, total in attacker_losses.items()},
        average_defender_losses={key: total / runs for key, total in defender_losses.items()},
        average_loot={str(resource): total / runs for resource, total in loot_totals.items()},
        attack_power=_power_stats(attack_samples),
        defense_power=_power_stats(defense_samples),
        defensive_bonus=building_bonus,
        troops=dict(attacking),
    )


def recommend_composition(
    world: World,
    available: TroopCounts,
    defending: TroopCounts,
    *,
    defender_buildings: dict[str, int] | None = None,
    iterations: int = 100,
    seed: str = "recommendation",
    rules: RulesConfig = DEFAULT_RULES,
) -> SimulationSummary:
    """Pick the attacking mix with the best win rate from the available troops.

    Candidates are the full force, every single unit type and every pair of
    unit types. Ties on win rate go to the mix that loses fewer units.
    """

    units = sorted(key for key, count in available.items() if count > 0)
    if not units:
        raise InvalidActionError("no troops available")

    candidates: list[TroopCounts] = [{key: available[key] for key in units}]
    for size in (1, 2):
        if size >= len(units):
            continue
        for combo in itertools.combinations(units, size):
            candidates.append({key: available[key] for key in combo})

    summaries = [
        simulate_battle(
            world,
            troops,
            defending,
            defender_buildings=defender_buildings,
            iterations=iterations,
            seed=f"{seed}:{index}",
            rules=rules,
        )
        for index, troops in enumerate(candidates)
    ]
    best = summaries[0]
    for summary in summaries[1:]:
        if _better(summary, best):
            best = summary
    return best


def _better(candidate: SimulationSummary, incumbent: SimulationSummary) -> bool:
    if candidate.attacker_win_rate != incumbent.attacker_win_rate:
        return candidate.attacker_win_rate > incumbent.attacker_win_rate
    return sum(candidate.average_attacker_losses.values()) < sum(
        incumbent.average_attacker_losses.values()
    )


def _power_stats(samples: list[float]) -> dict[str, float]:
    return {
        "min": min(samples),
        "avg": sum(samples) / len(samples),
        "max": max(samples),
    }


def _validate_units(world: World, troops: TroopCounts) -> None:
    for key, count in troops.items():
        if key not in world.unit_types:
            raise InvalidActionError(f"unknown unit type {key!r}")
        if count < 0:
            raise InvalidActionError(f"troop count for {key} cannot be negative")


def recover_loyalty(
    world: World, elapsed_hours: float, rules: RulesConfig = DEFAULT_RULES
) -> None:
    """Loyalty climbs back towards its maximum over time."""

    if elapsed_hours <= 0:
        return
    config = rules.battle
    for village in world.villages.values():
        if village.loyalty < config.loyalty_maximum:
            village.loyalty = min(
                float(config.loyalty_maximum),
                village.loyalty + config.loyalty_recovery_per_hour * elapsed_hours,
            )
