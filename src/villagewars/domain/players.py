"""World creation, player registration, villages on the map and rankings."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from datetime import datetime

from .artifacts import seed_artifacts
from .catalog import RESOURCE_FIELDS, default_building_types, default_quests, default_unit_types
from .enums import ResourceType
from .errors import InvalidActionError
from .models import Player, PlayerID, Village, VillageID, World, WorldID
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import get_player, record_event, total_building_levels, village_population

logger = logging.getLogger(__name__)

STARTING_BUILDINGS: dict[str, int] = {
    **{key: 1 for key in RESOURCE_FIELDS.values()},
    "main_building": 1,
}


def create_world(
    world_id: WorldID,
    name: str,
    now: datetime,
    *,
    speed: float = 1.0,
    with_artifacts: bool = True,
) -> World:
    """Build an empty world with the default catalogs installed."""

    if speed <= 0:
        raise InvalidActionError("world speed must be positive")
    world = World(
        id=world_id,
        name=name,
        created_at=now,
        speed=speed,
        last_tick_at=now,
        unit_types=default_unit_types(),
        building_types=default_building_types(),
        quest_definitions=default_quests(),
    )
    if with_artifacts:
        seed_artifacts(world)
    return world


def spiral_coordinates(center_x: int, center_y: int) -> Iterator[tuple[int, int]]:
    """Yield coordinates ring by ring around a centre point."""

    yield center_x, center_y
    radius = 1
    while True:
        x, y = center_x - radius, center_y - radius
        for dx, dy in ((1, 0), (0, 1), (-1, 0), (0, -1)):
            for _ in range(radius * 2):
                yield x, y
                x += dx
                y += dy
        radius += 1


def in_bounds(x: int, y: int, rules: RulesConfig = DEFAULT_RULES) -> bool:
    return 0 <= x < rules.players.map_width and 0 <= y < rules.players.map_height


def is_occupied(world: World, x: int, y: int) -> bool:
    return any(village.x == x and village.y == y for village in world.villages.values())


def find_free_coordinate(world: World, rules: RulesConfig = DEFAULT_RULES) -> tuple[int, int]:
    occupied = {(village.x, village.y) for village in world.villages.values()}
    width, height = rules.players.map_width, rules.players.map_height
    if len(occupied) >= width * height:
        raise InvalidActionError("the map is full")
    for x, y in spiral_coordinates(width // 2, height // 2):
        if in_bounds(x, y, rules) and (x, y) not in occupied:
            return x, y
    raise InvalidActionError("the map is full")  # pragma: no cover - spiral is unbounded


def register_player(
    world: World,
    name: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
    *,
    village_name: str | None = None,
) -> Player:
    """Create a player together with a capital village."""

    name = name.strip()
    if not name:
        raise InvalidActionError("player name is required")
    if any(player.name.lower() == name.lower() for player in world.players.values()):
        raise InvalidActionError(f"player name {name!r} is taken")

    x, y = find_free_coordinate(world, rules)
    player = Player(id=PlayerID(world.next_id()), name=name, created_at=now, last_active_at=now)
    world.players[player.id] = player
    village_name = village_name or f"{name}'s village"
    _place_village(world, player, village_name, x, y, now, rules, capital=True)
    update_player_stats(world, rules)
    record_event(world, "player_registered", f"{name} joined the world", now, player_id=player.id)
    logger.info("player %s registered at (%s, %s)", name, x, y)
    return player


def found_village(
    world: World,
    player_id: PlayerID,
    name: str,
    x: int,
    y: int,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> Village:
    """Found an additional village for a player at a free coordinate."""

    player = get_player(world, player_id)
    if len(player.village_ids) >= rules.players.max_villages_per_player:
        raise InvalidActionError(
            f"players may own at most {rules.players.max_villages_per_player} villages"
        )
    if not in_bounds(x, y, rules):
        raise InvalidActionError(f"({x}, {y}) is outside the map")
    if is_occupied(world, x, y):
        raise InvalidActionError(f"({x}, {y}) is already occupied")
    name = name.strip() or f"{player.name}'s village {len(player.village_ids) + 1}"
    village = _place_village(world, player, name, x, y, now, rules, capital=not player.village_ids)
    update_player_stats(world, rules)
    return village


def _place_village(
    world: World,
    player: Player,
    name: str,
    x: int,
    y: int,
    now: datetime,
    rules: RulesConfig,
    *,
    capital: bool,
) -> Village:
    village = Village(
        id=VillageID(world.next_id()),
        player_id=player.id,
        name=name,
        x=x,
        y=y,
        resources={resource: float(rules.resources.starting_amount) for resource in ResourceType},
        resources_updated_at=now,
        buildings=dict(STARTING_BUILDINGS),
        loyalty=float(rules.battle.loyalty_maximum),
        is_capital=capital,
        created_at=now,
    )
    village.population = village_population(village, rules.buildings.population_per_level)
    world.villages[village.id] = village
    player.village_ids.append(village.id)
    record_event(
        world,
        "village_founded",
        f"{name} founded at ({x}, {y})",
        now,
        player_id=player.id,
        village_id=village.id,
    )
    return village


def update_player_stats(world: World, rules: RulesConfig = DEFAULT_RULES) -> None:
    """Recompute village population and player population and points."""

    per_level = rules.buildings.population_per_level
    for player in world.players.values():
        population = 0
        levels = 0
        for village_id in player.village_ids:
            village = world.villages.get(village_id)
            if village is None:
                continue
            village.population = village_population(village, per_level)
            population += village.population
            levels += total_building_levels(village)
        player.population = population
        player.points = population + rules.players.points_per_building_level * levels


def player_rankings(world: World) -> list[dict[str, object]]:
    rows = [
        {
            "id": int(player.id),
            "name": player.name,
            "points": player.points,
            "population": player.population,
            "villages": len(player.village_ids),
            "alliance_id": int(player.alliance_id) if player.alliance_id is not None else None,
        }
        for player in world.players.values()
    ]
    rows.sort(key=lambda row: (-int(row["points"]), int(row["id"])))
    for rank, row in enumerate(rows, start=1):
        row["rank"] = rank
    return rows


def nearby_villages(world: World, x: int, y: int, radius: float) -> list[tuple[Village, float]]:
    """Villages within ``radius`` fields of (x, y), closest first."""

    found = []
    for village in world.villages.values():
        gap = math.hypot(village.x - x, village.y - y)
        if gap <= radius:
            found.append((village, gap))
    return sorted(found, key=lambda item: (item[1], int(item[0].id)))


def touch_player(world: World, player_id: PlayerID, now: datetime) -> None:
    get_player(world, player_id).last_active_at = now
