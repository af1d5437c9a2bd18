"""Lookups and bookkeeping shared by the rule modules."""

from __future__ import annotations

from datetime import datetime

from .enums import ReportStatus, ReportType
from .errors import InvalidActionError, NotFoundError
from .models import (
    Alliance,
    AllianceID,
    BattleID,
    EventID,
    GameEvent,
    Player,
    PlayerID,
    Report,
    ReportID,
    TroopCounts,
    Village,
    VillageID,
    World,
)


def get_player(world: World, player_id: PlayerID) -> Player:
    player = world.players.get(player_id)
    if player is None:
        raise NotFoundError("player", int(player_id))
    return player


def get_village(world: World, village_id: VillageID) -> Village:
    village = world.villages.get(village_id)
    if village is None:
        raise NotFoundError("village", int(village_id))
    return village


def get_alliance(world: World, alliance_id: AllianceID) -> Alliance:
    alliance = world.alliances.get(alliance_id)
    if alliance is None:
        raise NotFoundError("alliance", int(alliance_id))
    return alliance


def owned_village(world: World, player_id: PlayerID, village_id: VillageID) -> Village:
    """Return the village, ensuring ``player_id`` owns it."""

    village = get_village(world, village_id)
    if village.player_id != player_id:
        raise InvalidActionError(
            f"village {int(village_id)} does not belong to player {int(player_id)}"
        )
    return village


def capital_of(world: World, player_id: PlayerID) -> Village | None:
    player = get_player(world, player_id)
    villages = [world.villages[vid] for vid in player.village_ids if vid in world.villages]
    for village in villages:
        if village.is_capital:
            return village
    return villages[0] if villages else None


def total_building_levels(village: Village) -> int:
    return sum(village.buildings.values())


def total_troops(troops: TroopCounts) -> int:
    return sum(troops.values())


def merge_troops(*groups: TroopCounts) -> TroopCounts:
    merged: TroopCounts = {}
    for group in groups:
        for key, count in group.items():
            if count:
                merged[key] = merged.get(key, 0) + count
    return merged


def subtract_troops(troops: TroopCounts, losses: TroopCounts) -> TroopCounts:
    remaining = {key: count - losses.get(key, 0) for key, count in troops.items()}
    return {key: count for key, count in remaining.items() if count > 0}


def village_population(village: Village, population_per_level: int) -> int:
    """Population counts building levels and every unit garrisoned at home."""

    return total_building_levels(village) * population_per_level + total_troops(village.troops)


def record_event(
    world: World,
    event_type: str,
    description: str,
    now: datetime,
    *,
    player_id: PlayerID | None = None,
    village_id: VillageID | None = None,
    data: dict[str, object] | None = None,
) -> GameEvent:
    event = GameEvent(
        id=EventID(world.next_id()),
        event_type=event_type,
        description=description,
        occurred_at=now,
        player_id=player_id,
        village_id=village_id,
        data=data,
    )
    world.events.append(event)
    return event


def add_report(
    world: World,
    player_id: PlayerID,
    report_type: ReportType,
    status: ReportStatus,
    title: str,
    content: str,
    now: datetime,
    *,
    data: dict[str, object] | None = None,
    battle_id: BattleID | None = None,
    is_important: bool = False,
) -> Report:
    report = Report(
        id=ReportID(world.next_id()),
        player_id=player_id,
        report_type=report_type,
        status=status,
        title=title,
        content=content,
        created_at=now,
        data=data or {},
        battle_id=battle_id,
        is_important=is_important,
    )
    world.reports[report.id] = report
    return report
