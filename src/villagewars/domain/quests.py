"""Quest progress tracking and rewards."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .enums import QuestStatus
from .errors import InvalidActionError, NotFoundError
from .models import Player, PlayerID, PlayerQuest, PlayerQuestID, QuestDefinition, World
from .resources import add_resources, sync_resources
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import capital_of, get_player, merge_troops, record_event

logger = logging.getLogger(__name__)


def get_quest_definition(world: World, key: str) -> QuestDefinition:
    quest = world.quest_definitions.get(key)
    if quest is None:
        raise NotFoundError("quest", key)
    return quest


def _fraction(current: float, target: float) -> float:
    if target <= 0:
        return 1.0
    return min(1.0, current / target)


def requirement_fractions(world: World, player: Player, quest: QuestDefinition) -> list[float]:
    """Fulfilment fraction (0-1) of each individual requirement."""

    villages = [world.villages[vid] for vid in player.village_ids if vid in world.villages]
    fractions: list[float] = []
    for key, level in quest.building_levels.items():
        best = max((village.buildings.get(key, 0) for village in villages), default=0)
        fractions.append(_fraction(best, level))
    if quest.troops:
        owned = merge_troops(*(village.troops for village in villages))
        for key, count in quest.troops.items():
            fractions.append(_fraction(owned.get(key, 0), count))
    if quest.population:
        population = sum(village.population for village in villages)
        fractions.append(_fraction(population, quest.population))
    if quest.villages:
        fractions.append(_fraction(len(villages), quest.villages))
    if quest.battles_won:
        fractions.append(_fraction(player.battles_won, quest.battles_won))
    return fractions


def quest_progress(world: World, player: Player, quest: QuestDefinition) -> float:
    """Mean fulfilment of every requirement as a percentage."""

    fractions = requirement_fractions(world, player, quest)
    if not fractions:
        return 100.0
    return round(sum(fractions) / len(fractions) * 100, 2)


def start_quest(
    world: World,
    player_id: PlayerID,
    quest_key: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> PlayerQuest:
    player = get_player(world, player_id)
    quest = get_quest_definition(world, quest_key)
    for existing in world.player_quests.values():
        if existing.player_id != player_id or existing.quest_key != quest_key:
            continue
        if existing.status == QuestStatus.ACTIVE:
            raise InvalidActionError(f"quest {quest.name} is already active")
        if existing.status == QuestStatus.COMPLETED and not quest.repeatable:
            raise InvalidActionError(f"quest {quest.name} is already completed")

    expires_at = (
        now + timedelta(days=rules.quests.repeatable_lifetime_days) if quest.repeatable else None
    )
    player_quest = PlayerQuest(
        id=PlayerQuestID(world.next_id()),
        player_id=player.id,
        quest_key=quest.key,
        started_at=now,
        expires_at=expires_at,
    )
    world.player_quests[player_quest.id] = player_quest
    player_quest.progress = quest_progress(world, player, quest)
    return player_quest


def refresh_quests(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[PlayerQuest]:
    """Tick step: expire, update and auto-complete active quests; returns completions."""

    completed: list[PlayerQuest] = []
    for player_quest in sorted(world.player_quests.values(), key=lambda pq: int(pq.id)):
        if player_quest.status != QuestStatus.ACTIVE:
            continue
        if player_quest.expires_at is not None and player_quest.expires_at <= now:
            player_quest.status = QuestStatus.EXPIRED
            continue
        player = world.players.get(player_quest.player_id)
        quest = world.quest_definitions.get(player_quest.quest_key)
        if player is None or quest is None:
            player_quest.status = QuestStatus.EXPIRED
            continue
        player_quest.progress = quest_progress(world, player, quest)
        if player_quest.progress >= 100:
            complete_quest(world, player_quest, now, rules)
            completed.append(player_quest)
    return completed


def complete_quest(
    world: World,
    player_quest: PlayerQuest,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> dict[str, float]:
    """Mark a quest complete and pay its rewards into the capital."""

    quest = get_quest_definition(world, player_quest.quest_key)
    player_quest.status = QuestStatus.COMPLETED
    player_quest.progress = 100.0
    player_quest.completed_at = now

    stored: dict[str, float] = {}
    capital = capital_of(world, player_quest.player_id)
    if capital is not None:
        sync_resources(world, capital, now, rules)
        stored = {
            str(resource): amount
            for resource, amount in add_resources(capital, quest.rewards, rules).items()
        }
    record_event(
        world,
        "quest_completed",
        f"Quest {quest.name} completed",
        now,
        player_id=player_quest.player_id,
        village_id=capital.id if capital is not None else None,
        data={"quest": quest.key, "rewards": stored},
    )
    logger.info("player %s completed quest %s", int(player_quest.player_id), quest.key)
    return stored


def player_quests(world: World, player_id: PlayerID) -> list[PlayerQuest]:
    get_player(world, player_id)
    return sorted(
        (pq for pq in world.player_quests.values() if pq.player_id == player_id),
        key=lambda pq: int(pq.id),
    )


def available_quests(world: World, player_id: PlayerID) -> list[QuestDefinition]:
    """Quests the player could start right now."""

    blocked = {
        pq.quest_key
        for pq in player_quests(world, player_id)
        if pq.status == QuestStatus.ACTIVE
        or (
            pq.status == QuestStatus.COMPLETED
            and not world.quest_definitions[pq.quest_key].repeatable
        )
    }
    return [quest for key, quest in sorted(world.quest_definitions.items()) if key not in blocked]
