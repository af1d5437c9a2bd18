"""Game tick orchestration for Village Wars worlds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from villagewars.domain import alliances, artifacts, buildings, market, movement, quests, resources
from villagewars.domain import battle as battle_rules
from villagewars.domain import training
from villagewars.domain.enums import MovementStatus, OfferStatus, QueueStatus
from villagewars.domain.models import World
from villagewars.domain.players import update_player_stats
from villagewars.domain.rules_config import DEFAULT_RULES, RulesConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickSummary:
    """Counts of what a single tick processed."""

    tick: int
    villages_produced: int = 0
    constructions_completed: int = 0
    training_completed: int = 0
    movements_resolved: int = 0
    offers_expired: int = 0
    quests_completed: int = 0
    effects_expired: int = 0
    records_pruned: int = 0


def run_game_tick(
    world: World,
    now: datetime,
    *,
    rules: RulesConfig = DEFAULT_RULES,
) -> TickSummary:
    """Advance ``world`` to ``now``.

    The world is mutated in place; callers persist it only when this returns,
    so an exception leaves the stored snapshot untouched.
    """

    previous = world.last_tick_at or world.created_at
    elapsed_hours = max(0.0, (now - previous).total_seconds() / 3600)
    summary = TickSummary(tick=world.tick_count + 1)

    summary.villages_produced = resources.produce_all(world, now, rules)
    summary.constructions_completed = len(buildings.complete_constructions(world, now, rules))
    summary.training_completed = len(training.complete_training(world, now, rules))
    summary.movements_resolved = len(movement.process_arrivals(world, now, rules))
    summary.offers_expired = len(market.expire_offers(world, now, rules))
    summary.quests_completed = len(quests.refresh_quests(world, now, rules))
    summary.effects_expired = artifacts.expire_effects(world, now)
    battle_rules.recover_loyalty(world, elapsed_hours, rules)
    update_player_stats(world, rules)
    alliances.refresh_alliance_points(world)
    summary.records_pruned = prune_history(world, now, rules)

    world.tick_count += 1
    world.last_tick_at = now
    logger.debug("world %s tick %s: %s", int(world.id), world.tick_count, summary)
    return summary


def prune_history(world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES) -> int:
    """Drop finished records older than their retention window."""

    retention = rules.retention
    movement_cutoff = now - timedelta(days=retention.movements_days)
    battle_cutoff = now - timedelta(days=retention.battles_days)
    report_cutoff = now - timedelta(days=retention.reports_days)
    event_cutoff = now - timedelta(days=retention.events_days)

    stale_movements = [
        movement_id
        for movement_id, item in world.movements.items()
        if item.status != MovementStatus.TRAVELLING and item.arrives_at < movement_cutoff
    ]
    stale_queue = [
        item_id
        for item_id, item in world.queue.items()
        if item.status != QueueStatus.IN_PROGRESS and item.completes_at < movement_cutoff
    ]
    stale_offers = [
        offer_id
        for offer_id, offer in world.offers.items()
        if offer.status != OfferStatus.ACTIVE
        and (offer.completed_at or offer.expires_at) < movement_cutoff
    ]
    stale_battles = [
        battle_id for battle_id, item in world.battles.items() if item.occurred_at < battle_cutoff
    ]
    stale_reports = [
        report_id for report_id, item in world.reports.items() if item.created_at < report_cutoff
    ]

    for movement_id in stale_movements:
        del world.movements[movement_id]
    for item_id in stale_queue:
        del world.queue[item_id]
    for offer_id in stale_offers:
        del world.offers[offer_id]
    for battle_id in stale_battles:
        del world.battles[battle_id]
    for report_id in stale_reports:
        del world.reports[report_id]

    kept_events = [event for event in world.events if event.occurred_at >= event_cutoff]
    pruned_events = len(world.events) - len(kept_events)
    world.events = kept_events

    return (
        len(stale_movements)
        + len(stale_queue)
        + len(stale_offers)
        + len(stale_battles)
        + len(stale_reports)
        + pruned_events
    )
