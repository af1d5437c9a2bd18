"""Declarative rule configuration for the game domain."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class SpeedRules:
    """Global pacing knobs applied on top of world speed."""

    resource_production_rate: float = 1.0
    building_time_multiplier: float = 1.0
    training_time_multiplier: float = 1.0
    movement_speed_multiplier: float = 1.0


@dataclass(frozen=True, slots=True)
class ResourceRules:
    """Production and storage constants."""

    starting_amount: int = 1000
    base_production_per_minute: int = 10
    production_per_level_per_minute: int = 2
    storage_capacity_base: int = 10_000
    storage_per_level: int = 5_000


@dataclass(frozen=True, slots=True)
class BuildingRules:
    """Construction costs, timings and limits."""

    max_level: int = 20
    upgrade_cost_multiplier: float = 1.5
    upgrade_time_multiplier: float = 1.3
    demolish_refund: float = 0.5
    max_queue_length: int = 2
    main_building_time_reduction_per_level: float = 0.03
    main_building_time_reduction_cap: float = 0.6
    population_per_level: int = 10


@dataclass(frozen=True, slots=True)
class TrainingRules:
    """Unit training constants."""

    quantity_time_step: float = 0.1
    barracks_reduction_per_level: float = 0.05
    barracks_min_factor: float = 0.25
    cancel_refund: float = 0.5
    max_queue_length: int = 5


@dataclass(frozen=True, slots=True)
class MovementRules:
    """Travel speeds and range limits."""

    max_attack_distance: float = 50.0
    merchant_speed: float = 12.0
    merchant_capacity_per_level: int = 500
    min_travel_seconds: int = 1


@dataclass(frozen=True, slots=True)
class BattleRules:
    """Parameters for battle resolution and loyalty."""

    power_variance_min: int = 80  # percent
    power_variance_span: int = 40
    winner_loss_base: int = 10
    winner_loss_span: int = 20
    loser_loss_base: int = 50
    loser_loss_span: int = 30
    draw_loss_base: int = 20
    draw_loss_span: int = 20
    loot_base: int = 10
    loot_span: int = 15
    wall_bonus_per_level: float = 0.02
    watchtower_bonus_per_level: float = 0.015
    trap_bonus_per_level: float = 0.01
    rally_point_bonus_per_level: float = 0.005
    defensive_bonus_cap: float = 0.5
    loyalty_decrease: int = 10
    loyalty_minimum: int = 20
    loyalty_maximum: int = 100
    loyalty_recovery_per_hour: float = 1.0
    spy_catch_per_trap_level: int = 5
    simulation_iterations: int = 1000


@dataclass(frozen=True, slots=True)
class MarketRules:
    """Market fees, expiry and offer generation thresholds."""

    fee_rate: float = 0.05
    min_fee: int = 1
    offer_lifetime_days: int = 7
    generated_offer_lifetime_hours: int = 24
    sell_threshold: int = 5000
    buy_threshold: int = 2000
    min_tradeable: int = 1000
    reserve_after_sale: int = 2000
    max_generated_amount: int = 10_000
    buy_target: int = 5000
    ratio_variance_min: int = 80  # percent
    ratio_variance_span: int = 40


@dataclass(frozen=True, slots=True)
class QuestRules:
    """Quest lifetime constants."""

    repeatable_lifetime_days: int = 7


@dataclass(frozen=True, slots=True)
class AllianceRules:
    """Alliance membership limits."""

    max_members: int = 50
    max_name_length: int = 50
    tag_length: int = 4


@dataclass(frozen=True, slots=True)
class PlayerRules:
    """Village and map limits."""

    max_villages_per_player: int = 10
    map_width: int = 400
    map_height: int = 400
    points_per_building_level: int = 5


@dataclass(frozen=True, slots=True)
class MessagingRules:
    """Message size limits."""

    max_subject_length: int = 120
    max_body_length: int = 5000


@dataclass(frozen=True, slots=True)
class RetentionRules:
    """How long finished records are kept before the tick prunes them."""

    movements_days: int = 7
    battles_days: int = 30
    reports_days: int = 30
    events_days: int = 14


@dataclass(frozen=True, slots=True)
class RulesConfig:
    """Top-level configuration container for all subsystems."""

    speed: SpeedRules = SpeedRules()
    resources: ResourceRules = ResourceRules()
    buildings: BuildingRules = BuildingRules()
    training: TrainingRules = TrainingRules()
    movement: MovementRules = MovementRules()
    battle: BattleRules = BattleRules()
    market: MarketRules = MarketRules()
    quests: QuestRules = QuestRules()
    alliances: AllianceRules = AllianceRules()
    players: PlayerRules = PlayerRules()
    messaging: MessagingRules = MessagingRules()
    retention: RetentionRules = RetentionRules()

    def with_speed(self, speed: SpeedRules) -> RulesConfig:
        return replace(self, speed=speed)


DEFAULT_RULES = RulesConfig()
