"""Enumerations used across the game domain."""

from __future__ import annotations

from enum import StrEnum


class ResourceType(StrEnum):
    """The four stockpiled resources."""

    WOOD = "wood"
    CLAY = "clay"
    IRON = "iron"
    CROP = "crop"


class QueueKind(StrEnum):
    """What a queue entry produces."""

    CONSTRUCTION = "construction"
    TRAINING = "training"


class QueueStatus(StrEnum):
    """Lifecycle of construction and training entries."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MovementType(StrEnum):
    """Kinds of troop and merchant movements."""

    ATTACK = "attack"
    RAID = "raid"
    SUPPORT = "support"
    SPY = "spy"
    TRADE = "trade"
    RETURN = "return"


class MovementStatus(StrEnum):
    """Movement lifecycle states."""

    TRAVELLING = "travelling"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"
    FAILED = "failed"


class BattleOutcome(StrEnum):
    """Possible battle results."""

    ATTACKER_WINS = "attacker_wins"
    DEFENDER_WINS = "defender_wins"
    DRAW = "draw"


class ReportType(StrEnum):
    """Report categories delivered to players."""

    ATTACK = "attack"
    DEFENSE = "defense"
    SPY = "spy"
    TRADE = "trade"
    SUPPORT = "support"


class ReportStatus(StrEnum):
    """Headline result of a report."""

    VICTORY = "victory"
    DEFEAT = "defeat"
    DRAW = "draw"
    SUCCESS = "success"
    FAILURE = "failure"


class OfferStatus(StrEnum):
    """Market offer lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class QuestStatus(StrEnum):
    """Player quest lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class AllianceRank(StrEnum):
    """Member ranks, highest first."""

    LEADER = "leader"
    CO_LEADER = "co_leader"
    ELDER = "elder"
    MEMBER = "member"


class DiplomacyStance(StrEnum):
    """Relation kinds between two alliances."""

    WAR = "war"
    NAP = "nap"
    CONFEDERATION = "confederation"


class RelationStatus(StrEnum):
    """Lifecycle of a diplomatic relation."""

    PROPOSED = "proposed"
    ACTIVE = "active"
    ENDED = "ended"


class EffectType(StrEnum):
    """Artifact effect categories."""

    PRODUCTION_BONUS = "production_bonus"
    ATTACK_BONUS = "attack_bonus"
    DEFENSE_BONUS = "defense_bonus"
    SPEED_BONUS = "speed_bonus"
    BUILDING_BONUS = "building_bonus"
    TROOP_BONUS = "troop_bonus"
    TRADE_BONUS = "trade_bonus"
