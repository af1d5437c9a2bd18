"""Dataclasses describing every Village Wars entity.

The rules layer works against these in-memory types only. A whole game
world is a single :class:`World` aggregate; repositories persist it as a
snapshot, so entity relations are expressed through the typed identifiers
below rather than object references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import NewType

from .enums import (
    AllianceRank,
    BattleOutcome,
    DiplomacyStance,
    EffectType,
    MovementStatus,
    MovementType,
    OfferStatus,
    QueueKind,
    QueueStatus,
    QuestStatus,
    RelationStatus,
    ReportStatus,
    ReportType,
    ResourceType,
)

# --- Strongly typed identifiers -------------------------------------------------

WorldID = NewType("WorldID", int)
PlayerID = NewType("PlayerID", int)
VillageID = NewType("VillageID", int)
AllianceID = NewType("AllianceID", int)
RelationID = NewType("RelationID", int)
MovementID = NewType("MovementID", int)
BattleID = NewType("BattleID", int)
ReportID = NewType("ReportID", int)
OfferID = NewType("OfferID", int)
MessageID = NewType("MessageID", int)
ArtifactID = NewType("ArtifactID", int)
EffectID = NewType("EffectID", int)
QueueItemID = NewType("QueueItemID", int)
PlayerQuestID = NewType("PlayerQuestID", int)
EventID = NewType("EventID", int)

ResourceAmounts = dict[ResourceType, int]
TroopCounts = dict[str, int]


# --- Catalog entries ------------------------------------------------------------


@dataclass(slots=True)
class UnitType:
    """Trainable unit (catalog entry)."""

    key: str
    name: str
    attack: int
    defense: int
    speed: float  # fields per hour
    carry: int
    cost: ResourceAmounts
    training_seconds: int
    requirements: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class BuildingType:
    """Constructible building (catalog entry)."""

    key: str
    name: str
    base_cost: ResourceAmounts
    base_seconds: int
    max_level: int = 20
    produces: ResourceType | None = None
    requirements: dict[str, int] = field(default_factory=dict)
    population_required: int = 0


@dataclass(slots=True)
class QuestDefinition:
    """Quest template with requirements and resource rewards."""

    key: str
    name: str
    description: str
    rewards: ResourceAmounts
    building_levels: dict[str, int] = field(default_factory=dict)
    troops: TroopCounts = field(default_factory=dict)
    population: int = 0
    villages: int = 0
    battles_won: int = 0
    repeatable: bool = False


@dataclass(slots=True)
class ArtifactEffect:
    """Effect granted while an artifact is active."""

    effect_type: EffectType
    magnitude: float  # percent
    duration_hours: float | None = None  # None means permanent


# --- Core dataclasses -----------------------------------------------------------


@dataclass(slots=True)
class Village:
    """Village owned by a player."""

    id: VillageID
    player_id: PlayerID
    name: str
    x: int
    y: int
    resources: dict[ResourceType, float]
    resources_updated_at: datetime
    buildings: dict[str, int] = field(default_factory=dict)
    troops: TroopCounts = field(default_factory=dict)
    stationed: dict[VillageID, TroopCounts] = field(default_factory=dict)
    loyalty: float = 100.0
    population: int = 0
    is_capital: bool = False
    created_at: datetime | None = None


@dataclass(slots=True)
class Player:
    """Player account inside a world."""

    id: PlayerID
    name: str
    created_at: datetime
    alliance_id: AllianceID | None = None
    village_ids: list[VillageID] = field(default_factory=list)
    population: int = 0
    points: int = 0
    battles_won: int = 0
    battles_lost: int = 0
    last_active_at: datetime | None = None


@dataclass(slots=True)
class Alliance:
    """Alliance of players with ranked membership."""

    id: AllianceID
    name: str
    tag: str
    leader_id: PlayerID
    created_at: datetime
    members: dict[PlayerID, AllianceRank] = field(default_factory=dict)
    invitations: dict[PlayerID, PlayerID] = field(default_factory=dict)  # invitee -> inviter
    description: str = ""
    max_members: int = 50
    points: int = 0


@dataclass(slots=True)
class DiplomaticRelation:
    """War, non-aggression pact or confederation between two alliances."""

    id: RelationID
    alliance_id: AllianceID
    target_alliance_id: AllianceID
    stance: DiplomacyStance
    status: RelationStatus
    proposed_by: PlayerID
    created_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None
    scores: dict[AllianceID, int] = field(default_factory=dict)


@dataclass(slots=True)
class QueueItem:
    """Construction or training entry in a village queue."""

    id: QueueItemID
    village_id: VillageID
    kind: QueueKind
    key: str
    amount: int  # target level for construction, unit count for training
    cost: ResourceAmounts
    started_at: datetime
    completes_at: datetime
    status: QueueStatus = QueueStatus.IN_PROGRESS


@dataclass(slots=True)
class Movement:
    """Troops or merchants travelling between villages."""

    id: MovementID
    movement_type: MovementType
    player_id: PlayerID
    from_village_id: VillageID
    to_village_id: VillageID
    troops: TroopCounts
    resources: ResourceAmounts
    started_at: datetime
    arrives_at: datetime
    status: MovementStatus = MovementStatus.TRAVELLING
    return_of: MovementID | None = None
    battle_id: BattleID | None = None


@dataclass(slots=True)
class Battle:
    """Battle resolution record."""

    id: BattleID
    attacker_id: PlayerID
    defender_id: PlayerID
    attacker_village_id: VillageID
    village_id: VillageID
    attacking_troops: TroopCounts
    defending_troops: TroopCounts
    attacker_losses: TroopCounts
    defender_losses: TroopCounts
    loot: ResourceAmounts
    attack_power: float
    defense_power: float
    defensive_bonus: float
    outcome: BattleOutcome
    occurred_at: datetime
    is_raid: bool = False
    loyalty_after: float | None = None
    artifact_captured: ArtifactID | None = None


@dataclass(slots=True)
class Report:
    """Report delivered to a single player."""

    id: ReportID
    player_id: PlayerID
    report_type: ReportType
    status: ReportStatus
    title: str
    content: str
    created_at: datetime
    data: dict[str, object] = field(default_factory=dict)
    battle_id: BattleID | None = None
    is_read: bool = False
    is_important: bool = False


@dataclass(slots=True)
class MarketOffer:
    """Escrowed resource offer on the marketplace."""

    id: OfferID
    village_id: VillageID
    player_id: PlayerID
    offering: ResourceAmounts
    requesting: ResourceAmounts
    ratio: float
    fee: int
    created_at: datetime
    expires_at: datetime
    lots: int = 1
    lots_remaining: int = 1
    status: OfferStatus = OfferStatus.ACTIVE
    completed_at: datetime | None = None
    buyer_village_id: VillageID | None = None
    quantity_traded: int = 0
    generated: bool = False


@dataclass(slots=True)
class PlayerQuest:
    """A player's progress on a quest."""

    id: PlayerQuestID
    player_id: PlayerID
    quest_key: str
    started_at: datetime
    status: QuestStatus = QuestStatus.ACTIVE
    progress: float = 0.0
    completed_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass(slots=True)
class Artifact:
    """Unique artifact held by a village."""

    id: ArtifactID
    name: str
    description: str
    effects: list[ArtifactEffect]
    village_id: VillageID | None = None
    is_active: bool = False
    activated_at: datetime | None = None


@dataclass(slots=True)
class ActiveEffect:
    """Effect currently applied to a village by an activated artifact."""

    id: EffectID
    artifact_id: ArtifactID
    village_id: VillageID
    effect_type: EffectType
    magnitude: float
    started_at: datetime
    expires_at: datetime | None = None


@dataclass(slots=True)
class Message:
    """Player to player message."""

    id: MessageID
    sender_id: PlayerID
    recipient_id: PlayerID
    subject: str
    body: str
    sent_at: datetime
    is_read: bool = False
    alliance_id: AllianceID | None = None
    deleted_by_sender: bool = False
    deleted_by_recipient: bool = False


@dataclass(slots=True)
class GameEvent:
    """Event log entry."""

    id: EventID
    event_type: str
    description: str
    occurred_at: datetime
    player_id: PlayerID | None = None
    village_id: VillageID | None = None
    data: dict[str, object] | None = None


@dataclass(slots=True)
class World:
    """Root aggregate representing an entire game world."""

    id: WorldID
    name: str
    created_at: datetime
    speed: float = 1.0
    last_tick_at: datetime | None = None
    tick_count: int = 0
    id_sequence: int = 0
    unit_types: dict[str, UnitType] = field(default_factory=dict)
    building_types: dict[str, BuildingType] = field(default_factory=dict)
    quest_definitions: dict[str, QuestDefinition] = field(default_factory=dict)
    players: dict[PlayerID, Player] = field(default_factory=dict)
    villages: dict[VillageID, Village] = field(default_factory=dict)
    alliances: dict[AllianceID, Alliance] = field(default_factory=dict)
    relations: dict[RelationID, DiplomaticRelation] = field(default_factory=dict)
    queue: dict[QueueItemID, QueueItem] = field(default_factory=dict)
    movements: dict[MovementID, Movement] = field(default_factory=dict)
    battles: dict[BattleID, Battle] = field(default_factory=dict)
    reports: dict[ReportID, Report] = field(default_factory=dict)
    offers: dict[OfferID, MarketOffer] = field(default_factory=dict)
    player_quests: dict[PlayerQuestID, PlayerQuest] = field(default_factory=dict)
    artifacts: dict[ArtifactID, Artifact] = field(default_factory=dict)
    effects: dict[EffectID, ActiveEffect] = field(default_factory=dict)
    messages: dict[MessageID, Message] = field(default_factory=dict)
    events: list[GameEvent] = field(default_factory=list)

    def next_id(self) -> int:
        """Allocate a world-unique identifier."""

        self.id_sequence += 1
        return self.id_sequence
