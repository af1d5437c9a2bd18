"""HTTP routes for the Village Wars API."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field

from villagewars.api.runtime import ApiState, dump
from villagewars.domain import alliances, artifacts, battle, buildings, market, messaging, movement
from villagewars.domain import models as dm
from villagewars.domain import players, quests, training
from villagewars.domain.enums import (
    AllianceRank,
    DiplomacyStance,
    MovementStatus,
    MovementType,
    ReportType,
    ResourceType,
)
from villagewars.domain.errors import NotFoundError
from villagewars.domain.state import get_player, get_village

router = APIRouter()


def get_state(request: Request) -> ApiState:
    state = getattr(request.app.state, "api_state", None)
    if state is None:  # pragma: no cover - FastAPI should always initialise state
        raise RuntimeError("API state not initialised")
    return state


ApiStateDep = Annotated[ApiState, Depends(get_state)]

Resources = dict[ResourceType, int]


class WorldSummary(BaseModel):
    id: int
    name: str
    speed: float
    created_at: datetime
    last_tick_at: datetime | None
    tick_count: int
    player_count: int
    village_count: int
    alliance_count: int
    movements_in_flight: int


class CreateWorldRequest(BaseModel):
    name: str = Field(min_length=1)
    speed: float = Field(default=1.0, gt=0.0)
    with_artifacts: bool = True


class TickSummaryResponse(BaseModel):
    tick: int
    villages_produced: int
    constructions_completed: int
    training_completed: int
    movements_resolved: int
    offers_expired: int
    quests_completed: int
    effects_expired: int
    records_pruned: int


class TickScheduleRequest(BaseModel):
    enabled: bool
    interval_seconds: float | None = Field(default=None, gt=0.0)
    debug_multiplier: float | None = Field(default=None, gt=0.0)


class TickStatusResponse(BaseModel):
    enabled: bool
    interval_seconds: float
    debug_multiplier: float
    effective_interval_seconds: float


class ActorRequest(BaseModel):
    player_id: int


class RegisterPlayerRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    village_name: str | None = None


class FoundVillageRequest(BaseModel):
    name: str = ""
    x: int
    y: int


class BuildRequest(ActorRequest):
    building: str


class TrainRequest(ActorRequest):
    unit: str
    quantity: int = Field(ge=1)


class SendMovementRequest(ActorRequest):
    from_village_id: int
    to_village_id: int
    movement_type: MovementType
    troops: dict[str, int] = Field(default_factory=dict)
    resources: Resources = Field(default_factory=dict)


class RecallRequest(ActorRequest):
    home_village_id: int


class CreateOfferRequest(ActorRequest):
    village_id: int
    offering: Resources
    requesting: Resources
    lots: int = Field(default=1, ge=1)


class AcceptOfferRequest(ActorRequest):
    village_id: int
    quantity: int = Field(default=1, ge=1)


class CreateAllianceRequest(ActorRequest):
    name: str = Field(min_length=1)
    tag: str = Field(min_length=1)
    description: str = ""


class MemberRequest(ActorRequest):
    target_id: int


class PromoteRequest(MemberRequest):
    rank: AllianceRank


class DiplomacyRequest(ActorRequest):
    target_alliance_id: int
    stance: DiplomacyStance


class StartQuestRequest(BaseModel):
    quest_key: str


class PlaceArtifactRequest(BaseModel):
    village_id: int


class SendMessageRequest(ActorRequest):
    recipient_id: int
    subject: str
    body: str


class BroadcastRequest(ActorRequest):
    subject: str
    body: str


class SimulateRequest(BaseModel):
    attacking: dict[str, int]
    defending: dict[str, int] = Field(default_factory=dict)
    defender_buildings: dict[str, int] = Field(default_factory=dict)
    defender_resources: dict[ResourceType, float] = Field(default_factory=dict)
    attack_bonus_pct: float = 0.0
    defense_bonus_pct: float = 0.0
    iterations: int | None = Field(default=None, ge=1, le=10000)
    seed: str = "simulation"


class RecommendRequest(BaseModel):
    available: dict[str, int]
    defending: dict[str, int] = Field(default_factory=dict)
    defender_buildings: dict[str, int] = Field(default_factory=dict)
    iterations: int = Field(default=100, ge=1, le=2000)
    seed: str = "recommendation"


def _tick_status(state: ApiState, world_id: dm.WorldID) -> TickStatusResponse:
    return TickStatusResponse(
        enabled=state.ticks.is_enabled(world_id),
        interval_seconds=state.ticks.base_interval_seconds,
        debug_multiplier=state.ticks.debug_multiplier,
        effective_interval_seconds=state.ticks.interval_seconds,
    )


# ---------------------------------------------------------------------------
# Worlds and ticks


@router.get("/health")
async def health(state: ApiStateDep) -> dict[str, object]:
    return {
        "status": "ok",
        "storage_backend": state.settings.storage_backend,
        "tick_interval_seconds": state.ticks.interval_seconds,
        "debug_tick_multiplier": state.ticks.debug_multiplier,
    }


@router.get("/worlds", response_model=list[WorldSummary])
async def list_worlds(state: ApiStateDep) -> list[WorldSummary]:
    worlds = state.worlds.list_worlds()
    return [WorldSummary.model_validate(state.worlds.to_summary_dict(w)) for w in worlds]


@router.post("/worlds", response_model=WorldSummary, status_code=status.HTTP_201_CREATED)
async def create_world(request: CreateWorldRequest, state: ApiStateDep) -> WorldSummary:
    world = await asyncio.to_thread(
        state.worlds.create_world,
        request.name,
        speed=request.speed,
        with_artifacts=request.with_artifacts,
    )
    return WorldSummary.model_validate(state.worlds.to_summary_dict(world))


@router.get("/worlds/{world_id}", response_model=WorldSummary)
async def get_world(world_id: int, state: ApiStateDep) -> WorldSummary:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return WorldSummary.model_validate(state.worlds.to_summary_dict(world))


@router.delete("/worlds/{world_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_world(world_id: int, state: ApiStateDep) -> Response:
    world_key = dm.WorldID(world_id)
    await state.ticks.set_enabled(world_key, False)
    await asyncio.to_thread(state.worlds.delete_world, world_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/worlds/{world_id}/tick/advance", response_model=TickSummaryResponse)
async def advance_tick(world_id: int, state: ApiStateDep) -> TickSummaryResponse:
    summary = await state.ticks.advance_now(dm.WorldID(world_id))
    return TickSummaryResponse.model_validate(dump(summary))


@router.get("/worlds/{world_id}/tick/schedule", response_model=TickStatusResponse)
async def get_tick_schedule(world_id: int, state: ApiStateDep) -> TickStatusResponse:
    return _tick_status(state, dm.WorldID(world_id))


@router.post("/worlds/{world_id}/tick/schedule", response_model=TickStatusResponse)
async def update_tick_schedule(
    world_id: int,
    request: TickScheduleRequest,
    state: ApiStateDep,
) -> TickStatusResponse:
    world_key = dm.WorldID(world_id)
    state.worlds.get_world(world_key)

    if request.interval_seconds is not None:
        state.ticks.set_base_interval(request.interval_seconds)
    if request.debug_multiplier is not None:
        state.ticks.set_debug_multiplier(request.debug_multiplier)

    await state.ticks.set_enabled(world_key, request.enabled)
    return _tick_status(state, world_key)


@router.get("/worlds/{world_id}/tick/log")
async def tick_log(
    world_id: int,
    state: ApiStateDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[dict[str, object]]:
    return dump(state.worlds.tick_log(dm.WorldID(world_id), limit=limit))


@router.get("/worlds/{world_id}/events")
async def list_events(
    world_id: int,
    state: ApiStateDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return dump(list(reversed(world.events))[:limit])


# ---------------------------------------------------------------------------
# Players, villages and the map


@router.get("/worlds/{world_id}/players")
async def player_rankings(world_id: int, state: ApiStateDep) -> list[dict[str, object]]:
    return players.player_rankings(state.worlds.get_world(dm.WorldID(world_id)))


@router.post("/worlds/{world_id}/players", status_code=status.HTTP_201_CREATED)
async def register_player(
    world_id: int, request: RegisterPlayerRequest, state: ApiStateDep
) -> dict[str, object]:
    player = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: players.register_player(
            world, request.name, now, state.rules, village_name=request.village_name
        ),
    )
    return dump(player)


@router.get("/worlds/{world_id}/players/{player_id}")
async def get_player_detail(world_id: int, player_id: int, state: ApiStateDep) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return state.worlds.to_player_dict(world, dm.PlayerID(player_id))


@router.post("/worlds/{world_id}/players/{player_id}/villages", status_code=status.HTTP_201_CREATED)
async def found_village(
    world_id: int, player_id: int, request: FoundVillageRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(player_id)
    village = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: players.found_village(
            world, actor, request.name, request.x, request.y, now, state.rules
        ),
        actor_id=actor,
    )
    return dump(village)


@router.get("/worlds/{world_id}/villages/{village_id}")
async def get_village_detail(
    world_id: int, village_id: int, state: ApiStateDep
) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return state.worlds.to_village_dict(world, get_village(world, dm.VillageID(village_id)))


@router.get("/worlds/{world_id}/map/nearby")
async def nearby(
    world_id: int,
    x: int,
    y: int,
    state: ApiStateDep,
    radius: Annotated[float, Query(gt=0, le=100)] = 10.0,
) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return [
        {
            "id": int(village.id),
            "name": village.name,
            "player_id": int(village.player_id),
            "x": village.x,
            "y": village.y,
            "population": village.population,
            "distance": round(gap, 2),
        }
        for village, gap in players.nearby_villages(world, x, y, radius)
    ]


@router.post("/worlds/{world_id}/villages/{village_id}/build", status_code=status.HTTP_201_CREATED)
async def queue_building(
    world_id: int, village_id: int, request: BuildRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    item = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: buildings.queue_upgrade(
            world, actor, dm.VillageID(village_id), request.building, now, state.rules
        ),
        actor_id=actor,
    )
    return dump(item)


@router.post("/worlds/{world_id}/villages/{village_id}/demolish")
async def demolish_building(
    world_id: int, village_id: int, request: BuildRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    refund = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: buildings.demolish(
            world, actor, dm.VillageID(village_id), request.building, now, state.rules
        ),
        actor_id=actor,
    )
    return {"refund": dump(refund)}


@router.post("/worlds/{world_id}/villages/{village_id}/train", status_code=status.HTTP_201_CREATED)
async def queue_training(
    world_id: int, village_id: int, request: TrainRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    item = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: training.queue_training(
            world, actor, dm.VillageID(village_id), request.unit, request.quantity, now, state.rules
        ),
        actor_id=actor,
    )
    return dump(item)


@router.post("/worlds/{world_id}/queue/{item_id}/cancel")
async def cancel_training(
    world_id: int, item_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    refund = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: training.cancel_training(
            world, actor, dm.QueueItemID(item_id), now, state.rules
        ),
        actor_id=actor,
    )
    return {"refund": dump(refund)}


# ---------------------------------------------------------------------------
# Movements


@router.post("/worlds/{world_id}/movements", status_code=status.HTTP_201_CREATED)
async def send_movement(
    world_id: int, request: SendMovementRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    sent = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: movement.send_movement(
            world,
            actor,
            dm.VillageID(request.from_village_id),
            dm.VillageID(request.to_village_id),
            request.movement_type,
            now,
            state.rules,
            troops=request.troops,
            resources=request.resources,
        ),
        actor_id=actor,
    )
    return dump(sent)


@router.get("/worlds/{world_id}/movements")
async def list_movements(
    world_id: int,
    state: ApiStateDep,
    player_id: int | None = None,
    include_finished: bool = False,
) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    selected = [
        item
        for item in world.movements.values()
        if (include_finished or item.status == MovementStatus.TRAVELLING)
        and (player_id is None or int(item.player_id) == player_id)
    ]
    selected.sort(key=lambda item: (item.arrives_at, int(item.id)))
    return dump(selected)


@router.post("/worlds/{world_id}/movements/{movement_id}/cancel")
async def cancel_movement(
    world_id: int, movement_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    returning = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: movement.cancel_movement(world, actor, dm.MovementID(movement_id), now),
        actor_id=actor,
    )
    return dump(returning)


@router.post("/worlds/{world_id}/villages/{village_id}/recall", status_code=status.HTTP_201_CREATED)
async def recall_support(
    world_id: int, village_id: int, request: RecallRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    returning = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: movement.recall_support(
            world,
            actor,
            dm.VillageID(village_id),
            dm.VillageID(request.home_village_id),
            now,
            state.rules,
        ),
        actor_id=actor,
    )
    return dump(returning)


@router.get("/worlds/{world_id}/battles/{battle_id}")
async def get_battle(world_id: int, battle_id: int, state: ApiStateDep) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    record = world.battles.get(dm.BattleID(battle_id))
    if record is None:
        raise NotFoundError("battle", battle_id)
    return dump(record)


@router.post("/worlds/{world_id}/battle/simulate")
async def simulate_battle(
    world_id: int, request: SimulateRequest, state: ApiStateDep
) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    summary = battle.simulate_battle(
        world,
        request.attacking,
        request.defending,
        defender_buildings=request.defender_buildings,
        defender_resources=request.defender_resources,
        attack_bonus_pct=request.attack_bonus_pct,
        defense_bonus_pct=request.defense_bonus_pct,
        iterations=request.iterations,
        seed=request.seed,
        rules=state.rules,
    )
    return dump(summary)


@router.post("/worlds/{world_id}/battle/recommend")
async def recommend_composition(
    world_id: int, request: RecommendRequest, state: ApiStateDep
) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    summary = battle.recommend_composition(
        world,
        request.available,
        request.defending,
        defender_buildings=request.defender_buildings,
        iterations=request.iterations,
        seed=request.seed,
        rules=state.rules,
    )
    return dump(summary)


# ---------------------------------------------------------------------------
# Market


@router.get("/worlds/{world_id}/market/offers")
async def list_offers(
    world_id: int,
    state: ApiStateDep,
    offering: ResourceType | None = None,
    requesting: ResourceType | None = None,
    min_ratio: float | None = None,
    max_ratio: float | None = None,
    exclude_player_id: int | None = None,
    include_generated: bool = True,
) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    filters = market.OfferFilters(
        offering=offering,
        requesting=requesting,
        min_ratio=min_ratio,
        max_ratio=max_ratio,
        exclude_player_id=dm.PlayerID(exclude_player_id) if exclude_player_id is not None else None,
        include_generated=include_generated,
    )
    return dump(market.list_offers(world, state.worlds.clock(), filters))


@router.post("/worlds/{world_id}/market/offers", status_code=status.HTTP_201_CREATED)
async def create_offer(
    world_id: int, request: CreateOfferRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    offer = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: market.create_offer(
            world,
            actor,
            dm.VillageID(request.village_id),
            request.offering,
            request.requesting,
            now,
            state.rules,
            lots=request.lots,
        ),
        actor_id=actor,
    )
    return dump(offer)


@router.post("/worlds/{world_id}/market/offers/{offer_id}/accept")
async def accept_offer(
    world_id: int, offer_id: int, request: AcceptOfferRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    offer = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: market.accept_offer(
            world,
            actor,
            dm.OfferID(offer_id),
            dm.VillageID(request.village_id),
            now,
            state.rules,
            quantity=request.quantity,
        ),
        actor_id=actor,
    )
    return dump(offer)


@router.post("/worlds/{world_id}/market/offers/{offer_id}/cancel")
async def cancel_offer(
    world_id: int, offer_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    offer = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: market.cancel_offer(
            world, actor, dm.OfferID(offer_id), now, state.rules
        ),
        actor_id=actor,
    )
    return dump(offer)


@router.get("/worlds/{world_id}/market/stats")
async def market_stats(world_id: int, state: ApiStateDep) -> dict[str, int]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return market.market_stats(world, state.worlds.clock())


@router.post("/worlds/{world_id}/market/generate")
async def generate_offers(world_id: int, state: ApiStateDep) -> list[dict[str, object]]:
    created = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: market.generate_offers(world, now, state.rules),
    )
    return dump(created)


@router.post("/worlds/{world_id}/market/match")
async def match_offers(world_id: int, state: ApiStateDep) -> list[dict[str, int]]:
    pairs = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: market.match_offers(world, now, state.rules),
    )
    return [{"offer_id": int(first), "matched_offer_id": int(second)} for first, second in pairs]


# ---------------------------------------------------------------------------
# Alliances and diplomacy


@router.get("/worlds/{world_id}/alliances")
async def alliance_rankings(world_id: int, state: ApiStateDep) -> list[dict[str, object]]:
    return alliances.alliance_rankings(state.worlds.get_world(dm.WorldID(world_id)))


@router.post("/worlds/{world_id}/alliances", status_code=status.HTTP_201_CREATED)
async def create_alliance(
    world_id: int, request: CreateAllianceRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    alliance = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.create_alliance(
            world,
            actor,
            request.name,
            request.tag,
            now,
            state.rules,
            description=request.description,
        ),
        actor_id=actor,
    )
    return dump(alliance)


@router.get("/worlds/{world_id}/alliances/{alliance_id}")
async def get_alliance(world_id: int, alliance_id: int, state: ApiStateDep) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return dump(alliances.alliance_stats(world, dm.AllianceID(alliance_id)))


@router.post("/worlds/{world_id}/alliances/invite")
async def invite_member(
    world_id: int, request: MemberRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    alliance = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.invite_player(
            world, actor, dm.PlayerID(request.target_id), now
        ),
        actor_id=actor,
    )
    return dump(alliance)


@router.post("/worlds/{world_id}/alliances/{alliance_id}/accept")
async def accept_invitation(
    world_id: int, alliance_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    alliance = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.accept_invitation(
            world, actor, dm.AllianceID(alliance_id), now
        ),
        actor_id=actor,
    )
    return dump(alliance)


@router.post(
    "/worlds/{world_id}/alliances/{alliance_id}/decline",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def decline_invitation(
    world_id: int, alliance_id: int, request: ActorRequest, state: ApiStateDep
) -> Response:
    actor = dm.PlayerID(request.player_id)
    await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.decline_invitation(world, actor, dm.AllianceID(alliance_id)),
        actor_id=actor,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/worlds/{world_id}/alliances/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_alliance(world_id: int, request: ActorRequest, state: ApiStateDep) -> Response:
    actor = dm.PlayerID(request.player_id)
    await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.leave_alliance(world, actor, now),
        actor_id=actor,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/worlds/{world_id}/alliances/kick", status_code=status.HTTP_204_NO_CONTENT)
async def kick_member(world_id: int, request: MemberRequest, state: ApiStateDep) -> Response:
    actor = dm.PlayerID(request.player_id)
    await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.kick_member(world, actor, dm.PlayerID(request.target_id), now),
        actor_id=actor,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/worlds/{world_id}/alliances/promote")
async def promote_member(
    world_id: int, request: PromoteRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    alliance = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.promote_member(
            world, actor, dm.PlayerID(request.target_id), request.rank, now
        ),
        actor_id=actor,
    )
    return dump(alliance)


@router.post("/worlds/{world_id}/alliances/disband", status_code=status.HTTP_204_NO_CONTENT)
async def disband_alliance(world_id: int, request: ActorRequest, state: ApiStateDep) -> Response:
    actor = dm.PlayerID(request.player_id)
    await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.disband_alliance(world, actor, now),
        actor_id=actor,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/worlds/{world_id}/diplomacy", status_code=status.HTTP_201_CREATED)
async def propose_relation(
    world_id: int, request: DiplomacyRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    relation = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.propose_relation(
            world, actor, dm.AllianceID(request.target_alliance_id), request.stance, now
        ),
        actor_id=actor,
    )
    return dump(relation)


@router.post("/worlds/{world_id}/diplomacy/{relation_id}/accept")
async def accept_relation(
    world_id: int, relation_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    relation = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.accept_relation(world, actor, dm.RelationID(relation_id), now),
        actor_id=actor,
    )
    return dump(relation)


@router.post("/worlds/{world_id}/diplomacy/{relation_id}/end")
async def end_relation(
    world_id: int, relation_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    relation = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: alliances.end_relation(world, actor, dm.RelationID(relation_id), now),
        actor_id=actor,
    )
    return dump(relation)


# ---------------------------------------------------------------------------
# Quests and artifacts


@router.get("/worlds/{world_id}/players/{player_id}/quests")
async def list_quests(world_id: int, player_id: int, state: ApiStateDep) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    player_key = dm.PlayerID(player_id)
    get_player(world, player_key)
    return {
        "active": dump(quests.player_quests(world, player_key)),
        "available": [
            {"key": quest.key, "name": quest.name, "description": quest.description}
            for quest in quests.available_quests(world, player_key)
        ],
    }


@router.post("/worlds/{world_id}/players/{player_id}/quests", status_code=status.HTTP_201_CREATED)
async def start_quest(
    world_id: int, player_id: int, request: StartQuestRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(player_id)
    quest = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: quests.start_quest(world, actor, request.quest_key, now, state.rules),
        actor_id=actor,
    )
    return dump(quest)


@router.get("/worlds/{world_id}/artifacts")
async def list_artifacts(world_id: int, state: ApiStateDep) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return dump(sorted(world.artifacts.values(), key=lambda artifact: int(artifact.id)))


@router.post("/worlds/{world_id}/artifacts/{artifact_id}/activate")
async def activate_artifact(
    world_id: int, artifact_id: int, request: ActorRequest, state: ApiStateDep
) -> list[dict[str, object]]:
    actor = dm.PlayerID(request.player_id)
    effects = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: artifacts.activate_artifact(
            world, actor, dm.ArtifactID(artifact_id), now
        ),
        actor_id=actor,
    )
    return dump(effects)


@router.post("/worlds/{world_id}/artifacts/{artifact_id}/deactivate")
async def deactivate_artifact(
    world_id: int, artifact_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    artifact = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: artifacts.stand_down_artifact(
            world, actor, dm.ArtifactID(artifact_id), now
        ),
        actor_id=actor,
    )
    return dump(artifact)


@router.post("/worlds/{world_id}/artifacts/{artifact_id}/place")
async def place_artifact(
    world_id: int, artifact_id: int, request: PlaceArtifactRequest, state: ApiStateDep
) -> dict[str, object]:
    artifact = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: artifacts.place_artifact(
            world, dm.ArtifactID(artifact_id), dm.VillageID(request.village_id), now
        ),
    )
    return dump(artifact)


@router.post("/worlds/{world_id}/artifacts/distribute")
async def distribute_artifacts(world_id: int, state: ApiStateDep) -> list[dict[str, object]]:
    placed = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: artifacts.distribute_artifacts(world, now),
    )
    return dump(placed)


# ---------------------------------------------------------------------------
# Messages and reports


@router.post("/worlds/{world_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    world_id: int, request: SendMessageRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    message = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: messaging.send_message(
            world,
            actor,
            dm.PlayerID(request.recipient_id),
            request.subject,
            request.body,
            now,
            state.rules,
        ),
        actor_id=actor,
    )
    return dump(message)


@router.post("/worlds/{world_id}/messages/broadcast", status_code=status.HTTP_201_CREATED)
async def broadcast(
    world_id: int, request: BroadcastRequest, state: ApiStateDep
) -> list[dict[str, object]]:
    actor = dm.PlayerID(request.player_id)
    sent = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: messaging.broadcast_to_alliance(
            world, actor, request.subject, request.body, now, state.rules
        ),
        actor_id=actor,
    )
    return dump(sent)


@router.get("/worlds/{world_id}/players/{player_id}/inbox")
async def inbox(
    world_id: int, player_id: int, state: ApiStateDep, unread_only: bool = False
) -> dict[str, object]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    player_key = dm.PlayerID(player_id)
    return {
        "unread": messaging.unread_count(world, player_key),
        "messages": dump(messaging.inbox(world, player_key, unread_only=unread_only)),
    }


@router.get("/worlds/{world_id}/players/{player_id}/outbox")
async def outbox(world_id: int, player_id: int, state: ApiStateDep) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    return dump(messaging.outbox(world, dm.PlayerID(player_id)))


@router.post("/worlds/{world_id}/messages/{message_id}/read")
async def mark_message_read(
    world_id: int, message_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    message = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: messaging.mark_read(world, actor, dm.MessageID(message_id)),
        actor_id=actor,
    )
    return dump(message)


@router.delete("/worlds/{world_id}/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    world_id: int, message_id: int, player_id: int, state: ApiStateDep
) -> Response:
    actor = dm.PlayerID(player_id)
    await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: messaging.delete_message(world, actor, dm.MessageID(message_id)),
        actor_id=actor,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/worlds/{world_id}/players/{player_id}/reports")
async def list_reports(
    world_id: int,
    player_id: int,
    state: ApiStateDep,
    report_type: Annotated[ReportType | None, Query(alias="type")] = None,
    unread_only: bool = False,
) -> list[dict[str, object]]:
    world = state.worlds.get_world(dm.WorldID(world_id))
    reports = messaging.list_reports(
        world, dm.PlayerID(player_id), report_type=report_type, unread_only=unread_only
    )
    return dump(reports)


@router.post("/worlds/{world_id}/reports/{report_id}/read")
async def mark_report_read(
    world_id: int, report_id: int, request: ActorRequest, state: ApiStateDep
) -> dict[str, object]:
    actor = dm.PlayerID(request.player_id)
    report = await state.worlds.apply(
        dm.WorldID(world_id),
        lambda world, now: messaging.mark_report_read(world, actor, dm.ReportID(report_id)),
        actor_id=actor,
    )
    return dump(report)
