"""Artifact activation and effect bookkeeping."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from villagewars.utils.rng import generate_seed, random_choice

from .catalog import default_artifact_effects
from .enums import EffectType
from .errors import InvalidActionError, NotFoundError
from .models import (
    ActiveEffect,
    Artifact,
    ArtifactID,
    EffectID,
    PlayerID,
    VillageID,
    World,
)
from .state import get_village, owned_village, record_event

logger = logging.getLogger(__name__)


def get_artifact(world: World, artifact_id: ArtifactID) -> Artifact:
    artifact = world.artifacts.get(artifact_id)
    if artifact is None:
        raise NotFoundError("artifact", int(artifact_id))
    return artifact


def seed_artifacts(world: World) -> list[Artifact]:
    """Install the default unowned artifacts into a fresh world."""

    created: list[Artifact] = []
    for name, (description, effects) in default_artifact_effects().items():
        artifact = Artifact(
            id=ArtifactID(world.next_id()),
            name=name,
            description=description,
            effects=effects,
        )
        world.artifacts[artifact.id] = artifact
        created.append(artifact)
    return created


def place_artifact(
    world: World, artifact_id: ArtifactID, village_id: VillageID, now: datetime
) -> Artifact:
    """Hand an artifact to a village, dropping any effects it had elsewhere."""

    artifact = get_artifact(world, artifact_id)
    village = get_village(world, village_id)
    deactivate_artifact(world, artifact)
    artifact.village_id = village.id
    record_event(
        world,
        "artifact_placed",
        f"{artifact.name} is now held by {village.name}",
        now,
        player_id=village.player_id,
        village_id=village.id,
        data={"artifact_id": int(artifact.id)},
    )
    return artifact


def distribute_artifacts(world: World, now: datetime) -> list[Artifact]:
    """Scatter every unheld artifact over the world's villages.

    The holder of each artifact is drawn from a seed of the world, the tick
    and the artifact, so replaying a snapshot places them identically.
    """

    villages = sorted(world.villages, key=int)
    if not villages:
        raise InvalidActionError("there are no villages to hold artifacts")
    placed: list[Artifact] = []
    for artifact in sorted(world.artifacts.values(), key=lambda item: int(item.id)):
        if artifact.village_id is not None:
            continue
        seed = generate_seed(int(world.id), world.tick_count, f"artifact:{int(artifact.id)}")
        holder = random_choice(seed, villages)["choice"]
        placed.append(place_artifact(world, artifact.id, holder, now))
    logger.info("distributed %s artifact(s) in world %s", len(placed), int(world.id))
    return placed


def activate_artifact(
    world: World, player_id: PlayerID, artifact_id: ArtifactID, now: datetime
) -> list[ActiveEffect]:
    """Activate an artifact in the village that holds it."""

    artifact = get_artifact(world, artifact_id)
    if artifact.village_id is None:
        raise InvalidActionError(f"artifact {artifact.name} is not held by any village")
    village = owned_village(world, player_id, artifact.village_id)
    if artifact.is_active:
        raise InvalidActionError(f"artifact {artifact.name} is already active")

    created: list[ActiveEffect] = []
    for effect in artifact.effects:
        expires_at = (
            now + timedelta(hours=effect.duration_hours)
            if effect.duration_hours is not None
            else None
        )
        active = ActiveEffect(
            id=EffectID(world.next_id()),
            artifact_id=artifact.id,
            village_id=village.id,
            effect_type=effect.effect_type,
            magnitude=effect.magnitude,
            started_at=now,
            expires_at=expires_at,
        )
        world.effects[active.id] = active
        created.append(active)

    artifact.is_active = True
    artifact.activated_at = now
    record_event(
        world,
        "artifact_activated",
        f"{artifact.name} activated in {village.name}",
        now,
        player_id=player_id,
        village_id=village.id,
        data={"artifact_id": int(artifact.id)},
    )
    logger.info("artifact %s activated in village %s", int(artifact.id), int(village.id))
    return created


def deactivate_artifact(world: World, artifact: Artifact) -> int:
    """Remove every effect of ``artifact``; returns how many were removed."""

    stale = [
        effect_id
        for effect_id, effect in world.effects.items()
        if effect.artifact_id == artifact.id
    ]
    for effect_id in stale:
        del world.effects[effect_id]
    artifact.is_active = False
    artifact.activated_at = None
    return len(stale)


def stand_down_artifact(
    world: World, player_id: PlayerID, artifact_id: ArtifactID, now: datetime
) -> Artifact:
    """Switch off an active artifact held by one of the player's villages."""

    artifact = get_artifact(world, artifact_id)
    if artifact.village_id is None:
        raise InvalidActionError(f"artifact {artifact.name} is not held by any village")
    village = owned_village(world, player_id, artifact.village_id)
    if not artifact.is_active:
        raise InvalidActionError(f"artifact {artifact.name} is not active")
    removed = deactivate_artifact(world, artifact)
    record_event(
        world,
        "artifact_deactivated",
        f"{artifact.name} deactivated in {village.name}",
        now,
        player_id=player_id,
        village_id=village.id,
        data={"artifact_id": int(artifact.id), "effects_removed": removed},
    )
    return artifact


def effect_magnitude(
    world: World, village_id: VillageID, effect_type: EffectType, now: datetime
) -> float:
    """Sum of unexpired effect magnitudes (percent) applying to a village."""

    return sum(
        effect.magnitude
        for effect in world.effects.values()
        if effect.village_id == village_id
        and effect.effect_type == effect_type
        and (effect.expires_at is None or effect.expires_at > now)
    )


def expire_effects(world: World, now: datetime) -> int:
    """Drop expired effects and deactivate artifacts left without effects."""

    expired = [
        effect
        for effect in world.effects.values()
        if effect.expires_at is not None and effect.expires_at <= now
    ]
    for effect in expired:
        del world.effects[effect.id]

    still_active = {effect.artifact_id for effect in world.effects.values()}
    for artifact_id in {effect.artifact_id for effect in expired}:
        artifact = world.artifacts.get(artifact_id)
        if artifact is not None and artifact_id not in still_active:
            artifact.is_active = False
            artifact.activated_at = None
    return len(expired)
