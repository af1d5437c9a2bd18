"""Domain model and rules for Village Wars.

This package holds every game rule in one place. It exposes:

* Dataclasses describing every game entity (see :mod:`models`).
* Enumerations and strongly-typed identifiers used across the rules layer.
* Rule configuration objects (see :mod:`rules_config`).
* Pure rule functions per subsystem, orchestrated by :mod:`tick`.

Everything operates on an in-memory :class:`models.World` that repositories
persist as a snapshot.
"""

from . import (
    alliances,
    artifacts,
    battle,
    buildings,
    catalog,
    enums,
    errors,
    market,
    messaging,
    models,
    movement,
    players,
    quests,
    resources,
    rules_config,
    state,
    tick,
    training,
)

__all__ = [
    "alliances",
    "artifacts",
    "battle",
    "buildings",
    "catalog",
    "enums",
    "errors",
    "market",
    "messaging",
    "models",
    "movement",
    "players",
    "quests",
    "resources",
    "rules_config",
    "state",
    "tick",
    "training",
]
