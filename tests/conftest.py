"""Pytest configuration and shared fixtures.

This adds the `src/` directory to `sys.path` so tests can import the
`villagewars` package (e.g., `from villagewars.api.app import create_app`)
without requiring an editable install in CI.
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from villagewars.domain import models as dm  # noqa: E402
from villagewars.domain.enums import ResourceType  # noqa: E402
from villagewars.domain.players import create_world, register_player  # noqa: E402

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def world() -> dm.World:
    """A fresh world without artifacts so artifact tests place their own."""
    return create_world(dm.WorldID(1), "Test World", NOW, with_artifacts=False)


@pytest.fixture
def alice(world: dm.World) -> dm.Player:
    return register_player(world, "Alice", NOW)


@pytest.fixture
def bob(world: dm.World) -> dm.Player:
    return register_player(world, "Bob", NOW)


def home(world: dm.World, player: dm.Player) -> dm.Village:
    """First village of a player."""
    return world.villages[player.village_ids[0]]


def stock(village: dm.Village, amount: float = 9000.0) -> None:
    """Fill every resource of a village to ``amount``."""
    for resource in ResourceType:
        village.resources[resource] = float(amount)
