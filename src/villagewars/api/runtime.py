"""Runtime primitives backing the Village Wars HTTP API."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from pydantic_core import to_jsonable_python

from villagewars.config import Settings, get_settings
from villagewars.database import create_db_engine, get_session_factory, init_db
from villagewars.domain import models as dm
from villagewars.domain import players as player_rules
from villagewars.domain.buildings import pending_items
from villagewars.domain.enums import MovementStatus, QueueKind
from villagewars.domain.resources import production_summary, sync_resources
from villagewars.domain.rules_config import DEFAULT_RULES, RulesConfig
from villagewars.domain.state import get_player, get_village
from villagewars.domain.tick import TickSummary, run_game_tick
from villagewars.repository import JsonWorldRepository, SqlWorldRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

WorldRepository = JsonWorldRepository | SqlWorldRepository
Clock = Callable[[], datetime]


def utc_clock() -> datetime:
    return datetime.now(UTC)


def dump(value: object) -> object:
    """Convert domain dataclasses, enums and datetimes into JSON-ready data."""

    return to_jsonable_python(value)


class WorldService:
    """Utilities for loading and mutating world aggregates.

    Every mutation runs under one lock and is written back only when the
    rule call returns, so a failing action never reaches the repository.
    """

    def __init__(
        self,
        repository: WorldRepository,
        *,
        rules: RulesConfig = DEFAULT_RULES,
        clock: Clock = utc_clock,
    ) -> None:
        self._repository = repository
        self._lock = threading.RLock()
        self.rules = rules
        self.clock = clock

    @property
    def repository(self) -> WorldRepository:
        return self._repository

    def list_worlds(self) -> list[dm.World]:
        """Return every persisted world ordered by identifier."""

        worlds: list[dm.World] = []
        for world_id in self._repository.list_worlds():
            try:
                worlds.append(self._repository.load(world_id))
            except FileNotFoundError:
                logger.warning("world %s vanished while listing", int(world_id))
        return worlds

    def get_world(self, world_id: dm.WorldID) -> dm.World:
        """Load a single world or raise ``FileNotFoundError``."""

        return self._repository.load(world_id)

    def save_world(self, world: dm.World) -> dm.World:
        with self._lock:
            self._repository.save(world)
        return world

    def delete_world(self, world_id: dm.WorldID) -> None:
        with self._lock:
            self._repository.load(world_id)
            self._repository.delete(world_id)
        logger.info("world %s deleted", int(world_id))

    def create_world(
        self, name: str, *, speed: float = 1.0, with_artifacts: bool = True
    ) -> dm.World:
        """Create and persist an empty world with the default catalogs."""

        with self._lock:
            world = player_rules.create_world(
                self._next_identifier(),
                name,
                self.clock(),
                speed=speed,
                with_artifacts=with_artifacts,
            )
            self._repository.save(world)
        logger.info("world %s (%s) created", int(world.id), name)
        return world

    def _next_identifier(self) -> dm.WorldID:
        existing = self._repository.list_worlds()
        if not existing:
            return dm.WorldID(1)
        return dm.WorldID(int(max(existing, key=int)) + 1)

    def mutate(
        self,
        world_id: dm.WorldID,
        action: Callable[[dm.World, datetime], T],
        *,
        actor_id: dm.PlayerID | None = None,
    ) -> T:
        """Apply ``action`` to a freshly loaded world and persist the result."""

        with self._lock:
            world = self._repository.load(world_id)
            now = self.clock()
            result = action(world, now)
            if actor_id is not None and actor_id in world.players:
                player_rules.touch_player(world, actor_id, now)
            self._repository.save(world)
        return result

    async def apply(
        self,
        world_id: dm.WorldID,
        action: Callable[[dm.World, datetime], T],
        *,
        actor_id: dm.PlayerID | None = None,
    ) -> T:
        """Run :meth:`mutate` on a worker thread.

        Ticks hold the mutation lock from worker threads, so the event loop
        never waits on it.
        """

        return await asyncio.to_thread(self.mutate, world_id, action, actor_id=actor_id)

    def run_tick(self, world_id: dm.WorldID) -> TickSummary:
        """Advance a world to the current time and persist it."""

        with self._lock:
            world = self._repository.load(world_id)
            now = self.clock()
            try:
                summary = run_game_tick(world, now, rules=self.rules)
            except Exception:
                logger.exception("tick failed for world %s; snapshot left untouched", int(world_id))
                raise
            self._repository.save(world)
            if isinstance(self._repository, SqlWorldRepository):
                self._repository.record_tick(world.id, summary, now)
        return summary

    def tick_log(self, world_id: dm.WorldID, *, limit: int = 50) -> list[dict[str, object]]:
        if isinstance(self._repository, SqlWorldRepository):
            return self._repository.tick_log(world_id, limit=limit)
        self._repository.load(world_id)
        return []

    @staticmethod
    def to_summary_dict(world: dm.World) -> dict[str, object]:
        """Return a JSON-friendly overview of a world."""

        travelling = [
            movement
            for movement in world.movements.values()
            if movement.status == MovementStatus.TRAVELLING
        ]
        return {
            "id": int(world.id),
            "name": world.name,
            "speed": world.speed,
            "created_at": world.created_at,
            "last_tick_at": world.last_tick_at,
            "tick_count": world.tick_count,
            "player_count": len(world.players),
            "village_count": len(world.villages),
            "alliance_count": len(world.alliances),
            "movements_in_flight": len(travelling),
        }

    def to_village_dict(self, world: dm.World, village: dm.Village) -> dict[str, object]:
        """Village detail with stockpiles brought up to the current time."""

        now = self.clock()
        sync_resources(world, village, now, self.rules)
        return {
            "id": int(village.id),
            "player_id": int(village.player_id),
            "name": village.name,
            "x": village.x,
            "y": village.y,
            "is_capital": village.is_capital,
            "loyalty": village.loyalty,
            "population": village.population,
            "buildings": dict(village.buildings),
            "troops": dict(village.troops),
            "stationed": dump(village.stationed),
            "resources": dump(production_summary(world, village, now, self.rules)),
            "construction_queue": dump(pending_items(world, village.id, QueueKind.CONSTRUCTION)),
            "training_queue": dump(pending_items(world, village.id, QueueKind.TRAINING)),
        }

    def to_player_dict(self, world: dm.World, player_id: dm.PlayerID) -> dict[str, object]:
        player = get_player(world, player_id)
        return {
            **dump(player),
            "villages": [
                self.to_village_dict(world, get_village(world, village_id))
                for village_id in player.village_ids
            ],
        }


class TickManager:
    """Background scheduler that advances worlds using the rules engine."""

    MIN_INTERVAL_SECONDS = 0.1

    def __init__(
        self,
        service: WorldService,
        *,
        base_interval_seconds: float,
        debug_multiplier: float = 1.0,
    ) -> None:
        self._service = service
        self._base_interval = max(base_interval_seconds, self.MIN_INTERVAL_SECONDS)
        self._debug_multiplier = max(debug_multiplier, 0.01)
        self._auto_worlds: set[dm.WorldID] = set()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._advance_lock = asyncio.Lock()

    @property
    def interval_seconds(self) -> float:
        return max(self.MIN_INTERVAL_SECONDS, self._base_interval * self._debug_multiplier)

    @property
    def base_interval_seconds(self) -> float:
        return self._base_interval

    @property
    def debug_multiplier(self) -> float:
        return self._debug_multiplier

    def set_base_interval(self, seconds: float) -> None:
        self._base_interval = max(seconds, self.MIN_INTERVAL_SECONDS)

    def set_debug_multiplier(self, multiplier: float) -> None:
        self._debug_multiplier = max(multiplier, 0.01)

    def enabled_worlds(self) -> set[dm.WorldID]:
        return set(self._auto_worlds)

    def is_enabled(self, world_id: dm.WorldID) -> bool:
        return world_id in self._auto_worlds

    async def set_enabled(self, world_id: dm.WorldID, enabled: bool) -> None:
        if enabled:
            self._auto_worlds.add(world_id)
            self._ensure_running()
        else:
            self._auto_worlds.discard(world_id)
            if not self._auto_worlds:
                await self.stop()

    def _ensure_running(self) -> None:
        if self._task is None or self._task.done():
            self._stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            self._task = loop.create_task(self._run_loop(), name="villagewars-tick-loop")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        await task
        self._task = None

    async def advance_now(self, world_id: dm.WorldID) -> TickSummary:
        """Run one tick immediately; errors propagate to the caller."""

        async with self._advance_lock:
            return await asyncio.to_thread(self._service.run_tick, world_id)

    async def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                    break
                except TimeoutError:
                    pass
                await self._run_cycle()
        finally:
            self._task = None

    async def _run_cycle(self) -> None:
        if not self._auto_worlds:
            return
        async with self._advance_lock:
            for world_id in list(self._auto_worlds):
                try:
                    await asyncio.to_thread(self._service.run_tick, world_id)
                except FileNotFoundError:
                    logger.warning(
                        "world %s missing from repository; disabling autotick", int(world_id)
                    )
                    self._auto_worlds.discard(world_id)
                except Exception:
                    # Already logged by run_tick; the next cycle retries.
                    continue


class ApiState:
    """Aggregated services shared by the FastAPI layer."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        rules: RulesConfig | None = None,
        repository: WorldRepository | None = None,
        clock: Clock = utc_clock,
    ) -> None:
        self.settings = settings or get_settings()
        self.rules = rules or self.settings.build_rules()
        self.repository = repository or build_repository(self.settings)
        self.worlds = WorldService(self.repository, rules=self.rules, clock=clock)
        self.ticks = TickManager(
            self.worlds,
            base_interval_seconds=self.settings.tick_interval_seconds,
            debug_multiplier=self.settings.debug_tick_speed_multiplier,
        )

    async def shutdown(self) -> None:
        await self.ticks.stop()


def build_repository(settings: Settings) -> WorldRepository:
    """Instantiate the snapshot store selected by ``settings.storage_backend``."""

    if settings.storage_backend == "sql":
        engine = create_db_engine(settings)
        init_db(engine)
        return SqlWorldRepository(get_session_factory(engine))
    return JsonWorldRepository(settings.data_dir)


def build_state() -> ApiState:
    """Factory used by the API to initialize state."""

    return ApiState()
