"""SQLAlchemy-backed repository storing world snapshots in a database."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime

from pydantic import TypeAdapter
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from villagewars.domain import models as dm
from villagewars.domain.tick import TickSummary
from villagewars.models import TickLogEntry, WorldSnapshot

logger = logging.getLogger(__name__)


class SqlWorldRepository:
    """Persist worlds as JSON payloads in the ``world_snapshots`` table.

    Each save replaces the snapshot row in a single transaction, so readers
    always see either the previous or the new world, never a mix.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._adapter: TypeAdapter[dm.World] = TypeAdapter(dm.World)

    def save(self, world: dm.World) -> None:
        payload = self._adapter.dump_json(world)
        with self._session_factory() as session, session.begin():
            row = session.get(WorldSnapshot, int(world.id))
            if row is None:
                row = WorldSnapshot(id=int(world.id), name=world.name, payload=payload)
                session.add(row)
            row.name = world.name
            row.tick_count = world.tick_count
            row.last_tick_at = world.last_tick_at
            row.payload = payload

    def load(self, world_id: dm.WorldID) -> dm.World:
        """Load a world snapshot.

        Raises:
            FileNotFoundError: If no snapshot row exists for ``world_id``
        """

        with self._session_factory() as session:
            row = session.get(WorldSnapshot, int(world_id))
            if row is None:
                raise FileNotFoundError(f"world {int(world_id)} has no snapshot")
            return self._adapter.validate_json(row.payload)

    def list_worlds(self) -> list[dm.WorldID]:
        with self._session_factory() as session:
            ids = session.scalars(select(WorldSnapshot.id).order_by(WorldSnapshot.id)).all()
        return [dm.WorldID(world_id) for world_id in ids]

    def delete(self, world_id: dm.WorldID) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(delete(TickLogEntry).where(TickLogEntry.world_id == int(world_id)))
            session.execute(delete(WorldSnapshot).where(WorldSnapshot.id == int(world_id)))

    def record_tick(self, world_id: dm.WorldID, summary: TickSummary, ran_at: datetime) -> None:
        """Append a tick log row for a world that has already been saved."""

        with self._session_factory() as session, session.begin():
            session.add(
                TickLogEntry(
                    world_id=int(world_id),
                    tick=summary.tick,
                    ran_at=ran_at,
                    summary=json.dumps(asdict(summary)),
                )
            )
        logger.debug("logged tick %s for world %s", summary.tick, int(world_id))

    def tick_log(self, world_id: dm.WorldID, *, limit: int = 50) -> list[dict[str, object]]:
        """Most recent tick log rows for a world, newest first."""

        with self._session_factory() as session:
            rows = session.scalars(
                select(TickLogEntry)
                .where(TickLogEntry.world_id == int(world_id))
                .order_by(TickLogEntry.tick.desc())
                .limit(limit)
            ).all()
            return [
                {"tick": row.tick, "ran_at": row.ran_at, "summary": json.loads(row.summary)}
                for row in rows
            ]
