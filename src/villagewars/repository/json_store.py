"""JSON-based repository for Village Wars worlds."""

from __future__ import annotations

from pathlib import Path

from pydantic import TypeAdapter

from villagewars.domain import models as dm


class JsonWorldRepository:
    """Persist worlds as JSON snapshots on disk."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._adapter: TypeAdapter[dm.World] = TypeAdapter(dm.World)

    def _path_for(self, world_id: dm.WorldID) -> Path:
        return self.base_path / f"world_{int(world_id)}.json"

    def save(self, world: dm.World) -> Path:
        """Serialize a world to disk and return the snapshot path.

        The snapshot is written next to the target first and then renamed over
        it, so a crash mid-write never leaves a truncated file behind.
        """

        path = self._path_for(world.id)
        payload = self._adapter.dump_json(world, indent=2)
        staging = path.with_suffix(".json.tmp")
        staging.write_bytes(payload)
        staging.replace(path)
        return path

    def load(self, world_id: dm.WorldID) -> dm.World:
        """Load a previously saved world snapshot.

        Raises:
            FileNotFoundError: If no snapshot exists for ``world_id``
        """

        data = self._path_for(world_id).read_bytes()
        return self._adapter.validate_json(data)

    def list_worlds(self) -> list[dm.WorldID]:
        """Return all world ids currently persisted in the repository."""

        ids: list[dm.WorldID] = []
        prefix = "world_"
        suffix = ".json"
        for path in self.base_path.glob("world_*.json"):
            raw = path.name[len(prefix) : -len(suffix)]
            if raw.isdigit():
                ids.append(dm.WorldID(int(raw)))
        return sorted(ids, key=int)

    def delete(self, world_id: dm.WorldID) -> None:
        """Remove a world snapshot if it exists."""

        self._path_for(world_id).unlink(missing_ok=True)
