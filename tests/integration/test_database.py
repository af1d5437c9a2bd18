"""Integration tests for the SQL snapshot store.

Each test builds its own SQLite file under ``tmp_path`` so runs never touch
a developer database.
"""

from datetime import timedelta

import pytest
from conftest import NOW

from villagewars.database import (
    check_database_health,
    count_rows,
    create_db_engine,
    get_session_factory,
    get_table_names,
    init_db,
)
from villagewars.domain import models as dm
from villagewars.domain.players import create_world, register_player
from villagewars.domain.tick import run_game_tick
from villagewars.repository import SqlWorldRepository


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(url=f"sqlite:///{tmp_path / 'villagewars.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def repository(session_factory):
    return SqlWorldRepository(session_factory)


class TestDatabaseInitialization:
    """Tests for schema creation."""

    def test_all_tables_created(self, engine):
        assert set(get_table_names(engine)) == {"world_snapshots", "tick_log"}

    def test_database_health_check(self, engine):
        assert check_database_health(engine) is True

    def test_count_rows_rejects_unknown_table(self, session_factory):
        with session_factory() as session, pytest.raises(ValueError, match="Invalid table name"):
            count_rows(session, "villages")


class TestSnapshotRepository:
    """Tests for saving, loading and deleting world snapshots."""

    def test_save_and_load_round_trip(self, repository, session_factory):
        world = create_world(dm.WorldID(3), "Sql World", NOW)
        register_player(world, "Alice", NOW)

        repository.save(world)
        repository.save(world)

        assert repository.load(dm.WorldID(3)) == world
        assert repository.list_worlds() == [dm.WorldID(3)]
        with session_factory() as session:
            assert count_rows(session, "world_snapshots") == 1

    def test_missing_world_raises_file_not_found(self, repository):
        with pytest.raises(FileNotFoundError):
            repository.load(dm.WorldID(99))

    def test_tick_log_is_newest_first_and_deleted_with_world(
        self, repository, session_factory
    ):
        world = create_world(dm.WorldID(1), "Logged", NOW)
        register_player(world, "Alice", NOW)
        repository.save(world)

        for hours in (1, 2):
            ran_at = NOW + timedelta(hours=hours)
            summary = run_game_tick(world, ran_at)
            repository.save(world)
            repository.record_tick(world.id, summary, ran_at)

        log = repository.tick_log(world.id)
        assert [entry["tick"] for entry in log] == [2, 1]
        assert log[0]["summary"]["villages_produced"] == 1
        assert len(repository.tick_log(world.id, limit=1)) == 1

        repository.delete(world.id)

        assert repository.list_worlds() == []
        with session_factory() as session:
            assert count_rows(session, "tick_log") == 0
