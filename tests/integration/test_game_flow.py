"""End-to-end game flow through the world service on the SQL store."""

from datetime import timedelta

import pytest
from conftest import NOW

from villagewars.api.runtime import WorldService
from villagewars.database import create_db_engine, get_session_factory, init_db
from villagewars.domain import buildings, movement, training
from villagewars.domain import models as dm
from villagewars.domain.enums import MovementStatus, MovementType, ReportType
from villagewars.domain.messaging import list_reports
from villagewars.domain.players import register_player
from villagewars.repository import SqlWorldRepository


class FakeClock:
    def __init__(self) -> None:
        self.now = NOW

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(tmp_path, clock):
    engine = create_db_engine(url=f"sqlite:///{tmp_path / 'flow.db'}")
    init_db(engine)
    yield WorldService(SqlWorldRepository(get_session_factory(engine)), clock=clock)
    engine.dispose()


def test_build_train_and_raid(service, clock):
    world = service.create_world("Flow", with_artifacts=False)
    alice = service.mutate(world.id, lambda w, now: register_player(w, "Alice", now))
    bob = service.mutate(world.id, lambda w, now: register_player(w, "Bob", now))
    home, target = alice.village_ids[0], bob.village_ids[0]

    service.mutate(
        world.id,
        lambda w, now: w.villages[home].buildings.update(barracks=1),
    )
    service.mutate(
        world.id,
        lambda w, now: buildings.queue_upgrade(w, alice.id, home, "main_building", now),
        actor_id=alice.id,
    )
    service.mutate(
        world.id,
        lambda w, now: training.queue_training(w, alice.id, home, "infantry", 5, now),
        actor_id=alice.id,
    )

    clock.advance(days=1)
    summary = service.run_tick(world.id)
    assert summary.constructions_completed == 1
    assert summary.training_completed == 1

    loaded = service.get_world(world.id)
    assert loaded.villages[home].buildings["main_building"] == 2
    assert loaded.villages[home].troops["infantry"] == 5

    raid = service.mutate(
        world.id,
        lambda w, now: movement.send_movement(
            w, alice.id, home, target, MovementType.RAID, now, troops={"infantry": 5}
        ),
        actor_id=alice.id,
    )
    assert service.get_world(world.id).villages[home].troops.get("infantry", 0) == 0

    clock.advance(hours=1)
    service.run_tick(world.id)
    clock.advance(hours=1)
    service.run_tick(world.id)

    final = service.get_world(world.id)
    assert final.movements[raid.id].status == MovementStatus.ARRIVED
    assert final.villages[target].loyalty == 100
    assert len(list_reports(final, alice.id, report_type=ReportType.ATTACK)) == 1
    assert final.villages[home].troops["infantry"] > 0
    assert [entry["tick"] for entry in service.tick_log(world.id)] == [3, 2, 1]


def test_failed_action_leaves_snapshot_untouched(service):
    world = service.create_world("Flow", with_artifacts=False)
    alice = service.mutate(world.id, lambda w, now: register_player(w, "Alice", now))

    with pytest.raises(ValueError):
        service.mutate(
            world.id,
            lambda w, now: training.queue_training(
                w, alice.id, alice.village_ids[0], "infantry", 1, now
            ),
        )

    assert service.get_world(world.id).queue == {}
    assert service.list_worlds()[0].id == dm.WorldID(1)
