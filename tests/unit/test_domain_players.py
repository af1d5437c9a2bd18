"""Tests for player registration, villages and rankings."""

import pytest
from conftest import home

from villagewars.domain import players
from villagewars.domain.errors import InvalidActionError
from villagewars.domain.rules_config import PlayerRules, RulesConfig


def test_spiral_starts_at_centre():
    coords = players.spiral_coordinates(5, 5)
    assert [next(coords) for _ in range(4)] == [(5, 5), (4, 4), (5, 4), (6, 4)]


def test_players_are_placed_around_centre(world, alice, bob):
    assert (home(world, alice).x, home(world, alice).y) == (200, 200)
    assert (home(world, bob).x, home(world, bob).y) == (199, 199)
    assert home(world, alice).is_capital


def test_names_are_unique_and_required(world, alice, now):
    with pytest.raises(InvalidActionError, match="taken"):
        players.register_player(world, "ALICE", now)
    with pytest.raises(InvalidActionError, match="required"):
        players.register_player(world, "   ", now)


def test_world_speed_must_be_positive(now):
    with pytest.raises(InvalidActionError):
        players.create_world(7, "Broken", now, speed=0)


def test_found_village(world, alice, now):
    outpost = players.found_village(world, alice.id, " ", 10, 12, now)
    assert outpost.name == "Alice's village 2"
    assert not outpost.is_capital
    assert alice.village_ids[-1] == outpost.id

    with pytest.raises(InvalidActionError, match="occupied"):
        players.found_village(world, alice.id, "Again", 10, 12, now)
    with pytest.raises(InvalidActionError, match="outside the map"):
        players.found_village(world, alice.id, "Edge", 400, 0, now)


def test_village_limit(world, alice, now):
    rules = RulesConfig(players=PlayerRules(max_villages_per_player=2))
    players.found_village(world, alice.id, "Second", 1, 1, now, rules)
    with pytest.raises(InvalidActionError, match="at most 2 villages"):
        players.found_village(world, alice.id, "Third", 2, 2, now, rules)


def test_full_map_rejects_player_without_side_effects(world, now):
    rules = RulesConfig(players=PlayerRules(map_width=1, map_height=1))
    players.register_player(world, "Alice", now, rules)

    with pytest.raises(InvalidActionError, match="map is full"):
        players.register_player(world, "Bob", now, rules)

    assert [player.name for player in world.players.values()] == ["Alice"]
    assert len(world.villages) == 1


def test_stats_and_rankings(world, alice, bob):
    home(world, bob).buildings["wall"] = 5
    players.update_player_stats(world)

    assert alice.population == 50
    assert alice.points == 50 + 5 * 5
    assert bob.points == 100 + 10 * 5

    ranking = players.player_rankings(world)
    assert [(row["name"], row["rank"]) for row in ranking] == [("Bob", 1), ("Alice", 2)]


def test_nearby_villages(world, alice, bob):
    found = players.nearby_villages(world, 200, 200, 1.5)
    assert [village.id for village, _ in found] == [home(world, alice).id, home(world, bob).id]
    assert players.nearby_villages(world, 0, 0, 5) == []
