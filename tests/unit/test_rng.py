"""Tests for the deterministic RNG helpers.

Tests cover:
- Determinism (same seed -> same result)
- Seed formatting and validation
- Dice notation parsing
- Bounds of the percentage rolls used by battles and the market
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from villagewars.utils.rng import (
    generate_seed,
    percent_roll,
    random_choice,
    random_int,
    roll_dice,
)


class TestGenerateSeed:
    """Tests for generate_seed function."""

    def test_seed_format(self):
        assert generate_seed(1, 42, "battle:17") == "1:42:battle:17"

    def test_different_parameters_produce_different_seeds(self):
        seeds = {
            generate_seed(1, 1, "spy:3"),
            generate_seed(2, 1, "spy:3"),
            generate_seed(1, 2, "spy:3"),
            generate_seed(1, 1, "spy:4"),
        }
        assert len(seeds) == 4

    def test_negative_world_id_raises_error(self):
        with pytest.raises(ValueError, match="world_id must be non-negative"):
            generate_seed(-1, 1, "test")

    def test_negative_tick_raises_error(self):
        with pytest.raises(ValueError, match="tick must be non-negative"):
            generate_seed(1, -1, "test")


class TestRollDice:
    """Tests for roll_dice function."""

    def test_same_seed_same_roll(self):
        assert roll_dice("1:1:spy:9") == roll_dice("1:1:spy:9")

    def test_result_structure(self):
        result = roll_dice("seed", "2d6")
        assert result["notation"] == "2d6"
        assert len(result["rolls"]) == 2
        assert result["total"] == sum(result["rolls"])
        assert result["seed"] == "seed"

    @pytest.mark.parametrize("notation", ["d6", "1x6", "0d6", "1d0", ""])
    def test_invalid_notation(self, notation):
        with pytest.raises(ValueError):
            roll_dice("seed", notation)

    @given(st.text(min_size=1, max_size=40))
    def test_d100_bounds(self, seed):
        assert 1 <= roll_dice(seed, "1d100")["total"] <= 100


class TestRandomChoiceAndInt:
    def test_choice_is_deterministic(self):
        options = ["wood", "clay", "iron"]
        assert random_choice("market:1", options) == random_choice("market:1", options)

    def test_empty_options_raise(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            random_choice("seed", [])

    def test_inverted_range_raises(self):
        with pytest.raises(ValueError, match="cannot be greater"):
            random_int("seed", 5, 1)

    @given(st.text(max_size=30), st.integers(0, 100), st.integers(0, 100))
    def test_random_int_bounds(self, seed, low, span):
        value = random_int(seed, low, low + span)["value"]
        assert low <= value <= low + span


@given(st.text(max_size=30), st.integers(0, 90), st.integers(0, 40))
def test_percent_roll_bounds(seed, base, span):
    value = percent_roll(seed, base, span)
    assert base / 100 <= value <= (base + span) / 100
