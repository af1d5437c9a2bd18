"""Utility functions for the Village Wars game system."""

from villagewars.utils.rng import (
    generate_seed,
    percent_roll,
    random_choice,
    random_int,
    roll_dice,
)

__all__ = [
    "generate_seed",
    "percent_roll",
    "random_choice",
    "random_int",
    "roll_dice",
]
