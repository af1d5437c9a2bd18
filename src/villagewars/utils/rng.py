"""Deterministic random number generation for Village Wars.

Every random outcome in the rules layer (battle variance, loss and loot
percentages, spy detection, market offer generation) is drawn from a seed
derived from world state, so a world replayed from the same snapshot yields
exactly the same results.

Examples:
    >>> seed = generate_seed(world_id=1, tick=42, context="battle:17")
    >>> result = roll_dice(seed, "1d100")
    >>> 1 <= result["total"] <= 100
    True

    >>> random_choice(seed, ["wood", "clay", "iron"])["choice"] in {"wood", "clay", "iron"}
    True
"""

import hashlib
import random
import re
from typing import Any


def generate_seed(world_id: int, tick: int, context: str) -> str:
    """Generate a deterministic seed from world state.

    Format: "world_id:tick:context"

    Args:
        world_id: World the roll belongs to
        tick: Tick counter of the world when the roll happens
        context: What the roll is for (e.g., 'battle:17:variance')

    Returns:
        Seed string

    Examples:
        >>> generate_seed(1, 42, "spy:9")
        '1:42:spy:9'

    Raises:
        ValueError: If world_id or tick is negative
    """
    if world_id < 0:
        raise ValueError(f"world_id must be non-negative, got {world_id}")
    if tick < 0:
        raise ValueError(f"tick must be non-negative, got {tick}")

    return f"{world_id}:{tick}:{context}"


def _seed_to_int(seed: str) -> int:
    """Convert a seed string to a stable 64-bit integer for random.Random()."""
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=False)


def _parse_dice_notation(notation: str) -> tuple[int, int]:
    """Parse dice notation like '1d100' into (num_dice, num_sides).

    Raises:
        ValueError: If notation is invalid or values are non-positive
    """
    match = re.match(r"^(\d+)d(\d+)$", notation.lower())
    if not match:
        raise ValueError(
            f"Invalid dice notation: '{notation}'. Expected format: NdM (e.g., '2d6', '1d100')"
        )

    num_dice = int(match.group(1))
    num_sides = int(match.group(2))

    if num_dice <= 0:
        raise ValueError(f"Number of dice must be positive, got {num_dice}")
    if num_sides <= 0:
        raise ValueError(f"Number of sides must be positive, got {num_sides}")

    return num_dice, num_sides


def roll_dice(seed: str, notation: str = "1d100") -> dict[str, Any]:
    """Roll dice with a deterministic seed.

    Args:
        seed: Deterministic seed string (from generate_seed)
        notation: Dice notation (e.g., "1d100", "2d6")

    Returns:
        Dictionary containing:
            - notation: The dice notation used
            - rolls: List of individual die rolls
            - total: Sum of all rolls
            - seed: The seed used

    Raises:
        ValueError: If dice notation is invalid
    """
    num_dice, num_sides = _parse_dice_notation(notation)

    rng = random.Random(_seed_to_int(seed))
    rolls = [rng.randint(1, num_sides) for _ in range(num_dice)]

    return {
        "notation": notation,
        "rolls": rolls,
        "total": sum(rolls),
        "seed": seed,
    }


def random_choice(seed: str, options: list[Any]) -> dict[str, Any]:
    """Choose from options with a deterministic seed.

    Returns:
        Dictionary containing:
            - choice: The selected option
            - index: Index of the selected option
            - seed: The seed used

    Raises:
        ValueError: If options list is empty
    """
    if not options:
        raise ValueError("options list cannot be empty")

    rng = random.Random(_seed_to_int(seed))
    index = rng.randint(0, len(options) - 1)

    return {
        "choice": options[index],
        "index": index,
        "seed": seed,
    }


def random_int(seed: str, min_val: int, max_val: int) -> dict[str, Any]:
    """Generate a random integer in [min_val, max_val] with a deterministic seed.

    Examples:
        >>> seed = generate_seed(1, 1, "loot")
        >>> result = random_int(seed, 10, 25)
        >>> 10 <= result['value'] <= 25
        True

    Raises:
        ValueError: If min_val > max_val
    """
    if min_val > max_val:
        raise ValueError(f"min_val ({min_val}) cannot be greater than max_val ({max_val})")

    rng = random.Random(_seed_to_int(seed))
    value = rng.randint(min_val, max_val)

    return {
        "value": value,
        "min": min_val,
        "max": max_val,
        "seed": seed,
    }


def percent_roll(seed: str, base: int, span: int) -> float:
    """Return ``(base + r) / 100`` with ``r`` drawn uniformly from ``[0, span]``."""
    return (base + random_int(seed, 0, span)["value"]) / 100
