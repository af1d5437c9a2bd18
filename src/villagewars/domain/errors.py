"""Exceptions raised by the rules layer."""

from __future__ import annotations


class GameError(ValueError):
    """Base class for rejected game actions."""


class InsufficientResourcesError(GameError):
    """A village cannot pay for an action."""

    def __init__(self, missing: dict[str, float]) -> None:
        self.missing = missing
        parts = ", ".join(f"{name}: {amount:.0f}" for name, amount in sorted(missing.items()))
        super().__init__(f"insufficient resources ({parts})")


class RequirementNotMetError(GameError):
    """A building, population or unit prerequisite is missing."""


class InvalidActionError(GameError):
    """The action is not allowed in the current state."""


class NotFoundError(GameError, LookupError):
    """A referenced entity does not exist in the world."""

    def __init__(self, kind: str, identifier: object) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")
