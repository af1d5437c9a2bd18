"""SQLAlchemy models for the Village Wars snapshot store."""

from .base import Base, TimestampMixin, utc_now
from .world import TickLogEntry, WorldSnapshot

__all__ = [
    "Base",
    "TickLogEntry",
    "TimestampMixin",
    "WorldSnapshot",
    "utc_now",
]
