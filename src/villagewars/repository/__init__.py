"""Persistence backends for world snapshots."""

from .json_store import JsonWorldRepository
from .sql_store import SqlWorldRepository

__all__ = ["JsonWorldRepository", "SqlWorldRepository"]
