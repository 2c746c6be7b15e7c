"""Read adapters supplying shifts and activity records to the engine."""

from .base import InMemoryShiftStore, ShiftStore
from .sqlite_store import SCHEMA, SQLiteShiftStore

__all__ = ["ShiftStore", "InMemoryShiftStore", "SQLiteShiftStore", "SCHEMA"]
