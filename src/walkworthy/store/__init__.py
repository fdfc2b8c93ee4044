"""Key-value persistence gateway."""

from .base import KeyValueStore, link_key, pending_key, profile_key, scan_key, user_pk
from .memory import MemoryStore
from .sqlite import SqliteStore


def store_from_settings(settings) -> KeyValueStore:
    if settings.store_backend == "sqlite":
        return SqliteStore(settings.sqlite_path)
    return MemoryStore()


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
    "link_key",
    "pending_key",
    "profile_key",
    "scan_key",
    "store_from_settings",
    "user_pk",
]
