from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

USER_PREFIX = "USER#"
LINK_SK = "CANVAS_LINK"
PROFILE_SK = "PROFILE"
PENDING_PREFIX = "PENDING#"
SCAN_PREFIX = "SCAN#"

Item = Dict[str, Any]


def user_pk(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def link_key(user_id: str) -> Tuple[str, str]:
    return user_pk(user_id), LINK_SK


def profile_key(user_id: str) -> Tuple[str, str]:
    return user_pk(user_id), PROFILE_SK


def pending_key(user_id: str, encouragement_id: str) -> Tuple[str, str]:
    return user_pk(user_id), f"{PENDING_PREFIX}{encouragement_id}"


def scan_key(user_id: str, created_at: str) -> Tuple[str, str]:
    return user_pk(user_id), f"{SCAN_PREFIX}{created_at}"


class KeyValueStore(ABC):
    """Partitioned item store; every item carries ``pk`` and ``sk``."""

    @abstractmethod
    async def get(self, pk: str, sk: str) -> Optional[Item]:
        ...

    @abstractmethod
    async def put(self, item: Item) -> None:
        ...

    @abstractmethod
    async def put_if_absent(self, item: Item) -> bool:
        """Write ``item`` only when its key is free; return whether it was written."""

    @abstractmethod
    async def query(self, pk: str, sk_prefix: str = "") -> List[Item]:
        """Items in partition ``pk`` whose sort key starts with ``sk_prefix``, ordered by sort key."""

    @abstractmethod
    async def update(self, pk: str, sk: str, changes: Item) -> Item:
        """Merge ``changes`` into the item, creating it when absent."""

    @abstractmethod
    async def scan_sort_key(self, sk: str) -> List[Item]:
        """Items across all partitions whose sort key equals ``sk``."""
