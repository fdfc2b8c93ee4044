from __future__ import annotations

import copy
from typing import Dict, List, Optional, Tuple

from .base import Item, KeyValueStore


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._items: Dict[Tuple[str, str], Item] = {}

    async def get(self, pk: str, sk: str) -> Optional[Item]:
        item = self._items.get((pk, sk))
        return copy.deepcopy(item) if item is not None else None

    async def put(self, item: Item) -> None:
        self._items[(item["pk"], item["sk"])] = copy.deepcopy(item)

    async def put_if_absent(self, item: Item) -> bool:
        key = (item["pk"], item["sk"])
        if key in self._items:
            return False
        self._items[key] = copy.deepcopy(item)
        return True

    async def query(self, pk: str, sk_prefix: str = "") -> List[Item]:
        keys = sorted(key for key in self._items if key[0] == pk and key[1].startswith(sk_prefix))
        return [copy.deepcopy(self._items[key]) for key in keys]

    async def update(self, pk: str, sk: str, changes: Item) -> Item:
        current = self._items.setdefault((pk, sk), {"pk": pk, "sk": sk})
        current.update(copy.deepcopy(changes))
        return copy.deepcopy(current)

    async def scan_sort_key(self, sk: str) -> List[Item]:
        return [copy.deepcopy(item) for key, item in sorted(self._items.items()) if key[1] == sk]
