"""SQLite-backed key-value store; blocking calls run in a worker thread."""

from __future__ import annotations

import asyncio
import json
import os
import sqlite3
import threading
from typing import Any, List, Optional

from walkworthy.errors import StoreError

from .base import Item, KeyValueStore

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    pk TEXT NOT NULL,
    sk TEXT NOT NULL,
    data TEXT NOT NULL,
    PRIMARY KEY (pk, sk)
)
"""


class SqliteStore(KeyValueStore):
    def __init__(self, path: str):
        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(_SCHEMA)

    def close(self) -> None:
        self._conn.close()

    async def _run(self, sql: str, params: tuple = (), *, rowcount: bool = False) -> Any:
        def _execute() -> Any:
            with self._lock, self._conn:
                cursor = self._conn.execute(sql, params)
                return cursor.rowcount if rowcount else cursor.fetchall()

        try:
            return await asyncio.to_thread(_execute)
        except sqlite3.Error as exc:
            raise StoreError(f"sqlite store error: {exc}") from exc

    async def get(self, pk: str, sk: str) -> Optional[Item]:
        rows = await self._run("SELECT data FROM items WHERE pk = ? AND sk = ?", (pk, sk))
        return json.loads(rows[0][0]) if rows else None

    async def put(self, item: Item) -> None:
        await self._run(
            "INSERT OR REPLACE INTO items (pk, sk, data) VALUES (?, ?, ?)",
            (item["pk"], item["sk"], json.dumps(item)),
        )

    async def put_if_absent(self, item: Item) -> bool:
        written = await self._run(
            "INSERT OR IGNORE INTO items (pk, sk, data) VALUES (?, ?, ?)",
            (item["pk"], item["sk"], json.dumps(item)),
            rowcount=True,
        )
        return written == 1

    async def query(self, pk: str, sk_prefix: str = "") -> List[Item]:
        # substr rather than LIKE so % and _ in the prefix match literally
        rows = await self._run(
            "SELECT data FROM items WHERE pk = ? AND substr(sk, 1, ?) = ? ORDER BY sk",
            (pk, len(sk_prefix), sk_prefix),
        )
        return [json.loads(row[0]) for row in rows]

    async def update(self, pk: str, sk: str, changes: Item) -> Item:
        current = await self.get(pk, sk) or {"pk": pk, "sk": sk}
        current.update(changes)
        await self.put(current)
        return current

    async def scan_sort_key(self, sk: str) -> List[Item]:
        rows = await self._run("SELECT data FROM items WHERE sk = ? ORDER BY pk", (sk,))
        return [json.loads(row[0]) for row in rows]
