"""JSON secrets kept in the key-value store under ``SECRET#<ref>``."""

from __future__ import annotations

import json
from typing import Any, Optional

from walkworthy.errors import MalformedSecretError
from walkworthy.utils.time import now_iso

from .base import KeyValueStore

SECRET_PREFIX = "SECRET#"
SECRET_SK = "VALUE"


class SecretStore:
    def __init__(self, store: KeyValueStore):
        self._store = store

    async def get_json(self, ref: str) -> Any:
        item = await self._store.get(f"{SECRET_PREFIX}{ref}", SECRET_SK)
        raw: Optional[str] = item.get("secretString") if item else None
        if not raw:
            raise MalformedSecretError(f"Secret {ref} has no string value")
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise MalformedSecretError(f"Secret {ref} is not valid JSON") from exc

    async def put_json(self, ref: str, value: Any) -> None:
        await self._store.put(
            {
                "pk": f"{SECRET_PREFIX}{ref}",
                "sk": SECRET_SK,
                "secretString": json.dumps(value),
                "updatedAt": now_iso(),
            }
        )
