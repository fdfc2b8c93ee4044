"""Run one scan for one user through the compiled scan graph."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional

from walkworthy.agent.graph import ScanDependencies, WorkloadSource, build_scan_graph
from walkworthy.agent.verse_selector import select_verse
from walkworthy.candidates import VerseSearcher
from walkworthy.config.settings import Settings, get_settings
from walkworthy.llm.client import tracing_callbacks
from walkworthy.models import ScanResult
from walkworthy.sources.bible_mcp import BibleMcpProvider
from walkworthy.sources.canvas_client import CanvasClient
from walkworthy.store.base import KeyValueStore
from walkworthy.store.records import ProfileCache
from walkworthy.store.secrets import SecretStore

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """Owns the scan graph and the collaborators every scan node needs.

    Scans for the same user are serialized so pending supersession and the
    new pending write cannot interleave.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[Settings] = None,
        *,
        workload_source: Optional[WorkloadSource] = None,
        verse_provider: Optional[VerseSearcher] = None,
        selector: Optional[Callable[..., Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.deps = ScanDependencies(
            store=store,
            settings=self.settings,
            workload_source=workload_source or CanvasClient.from_settings(self.settings, SecretStore(store)),
            verse_provider=verse_provider or BibleMcpProvider.from_settings(self.settings),
            selector=selector or partial(select_verse, settings=self.settings),
            rng=rng or random.Random(),
        )
        self.graph = build_scan_graph()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Dict[str, int] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        """Serialize scans per user; the lock is dropped once nobody holds or awaits it."""

        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._locks[user_id]

    async def run_scan_for_user(self, user_id: str, profile_cache: Optional[ProfileCache] = None) -> ScanResult:
        config = {
            "configurable": {"deps": self.deps},
            "callbacks": tracing_callbacks(self.settings),
            "run_name": "walkworthy-scan",
        }
        async with self._user_lock(user_id):
            logger.info("Starting scan for %s", user_id)
            final = await self.graph.ainvoke(
                {"user_id": user_id, "profile_cache": profile_cache or ProfileCache(), "trace": []},
                config=config,
            )

        log = final["log"]
        trace = final.get("trace") or []
        logger.debug("Scan trace for %s: %s", user_id, trace)
        return ScanResult(encouragement_id=log.encouragement_id, status=log.status, log=log, trace=trace)
