import json
import random
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (ROOT, SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from walkworthy.config.settings import Settings
from walkworthy.models import VerseCandidate, WorkloadItem
from walkworthy.store.base import link_key, profile_key
from walkworthy.store.memory import MemoryStore


class FakeResponse:
    def __init__(self, content: Any):
        self.content = content


class FakeChatModel:
    """Deterministic stand-in for the real chat model.

    Replies are consumed in order; the last one repeats once the queue is
    drained. An ``Exception`` instance in the queue is raised instead.
    """

    def __init__(self):
        self.replies: List[Any] = []
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *replies: Any) -> "FakeChatModel":
        self.replies.extend(replies)
        return self

    async def ainvoke(self, messages, config=None, **kwargs):
        self.calls.append({"messages": messages, "config": config})
        if not self.replies:
            raise RuntimeError("FakeChatModel has no reply queued")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return FakeResponse(reply)


@pytest.fixture(autouse=True)
def fake_llm(monkeypatch):
    """Automatically patch get_chat_model to return the fake model for all tests."""
    fake = FakeChatModel()
    monkeypatch.setattr(
        "walkworthy.agent.verse_selector.get_chat_model", lambda *args, **kwargs: fake
    )
    return fake


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        llm_api_key="sk-test",
        excluded_verses="[]",
        bible_mcp_mode="local",
        stage_timeout_seconds=5.0,
        langfuse_public_key=None,
        langfuse_secret_key=None,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


async def link_user(store: MemoryStore, user_id: str, profile: Optional[Dict[str, Any]] = None) -> None:
    pk, sk = link_key(user_id)
    await store.put(
        {"pk": pk, "sk": sk, "canvasBaseUrl": "https://canvas.example.edu", "refreshSecretRef": f"canvas/{user_id}"}
    )
    if profile is not None:
        pk, sk = profile_key(user_id)
        await store.put({"pk": pk, "sk": sk, **profile})


class StaticWorkload:
    def __init__(self, items: Optional[List[WorkloadItem]] = None, error: Optional[Exception] = None):
        self.items = items or []
        self.error = error
        self.calls = 0

    async def fetch_workload_items(self, link):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


class StaticVerses:
    def __init__(self, results: Optional[Dict[str, List[VerseCandidate]]] = None, default=None):
        self.results = results or {}
        self.default = default or []
        self.queries: List[Any] = []

    async def search_by_keywords(self, keywords, translation=None, limit=5):
        self.queries.append((list(keywords), translation, limit))
        found = self.results.get(keywords[0], self.default)
        if isinstance(found, Exception):
            raise found
        return list(found)[:limit]


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(7)
