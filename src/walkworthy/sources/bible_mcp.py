"""JSON-RPC client for the verse lookup service."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from walkworthy.config.settings import Settings
from walkworthy.errors import ConfigurationError, VerseServiceError
from walkworthy.models import VerseCandidate
from walkworthy.sources import verse_bridge

logger = logging.getLogger(__name__)

MODES = ("http", "local", "disabled")


class BibleMcpProvider:
    def __init__(
        self,
        mode: str = "disabled",
        *,
        url: Optional[str] = None,
        default_translation: str = "ESV",
        timeout: float = 20.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if mode not in MODES:
            raise ConfigurationError(f"Unsupported verse service mode {mode!r}; expected one of {MODES}")
        if mode == "http" and not url:
            raise ConfigurationError("WALKWORTHY_BIBLE_MCP_URL is required for http mode")
        self.mode = mode
        self.url = url
        self.default_translation = default_translation
        self.timeout = timeout
        self._http_client = http_client
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "BibleMcpProvider":
        return cls(
            settings.bible_mcp_mode,
            url=settings.bible_mcp_url,
            default_translation=settings.default_translation,
            timeout=settings.http_timeout_seconds,
            **kwargs,
        )

    async def _call(self, method: str, params: Dict[str, Any]) -> Any:
        request = {"jsonrpc": "2.0", "id": str(next(self._ids)), "method": method, "params": params}
        if self.mode == "local":
            payload = verse_bridge.handle_rpc(request)
        else:
            payload = await self._post(request)
        if not isinstance(payload, dict):
            raise VerseServiceError("Verse service returned a non-object response")
        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else None
            raise VerseServiceError(message or "Verse service error")
        return payload.get("result")

    async def _post(self, request: Dict[str, Any]) -> Any:
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(self.url, json=request)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.url, json=request)
        except httpx.HTTPError as exc:
            raise VerseServiceError(f"Verse service transport error: {exc}") from exc
        if resp.status_code >= 400:
            raise VerseServiceError(f"Verse service HTTP error: {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise VerseServiceError("Verse service returned invalid JSON") from exc

    async def search_by_keywords(
        self, keywords: Sequence[str], translation: Optional[str] = None, limit: int = 5
    ) -> List[VerseCandidate]:
        if self.mode == "disabled":
            return []
        result = await self._call(
            "search_verses",
            {"keywords": list(keywords), "translation": translation or self.default_translation, "limit": limit},
        )
        return [_to_candidate(entry) for entry in result or [] if _is_verse(entry)]

    async def get_by_reference(self, ref: str, translation: Optional[str] = None) -> Optional[VerseCandidate]:
        if self.mode == "disabled":
            return None
        result = await self._call(
            "get_verse_by_reference",
            {"ref": ref, "translation": translation or self.default_translation},
        )
        return _to_candidate(result) if _is_verse(result) else None


def _is_verse(entry: Any) -> bool:
    return isinstance(entry, dict) and isinstance(entry.get("ref"), str) and isinstance(entry.get("text"), str)


def _to_candidate(entry: Dict[str, Any]) -> VerseCandidate:
    translation = entry.get("translation")
    return VerseCandidate(
        ref=entry["ref"],
        text=entry["text"],
        translation=translation if isinstance(translation, str) else None,
    )
