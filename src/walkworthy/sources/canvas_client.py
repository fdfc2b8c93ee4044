"""Canvas planner adapter: credential refresh, pagination and item normalization."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import httpx

from walkworthy.config.settings import Settings
from walkworthy.errors import CanvasAuthError, CanvasRequestError, ConfigurationError, MalformedSecretError
from walkworthy.heuristics import infer_kind
from walkworthy.models import CanvasLinkRecord, WorkloadItem
from walkworthy.store.secrets import SecretStore
from walkworthy.utils.time import parse_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_DAYS = 14
EXPIRY_MARGIN = timedelta(seconds=60)
DEFAULT_EXPIRES_IN = 3600
PAGE_SIZE = 50


@dataclass(frozen=True)
class TokenSecret:
    access_token: str
    refresh_token: str
    obtained_at: str
    expires_in_seconds: int

    def expires_at(self) -> Optional[datetime]:
        obtained = parse_iso(self.obtained_at)
        if obtained is None:
            return None
        return obtained + timedelta(seconds=self.expires_in_seconds)

    def to_json(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "obtainedAt": self.obtained_at,
            "expiresInSeconds": self.expires_in_seconds,
        }


def parse_token_secret(raw: Any) -> Tuple[Optional[TokenSecret], bool]:
    """Parse a stored token secret; valid only when a refresh token is present."""

    if not isinstance(raw, dict):
        return None, False
    access = raw.get("accessToken")
    refresh = raw.get("refreshToken")
    expires_in = raw.get("expiresInSeconds")
    obtained = raw.get("obtainedAt")
    secret = TokenSecret(
        access_token=access if isinstance(access, str) else "",
        refresh_token=refresh if isinstance(refresh, str) else "",
        obtained_at=obtained if isinstance(obtained, str) else "",
        expires_in_seconds=expires_in if isinstance(expires_in, int) and not isinstance(expires_in, bool) else 0,
    )
    return secret, bool(secret.refresh_token.strip())


def normalize_token_secret(secret: TokenSecret) -> Tuple[TokenSecret, bool]:
    """Whitespace-trim both tokens; report whether anything changed."""

    access = secret.access_token.strip()
    refresh = secret.refresh_token.strip()
    if access == secret.access_token and refresh == secret.refresh_token:
        return secret, False
    return replace(secret, access_token=access, refresh_token=refresh), True


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def normalize_planner_item(item: Dict[str, Any]) -> WorkloadItem:
    plannable = item.get("plannable") if isinstance(item.get("plannable"), dict) else {}
    identifier = item.get("id") or plannable.get("id") or uuid.uuid4().hex
    course_id = item.get("course_id")
    title = plannable.get("title") or item.get("title")
    due_at = item.get("due_at") or plannable.get("due_at") or item.get("todo_date") or plannable.get("todo_date")
    provider_type = item.get("plannable_type") or plannable.get("plannable_type") or item.get("context_type")
    html_url = plannable.get("html_url") or item.get("html_url")
    return WorkloadItem(
        id=str(identifier),
        kind=infer_kind(provider_type if isinstance(provider_type, str) else None),
        title=title if isinstance(title, str) else None,
        course_id=str(course_id) if course_id else None,
        due_at=due_at if isinstance(due_at, str) else None,
        points=_to_number(plannable.get("points_possible")),
        html_url=html_url if isinstance(html_url, str) else None,
    )


class CanvasClient:
    def __init__(
        self,
        secrets: SecretStore,
        *,
        client_id: Optional[str],
        client_secret: Optional[str],
        lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secrets = secrets
        self.client_id = client_id
        self.client_secret = client_secret
        self.lookahead_days = lookahead_days
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, secrets: SecretStore, **kwargs: Any) -> "CanvasClient":
        client_secret = settings.canvas_client_secret.get_secret_value() if settings.canvas_client_secret else None
        return cls(
            secrets,
            client_id=settings.canvas_client_id,
            client_secret=client_secret,
            lookahead_days=settings.lookahead_days,
            timeout=settings.http_timeout_seconds,
            **kwargs,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def fetch_workload_items(self, link: CanvasLinkRecord) -> List[WorkloadItem]:
        async with self._client() as client:
            access_token = await self._ensure_access_token(client, link)
            try:
                return await self._fetch_pages(client, link, access_token)
            except CanvasAuthError:
                logger.info("Canvas rejected access token; refreshing once and retrying")
            refreshed = await self._refresh_access_token(client, link)
            return await self._fetch_pages(client, link, refreshed.access_token)

    async def _fetch_pages(self, client: httpx.AsyncClient, link: CanvasLinkRecord, access_token: str) -> List[WorkloadItem]:
        now = utcnow()
        params = {
            "start_date": to_iso(now),
            "end_date": to_iso(now + timedelta(days=self.lookahead_days)),
            "per_page": str(PAGE_SIZE),
        }
        url: Optional[str] = urljoin(link.canvas_base_url, "/api/v1/planner/items")
        headers = {"Authorization": f"Bearer {access_token}"}
        items: List[WorkloadItem] = []

        while url:
            resp = await client.get(url, params=params, headers=headers)
            if resp.status_code == 401:
                raise CanvasAuthError("Canvas planner request unauthorized")
            if resp.status_code >= 400:
                raise CanvasRequestError(f"Canvas planner request failed: {resp.status_code} {resp.text[:200]}")
            data = resp.json()
            for raw in data if isinstance(data, list) else []:
                if isinstance(raw, dict):
                    items.append(normalize_planner_item(raw))
            url = resp.links.get("next", {}).get("url")
            # the next link already carries the query string
            params = None

        logger.debug("Fetched %d planner items from %s", len(items), link.canvas_base_url)
        return items

    async def _load_token_secret(self, link: CanvasLinkRecord) -> TokenSecret:
        secret, valid = parse_token_secret(await self.secrets.get_json(link.refresh_secret_ref))
        if not valid or secret is None:
            raise MalformedSecretError(f"Stored Canvas credential {link.refresh_secret_ref} has no refresh token")
        secret, changed = normalize_token_secret(secret)
        if changed:
            await self.secrets.put_json(link.refresh_secret_ref, secret.to_json())
        return secret

    async def _ensure_access_token(self, client: httpx.AsyncClient, link: CanvasLinkRecord) -> str:
        secret = await self._load_token_secret(link)
        expires_at = secret.expires_at()
        if secret.access_token and expires_at is not None and expires_at - EXPIRY_MARGIN > utcnow():
            return secret.access_token
        refreshed = await self._refresh_access_token(client, link)
        return refreshed.access_token

    async def _refresh_access_token(self, client: httpx.AsyncClient, link: CanvasLinkRecord) -> TokenSecret:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Canvas OAuth client id/secret are not configured")
        current = await self._load_token_secret(link)
        resp = await client.post(
            urljoin(link.canvas_base_url, "/login/oauth2/token"),
            data={
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": current.refresh_token,
            },
        )
        if resp.status_code >= 400:
            logger.error("Canvas token refresh failed with status %s", resp.status_code)
            raise CanvasAuthError(f"Unable to refresh Canvas access token: {resp.status_code}")

        payload = resp.json()
        expires_in = payload.get("expires_in")
        updated, _ = normalize_token_secret(
            TokenSecret(
                access_token=str(payload.get("access_token") or ""),
                refresh_token=str(payload.get("refresh_token") or current.refresh_token),
                obtained_at=to_iso(utcnow()),
                expires_in_seconds=(
                    expires_in if isinstance(expires_in, int) else current.expires_in_seconds or DEFAULT_EXPIRES_IN
                ),
            )
        )
        if not updated.access_token:
            raise CanvasAuthError("Canvas token endpoint returned no access token")
        await self.secrets.put_json(link.refresh_secret_ref, updated.to_json())
        return updated
