"""
X (Twitter) API v2 client wrapper using httpx sync client.
Provides sync interface for Celery workers (no event loop issues).
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import pybreaker

from lockpost.core.config import settings
from lockpost.services.circuit_breaker import get_circuit_breaker
from lockpost.services.social.errors import (
    PermanentSocialError,
    SocialAPIError,
    TransientSocialError,
    error_for_status,
)
from lockpost.utils.metrics import social_request_duration_seconds, social_requests_total


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SocialUser:
    id: str
    handle: str


@dataclass(frozen=True)
class Mention:
    post_id: str
    author_id: str
    handle: str | None
    text: str
    created_at: str | None


@dataclass
class MentionBatch:
    mentions: list[Mention] = field(default_factory=list)
    newest_id: str | None = None


class SocialClient(Protocol):
    def post_reply(self, target_id: str, text: str) -> str: ...

    def send_direct_message(self, user_id: str, text: str) -> str: ...

    def fetch_mentions(self, since_id: str | None = None) -> MentionBatch: ...

    def get_me(self, access_token: str) -> SocialUser: ...

    def exchange_code(self, code: str, verifier: str) -> dict: ...

    def close(self) -> None: ...


class XClient:
    """
    Sync X API client for Celery workers and the API layer.
    Every failure surfaces as a SocialAPIError subclass carrying retry classification.
    """

    def __init__(
        self,
        access_token: str | None = None,
        http_client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self._token = access_token if access_token is not None else settings.x_user_access_token
        self._base_url = settings.x_api_base.rstrip("/")
        self._client = http_client
        self._breaker = breaker or get_circuit_breaker("social_api", exclude=[PermanentSocialError])

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.x_request_timeout)
        return self._client

    def _record_request(self, method: str, status: str, duration: float) -> None:
        social_requests_total.labels(method=method, status=status).inc()
        social_request_duration_seconds.labels(method=method).observe(duration)

    def _request(
        self,
        name: str,
        http_method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        token: str | None = None,
    ) -> dict:
        start = time.time()
        try:
            result = self._breaker.call(self._send, http_method, path, json, params, token or self._token)
            self._record_request(name, "success", time.time() - start)
            return result
        except pybreaker.CircuitBreakerError as e:
            self._record_request(name, "circuit_open", time.time() - start)
            raise TransientSocialError(f"{name}: circuit open") from e
        except SocialAPIError as e:
            self._record_request(name, e.failure_type.value, time.time() - start)
            logger.warning(
                f"X API error: {name} -> {e.status_code}: {e}",
                extra={"error": str(e), "status_code": e.status_code},
            )
            raise

    def _send(self, http_method: str, path: str, json: dict | None, params: dict | None, token: str) -> dict:
        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        try:
            resp = self.client.request(http_method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise TransientSocialError(f"transport error: {e}") from e

        if resp.status_code >= 400:
            try:
                detail = resp.json()
            except ValueError:
                detail = {"body": resp.text[:500]}
            retry_after = _retry_after_seconds(resp)
            if not isinstance(detail, dict):
                detail = {"body": detail}
            message = detail.get("detail") or detail.get("title") or f"HTTP {resp.status_code}"
            raise error_for_status(resp.status_code, message, detail=detail, retry_after=retry_after)
        return resp.json()

    def post_reply(self, target_id: str, text: str) -> str:
        """Reply to a post. Returns id of the reply."""
        data = self._request(
            "post_reply",
            "POST",
            "/2/tweets",
            json={"text": text, "reply": {"in_reply_to_tweet_id": target_id}},
        )
        return data["data"]["id"]

    def send_direct_message(self, user_id: str, text: str) -> str:
        """Send DM. Returns DM event id."""
        data = self._request(
            "send_direct_message",
            "POST",
            f"/2/dm_conversations/with/{user_id}/messages",
            json={"text": text},
        )
        return data["dm_event_id"]

    def fetch_mentions(self, since_id: str | None = None) -> MentionBatch:
        params = {
            "max_results": 20,
            "tweet.fields": "created_at,author_id,text",
            "expansions": "author_id",
            "user.fields": "username,name",
        }
        if since_id:
            params["since_id"] = since_id
        data = self._request(
            "fetch_mentions",
            "GET",
            f"/2/users/{settings.x_bot_user_id}/mentions",
            params=params,
        )
        users = {u["id"]: u.get("username") for u in (data.get("includes") or {}).get("users", [])}
        mentions = [
            Mention(
                post_id=t["id"],
                author_id=t.get("author_id", ""),
                handle=users.get(t.get("author_id")),
                text=t.get("text", ""),
                created_at=t.get("created_at"),
            )
            for t in data.get("data") or []
        ]
        return MentionBatch(mentions=mentions, newest_id=(data.get("meta") or {}).get("newest_id"))

    def get_me(self, access_token: str) -> SocialUser:
        """Resolve the user behind an OAuth2 access token."""
        data = self._request("get_me", "GET", "/2/users/me", token=access_token)
        return SocialUser(id=data["data"]["id"], handle=data["data"]["username"])

    def exchange_code(self, code: str, verifier: str) -> dict:
        """OAuth2 PKCE: authorization code -> token set."""
        try:
            resp = self.client.post(
                f"{self._base_url}/2/oauth2/token",
                data={
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": settings.x_redirect_uri,
                    "code_verifier": verifier,
                },
                auth=(settings.x_client_id, settings.x_client_secret),
            )
        except httpx.HTTPError as e:
            raise TransientSocialError(f"token exchange transport error: {e}") from e
        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, "token exchange failed", detail={"body": resp.text[:500]})
        return resp.json()

    def close(self) -> None:
        """Close httpx client."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Failed to close client", extra={"error": str(e)})
            finally:
                self._client = None


def _retry_after_seconds(resp: httpx.Response) -> float | None:
    raw = resp.headers.get("retry-after")
    if raw:
        try:
            return float(raw)
        except ValueError:
            return None
    reset = resp.headers.get("x-rate-limit-reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            return None
    return None
