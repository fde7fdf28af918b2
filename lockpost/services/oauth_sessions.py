"""
OAuth PKCE session storage in Redis with signed serialization.
Replaces a process-local map: every API instance sees the same sessions, and
entries expire on their own after oauth_session_ttl.
"""
from typing import Any
from uuid import uuid4

import redis
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from lockpost.core.config import settings


class OAuthSessionStore:
    def __init__(self, client: redis.Redis | None = None) -> None:
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.serializer = URLSafeTimedSerializer(settings.session_secret, salt="oauth-session")
        self.ttl = settings.oauth_session_ttl

    def _key(self, session_id: str) -> str:
        return f"lockpost:oauth:{session_id}"

    def create(self, verifier: str) -> str:
        """Store PKCE verifier; returns session id used as OAuth `state`."""
        session_id = str(uuid4())
        signed = self.serializer.dumps({"verifier": verifier})
        self.client.setex(self._key(session_id), self.ttl, signed)
        return session_id

    def pop(self, session_id: str) -> dict[str, Any] | None:
        """Atomic fetch-and-delete (GETDEL): a state redeems once. None if missing, expired or tampered."""
        raw = self.client.getdel(self._key(session_id))
        if not raw:
            return None
        try:
            data = self.serializer.loads(raw, max_age=self.ttl)
        except (BadSignature, SignatureExpired):
            return None
        return data if isinstance(data, dict) else None
