# Session store and session binding for the OIDC callback.
# Created: 2026-10-19

from __future__ import annotations

import logging
import secrets
from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from oidc_rp.callback.errors import ResponseValidationFailed
from oidc_rp.callback.models import AuthResponse, Session

logger = logging.getLogger(__name__)

ClaimsMapper = Callable[[dict[str, Any]], str]


def web_id_from_claims(claims: dict[str, Any]) -> str:
    """Derive the user id from ID token claims.

    Prefers an explicit ``webid`` claim, falls back to ``sub``.
    """
    user_id = claims.get("webid") or claims.get("sub")
    if not user_id:
        raise ValueError("ID token claims carry neither webid nor sub")
    return str(user_id)


def bind_session(
    session: Session,
    auth_response: AuthResponse,
    claims_mapper: ClaimsMapper = web_id_from_claims,
) -> None:
    """Record the authenticated identity and tokens on *session*.

    All values are computed before the first write and ``identified`` is set
    last, so a session is never flagged identified without its user id and
    tokens.
    """
    access_token = auth_response.params.get("access_token")
    refresh_token = auth_response.params.get("refresh_token")
    if not access_token:
        raise ResponseValidationFailed("Token response carries no access_token")
    if not refresh_token:
        raise ResponseValidationFailed("Token response carries no refresh_token")

    try:
        user_id = claims_mapper(auth_response.claims)
    except (ValueError, KeyError, TypeError) as exc:
        raise ResponseValidationFailed(
            f"Could not derive user id from claims: {exc}", cause=exc
        ) from exc

    session.access_token = access_token
    session.refresh_token = refresh_token
    session.user_id = user_id
    session.identified = True
    logger.info("Session %s identified as %s", session.session_id[:8], user_id)


class SessionStore:
    """In-memory session store keyed by the session cookie value.

    Sessions idle longer than *ttl* are dropped on their next lookup and by a
    sweep that runs from ``create()`` at most every *sweep_interval*. Beyond
    *max_sessions* the least recently seen session is evicted.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=4),
        max_sessions: int = 10_000,
        sweep_interval: timedelta = timedelta(minutes=5),
    ):
        self.ttl = ttl
        self.max_sessions = max_sessions
        self.sweep_interval = sweep_interval
        self._sessions: dict[str, Session] = {}
        # Ordered oldest -> most recently seen
        self._last_seen: OrderedDict[str, datetime] = OrderedDict()
        self._last_sweep = datetime.now(UTC)

    def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        now = datetime.now(UTC)
        if now - self._last_seen[session_id] > self.ttl:
            self.delete(session_id)
            return None
        self._last_seen[session_id] = now
        self._last_seen.move_to_end(session_id)
        return session

    def get_or_create(self, session_id: str | None) -> Session:
        session = self.get(session_id)
        if session is None:
            session = self.create()
        return session

    def create(self) -> Session:
        now = datetime.now(UTC)
        if now - self._last_sweep >= self.sweep_interval:
            self.cleanup_expired()

        session = Session(session_id=secrets.token_urlsafe(32))
        self._sessions[session.session_id] = session
        self._last_seen[session.session_id] = now

        while len(self._sessions) > self.max_sessions:
            oldest = next(iter(self._last_seen))
            self.delete(oldest)
            logger.debug("Evicted session %s (store full)", oldest[:8])
        return session

    def delete(self, session_id: str) -> bool:
        self._last_seen.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    def cleanup_expired(self) -> int:
        """Drop idle sessions, return how many were removed."""
        now = datetime.now(UTC)
        self._last_sweep = now
        expired = [sid for sid, seen in self._last_seen.items() if now - seen > self.ttl]
        for sid in expired:
            self.delete(sid)
        if expired:
            logger.debug("Dropped %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
