"""In-process demo auth service keyed by a session cookie."""

from __future__ import annotations

import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from http.cookies import CookieError, SimpleCookie
from uuid import uuid4

from postgate.adapters.auth_service import AuthServiceClient
from postgate.domain.sessions import RequestIdentity, Session, SessionInfo, SessionUser


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InProcessAuthService(AuthServiceClient):
    """Issues and looks up sessions without leaving the process."""

    cookie_name: str
    ttl_seconds: int = 7 * 24 * 3600
    clock: Callable[[], datetime] = _utcnow
    _users: dict[str, SessionUser] = field(default_factory=dict)
    _sessions: dict[str, Session] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def sign_in(self, name: str, email: str) -> Session:
        """Create a session for the user with this email, creating the user if new."""
        now = self.clock()
        with self._lock:
            user = self._users.get(email.lower())
            if user is None:
                user = SessionUser(
                    id=uuid4().hex,
                    name=name,
                    email=email,
                    created_at=now,
                    updated_at=now,
                )
                self._users[email.lower()] = user
            token = secrets.token_urlsafe(32)
            session = Session(
                user=user,
                session=SessionInfo(
                    id=uuid4().hex,
                    user_id=user.id,
                    token=token,
                    created_at=now,
                    updated_at=now,
                    expires_at=now + timedelta(seconds=self.ttl_seconds),
                ),
            )
            self._sessions[token] = session
        return session

    def sign_out(self, token: str) -> None:
        """Invalidate a session token."""
        with self._lock:
            self._sessions.pop(token, None)

    def lookup(self, token: str) -> Session | None:
        """Return the live session for a token, dropping it once expired."""
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.session.expires_at <= self.clock():
                self._sessions.pop(token, None)
                return None
            return session

    def token_from(self, identity: RequestIdentity) -> str | None:
        """Extract this service's session token from the cookie header."""
        if not identity.cookie:
            return None
        cookies = SimpleCookie()
        try:
            cookies.load(identity.cookie)
        except CookieError:
            return None
        morsel = cookies.get(self.cookie_name)
        return morsel.value if morsel is not None and morsel.value else None

    async def get_session(self, identity: RequestIdentity) -> dict[str, object] | None:
        """Return the session payload for the caller's cookie, if any."""
        token = self.token_from(identity)
        if token is None:
            return None
        session = self.lookup(token)
        if session is None:
            return None
        return session.model_dump(by_alias=True, mode="json")
