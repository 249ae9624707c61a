"""Domain models for caller identity and resolved sessions."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_FORWARDED_HEADERS = ("cookie", "user-agent", "accept")


class _AuthPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class SessionUser(_AuthPayload):
    """User record returned by the auth service."""

    id: str
    name: str
    email: str
    email_verified: bool = False
    image: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class SessionInfo(_AuthPayload):
    """Session metadata returned by the auth service."""

    id: str
    user_id: str | None = None
    token: str | None = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime


class Session(_AuthPayload):
    """A resolved session: user and session metadata, always together."""

    user: SessionUser
    session: SessionInfo


@dataclass(frozen=True)
class RequestIdentity:
    """Raw identity material supplied by a caller for one request."""

    cookie: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, str],
        allowed: tuple[str, ...] = DEFAULT_FORWARDED_HEADERS,
    ) -> "RequestIdentity":
        """Capture the cookie header and the allow-listed headers."""
        lowered = {key.lower(): value for key, value in headers.items()}
        kept = {
            name: lowered[name]
            for name in allowed
            if name != "cookie" and name in lowered
        }
        return cls(cookie=lowered.get("cookie") or None, headers=kept)

    @property
    def is_anonymous(self) -> bool:
        """Return true when there is no cookie material to resolve."""
        return not self.cookie

    def cache_key(self) -> tuple[str | None, tuple[tuple[str, str], ...]]:
        """Return a hashable key identifying this identity material."""
        return self.cookie, tuple(sorted(self.headers.items()))

    def outgoing_headers(self) -> dict[str, str]:
        """Return headers to attach to calls made on the caller's behalf."""
        outgoing = dict(self.headers)
        if self.cookie:
            outgoing["cookie"] = self.cookie
        return outgoing
