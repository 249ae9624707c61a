"""Request-scoped context carrying the caller's identity and session slot."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum

from postgate.domain.sessions import RequestIdentity, Session
from postgate.services.procedures import ProcedureContext
from postgate.services.session_resolver import SessionResolver

_IdentityKey = tuple[str | None, tuple[tuple[str, str], ...]]


class SessionState(StrEnum):
    UNRESOLVED = "unresolved"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass
class RequestContext:
    """Everything one rendering request knows about its caller.

    A context is built per request and never shared. Each distinct identity is
    resolved at most once; concurrent callers within the request wait for the
    first resolution instead of starting another one.
    """

    identity: RequestIdentity
    resolver: SessionResolver
    path: str = "/"
    _resolved: dict[_IdentityKey, Session | None] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def state(self) -> SessionState:
        """Return where the request's own identity is in its resolution."""
        key = self.identity.cache_key()
        if key not in self._resolved:
            return SessionState.UNRESOLVED
        if self._resolved[key] is None:
            return SessionState.ANONYMOUS
        return SessionState.AUTHENTICATED

    def preload(self, session: Session | None) -> None:
        """Fill the request's session slot without calling the resolver."""
        self._resolved[self.identity.cache_key()] = session

    async def get_session(self) -> Session | None:
        """Return the session for the request's own identity."""
        return await self.session_for(self.identity)

    async def session_for(self, identity: RequestIdentity) -> Session | None:
        """Return the session for an identity, resolving it at most once."""
        key = identity.cache_key()
        if key in self._resolved:
            return self._resolved[key]
        async with self._lock:
            if key not in self._resolved:
                self._resolved[key] = await self.resolver.resolve(identity)
            return self._resolved[key]

    async def procedure_context(self) -> ProcedureContext:
        """Return the procedure context for calls made on the caller's behalf."""
        return ProcedureContext(session=await self.get_session())
