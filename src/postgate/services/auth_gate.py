"""Auth gate used by page rendering code."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from postgate.domain.sessions import Session
from postgate.services.request_context import RequestContext


@dataclass(frozen=True)
class Authenticated:
    """The caller has a session; rendering may proceed."""

    session: Session


@dataclass(frozen=True)
class RedirectRequired:
    """The caller has no session; rendering must stop and redirect."""

    location: str


AuthDecision = Authenticated | RedirectRequired


@dataclass
class AuthGate:
    """Decides whether a view may render for the current caller.

    The gate never performs the redirect itself; it returns a decision and the
    page layer terminates rendering.
    """

    login_path: str = "/login"
    return_to_param: str = "redirect"

    async def require_session(
        self,
        context: RequestContext,
        redirect_target: str | None = None,
        return_to: str | None = None,
    ) -> AuthDecision:
        """Return the session, or where to send a caller who has none."""
        session = await context.get_session()
        if session is not None:
            return Authenticated(session=session)
        target = redirect_target or self.login_path
        destination = return_to or context.path
        separator = "&" if "?" in target else "?"
        query = urlencode({self.return_to_param: destination})
        return RedirectRequired(location=f"{target}{separator}{query}")

    async def get_optional_session(self, context: RequestContext) -> Session | None:
        """Return the session if there is one, without redirecting."""
        return await context.get_session()
