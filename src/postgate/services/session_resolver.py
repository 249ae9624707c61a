"""Session resolution against the auth service."""

import asyncio
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from postgate.adapters.auth_service import AuthServiceClient
from postgate.domain.errors import UpstreamUnavailableError
from postgate.domain.sessions import RequestIdentity, Session

_logger = logging.getLogger(__name__)


@dataclass
class SessionResolver:
    """Turns raw identity material into a trusted session, or None.

    Auth service failures, timeouts and malformed payloads all resolve to
    None so that a flaky backend degrades to an anonymous caller.
    """

    auth_client: AuthServiceClient
    timeout_seconds: float = 5.0

    async def resolve(self, identity: RequestIdentity) -> Session | None:
        """Resolve the session for an identity."""
        if identity.is_anonymous:
            return None
        try:
            async with asyncio.timeout(self.timeout_seconds):
                payload = await self.auth_client.get_session(identity)
        except TimeoutError:
            _logger.warning(
                "Session resolution timed out after %ss", self.timeout_seconds
            )
            return None
        except UpstreamUnavailableError as exc:
            _logger.warning("Session resolution failed: %s", exc)
            return None
        if payload is None:
            return None
        try:
            return Session.model_validate(payload)
        except ValidationError as exc:
            _logger.warning(
                "Auth service returned a malformed session: %s errors",
                exc.error_count(),
            )
            return None
