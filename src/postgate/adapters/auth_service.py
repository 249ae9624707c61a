"""Auth service client adapter."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from postgate.domain.errors import UpstreamUnavailableError
from postgate.domain.sessions import RequestIdentity


class AuthServiceClient(Protocol):
    """Interface for looking up the session behind a caller's identity."""

    async def get_session(self, identity: RequestIdentity) -> dict[str, object] | None:
        """Return the raw session payload, or None when there is no session."""


@dataclass
class HttpxAuthServiceClient(AuthServiceClient):
    """Auth service client that forwards identity material over HTTP."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 5.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 5.0) -> "HttpxAuthServiceClient":
        """Create an auth client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def get_session(self, identity: RequestIdentity) -> dict[str, object] | None:
        """Call the auth service's get-session endpoint."""
        url = f"{self.base_url}/api/auth/get-session"
        try:
            response = await self.http_client.get(
                url, headers=identity.outgoing_headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Auth service call failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError("Auth service returned invalid JSON") from exc
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError("Auth service returned a non-object body")
        return payload

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
