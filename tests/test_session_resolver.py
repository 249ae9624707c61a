"""Tests for session resolution and the auth service adapters."""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from postgate.adapters.auth_service import HttpxAuthServiceClient
from postgate.adapters.in_process_auth import InProcessAuthService
from postgate.domain.errors import UpstreamUnavailableError
from postgate.domain.sessions import RequestIdentity
from postgate.services.session_resolver import SessionResolver
from tests.conftest import FakeAuthServiceClient, session_payload

SIGNED_IN = RequestIdentity(cookie="postgate.session_token=abc")


def test_anonymous_identity_skips_the_auth_service() -> None:
    client = FakeAuthServiceClient(payload=session_payload())
    resolver = SessionResolver(auth_client=client)

    assert asyncio.run(resolver.resolve(RequestIdentity())) is None
    assert client.calls == []


def test_valid_payload_resolves_to_session() -> None:
    client = FakeAuthServiceClient(payload=session_payload(name="Grace"))
    resolver = SessionResolver(auth_client=client)

    session = asyncio.run(resolver.resolve(SIGNED_IN))

    assert session is not None
    assert session.user.name == "Grace"
    assert session.user.email_verified is True
    assert session.session.expires_at > session.session.created_at
    assert client.calls == [SIGNED_IN]


def test_null_payload_resolves_to_none() -> None:
    resolver = SessionResolver(auth_client=FakeAuthServiceClient(payload=None))

    assert asyncio.run(resolver.resolve(SIGNED_IN)) is None


def test_upstream_failure_degrades_to_anonymous() -> None:
    client = FakeAuthServiceClient(error=UpstreamUnavailableError("down"))
    resolver = SessionResolver(auth_client=client)

    assert asyncio.run(resolver.resolve(SIGNED_IN)) is None


@pytest.mark.parametrize(
    "payload",
    [
        {"user": {"id": "u"}},
        {"session": session_payload()["session"]},
        {"user": "nobody", "session": "none"},
    ],
)
def test_malformed_payload_degrades_to_anonymous(payload: dict[str, object]) -> None:
    resolver = SessionResolver(auth_client=FakeAuthServiceClient(payload=payload))

    assert asyncio.run(resolver.resolve(SIGNED_IN)) is None


def test_slow_auth_service_times_out() -> None:
    client = FakeAuthServiceClient(payload=session_payload(), delay_seconds=1.0)
    resolver = SessionResolver(auth_client=client, timeout_seconds=0.01)

    assert asyncio.run(resolver.resolve(SIGNED_IN)) is None


def test_http_client_forwards_identity_material() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=session_payload())

    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = HttpxAuthServiceClient(base_url="http://auth.test", http_client=async_client)
    identity = RequestIdentity(
        cookie="postgate.session_token=abc", headers={"user-agent": "pytest"}
    )

    payload = asyncio.run(client.get_session(identity))

    assert payload is not None
    assert payload["user"]["name"] == "Ada Lovelace"
    assert seen[0].url.path == "/api/auth/get-session"
    assert seen[0].headers["cookie"] == "postgate.session_token=abc"
    assert seen[0].headers["user-agent"] == "pytest"


def test_http_client_maps_null_body_to_none() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=None))
    client = HttpxAuthServiceClient(
        base_url="http://auth.test", http_client=httpx.AsyncClient(transport=transport)
    )

    assert asyncio.run(client.get_session(SIGNED_IN)) is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, content=b"<html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
def test_http_client_reports_bad_responses_as_upstream_errors(
    response: httpx.Response,
) -> None:
    transport = httpx.MockTransport(lambda request: response)
    client = HttpxAuthServiceClient(
        base_url="http://auth.test", http_client=httpx.AsyncClient(transport=transport)
    )

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(client.get_session(SIGNED_IN))


def test_http_client_reports_transport_errors_as_upstream_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = HttpxAuthServiceClient(
        base_url="http://auth.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(client.get_session(SIGNED_IN))


def test_in_process_service_round_trips_its_sessions() -> None:
    service = InProcessAuthService(cookie_name="sid")
    session = service.sign_in(name="Ada", email="ada@example.com")
    identity = RequestIdentity(cookie=f"theme=dark; sid={session.session.token}")

    resolved = asyncio.run(SessionResolver(auth_client=service).resolve(identity))

    assert resolved == session
    assert asyncio.run(service.get_session(RequestIdentity(cookie="sid=unknown"))) is None


def test_in_process_service_reuses_user_per_email() -> None:
    service = InProcessAuthService(cookie_name="sid")

    first = service.sign_in(name="Ada", email="ada@example.com")
    second = service.sign_in(name="Ada", email="ADA@example.com")

    assert first.user.id == second.user.id
    assert first.session.token != second.session.token


def test_in_process_service_expires_and_signs_out() -> None:
    now = datetime(2024, 1, 1, tzinfo=UTC)
    clock = {"now": now}
    service = InProcessAuthService(
        cookie_name="sid", ttl_seconds=60, clock=lambda: clock["now"]
    )
    expiring = service.sign_in(name="Ada", email="ada@example.com")
    revoked = service.sign_in(name="Ada", email="ada@example.com")

    service.sign_out(revoked.session.token or "")
    assert service.lookup(revoked.session.token or "") is None
    assert service.lookup(expiring.session.token or "") == expiring

    clock["now"] = now + timedelta(seconds=61)
    assert service.lookup(expiring.session.token or "") is None
