"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from postgate.adapters.auth_service import AuthServiceClient
from postgate.adapters.in_process_auth import InProcessAuthService
from postgate.config import Settings, parse_forwarded_headers
from postgate.containers import AppContainer
from postgate.domain.sessions import RequestIdentity, Session
from postgate.services.auth_gate import AuthGate
from postgate.services.posts import InMemoryPostStore, PostStore, seed_posts
from postgate.services.procedures import ProcedureRouter
from postgate.services.session_resolver import SessionResolver


def session_payload(
    name: str = "Ada Lovelace", email: str = "ada@example.com"
) -> dict[str, object]:
    """Build a session payload shaped like the auth service's response."""
    now = datetime(2024, 2, 1, 12, 0, tzinfo=UTC)
    return {
        "user": {
            "id": "user-1",
            "name": name,
            "email": email,
            "emailVerified": True,
            "image": None,
            "createdAt": now.isoformat(),
            "updatedAt": now.isoformat(),
        },
        "session": {
            "id": "session-1",
            "userId": "user-1",
            "token": "token-1",
            "createdAt": now.isoformat(),
            "updatedAt": now.isoformat(),
            "expiresAt": (now + timedelta(days=7)).isoformat(),
        },
    }


def make_session(name: str = "Ada Lovelace") -> Session:
    return Session.model_validate(session_payload(name=name))


@dataclass
class FakeAuthServiceClient(AuthServiceClient):
    """Fake auth service that records every lookup."""

    payload: dict[str, object] | None = None
    error: Exception | None = None
    delay_seconds: float = 0.0
    calls: list[RequestIdentity] = field(default_factory=list)

    async def get_session(self, identity: RequestIdentity) -> dict[str, object] | None:
        self.calls.append(identity)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.payload


def build_test_container(
    settings: Settings,
    auth_client: AuthServiceClient,
    post_store: PostStore | None = None,
) -> AppContainer:
    """Wire a container around test doubles."""
    store = post_store or InMemoryPostStore.with_posts(seed_posts())

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        post_store=store,
        procedure_router=ProcedureRouter(store=store, timezone=settings.server_timezone),
        auth_client=auth_client,
        session_resolver=SessionResolver(
            auth_client=auth_client,
            timeout_seconds=settings.auth_timeout_seconds,
        ),
        auth_gate=AuthGate(
            login_path=settings.login_path,
            return_to_param=settings.return_to_param,
        ),
        forwarded_headers=parse_forwarded_headers(settings.forwarded_headers),
        close_resources=close_resources,
        in_process_auth=(
            auth_client if isinstance(auth_client, InProcessAuthService) else None
        ),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(server_url="http://testserver", environment="local")


@pytest.fixture
def post_store() -> InMemoryPostStore:
    return InMemoryPostStore.with_posts(seed_posts())


@pytest.fixture
def router(post_store: InMemoryPostStore) -> ProcedureRouter:
    return ProcedureRouter(store=post_store)


@pytest.fixture
def auth_service(settings: Settings) -> InProcessAuthService:
    return InProcessAuthService(cookie_name=settings.session_cookie_name)


@pytest.fixture
def fake_auth_client() -> FakeAuthServiceClient:
    return FakeAuthServiceClient(payload=session_payload())


@pytest.fixture
def container(
    settings: Settings,
    auth_service: InProcessAuthService,
    post_store: InMemoryPostStore,
) -> AppContainer:
    return build_test_container(settings, auth_service, post_store)
