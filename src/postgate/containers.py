"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from postgate.adapters.auth_service import AuthServiceClient, HttpxAuthServiceClient
from postgate.adapters.in_process_auth import InProcessAuthService
from postgate.config import Settings, parse_forwarded_headers
from postgate.domain.sessions import RequestIdentity
from postgate.services.auth_gate import AuthGate
from postgate.services.posts import InMemoryPostStore, PostStore, seed_posts
from postgate.services.procedures import ProcedureRouter
from postgate.services.request_context import RequestContext
from postgate.services.session_resolver import SessionResolver


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    post_store: PostStore
    procedure_router: ProcedureRouter
    auth_client: AuthServiceClient
    session_resolver: SessionResolver
    auth_gate: AuthGate
    forwarded_headers: tuple[str, ...]
    close_resources: Callable[[], Awaitable[None]]
    in_process_auth: InProcessAuthService | None = None

    def identity_from(self, headers: Mapping[str, str]) -> RequestIdentity:
        """Capture the identity material of an incoming request."""
        return RequestIdentity.from_headers(headers, self.forwarded_headers)

    def request_context(
        self, headers: Mapping[str, str], path: str = "/"
    ) -> RequestContext:
        """Create a fresh context for one incoming request."""
        return RequestContext(
            identity=self.identity_from(headers),
            resolver=self.session_resolver,
            path=path,
        )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()  # type: ignore[call-arg]
    post_store = InMemoryPostStore.with_posts(seed_posts())
    procedure_router = ProcedureRouter(
        store=post_store, timezone=resolved_settings.server_timezone
    )
    in_process_auth: InProcessAuthService | None = None
    auth_client: AuthServiceClient
    if resolved_settings.auth_service_url is not None:
        http_auth_client = HttpxAuthServiceClient.create(
            str(resolved_settings.auth_service_url),
            timeout=resolved_settings.auth_timeout_seconds,
        )
        auth_client = http_auth_client

        async def close_resources() -> None:
            await http_auth_client.close()

    else:
        in_process_auth = InProcessAuthService(
            cookie_name=resolved_settings.session_cookie_name,
            ttl_seconds=resolved_settings.session_ttl_seconds,
        )
        auth_client = in_process_auth

        async def close_resources() -> None:
            return None

    session_resolver = SessionResolver(
        auth_client=auth_client,
        timeout_seconds=resolved_settings.auth_timeout_seconds,
    )
    auth_gate = AuthGate(
        login_path=resolved_settings.login_path,
        return_to_param=resolved_settings.return_to_param,
    )

    return AppContainer(
        settings=resolved_settings,
        post_store=post_store,
        procedure_router=procedure_router,
        auth_client=auth_client,
        session_resolver=session_resolver,
        auth_gate=auth_gate,
        forwarded_headers=parse_forwarded_headers(resolved_settings.forwarded_headers),
        close_resources=close_resources,
        in_process_auth=in_process_auth,
    )
