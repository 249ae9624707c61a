"""Request-scoped dependencies shared by the HTTP routers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request, status
from fastapi.responses import RedirectResponse

if TYPE_CHECKING:
    from postgate.containers import AppContainer
    from postgate.services.auth_gate import RedirectRequired
    from postgate.services.request_context import RequestContext


def get_container(request: Request) -> AppContainer:
    """Return the application container."""
    return request.app.state.container


def get_request_context(request: Request) -> RequestContext:
    """Return the context for this request, creating it on first use."""
    context: RequestContext | None = getattr(request.state, "request_context", None)
    if context is None:
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        context = get_container(request).request_context(request.headers, path=path)
        request.state.request_context = context
    return context


def redirect_response(decision: RedirectRequired) -> RedirectResponse:
    """Turn a gate decision into the response that ends rendering."""
    return RedirectResponse(
        decision.location, status_code=status.HTTP_307_TEMPORARY_REDIRECT
    )


def is_local_path(value: str | None) -> bool:
    """Return true for same-site absolute paths safe to redirect to."""
    return bool(value) and value.startswith("/") and not value.startswith("//")
