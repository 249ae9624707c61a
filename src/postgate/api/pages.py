"""Server-rendered pages built on the auth gate and the procedure router."""

import json
import logging
from html import escape

from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse, Response

from postgate.api.deps import (
    get_container,
    get_request_context,
    is_local_path,
    redirect_response,
)
from postgate.containers import AppContainer
from postgate.domain.errors import NotFoundError, ProcedureError
from postgate.domain.posts import Post
from postgate.domain.sessions import Session
from postgate.services.auth_gate import RedirectRequired
from postgate.services.request_context import RequestContext

router = APIRouter(tags=["pages"])

_logger = logging.getLogger(__name__)


@router.get("/", response_class=HTMLResponse)
async def home(
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> HTMLResponse:
    """Landing page; renders differently for signed-in callers."""
    session = await container.auth_gate.get_optional_session(context)
    caller = container.procedure_router.create_caller(await context.procedure_context())
    body = (
        f"<p>API status: <code>{escape(caller.health_check())}</code></p>"
        '<ul><li><a href="/ssr-examples">Server-rendered examples</a></li>'
        '<li><a href="/dashboard">Dashboard (protected)</a></li></ul>'
    )
    return _page("Home", body, session)


@router.get("/login", response_class=HTMLResponse)
async def login(
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
    redirect: str | None = None,
) -> HTMLResponse:
    """Demo sign-in form; returns the caller to where they came from."""
    session = await container.auth_gate.get_optional_session(context)
    destination = redirect if is_local_path(redirect) else "/dashboard"
    script_value = json.dumps(destination).replace("<", "\\u003c")
    body = _LOGIN_FORM.replace("\"__DESTINATION__\"", script_value)
    return _page("Sign in", body, session)


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> Response:
    """Protected dashboard that fetches private data on the server."""
    decision = await container.auth_gate.require_session(context)
    if isinstance(decision, RedirectRequired):
        return redirect_response(decision)
    session = decision.session
    caller = container.procedure_router.create_caller(await context.procedure_context())
    try:
        private = caller.private_data()
    except ProcedureError as exc:
        return _failure_page(exc, session)
    user = session.user
    body = (
        f"<p>Welcome back, {escape(user.name)}.</p>"
        "<dl>"
        f"<dt>Email</dt><dd>{escape(user.email)}</dd>"
        f"<dt>User ID</dt><dd>{escape(user.id)}</dd>"
        f"<dt>Session ID</dt><dd>{escape(session.session.id)}</dd>"
        "</dl>"
        f"<p>Protected data: {escape(str(private['message']))}</p>"
        '<p><a href="/dashboard/profile">View profile</a></p>'
    )
    return _page("Dashboard", body, session)


@router.get("/dashboard/profile", response_class=HTMLResponse)
async def profile(
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> Response:
    """Protected profile page showing user and session metadata."""
    decision = await container.auth_gate.require_session(context)
    if isinstance(decision, RedirectRequired):
        return redirect_response(decision)
    session = decision.session
    meta = session.session
    body = (
        "<dl>"
        f"<dt>Name</dt><dd>{escape(session.user.name)}</dd>"
        f"<dt>Email</dt><dd>{escape(session.user.email)}</dd>"
        f"<dt>Member since</dt><dd>{session.user.created_at:%B %d, %Y}</dd>"
        f"<dt>Session created</dt><dd>{meta.created_at.isoformat()}</dd>"
        f"<dt>Session expires</dt><dd>{meta.expires_at.isoformat()}</dd>"
        "</dl>"
    )
    return _page("Profile", body, session)


@router.get("/ssr-examples", response_class=HTMLResponse)
async def ssr_examples(
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
    author: str | None = None,
) -> Response:
    """Post list, optionally filtered by author, plus the server clock."""
    session = await container.auth_gate.get_optional_session(context)
    caller = container.procedure_router.create_caller(await context.procedure_context())
    try:
        posts = caller.posts_by_author(author) if author else caller.posts_list()
        server_time = caller.server_time()
    except ProcedureError as exc:
        return _failure_page(exc, session)
    heading = f"Posts by “{escape(author)}”" if author else "All posts"
    body = (
        f"<h2>{heading}</h2>{_post_list(posts)}"
        f"<p>Server time: {server_time['timestamp']} ({escape(str(server_time['timezone']))})</p>"
        '<p><a href="/ssr-examples/hybrid">Hybrid example</a></p>'
    )
    return _page("Server-rendered examples", body, session)


@router.get("/ssr-examples/post/{post_id}", response_class=HTMLResponse)
async def post_detail(
    post_id: str,
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> Response:
    """Single post page; a missing post renders a not-found page."""
    session = await container.auth_gate.get_optional_session(context)
    caller = container.procedure_router.create_caller(await context.procedure_context())
    try:
        post = caller.post_by_id(post_id)
    except ProcedureError as exc:
        return _failure_page(exc, session)
    body = (
        f"<article><h2>{escape(post.title)}</h2>"
        f"<p>By <strong>{escape(post.author)}</strong> · "
        f"{post.created_at:%B %d, %Y}</p>"
        f"<p>{escape(post.content)}</p></article>"
        '<p><a href="/ssr-examples">Back to examples</a></p>'
    )
    return _page(post.title, body, session)


@router.get("/ssr-examples/hybrid", response_class=HTMLResponse)
async def hybrid(
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> Response:
    """Server-rendered list with a client-side form that calls posts.create."""
    session = await container.auth_gate.get_optional_session(context)
    caller = container.procedure_router.create_caller(await context.procedure_context())
    try:
        posts = caller.posts_list()
    except ProcedureError as exc:
        return _failure_page(exc, session)
    body = f"<h2>Posts (rendered on the server)</h2>{_post_list(posts)}{_CREATE_FORM}"
    return _page("Hybrid example", body, session)


def _post_list(posts: list[Post]) -> str:
    if not posts:
        return "<p>No posts found.</p>"
    items = "".join(
        f'<li><a href="/ssr-examples/post/{escape(post.id, quote=True)}">'
        f"{escape(post.title)}</a> by {escape(post.author)}</li>"
        for post in posts
    )
    return f"<ul>{items}</ul>"


def _failure_page(exc: ProcedureError, session: Session | None) -> HTMLResponse:
    """Render the visible outcome of a failed page data fetch."""
    if isinstance(exc, NotFoundError):
        return _page(
            "Not found",
            f"<p>{escape(exc.message)}.</p><p><a href=\"/ssr-examples\">Back</a></p>",
            session,
            status_code=status.HTTP_404_NOT_FOUND,
        )
    _logger.warning("Page data fetch failed: %s %s", exc.code, exc.message)
    return _page(
        "Failed to load",
        "<p>This page could not be loaded. Please try again.</p>",
        session,
        status_code=status.HTTP_502_BAD_GATEWAY,
    )


def _page(
    title: str,
    body: str,
    session: Session | None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    if session is None:
        account = '<a href="/login">Sign in</a>'
    else:
        account = (
            f"Signed in as {escape(session.user.name)} · "
            '<a href="#" onclick="signOut()">Sign out</a>'
        )
    html = (
        _LAYOUT.replace("__TITLE__", escape(title))
        .replace("__ACCOUNT__", account)
        .replace("__BODY__", body)
    )
    return HTMLResponse(html, status_code=status_code)


_LAYOUT = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>__TITLE__ · postgate</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem; max-width: 48rem; }
      nav { display: flex; justify-content: space-between; margin-bottom: 1.5rem; }
      dt { font-weight: 600; }
      input, textarea { display: block; margin-bottom: 0.5rem; padding: 0.4rem; width: 320px; }
    </style>
  </head>
  <body>
    <nav><a href="/">postgate</a><span>__ACCOUNT__</span></nav>
    <h1>__TITLE__</h1>
    __BODY__
    <script>
      async function signOut() {
        await fetch('/api/auth/sign-out', { method: 'POST' });
        window.location.href = '/';
      }
    </script>
  </body>
</html>
"""

_LOGIN_FORM = """<form id="login">
  <input name="name" placeholder="Name" required />
  <input name="email" type="email" placeholder="Email" required />
  <button type="submit">Sign in</button>
</form>
<pre id="output"></pre>
<script>
  document.getElementById('login').addEventListener('submit', async (event) => {
    event.preventDefault();
    const form = new FormData(event.target);
    const res = await fetch('/api/auth/sign-in', {
      method: 'POST',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify({ name: form.get('name'), email: form.get('email') }),
    });
    if (!res.ok) {
      document.getElementById('output').textContent = 'Error: ' + res.status;
      return;
    }
    window.location.href = "__DESTINATION__";
  });
</script>
"""

_CREATE_FORM = """<h2>Create a post (client-side)</h2>
<form id="create">
  <input name="title" placeholder="Title" required />
  <textarea name="content" placeholder="Content" required></textarea>
  <input name="author" placeholder="Author" required />
  <button type="submit">Create</button>
</form>
<pre id="output"></pre>
<script>
  document.getElementById('create').addEventListener('submit', async (event) => {
    event.preventDefault();
    const form = new FormData(event.target);
    const input = {
      json: {
        title: form.get('title'),
        content: form.get('content'),
        author: form.get('author'),
      },
    };
    const res = await fetch('/trpc/posts.create', {
      method: 'POST',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify(input),
    });
    const data = await res.json();
    document.getElementById('output').textContent = JSON.stringify(data, null, 2);
    if (res.ok) window.location.reload();
  });
</script>
"""
