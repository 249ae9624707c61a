"""Endpoints of the in-process demo auth service."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from postgate.adapters.in_process_auth import InProcessAuthService
from postgate.api.deps import get_container
from postgate.containers import AppContainer

router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignInRequest(BaseModel):
    """Credentials accepted by the demo sign-in endpoint."""

    name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")


def _get_auth_service(
    container: AppContainer = Depends(get_container),
) -> InProcessAuthService:
    if container.in_process_auth is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return container.in_process_auth


@router.get("/get-session")
async def get_session(
    request: Request,
    container: AppContainer = Depends(get_container),
    auth_service: InProcessAuthService = Depends(_get_auth_service),
) -> JSONResponse:
    """Return the session behind the caller's cookie, or null."""
    payload = await auth_service.get_session(container.identity_from(request.headers))
    return JSONResponse(content=payload)


@router.post("/sign-in")
async def sign_in(
    body: SignInRequest,
    response: Response,
    container: AppContainer = Depends(get_container),
    auth_service: InProcessAuthService = Depends(_get_auth_service),
) -> dict[str, object]:
    """Start a session for a demo user and set the session cookie."""
    session = auth_service.sign_in(name=body.name, email=body.email)
    response.set_cookie(
        key=container.settings.session_cookie_name,
        value=session.session.token or "",
        max_age=container.settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=container.settings.environment != "local",
    )
    return session.model_dump(by_alias=True, mode="json")


@router.post("/sign-out")
async def sign_out(
    request: Request,
    response: Response,
    container: AppContainer = Depends(get_container),
    auth_service: InProcessAuthService = Depends(_get_auth_service),
) -> dict[str, bool]:
    """End the caller's session and clear the cookie."""
    token = auth_service.token_from(container.identity_from(request.headers))
    if token is not None:
        auth_service.sign_out(token)
    response.delete_cookie(container.settings.session_cookie_name)
    return {"success": True}

