"""Application configuration."""

import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from postgate.domain.sessions import DEFAULT_FORWARDED_HEADERS

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Read once when the container is built; a missing or malformed
    ``SERVER_URL`` fails here rather than on a request.
    """

    server_url: AnyHttpUrl
    auth_service_url: AnyHttpUrl | None = None
    session_cookie_name: str = "postgate.session_token"
    session_ttl_seconds: int = 7 * 24 * 3600
    login_path: str = "/login"
    return_to_param: str = "redirect"
    rpc_timeout_seconds: float = 10.0
    auth_timeout_seconds: float = 5.0
    server_timezone: str = "UTC"
    forwarded_headers: str = ",".join(DEFAULT_FORWARDED_HEADERS)
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("server_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("login_path")
    @classmethod
    def _check_login_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("login_path must be an absolute path")
        return value


def parse_forwarded_headers(raw: str | None) -> tuple[str, ...]:
    """Parse the allow-list of headers forwarded on a caller's behalf."""
    if raw is None:
        return DEFAULT_FORWARDED_HEADERS
    names: list[str] = []
    for chunk in raw.split(","):
        name = chunk.strip().lower()
        if name and name not in names:
            names.append(name)
    return tuple(names) or DEFAULT_FORWARDED_HEADERS
