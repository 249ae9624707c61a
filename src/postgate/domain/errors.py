"""Error taxonomy shared by the procedure router and its clients."""

from dataclasses import dataclass


@dataclass(frozen=True)
class InputIssue:
    """Single field-level validation failure."""

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}


class ProcedureError(Exception):
    """Base class for structured procedure failures."""

    code = "INTERNAL_SERVER_ERROR"
    http_status = 500

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def error_data(self) -> dict[str, object]:
        """Return the structured payload describing this failure."""
        return {"code": self.code, "httpStatus": self.http_status, "path": self.path}


class InternalProcedureError(ProcedureError):
    """A handler failed unexpectedly."""


class InvalidInputError(ProcedureError):
    """Input failed structural validation before the handler ran."""

    code = "BAD_REQUEST"
    http_status = 400

    def __init__(
        self,
        issues: list[InputIssue],
        *,
        path: str | None = None,
        message: str | None = None,
    ) -> None:
        summary = message or "; ".join(
            f"{issue.path or '<input>'}: {issue.message}" for issue in issues
        )
        super().__init__(summary or "Invalid input", path=path)
        self.issues = issues

    def error_data(self) -> dict[str, object]:
        data = super().error_data()
        data["issues"] = [issue.to_dict() for issue in self.issues]
        return data


class UnauthenticatedError(ProcedureError):
    """A protected procedure was invoked without a resolved session."""

    code = "UNAUTHORIZED"
    http_status = 401


class NotFoundError(ProcedureError):
    """Something addressed by the caller does not exist."""

    code = "NOT_FOUND"
    http_status = 404
    kind = "resource"

    def error_data(self) -> dict[str, object]:
        data = super().error_data()
        data["kind"] = self.kind
        return data


class ProcedureNotFoundError(NotFoundError):
    """The requested procedure name is not declared by the router."""

    kind = "procedure"


class ResourceNotFoundError(NotFoundError):
    """The procedure ran but the requested record does not exist."""

    kind = "resource"


class MethodNotSupportedError(ProcedureError):
    """A query was sent over the mutation channel or the reverse."""

    code = "METHOD_NOT_SUPPORTED"
    http_status = 405


class UpstreamUnavailableError(ProcedureError):
    """The auth service or the procedure transport failed."""

    code = "BAD_GATEWAY"
    http_status = 502


def error_from_payload(payload: dict[str, object]) -> ProcedureError:
    """Rebuild a typed error from its serialized error envelope."""
    message = str(payload.get("message") or "Procedure failed")
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}
    code = str(payload.get("code") or data.get("code") or "")
    path = data.get("path")
    path = path if isinstance(path, str) else None
    if code == InvalidInputError.code:
        raw_issues = data.get("issues")
        issues = [
            InputIssue(path=str(item.get("path", "")), message=str(item.get("message", "")))
            for item in (raw_issues if isinstance(raw_issues, list) else [])
            if isinstance(item, dict)
        ]
        return InvalidInputError(issues, path=path, message=message)
    if code == NotFoundError.code:
        if data.get("kind") == ProcedureNotFoundError.kind:
            return ProcedureNotFoundError(message, path=path)
        return ResourceNotFoundError(message, path=path)
    for error_type in (
        UnauthenticatedError,
        MethodNotSupportedError,
        UpstreamUnavailableError,
    ):
        if code == error_type.code:
            return error_type(message, path=path)
    return InternalProcedureError(message, path=path)
