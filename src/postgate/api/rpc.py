"""HTTP transport for the procedure router."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from postgate.api.deps import get_container, get_request_context
from postgate.containers import AppContainer
from postgate.domain.errors import InputIssue, InvalidInputError, ProcedureError
from postgate.services import wire
from postgate.services.procedures import ProcedureKind
from postgate.services.request_context import RequestContext

router = APIRouter(prefix="/trpc", tags=["rpc"])

_logger = logging.getLogger(__name__)

_MULTI_STATUS = 207


@router.get("/{paths:path}")
async def rpc_query(
    paths: str,
    request: Request,
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> JSONResponse:
    """Run one query, or a comma-separated batch of queries."""
    raw = request.query_params.get("input")
    return await _dispatch(
        paths, request, raw, ProcedureKind.QUERY, container, context
    )


@router.post("/{paths:path}")
async def rpc_mutation(
    paths: str,
    request: Request,
    container: AppContainer = Depends(get_container),
    context: RequestContext = Depends(get_request_context),
) -> JSONResponse:
    """Run one mutation, or a comma-separated batch of mutations."""
    body = await request.body()
    raw = body or None
    return await _dispatch(
        paths, request, raw, ProcedureKind.MUTATION, container, context
    )


async def _dispatch(  # noqa: PLR0913
    paths: str,
    request: Request,
    raw_input: str | bytes | None,
    kind: ProcedureKind,
    container: AppContainer,
    context: RequestContext,
) -> JSONResponse:
    is_batch = request.query_params.get("batch") == "1"
    names = paths.split(",") if is_batch else [paths]
    procedure_context = await context.procedure_context()
    entries: list[dict[str, object]] = []
    statuses: set[int] = set()
    for index, name in enumerate(names):
        try:
            call_input = _call_input(raw_input, index, is_batch, name)
            result = container.procedure_router.call(
                name, call_input, procedure_context, kind=kind
            )
            entries.append({"result": {"data": wire.encode(result)}})
            statuses.add(200)
        except ProcedureError as exc:
            if exc.http_status >= 500:
                _logger.warning("Procedure %s failed: %s", name, exc.message)
            entries.append({"error": _error_envelope(exc)})
            statuses.add(exc.http_status)
    status_code = statuses.pop() if len(statuses) == 1 else _MULTI_STATUS
    content: object = entries if is_batch else entries[0]
    return JSONResponse(content=content, status_code=status_code)


def _call_input(
    raw_input: str | bytes | None, index: int, is_batch: bool, name: str
) -> object:
    """Decode the wire input of one call in the request."""
    if raw_input is None:
        return None
    if isinstance(raw_input, bytes):
        try:
            raw_input = raw_input.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidInputError(
                [InputIssue(path="", message="Input is not valid UTF-8")], path=name
            ) from None
    try:
        parsed = json.loads(raw_input)
    except ValueError:
        raise InvalidInputError(
            [InputIssue(path="", message="Input is not valid JSON")], path=name
        ) from None
    if is_batch:
        if not isinstance(parsed, dict):
            raise InvalidInputError(
                [InputIssue(path="", message="Batch input must be an object")],
                path=name,
            )
        parsed = parsed.get(str(index))
        if parsed is None:
            return None
    try:
        return wire.decode(parsed)
    except wire.WireFormatError as exc:
        raise InvalidInputError(
            [InputIssue(path="", message=str(exc))], path=name
        ) from None


def _error_envelope(exc: ProcedureError) -> dict[str, object]:
    return wire.encode(
        {"message": exc.message, "code": exc.code, "data": exc.error_data()}
    )
