"""HTTP procedure client with same-tick batching."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from postgate.domain.errors import (
    ProcedureError,
    UpstreamUnavailableError,
    error_from_payload,
)
from postgate.services import wire
from postgate.services.procedures import ProcedureKind

if TYPE_CHECKING:
    from postgate.config import Settings
    from postgate.domain.sessions import RequestIdentity

_logger = logging.getLogger(__name__)


@dataclass
class _PendingCall:
    path: str
    envelope: dict[str, object]
    future: asyncio.Future[Any]


@dataclass
class HttpxRpcClient:
    """Procedure client that coalesces same-tick calls into one round trip.

    Queries and mutations are batched separately: queries travel as one GET,
    mutations as one POST. Each call still resolves or fails on its own.
    """

    base_url: str
    http_client: httpx.AsyncClient
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 10.0
    _pending: dict[ProcedureKind, list[_PendingCall]] = field(
        default_factory=dict, repr=False
    )
    _in_flight: set[asyncio.Task[None]] = field(default_factory=set, repr=False)

    @classmethod
    def create(
        cls,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> HttpxRpcClient:
        """Create a procedure client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            headers=dict(headers or {}),
            timeout=timeout,
        )

    async def query(self, path: str, input: object = None) -> Any:
        """Call a query procedure."""
        return await self._enqueue(ProcedureKind.QUERY, path, input)

    async def mutate(self, path: str, input: object = None) -> Any:
        """Call a mutation procedure."""
        return await self._enqueue(ProcedureKind.MUTATION, path, input)

    async def close(self) -> None:
        """Cancel in-flight batches and close the HTTP session."""
        for task in list(self._in_flight):
            task.cancel()
        await self.http_client.aclose()

    async def _enqueue(self, kind: ProcedureKind, path: str, input: object) -> Any:
        envelope = wire.encode(input)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        batch = self._pending.setdefault(kind, [])
        batch.append(_PendingCall(path=path, envelope=envelope, future=future))
        if len(batch) == 1:
            loop.call_soon(self._flush, kind)
        return await future

    def _flush(self, kind: ProcedureKind) -> None:
        calls = [
            call for call in self._pending.pop(kind, []) if not call.future.done()
        ]
        if not calls:
            return
        task = asyncio.ensure_future(self._send(kind, calls))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

        def cancel_when_abandoned(_: asyncio.Future[Any]) -> None:
            if all(call.future.cancelled() for call in calls):
                task.cancel()

        for call in calls:
            call.future.add_done_callback(cancel_when_abandoned)

    async def _send(self, kind: ProcedureKind, calls: list[_PendingCall]) -> None:
        try:
            await self._exchange(kind, calls)
        except Exception as exc:
            _logger.exception("Procedure batch crashed")
            _fail_all(calls, f"Procedure call failed: {exc}")

    async def _exchange(self, kind: ProcedureKind, calls: list[_PendingCall]) -> None:
        url = f"{self.base_url}/{','.join(call.path for call in calls)}"
        batch_input = {str(index): call.envelope for index, call in enumerate(calls)}
        try:
            if kind is ProcedureKind.QUERY:
                response = await self.http_client.get(
                    url,
                    params={"batch": "1", "input": json.dumps(batch_input)},
                    headers=self.headers,
                    timeout=self.timeout,
                )
            else:
                response = await self.http_client.post(
                    url,
                    params={"batch": "1"},
                    json=batch_input,
                    headers=self.headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            _logger.warning("Procedure batch failed: url=%s error=%s", url, exc)
            _fail_all(calls, f"Procedure call failed: {exc}")
            return
        try:
            entries = response.json()
        except ValueError:
            entries = None
        if not isinstance(entries, list) or len(entries) != len(calls):
            _logger.warning(
                "Malformed procedure response: url=%s status=%s",
                url,
                response.status_code,
            )
            _fail_all(
                calls, f"Malformed procedure response (HTTP {response.status_code})"
            )
            return
        for call, entry in zip(calls, entries, strict=True):
            if call.future.done():
                continue
            try:
                call.future.set_result(_unwrap(entry))
            except ProcedureError as exc:
                call.future.set_exception(exc)


def _unwrap(entry: object) -> Any:
    """Return the decoded result of one batch entry, or raise its error."""
    try:
        if not isinstance(entry, dict):
            raise wire.WireFormatError("Batch entry must be an object")
        if "error" in entry:
            payload = wire.decode(entry["error"])
            if not isinstance(payload, dict):
                raise wire.WireFormatError("Error payload must be an object")
            error = error_from_payload(payload)
        else:
            result = entry.get("result")
            if not isinstance(result, dict) or "data" not in result:
                raise wire.WireFormatError("Batch entry has no result data")
            return wire.decode(result["data"])
    except wire.WireFormatError as exc:
        raise UpstreamUnavailableError(f"Malformed procedure response: {exc}") from exc
    raise error


def _fail_all(calls: list[_PendingCall], message: str) -> None:
    for call in calls:
        if not call.future.done():
            call.future.set_exception(UpstreamUnavailableError(message))


def create_public_client(settings: Settings) -> HttpxRpcClient:
    """Create a client that sends no identity material."""
    return HttpxRpcClient.create(
        base_url=f"{str(settings.server_url).rstrip('/')}/trpc",
        timeout=settings.rpc_timeout_seconds,
    )


def create_forwarding_client(
    settings: Settings, identity: RequestIdentity
) -> HttpxRpcClient:
    """Create a client that forwards the caller's cookie and allow-listed headers."""
    return HttpxRpcClient.create(
        base_url=f"{str(settings.server_url).rstrip('/')}/trpc",
        headers=identity.outgoing_headers(),
        timeout=settings.rpc_timeout_seconds,
    )
