"""Wire payload encoding that keeps timestamps distinct from strings.

Payloads travel as ``{"json": <plain JSON>, "meta": {"values": {...}}}``.
``meta.values`` maps a dotted path into the JSON tree to the list of type
tags applied at that path, so a remote caller can turn ``"2024-01-15T10:00:00.000Z"``
back into a ``datetime`` while an identical-looking plain string stays a string.
A root-level value uses a bare tag list instead of a mapping.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

DATE_TAG = "Date"


class WireFormatError(ValueError):
    """Raised when an envelope cannot be decoded."""


def encode(value: object) -> dict[str, object]:
    """Encode a value into a JSON-safe envelope."""
    annotations: dict[str, list[str]] = {}
    data = _encode_value(value, [], annotations)
    envelope: dict[str, object] = {"json": data}
    if annotations:
        if "" in annotations:
            envelope["meta"] = {"values": annotations[""]}
        else:
            envelope["meta"] = {"values": annotations}
    return envelope


def decode(envelope: object) -> Any:
    """Decode an envelope produced by :func:`encode`."""
    if not isinstance(envelope, dict) or "json" not in envelope:
        raise WireFormatError("Envelope must be an object with a 'json' member")
    data = envelope["json"]
    meta = envelope.get("meta") or {}
    if not isinstance(meta, dict):
        raise WireFormatError("Envelope 'meta' must be an object")
    values = meta.get("values")
    if values is None:
        return data
    if isinstance(values, list):
        return _apply_tags(data, values)
    if not isinstance(values, dict):
        raise WireFormatError("Envelope 'meta.values' must be an object or list")
    for path, tags in values.items():
        data = _apply_at_path(data, _split_path(path), tags)
    return data


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    utc_value = value.astimezone(UTC)
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"


def _encode_value(
    value: object, path: list[str], annotations: dict[str, list[str]]
) -> object:
    if isinstance(value, datetime):
        annotations[_join_path(path)] = [DATE_TAG]
        return format_timestamp(value)
    if isinstance(value, BaseModel):
        return _encode_value(value.model_dump(by_alias=True), path, annotations)
    to_wire = getattr(value, "to_wire", None)
    if callable(to_wire):
        return _encode_value(to_wire(), path, annotations)
    if isinstance(value, dict):
        return {
            str(key): _encode_value(item, [*path, str(key)], annotations)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [
            _encode_value(item, [*path, str(index)], annotations)
            for index, item in enumerate(value)
        ]
    if value is None or isinstance(value, str | int | float | bool):
        return value
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


def _apply_tags(value: object, tags: object) -> object:
    if not isinstance(tags, list) or not tags:
        raise WireFormatError("Type annotation must be a non-empty list")
    if tags[0] != DATE_TAG:
        raise WireFormatError(f"Unsupported type annotation: {tags[0]!r}")
    if not isinstance(value, str):
        raise WireFormatError("Date annotation applied to a non-string value")
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise WireFormatError(f"Invalid timestamp: {value!r}") from exc


def _apply_at_path(data: object, parts: list[str], tags: object) -> object:
    if not parts:
        return _apply_tags(data, tags)
    head, *rest = parts
    if isinstance(data, dict):
        if head not in data:
            raise WireFormatError(f"Annotated path segment {head!r} is missing")
        data[head] = _apply_at_path(data[head], rest, tags)
        return data
    if isinstance(data, list):
        try:
            index = int(head)
            data[index] = _apply_at_path(data[index], rest, tags)
        except (ValueError, IndexError) as exc:
            raise WireFormatError(f"Invalid list index {head!r}") from exc
        return data
    raise WireFormatError(f"Cannot descend into {type(data).__name__} at {head!r}")


def _join_path(path: list[str]) -> str:
    return ".".join(part.replace("\\", "\\\\").replace(".", "\\.") for part in path)


def _split_path(path: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for char in path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ".":
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts
