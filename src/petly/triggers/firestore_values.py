"""Decoder for Firestore trigger envelopes.

Document-created triggers deliver the new document either as Firestore
typed values ({"fields": {"name": {"stringValue": "Rex"}}}) or, from
local tooling, as plain JSON under "data". Both decode to a plain dict.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any

from petly.domain.errors import MalformedEventError

# Document paths may arrive fully qualified
_DOCUMENTS_MARKER = "/documents/"


@dataclass(frozen=True)
class TriggerEvent:
    """A decoded trigger delivery."""

    document_path: str
    data: dict[str, Any]
    event_id: str | None = None


def decode_value(value: dict[str, Any]) -> Any:
    """Decode one Firestore typed value.

    Raises:
        MalformedEventError: If the value carries no known type key.
    """
    if not isinstance(value, dict) or len(value) != 1:
        raise MalformedEventError("typed value must have exactly one type key")

    kind, raw = next(iter(value.items()))
    if kind == "nullValue":
        return None
    if kind in ("stringValue", "timestampValue", "referenceValue"):
        return raw
    if kind == "booleanValue":
        return bool(raw)
    if kind == "integerValue":
        # int64 is encoded as a JSON string
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise MalformedEventError(f"invalid integerValue: {raw!r}") from e
    if kind == "doubleValue":
        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise MalformedEventError(f"invalid doubleValue: {raw!r}") from e
    if kind == "bytesValue":
        try:
            return base64.b64decode(raw)
        except (TypeError, ValueError) as e:
            raise MalformedEventError("invalid bytesValue") from e
    if kind in ("geoPointValue", "arrayValue", "mapValue"):
        raw = _container(kind, raw)
    if kind == "geoPointValue":
        try:
            return {
                "latitude": float(raw.get("latitude", 0.0)),
                "longitude": float(raw.get("longitude", 0.0)),
            }
        except (TypeError, ValueError) as e:
            raise MalformedEventError("invalid geoPointValue") from e
    if kind == "arrayValue":
        values = raw.get("values", [])
        if not isinstance(values, list):
            raise MalformedEventError("arrayValue.values must be a list")
        return [decode_value(v) for v in values]
    if kind == "mapValue":
        return decode_fields(raw.get("fields", {}))
    raise MalformedEventError(f"unknown typed value: {kind}")


def _container(kind: str, raw: Any) -> dict[str, Any]:
    # Empty arrays and maps may arrive as null
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise MalformedEventError(f"{kind} must be an object")
    return raw


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(fields, dict):
        raise MalformedEventError("fields must be an object")
    return {name: decode_value(value) for name, value in fields.items()}


def normalize_document_path(name: str) -> str:
    """Strip the "projects/<p>/databases/<d>/documents/" prefix, if any."""
    if _DOCUMENTS_MARKER in name:
        name = name.split(_DOCUMENTS_MARKER, 1)[1]
    return name.strip("/")


def parse_envelope(payload: Any) -> TriggerEvent:
    """Parse the JSON body of a trigger request.

    Raises:
        MalformedEventError: If the document path or the document body is
            missing or undecodable.
    """
    if not isinstance(payload, dict):
        raise MalformedEventError("envelope must be an object")

    value = payload.get("value")
    raw_path = payload.get("document")
    if not raw_path and isinstance(value, dict):
        raw_path = value.get("name")
    if not isinstance(raw_path, str) or not raw_path.strip("/"):
        raise MalformedEventError("missing document path")

    if isinstance(value, dict) and "fields" in value:
        data = decode_fields(value["fields"])
    elif isinstance(payload.get("data"), dict):
        data = dict(payload["data"])
    else:
        raise MalformedEventError("missing document body")

    event_id = payload.get("eventId")
    return TriggerEvent(
        document_path=normalize_document_path(raw_path),
        data=data,
        event_id=event_id if isinstance(event_id, str) and event_id else None,
    )
