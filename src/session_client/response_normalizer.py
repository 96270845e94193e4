# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/response_normalizer.py
"""
Envelope-agnostic payload extraction.

The backend is inconsistent about where it puts the payload. Observed shapes,
in the order they are tried:

1. status_discriminated  {"status": "success", "subscriptions": [...]} or
                         {"status": "success", "data": ...}
2. data_named_key        {"data": {"subscriptions": [...], "pagination": {...}}}
3. data_nested           {"data": [...]} or {"data": {"data": [...]}}
4. named_key             {"subscriptions": [...]}
5. root                  [...] / {...}

The first matcher that accepts the body wins. A body no matcher accepts is
not an error: it normalizes to an ok result with no data.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from .error_handler import extract_error_code, extract_error_message
from .models import NormalizedResponse

lib_logger = logging.getLogger("session_client")

RECORD = "record"
LIST = "list"
ANY = "any"

SUCCESS_STATUSES = frozenset({"success", "ok"})
ERROR_STATUSES = frozenset({"error", "fail", "failure"})

# Keys that only ever appear on envelopes, never on the records inside them
ENVELOPE_KEYS = frozenset(
    {"data", "status", "success", "message", "pagination", "meta", "code", "timestamp", "error"}
)
PAGINATION_KEYS = ("total", "totalCount", "page", "limit", "totalPages", "hasMore")
DEFAULT_IDENTITY_FIELDS = ("id", "_id")


@dataclass(frozen=True)
class ResponseShape:
    """
    Describes the payload a caller expects.

    Args:
        kind: "record" (a JSON object), "list" (a JSON array) or "any"
        key: Name the payload is nested under in named-key envelopes
        required_fields: Fields a genuine list entry carries; entries with at
            most one field and none of these are dropped as corrupt
    """

    kind: str = ANY
    key: Optional[str] = None
    required_fields: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.kind not in (RECORD, LIST, ANY):
            raise ValueError(f"Unknown response shape kind: {self.kind}")

    def accepts(self, value: Any) -> bool:
        if self.kind == LIST:
            return isinstance(value, list)
        if self.kind == RECORD:
            return isinstance(value, dict)
        return value is not None

    @classmethod
    def list_of(cls, key: Optional[str] = None, *required_fields: str) -> "ResponseShape":
        return cls(kind=LIST, key=key, required_fields=tuple(required_fields))

    @classmethod
    def record(cls, key: Optional[str] = None) -> "ResponseShape":
        return cls(kind=RECORD, key=key)


ANY_SHAPE = ResponseShape()


class ShapeMatch(NamedTuple):
    tag: str
    payload: Any
    meta: Dict[str, Any]


Matcher = Callable[[Any, ResponseShape], Optional[ShapeMatch]]


def _pagination(*sources: Any) -> Dict[str, Any]:
    for source in sources:
        if isinstance(source, dict) and isinstance(source.get("pagination"), dict):
            return {"pagination": source["pagination"]}
    for source in sources:
        if isinstance(source, dict):
            found = {k: source[k] for k in PAGINATION_KEYS if k in source}
            if found:
                return {"pagination": found}
    return {}


def _is_envelope(body: Dict[str, Any]) -> bool:
    return set(body) <= ENVELOPE_KEYS


def _match_status_discriminated(body: Any, shape: ResponseShape) -> Optional[ShapeMatch]:
    if not isinstance(body, dict):
        return None
    status = body.get("status")
    if not isinstance(status, str) or status.lower() not in SUCCESS_STATUSES:
        return None

    if shape.key and shape.accepts(body.get(shape.key)):
        return ShapeMatch("status_discriminated", body[shape.key], _pagination(body))

    data = body.get("data")
    if isinstance(data, dict):
        if shape.key and shape.accepts(data.get(shape.key)):
            return ShapeMatch("status_discriminated", data[shape.key], _pagination(data, body))
        if shape.kind == LIST and shape.accepts(data.get("data")):
            return ShapeMatch("status_discriminated", data["data"], _pagination(data, body))
    if shape.accepts(data):
        return ShapeMatch("status_discriminated", data, _pagination(body))
    return None


def _match_data_named_key(body: Any, shape: ResponseShape) -> Optional[ShapeMatch]:
    if not shape.key or not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict) and shape.accepts(data.get(shape.key)):
        return ShapeMatch("data_named_key", data[shape.key], _pagination(data, body))
    return None


def _match_data_nested(body: Any, shape: ResponseShape) -> Optional[ShapeMatch]:
    if not isinstance(body, dict) or "data" not in body:
        return None
    # A record whose own attribute happens to be called "data" is not an envelope
    if not _is_envelope(body):
        return None
    data = body["data"]
    if shape.kind == LIST and isinstance(data, dict) and shape.accepts(data.get("data")):
        return ShapeMatch("data_nested", data["data"], _pagination(data, body))
    if shape.accepts(data):
        return ShapeMatch("data_nested", data, _pagination(body))
    return None


def _match_named_key(body: Any, shape: ResponseShape) -> Optional[ShapeMatch]:
    if not shape.key or not isinstance(body, dict):
        return None
    if shape.accepts(body.get(shape.key)):
        return ShapeMatch("named_key", body[shape.key], _pagination(body))
    return None


def _match_root(body: Any, shape: ResponseShape) -> Optional[ShapeMatch]:
    if shape.accepts(body):
        return ShapeMatch("root", body, {})
    return None


# Priority order; the first match wins.
SHAPE_MATCHERS: Tuple[Tuple[str, Matcher], ...] = (
    ("status_discriminated", _match_status_discriminated),
    ("data_named_key", _match_data_named_key),
    ("data_nested", _match_data_nested),
    ("named_key", _match_named_key),
    ("root", _match_root),
)


def is_degenerate_entry(entry: Any, required_fields: Tuple[str, ...] = ()) -> bool:
    """
    True for list entries that are server-side corruption rather than records.

    Non-objects are degenerate. An object is degenerate when it holds at most
    one field and none of the fields a real record carries.
    """
    if not isinstance(entry, dict):
        return True
    expected = required_fields or DEFAULT_IDENTITY_FIELDS
    if any(name in entry for name in expected):
        return False
    return len(entry) <= 1


def filter_entries(entries: List[Any], required_fields: Tuple[str, ...] = ()) -> List[Any]:
    kept = [entry for entry in entries if not is_degenerate_entry(entry, required_fields)]
    dropped = len(entries) - len(kept)
    if dropped:
        lib_logger.warning(f"Dropped {dropped} malformed entr{'y' if dropped == 1 else 'ies'} from list response")
    return kept


def match_shape(body: Any, shape: ResponseShape = ANY_SHAPE) -> Optional[ShapeMatch]:
    for _tag, matcher in SHAPE_MATCHERS:
        match = matcher(body, shape)
        if match is not None:
            return match
    return None


def normalize(body: Any, shape: Optional[ResponseShape] = None, status: int = 200) -> NormalizedResponse:
    """
    Map a parsed 2xx body onto a NormalizedResponse.

    A {"status": "error"} envelope is reported as a failure even on a 2xx.
    Only envelopes qualify: a record carrying its own status field (a
    subscription in the "error" state) is still a record.
    """
    shape = shape or ANY_SHAPE

    if isinstance(body, dict) and _is_envelope(body):
        body_status = body.get("status")
        if isinstance(body_status, str) and body_status.lower() in ERROR_STATUSES:
            return NormalizedResponse.failure(
                status, extract_error_message(body, status), code=extract_error_code(body)
            )

    match = match_shape(body, shape)
    if match is None:
        lib_logger.debug(
            f"Unrecognized response shape for {shape.kind}"
            f"{f' ({shape.key})' if shape.key else ''}; returning empty payload"
        )
        return NormalizedResponse.success(status, None)

    payload = match.payload
    if shape.kind == LIST:
        payload = filter_entries(payload, shape.required_fields)

    meta = dict(match.meta)
    meta["shape"] = match.tag
    return NormalizedResponse.success(status, payload, meta=meta)
