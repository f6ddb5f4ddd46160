"""Load HAIL sessions (single JSON object or JSONL) into Session models."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from hailview.errors import (
    INVALID_EVENT,
    INVALID_SESSION,
    INVALID_TIMESTAMP,
    MISSING_FIELD,
    UNKNOWN_VARIANT,
    MalformedSessionError,
)
from hailview.models import EVENT_TYPE_NAMES, Session
from hailview.stats import recompute_stats

logger = logging.getLogger("hailview.parsers")

_REQUIRED_SESSION_FIELDS = ("session_id", "agent", "events")
_KNOWN_EVENT_TYPES = frozenset(EVENT_TYPE_NAMES)


def _format_loc(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc)


def _check_event(position: int, raw: Any) -> None:
    prefix = f"events.{position}"
    if not isinstance(raw, dict):
        raise MalformedSessionError(INVALID_EVENT, "event must be an object", prefix)
    for field_name in ("event_id", "timestamp", "event_type"):
        if raw.get(field_name) is None:
            raise MalformedSessionError(MISSING_FIELD, f"'{field_name}' is required", f"{prefix}.{field_name}")
    event_type = raw["event_type"]
    if not isinstance(event_type, dict) or not event_type.get("type"):
        raise MalformedSessionError(MISSING_FIELD, "event type discriminator is required", f"{prefix}.event_type.type")
    if event_type["type"] not in _KNOWN_EVENT_TYPES:
        raise MalformedSessionError(
            UNKNOWN_VARIANT,
            f"unrecognized event type '{event_type['type']}'",
            f"{prefix}.event_type.type",
        )


def _from_validation_error(exc: ValidationError) -> MalformedSessionError:
    error = exc.errors()[0]
    loc = tuple(error.get("loc") or ())
    field = _format_loc(loc)
    error_type = str(error.get("type") or "")
    message = str(error.get("msg") or "invalid value")
    if error_type == "missing":
        return MalformedSessionError(MISSING_FIELD, message, field)
    if error_type.startswith("datetime") or error_type.startswith("date_"):
        return MalformedSessionError(INVALID_TIMESTAMP, message, field)
    if error_type.startswith("union_tag"):
        return MalformedSessionError(UNKNOWN_VARIANT, message, field)
    if loc and loc[0] == "events":
        return MalformedSessionError(INVALID_EVENT, message, field)
    return MalformedSessionError(INVALID_SESSION, message, field)


def load_session(payload: Any) -> Session:
    """Validate a decoded HAIL session object.

    Raises MalformedSessionError for a missing ``session_id``/``agent``/
    ``events``, an unknown event variant or an unparseable timestamp.
    Stats are recomputed from the events when the payload carries none.
    """
    if not isinstance(payload, dict):
        raise MalformedSessionError(INVALID_SESSION, "session payload must be a JSON object")
    for field_name in _REQUIRED_SESSION_FIELDS:
        if payload.get(field_name) is None:
            raise MalformedSessionError(MISSING_FIELD, f"'{field_name}' is required", field_name)
    events = payload["events"]
    if not isinstance(events, list):
        raise MalformedSessionError(INVALID_SESSION, "'events' must be a list", "events")
    for position, raw_event in enumerate(events):
        _check_event(position, raw_event)

    has_stats = payload.get("stats") is not None
    data = payload if has_stats else {k: v for k, v in payload.items() if k != "stats"}
    try:
        session = Session.model_validate(data)
    except ValidationError as exc:
        raise _from_validation_error(exc) from exc

    if not has_stats:
        session = session.model_copy(update={"stats": recompute_stats(session.events)})
    logger.debug("Loaded session %s with %d events", session.session_id, len(session.events))
    return session


def _decode_line(line: str, number: int) -> dict[str, Any]:
    try:
        decoded = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedSessionError(INVALID_SESSION, f"line {number} is not valid JSON: {exc.msg}") from exc
    if not isinstance(decoded, dict):
        raise MalformedSessionError(INVALID_SESSION, f"line {number} must be a JSON object")
    return decoded


def parse_hail_jsonl(text: str) -> Session:
    """Parse HAIL JSONL: a header line, then ``event`` lines and an optional ``stats`` line."""
    lines = [line for line in (text or "").split("\n") if line.strip()]
    if not lines:
        raise MalformedSessionError(INVALID_SESSION, "empty JSONL")

    header = _decode_line(lines[0], 1)
    if header.get("type") != "header":
        raise MalformedSessionError(INVALID_SESSION, "first line must be a HAIL header")

    events: list[dict[str, Any]] = []
    stats: dict[str, Any] | None = None
    for number, line in enumerate(lines[1:], start=2):
        record = _decode_line(line, number)
        record_type = record.pop("type", None)
        if record_type == "event":
            events.append(record)
        elif record_type == "stats":
            stats = record
        else:
            logger.debug("Skipping JSONL line %d with type %r", number, record_type)

    payload: dict[str, Any] = {
        key: header.get(key)
        for key in ("version", "session_id", "agent", "context")
        if header.get(key) is not None
    }
    payload["events"] = events
    if stats is not None:
        payload["stats"] = stats
    return load_session(payload)


def parse_hail_input(text: str) -> Session:
    """Accept either a single JSON session object or HAIL JSONL."""
    stripped = (text or "").strip()
    if not stripped:
        raise MalformedSessionError(INVALID_SESSION, "input is empty")

    try:
        decoded = json.loads(stripped)
    except json.JSONDecodeError as json_exc:
        try:
            return parse_hail_jsonl(stripped)
        except MalformedSessionError as jsonl_exc:
            raise MalformedSessionError(
                INVALID_SESSION,
                f"failed to parse input as JSON or JSONL ({json_exc.msg}; {jsonl_exc})",
            ) from jsonl_exc

    if isinstance(decoded, dict) and decoded.get("type") == "header":
        return parse_hail_jsonl(stripped)
    return load_session(decoded)


def load_session_file(path: Path) -> Session:
    """Read a ``.json``/``.jsonl``/``.hail`` session file from disk."""
    text = path.read_text(encoding="utf-8")
    try:
        return parse_hail_input(text)
    except MalformedSessionError as exc:
        logger.warning("Rejected session file %s: %s", path, exc)
        raise
