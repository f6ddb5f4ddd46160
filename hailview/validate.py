"""Advisory structural checks for a loaded session.

Unlike loading, nothing here is fatal: the report lists every issue found so
a caller can surface them next to an otherwise renderable timeline.
"""
from __future__ import annotations

from typing import Callable, Optional

from pydantic import BaseModel

from hailview.models import Event, Session

_VERSION_PREFIX = "hail-"
_PATH_TYPES = {"FileRead", "FileEdit", "FileCreate", "FileDelete"}


class ValidationIssue(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    index: Optional[int] = None


def _check_version(session: Session) -> list[ValidationIssue]:
    if session.version.startswith(_VERSION_PREFIX):
        return []
    return [
        ValidationIssue(
            code="InvalidVersion",
            message=f"invalid version: {session.version}, expected prefix '{_VERSION_PREFIX}'",
            field="version",
        )
    ]


def _check_required_fields(session: Session) -> list[ValidationIssue]:
    blanks = [
        ("session_id", session.session_id),
        ("agent.provider", session.agent.provider),
        ("agent.tool", session.agent.tool),
    ]
    return [
        ValidationIssue(code="MissingField", message=f"missing required field: {field}", field=field)
        for field, value in blanks
        if not value
    ]


def _check_not_empty(session: Session) -> list[ValidationIssue]:
    if session.events:
        return []
    return [ValidationIssue(code="EmptySession", message="empty session: no events")]


def _event_issue(event: Event) -> Optional[str]:
    """Name of the first empty required payload field, if any."""
    if not event.event_id:
        return "event_id"
    event_type = event.event_type
    type_name = event_type.type
    if type_name in ("ToolCall", "ToolResult") and not event_type.name:
        return "event_type.name"
    if type_name in _PATH_TYPES and not event_type.path:
        return "event_type.path"
    if type_name == "ShellCommand" and not event_type.command:
        return "event_type.command"
    return None


def _check_events(session: Session) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for index, event in enumerate(session.events):
        field = _event_issue(event)
        if field:
            issues.append(
                ValidationIssue(
                    code="InvalidEvent",
                    message=f"invalid event at index {index}: missing required field: {field}",
                    field=field,
                    index=index,
                )
            )

    seen: set[str] = set()
    for index, event in enumerate(session.events):
        if event.event_id in seen:
            issues.append(
                ValidationIssue(
                    code="DuplicateEventId",
                    message=f"duplicate event_id: {event.event_id}",
                    index=index,
                )
            )
        seen.add(event.event_id)

    events = session.events
    for index in range(1, len(events)):
        if events[index].timestamp < events[index - 1].timestamp:
            issues.append(
                ValidationIssue(
                    code="EventsOutOfOrder",
                    message=f"events not in chronological order at index {index}",
                    index=index,
                )
            )
    return issues


_CHECKS: tuple[Callable[[Session], list[ValidationIssue]], ...] = (
    _check_version,
    _check_required_fields,
    _check_not_empty,
    _check_events,
)


def validate_session(session: Session) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for check in _CHECKS:
        issues.extend(check(session))
    return issues
