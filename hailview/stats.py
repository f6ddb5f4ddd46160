"""Aggregate session statistics and display helpers."""
from __future__ import annotations

from typing import Any, Sequence

from hailview.event_helpers import strip_tags, truncate
from hailview.models import Event, Session, Stats, TextBlock

_TOOL_CALL_TYPES = {"ToolCall", "FileRead", "CodeSearch", "FileSearch"}
_UNTITLED = "Untitled Session"


def _token_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int) and value > 0:
        return value
    return 0


def _count_diff_lines(diff: str) -> tuple[int, int]:
    added = removed = 0
    for line in diff.splitlines():
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            removed += 1
    return added, removed


def recompute_stats(events: Sequence[Event]) -> Stats:
    message_count = 0
    user_message_count = 0
    tool_call_count = 0
    task_ids: set[str] = set()
    changed_files: set[str] = set()
    lines_added = 0
    lines_removed = 0
    input_tokens = 0
    output_tokens = 0

    for event in events:
        event_type = event.event_type
        type_name = event_type.type
        if type_name == "UserMessage":
            message_count += 1
            user_message_count += 1
        elif type_name == "AgentMessage":
            message_count += 1
        elif type_name == "TaskEnd":
            if (event_type.summary or "").strip():
                message_count += 1
        elif type_name in _TOOL_CALL_TYPES:
            tool_call_count += 1
        elif type_name == "FileEdit":
            changed_files.add(event_type.path)
            if event_type.diff:
                added, removed = _count_diff_lines(event_type.diff)
                lines_added += added
                lines_removed += removed
        elif type_name in ("FileCreate", "FileDelete"):
            changed_files.add(event_type.path)

        if event.task_id:
            task_ids.add(event.task_id)
        input_tokens += _token_count(event.attributes.get("input_tokens"))
        output_tokens += _token_count(event.attributes.get("output_tokens"))

    duration_seconds = 0
    if events:
        delta = events[-1].timestamp - events[0].timestamp
        duration_seconds = max(0, int(delta.total_seconds()))

    return Stats(
        event_count=len(events),
        message_count=message_count,
        tool_call_count=tool_call_count,
        task_count=len(task_ids),
        duration_seconds=duration_seconds,
        total_input_tokens=input_tokens,
        total_output_tokens=output_tokens,
        user_message_count=user_message_count,
        files_changed=len(changed_files),
        lines_added=lines_added,
        lines_removed=lines_removed,
    )


def display_title(session: Session) -> str:
    """Context title, else the first user message, else a placeholder."""
    if session.context.title:
        clean = strip_tags(session.context.title)
        if clean:
            return clean
    for event in session.events:
        if event.event_type.type != "UserMessage":
            continue
        for block in event.content.blocks:
            if isinstance(block, TextBlock) and block.text.strip():
                text = strip_tags(block.text.strip())
                if text:
                    return truncate(text)
    return _UNTITLED
