"""Heuristics that flag tool-internal noise hidden from the primary timeline.

Rules stay narrow: showing a noisy event is acceptable, hiding a
real one is not.
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence

from hailview.event_helpers import first_text_line, tool_name
from hailview.models import Event

STDIN_TOOL = "write_stdin"
SHELL_TOOL_ALIASES = frozenset(
    {
        "exec_command",
        "shell",
        "bash",
        "execute_command",
        "spawn_process",
    }
)
RUNNING_SESSION_MARKER = "process running with session id"
RUNNING_SESSION_LINES = frozenset({"ok", "output:"})
PROGRESS_KEYWORDS = (
    "evaluating",
    "planning",
    "adjusting",
    "confirming",
    "summarizing",
)


def is_running_session_status_line(line: Optional[str]) -> bool:
    if not line:
        return True
    lowered = line.strip().lower()
    return not lowered or RUNNING_SESSION_MARKER in lowered or lowered in RUNNING_SESSION_LINES


def is_markdown_progress_line(line: str) -> bool:
    """A short bold ``**...**`` ticker phrase such as ``**Planning the fix**``."""
    trimmed = line.strip()
    if not (trimmed.startswith("**") and trimmed.endswith("**") and len(trimmed) > 4):
        return False
    lowered = trimmed.lower()
    return any(keyword in lowered for keyword in PROGRESS_KEYWORDS)


def _stdin_call(event: Event) -> Optional[bool]:
    if event.event_type.type != "ToolCall":
        return None
    if tool_name(event.event_type).lower() == STDIN_TOOL:
        return True
    return None


def _session_status_result(event: Event) -> Optional[bool]:
    if event.event_type.type != "ToolResult":
        return None
    tool = tool_name(event.event_type).lower()
    if tool == STDIN_TOOL or tool in SHELL_TOOL_ALIASES:
        return is_running_session_status_line(first_text_line(event))
    return None


def _progress_thinking(event: Event) -> Optional[bool]:
    if event.event_type.type != "Thinking":
        return None
    line = first_text_line(event)
    return is_markdown_progress_line(line) if line else False


# Checked in order; the first rule returning a bool decides.
BOILERPLATE_RULES: tuple[Callable[[Event], Optional[bool]], ...] = (
    _stdin_call,
    _session_status_result,
    _progress_thinking,
)


def is_boilerplate(event: Event) -> bool:
    for rule in BOILERPLATE_RULES:
        verdict = rule(event)
        if verdict is not None:
            return verdict
    return False


def without_boilerplate(events: Sequence[Event]) -> list[Event]:
    return [event for event in events if not is_boilerplate(event)]
