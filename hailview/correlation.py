"""Pair ToolCall events with the ToolResult that answers them."""
from __future__ import annotations

from typing import Optional, Sequence

from hailview.event_helpers import tool_name
from hailview.models import Event

# Number of events after a call that the positional fallback may inspect.
FALLBACK_WINDOW = 7


def _non_blank(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def correlation_id(event: Event) -> Optional[str]:
    """Explicit correlation id: semantic attribute, then ToolResult.call_id, then legacy attribute."""
    attrs = event.attributes or {}
    semantic = _non_blank(attrs.get("semantic.call_id"))
    if semantic:
        return semantic
    if event.event_type.type == "ToolResult":
        from_type = _non_blank(event.event_type.call_id)
        if from_type:
            return from_type
    return _non_blank(attrs.get("call_id"))


def pair_tool_call_results(events: Sequence[Event]) -> dict[int, int]:
    """Map each ToolCall position to the position of its ToolResult.

    Explicit ids are matched first. Duplicate ids resolve to the last
    ToolResult seen, so a retried result supersedes its predecessor. Calls
    without an id match fall back to the first same-named ToolResult within
    the next ``FALLBACK_WINDOW`` events, and the scan stops at the next
    ToolCall. Unpaired calls are simply absent from the map.
    """
    result_by_call_id: dict[str, int] = {}
    for index, event in enumerate(events):
        if event.event_type.type != "ToolResult":
            continue
        call_id = correlation_id(event)
        if call_id:
            result_by_call_id[call_id] = index

    pairs: dict[int, int] = {}
    for index, event in enumerate(events):
        if event.event_type.type != "ToolCall":
            continue

        call_id = correlation_id(event) or event.event_id
        direct = result_by_call_id.get(call_id)
        if direct is not None:
            pairs[index] = direct
            continue

        name = tool_name(event.event_type)
        stop = min(len(events), index + 1 + FALLBACK_WINDOW)
        for candidate_index in range(index + 1, stop):
            candidate = events[candidate_index]
            candidate_type = candidate.event_type.type
            if candidate_type == "ToolCall":
                break
            if candidate_type == "ToolResult" and tool_name(candidate.event_type) == name:
                pairs[index] = candidate_index
                break

    return pairs
