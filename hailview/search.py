"""Case-insensitive substring search over event content, with match navigation."""
from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from hailview.models import (
    AudioBlock,
    CodeBlock,
    ContentBlock,
    Event,
    FileBlock,
    ImageBlock,
    JsonBlock,
    ReferenceBlock,
    TextBlock,
    UnknownBlock,
    VideoBlock,
)

NEXT = "next"
PREVIOUS = "previous"


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def _block_fragments(block: ContentBlock) -> list[str]:
    if isinstance(block, TextBlock):
        return [block.text]
    if isinstance(block, CodeBlock):
        return [block.language or "", block.code]
    if isinstance(block, JsonBlock):
        return [_stringify(block.data)]
    if isinstance(block, FileBlock):
        return [block.path, block.content or ""]
    if isinstance(block, ImageBlock):
        return [block.url, block.alt or ""]
    if isinstance(block, (AudioBlock, VideoBlock)):
        return [block.url]
    if isinstance(block, ReferenceBlock):
        return [block.uri, block.media_type]
    if isinstance(block, UnknownBlock):
        return [block.raw_type, _stringify(block.data)]
    return []


def event_search_text(event: Event) -> str:
    """Lowercased haystack for one event.

    Concatenates the type discriminator, typed payload fields, every content
    block, free-form attributes and the task id.
    """
    event_type = event.event_type
    parts: list[str] = [event_type.type]
    for field_name in type(event_type).model_fields:
        if field_name == "type":
            continue
        value = getattr(event_type, field_name)
        if value is not None:
            parts.append(_stringify(value))
    for block in event.content.blocks:
        parts.extend(_block_fragments(block))
    if event.attributes:
        parts.append(_stringify(event.attributes))
    if event.task_id:
        parts.append(event.task_id)
    return "\n".join(part for part in parts if part).lower()


def build_search_index(events: Sequence[Event]) -> list[str]:
    return [event_search_text(event) for event in events]


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().lower()


def find_matches(index: Sequence[str], query: Optional[str]) -> list[int]:
    """Positions whose indexed text contains ``query``. An empty query matches nothing."""
    needle = normalize_query(query)
    if not needle:
        return []
    return [position for position, text in enumerate(index) if needle in text]


def search_events(events: Sequence[Event], query: Optional[str]) -> list[int]:
    return find_matches(build_search_index(events), query)


def step_match(cursor: Optional[int], match_count: int, direction: str = NEXT) -> Optional[int]:
    """Move a cursor over ``match_count`` matches, wrapping at both ends.

    A cursor that no longer fits the match list restarts at the first match
    in the travel direction.
    """
    if match_count <= 0:
        return None
    if direction not in (NEXT, PREVIOUS):
        raise ValueError(f"unknown direction: {direction!r}")
    if cursor is None or cursor < 0 or cursor >= match_count:
        return 0 if direction == NEXT else match_count - 1
    if direction == NEXT:
        return (cursor + 1) % match_count
    return (cursor - 1) % match_count
