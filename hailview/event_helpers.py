"""Small accessors shared by the classifier, correlator and display layers."""
from __future__ import annotations

import json
import re
from typing import Iterable, Optional

from hailview.models import CodeBlock, ContentBlock, Event, JsonBlock, TextBlock

_TAG_PATTERN = re.compile(r"<[^>]+>")
_TRUNCATE_LENGTH = 80


def tool_name(event_type) -> str:
    """Return the tool name for ToolCall/ToolResult, else the variant name."""
    name = getattr(event_type, "name", None)
    if isinstance(name, str):
        return name
    return event_type.type


def is_tool_error(event_type) -> bool:
    return event_type.type == "ToolResult" and bool(event_type.is_error)


def _block_text_fragments(block: ContentBlock) -> list[str]:
    if isinstance(block, TextBlock):
        return [block.text]
    if isinstance(block, CodeBlock):
        return [block.code]
    if isinstance(block, JsonBlock):
        return [json.dumps(block.data)]
    return []


def first_text_line(event: Event) -> Optional[str]:
    """First non-empty trimmed line across the event's Text, Code and Json blocks."""
    for block in event.content.blocks:
        for fragment in _block_text_fragments(block):
            for line in fragment.split("\n"):
                trimmed = line.strip()
                if trimmed:
                    return trimmed
    return None


def first_text(blocks: Iterable[ContentBlock]) -> Optional[str]:
    for block in blocks:
        if isinstance(block, TextBlock):
            return block.text
    return None


def truncate(text: str, max_length: int = _TRUNCATE_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 3]}..."


def strip_tags(text: str) -> str:
    """Strip XML-like tags (system-reminder, command-name, ...) and collapse whitespace."""
    return " ".join(_TAG_PATTERN.sub("", text or "").split())
