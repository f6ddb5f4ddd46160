"""Filter taxonomies (unified and native) and the filter applier."""
from __future__ import annotations

from collections import Counter
from typing import Callable, Iterable, Optional, Sequence

from hailview import config
from hailview.errors import UnsupportedViewModeError
from hailview.models import Event, FilterOption

UNIFIED = "unified"
NATIVE = "native"
VIEW_MODES = (UNIFIED, NATIVE)

SHORTCUT_DIGITS = 9
CUSTOM_KEY_PREFIX = "Custom:"

NATIVE_GROUP_LABELS: dict[str, str] = {
    "message": "Messages",
    "tool": "Tool Calls",
    "file": "File Events",
    "reasoning": "Reasoning",
    "shell": "Shell",
    "task": "Tasks",
    "web": "Web",
    "media": "Media",
    "custom": "Custom",
    "other": "Other",
}

_NATIVE_GROUP_BY_TYPE: dict[str, str] = {
    "UserMessage": "message",
    "AgentMessage": "message",
    "SystemMessage": "message",
    "ToolCall": "tool",
    "ToolResult": "tool",
    "FileRead": "file",
    "FileEdit": "file",
    "FileCreate": "file",
    "FileDelete": "file",
    "FileSearch": "file",
    "CodeSearch": "file",
    "Thinking": "reasoning",
    "ShellCommand": "shell",
    "TaskStart": "task",
    "TaskEnd": "task",
    "WebSearch": "web",
    "WebFetch": "web",
    "ImageGenerate": "media",
    "VideoGenerate": "media",
    "AudioGenerate": "media",
    "Custom": "custom",
}


def unified_filter_key(event: Event) -> str:
    event_type = event.event_type
    if event_type.type == "Custom":
        return f"{CUSTOM_KEY_PREFIX}{event_type.kind}"
    return event_type.type


def native_group(event: Event) -> str:
    return _NATIVE_GROUP_BY_TYPE.get(event.event_type.type, "other")


def _unified_label(key: str) -> str:
    return key


def _native_label(key: str) -> str:
    return NATIVE_GROUP_LABELS.get(key, key)


def _sorted_options(
    counts: Counter[str],
    label_for: Callable[[str], str],
    keep_keys: Iterable[str] = (),
) -> list[FilterOption]:
    options = [
        FilterOption(key=key, label=label_for(key), count=count)
        for key, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]
    # Keys the caller still has enabled stay listed at zero so shortcut
    # numbering of the non-empty options is unaffected.
    missing = sorted({key for key in keep_keys if key not in counts})
    options.extend(FilterOption(key=key, label=label_for(key), count=0) for key in missing)
    return options


def build_unified_filter_options(events: Sequence[Event], keep_keys: Iterable[str] = ()) -> list[FilterOption]:
    counts: Counter[str] = Counter(unified_filter_key(event) for event in events)
    return _sorted_options(counts, _unified_label, keep_keys)


def build_native_filter_options(events: Sequence[Event], keep_keys: Iterable[str] = ()) -> list[FilterOption]:
    counts: Counter[str] = Counter(native_group(event) for event in events)
    return _sorted_options(counts, _native_label, keep_keys)


def is_native_adapter_supported(adapter: Optional[str]) -> bool:
    if not adapter:
        return False
    return adapter in config.NATIVE_ADAPTERS


def _require_view_mode(view_mode: str, adapter: Optional[str]) -> None:
    if view_mode not in VIEW_MODES:
        raise ValueError(f"unknown view mode: {view_mode!r}")
    if view_mode == NATIVE and not is_native_adapter_supported(adapter):
        raise UnsupportedViewModeError(adapter, view_mode)


def build_filter_options(
    events: Sequence[Event],
    view_mode: str,
    adapter: Optional[str] = None,
    keep_keys: Iterable[str] = (),
) -> list[FilterOption]:
    """Options of the active taxonomy.

    Raises UnsupportedViewModeError for native mode on an adapter without a
    native grouping; the caller decides whether to fall back to unified.
    """
    _require_view_mode(view_mode, adapter)
    if view_mode == NATIVE:
        return build_native_filter_options(events, keep_keys)
    return build_unified_filter_options(events, keep_keys)


def filter_key_for(event: Event, view_mode: str) -> str:
    if view_mode == NATIVE:
        return native_group(event)
    return unified_filter_key(event)


def filter_indices(
    events: Sequence[Event],
    view_mode: str,
    enabled_keys: Iterable[str],
    adapter: Optional[str] = None,
) -> list[int]:
    """Positions of the events whose classification key, under ``view_mode``, is enabled."""
    _require_view_mode(view_mode, adapter)
    enabled = frozenset(enabled_keys)
    if not enabled:
        return []
    return [position for position, event in enumerate(events) if filter_key_for(event, view_mode) in enabled]


def filter_events(
    events: Sequence[Event],
    view_mode: str,
    enabled_keys: Iterable[str],
    adapter: Optional[str] = None,
) -> list[Event]:
    return [events[position] for position in filter_indices(events, view_mode, enabled_keys, adapter)]


def default_enabled_keys(options: Sequence[FilterOption]) -> frozenset[str]:
    return frozenset(option.key for option in options)


def toggle_key(enabled_keys: Iterable[str], key: str) -> frozenset[str]:
    enabled = set(enabled_keys)
    if key in enabled:
        enabled.discard(key)
    else:
        enabled.add(key)
    return frozenset(enabled)


def option_for_digit(options: Sequence[FilterOption], digit: int) -> Optional[FilterOption]:
    """Option addressed by shortcut digit 1-9, or None when out of range."""
    if digit < 1 or digit > SHORTCUT_DIGITS or digit > len(options):
        return None
    return options[digit - 1]


def toggle_by_digit(
    options: Sequence[FilterOption],
    enabled_keys: Iterable[str],
    digit: int,
) -> frozenset[str]:
    option = option_for_digit(options, digit)
    if option is None:
        return frozenset(enabled_keys)
    return toggle_key(enabled_keys, option.key)


def clamp_selection(index: Optional[int], option_count: int) -> Optional[int]:
    """Keep a selection cursor inside a (possibly shrunken) option list."""
    if option_count <= 0:
        return None
    if index is None or index < 0:
        return 0
    return min(index, option_count - 1)
