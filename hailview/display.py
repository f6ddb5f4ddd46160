"""Turn lane events into display items: collapsed tasks, paired rows and runs."""
from __future__ import annotations

from typing import Callable, Iterable, Optional, Sequence, Union
from urllib.parse import urlparse

from hailview.models import (
    CollapsedTaskItem,
    ConsecutiveGroupItem,
    Event,
    LaneEvent,
    PairedToolCallItem,
    TaskInfo,
)

CHRONOLOGICAL = "chronological"
SUMMARY_START = "summary-start"
TASK_VIEW_MODES = (CHRONOLOGICAL, SUMMARY_START)

FILEREAD_LOOKAHEAD = 5
_READ_ELISION_BARRIERS = {"UserMessage", "AgentMessage", "TaskStart", "TaskEnd"}

# Specialised event types and the ToolResult names that answer them.
SPECIALIZED_RESULT_NAMES: dict[str, tuple[str, ...]] = {
    "FileRead": ("Read",),
    "FileEdit": ("Edit", "Write"),
    "FileCreate": ("Write",),
    "FileSearch": ("Glob",),
    "CodeSearch": ("Grep",),
    "ShellCommand": ("Bash",),
    "WebSearch": ("WebSearch",),
    "WebFetch": ("WebFetch",),
}

_SIMPLE_GROUP_TYPES = {"FileRead", "CodeSearch", "FileSearch", "WebSearch", "WebFetch"}
_SUMMARY_COMMAND_LIMIT = 30

TaskItem = Union[LaneEvent, CollapsedTaskItem]
PairedItem = Union[LaneEvent, CollapsedTaskItem, PairedToolCallItem]
DisplayRow = Union[LaneEvent, CollapsedTaskItem, PairedToolCallItem, ConsecutiveGroupItem]


def _collapsed(lane_event: LaneEvent, task_id: str, task_info: dict[str, TaskInfo]) -> Optional[CollapsedTaskItem]:
    info = task_info.get(task_id)
    if info is None:
        return None
    return CollapsedTaskItem(
        task_id=task_id,
        info=info,
        lane=lane_event.fork_lane if lane_event.fork_lane is not None else 0,
        active_lanes=list(lane_event.active_lanes),
    )


def apply_task_view_mode(
    lane_events: Sequence[LaneEvent],
    task_view_mode: str,
    collapsed_tasks: Iterable[str],
    task_info: dict[str, TaskInfo],
    matches: Optional[Callable[[Event], bool]] = None,
) -> list[TaskItem]:
    """Replace collapsed tasks by one summary row and drop their events.

    In ``summary-start`` mode every task collapses at its TaskStart; in
    ``chronological`` mode only the tasks listed in ``collapsed_tasks`` do.
    """
    if task_view_mode not in TASK_VIEW_MODES:
        raise ValueError(f"unknown task view mode: {task_view_mode!r}")
    collapsed = set(collapsed_tasks)
    skipping: set[str] = set()
    result: list[TaskItem] = []

    for lane_event in lane_events:
        event = lane_event.event
        type_name = event.event_type.type
        task_id = event.task_id

        if type_name == "TaskStart" and task_id:
            if task_view_mode == SUMMARY_START or task_id in collapsed:
                skipping.add(task_id)
                item = _collapsed(lane_event, task_id, task_info)
                if item is not None:
                    result.append(item)
                continue
            result.append(lane_event)
            continue

        if type_name == "TaskEnd" and task_id:
            if task_id in skipping:
                skipping.discard(task_id)
                continue
            result.append(lane_event)
            continue

        if task_id and task_id in skipping:
            continue
        if matches is not None and not matches(event):
            continue
        result.append(lane_event)

    return result


def elide_redundant_file_reads(items: Sequence[TaskItem]) -> list[TaskItem]:
    """Drop a FileRead when an edit of the same path follows shortly after."""
    result: list[TaskItem] = []
    for position, item in enumerate(items):
        if isinstance(item, LaneEvent) and item.event.event_type.type == "FileRead":
            read_path = item.event.event_type.path
            suppress = False
            stop = min(len(items), position + 1 + FILEREAD_LOOKAHEAD)
            for look in range(position + 1, stop):
                upcoming = items[look]
                if not isinstance(upcoming, LaneEvent):
                    break
                upcoming_type = upcoming.event.event_type
                if upcoming_type.type in _READ_ELISION_BARRIERS:
                    break
                if upcoming_type.type == "FileEdit" and upcoming_type.path == read_path:
                    suppress = True
                    break
            if suppress:
                continue
        result.append(item)
    return result


def _answers(call: LaneEvent, candidate: TaskItem) -> bool:
    if not isinstance(candidate, LaneEvent):
        return False
    result_type = candidate.event.event_type
    if result_type.type != "ToolResult":
        return False
    call_type = call.event.event_type
    if call_type.type == "ToolCall":
        return result_type.name == call_type.name
    expected = SPECIALIZED_RESULT_NAMES.get(call_type.type)
    return bool(expected) and result_type.name in expected


def pair_adjacent_results(items: Sequence[TaskItem]) -> list[PairedItem]:
    """Merge a call (or specialised event) with the ToolResult right after it."""
    result: list[PairedItem] = []
    position = 0
    while position < len(items):
        item = items[position]
        following = items[position + 1] if position + 1 < len(items) else None
        if isinstance(item, LaneEvent) and following is not None and _answers(item, following):
            result.append(
                PairedToolCallItem(
                    call=item,
                    result=following,
                    lane=item.lane,
                    active_lanes=list(item.active_lanes),
                )
            )
            position += 2
            continue
        result.append(item)
        position += 1
    return result


def consecutive_group_key(event: Event) -> Optional[str]:
    event_type = event.event_type
    if event_type.type in _SIMPLE_GROUP_TYPES:
        return event_type.type
    if event_type.type == "ToolCall":
        return f"ToolCall:{event_type.name}"
    if event_type.type == "ToolResult":
        return f"ToolResult:{event_type.name}"
    return None


def group_display_name(group_key: str) -> str:
    if group_key.startswith("ToolCall:"):
        return group_key[len("ToolCall:"):]
    if group_key.startswith("ToolResult:"):
        return f"{group_key[len('ToolResult:'):]} result"
    return "".join(f" {ch}" if ch.isupper() else ch for ch in group_key).strip()


def _summary_name(event: Event) -> str:
    event_type = event.event_type
    type_name = event_type.type
    if type_name in ("FileRead", "FileEdit", "FileCreate", "FileDelete"):
        return event_type.path.split("/")[-1]
    if type_name in ("CodeSearch", "WebSearch"):
        return event_type.query
    if type_name == "FileSearch":
        return event_type.pattern
    if type_name == "WebFetch":
        return urlparse(event_type.url).hostname or event_type.url
    if type_name == "ShellCommand":
        command = event_type.command
        if len(command) > _SUMMARY_COMMAND_LIMIT:
            return f"{command[:_SUMMARY_COMMAND_LIMIT - 3]}..."
        return command
    return ""


def group_summary(group: Sequence[LaneEvent]) -> str:
    """``"a.py, b.py"`` or ``"a.py, b.py, +3 more"`` for a consecutive run."""
    names = [name for name in (_summary_name(item.event) for item in group) if name]
    if not names:
        return ""
    if len(names) <= 3:
        return ", ".join(names)
    return f"{', '.join(names[:2])}, +{len(names) - 2} more"


def collapse_consecutive(
    items: Sequence[PairedItem],
    group_key: Callable[[Event], Optional[str]] = consecutive_group_key,
) -> list[DisplayRow]:
    """Fold runs of same-lane, same-key events into a single group row."""
    result: list[DisplayRow] = []
    position = 0
    while position < len(items):
        item = items[position]
        if not isinstance(item, LaneEvent):
            result.append(item)
            position += 1
            continue

        key = group_key(item.event)
        if key is None:
            result.append(item)
            position += 1
            continue

        group = [item]
        cursor = position + 1
        while cursor < len(items):
            upcoming = items[cursor]
            if not isinstance(upcoming, LaneEvent) or upcoming.lane != item.lane:
                break
            if group_key(upcoming.event) != key:
                break
            group.append(upcoming)
            cursor += 1

        if len(group) > 1:
            result.append(
                ConsecutiveGroupItem(
                    events=group,
                    group_key=key,
                    count=len(group),
                    lane=item.lane,
                    active_lanes=list(item.active_lanes),
                )
            )
        else:
            result.append(item)
        position = cursor

    return result


def build_display_items(
    lane_events: Sequence[LaneEvent],
    task_info: dict[str, TaskInfo],
    task_view_mode: str = CHRONOLOGICAL,
    collapsed_tasks: Iterable[str] = (),
) -> list[DisplayRow]:
    items = apply_task_view_mode(lane_events, task_view_mode, collapsed_tasks, task_info)
    items = elide_redundant_file_reads(items)
    return collapse_consecutive(pair_adjacent_results(items))
