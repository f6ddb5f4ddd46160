"""Lane assignment for sub-agent fork/merge rendering."""
from __future__ import annotations

import heapq
from typing import Sequence

from hailview.event_helpers import first_text
from hailview.models import Event, LaneEvent, TaskInfo

MAIN_LANE = 0


def compute_lane_events(events: Sequence[Event]) -> list[LaneEvent]:
    """Assign a lane to every event in a single left-to-right pass.

    A TaskStart stays on the main lane and carries the fork marker for the
    lane it opens; events of that task ride the task lane; the TaskEnd sits
    on the task lane, carries the merge marker and retires the lane. Retired
    lanes are reused lowest-first, never while still open.
    """
    task_lanes: dict[str, int] = {}
    active_lanes: set[int] = {MAIN_LANE}
    free_lanes: list[int] = []
    next_lane = MAIN_LANE + 1
    result: list[LaneEvent] = []

    for index, event in enumerate(events):
        type_name = event.event_type.type
        task_id = event.task_id

        lane = MAIN_LANE
        is_fork = False
        is_merge = False
        fork_lane = None
        merge_lane = None

        if type_name == "TaskStart" and task_id:
            new_lane = task_lanes.get(task_id)
            if new_lane is None:
                if free_lanes:
                    new_lane = heapq.heappop(free_lanes)
                else:
                    new_lane = next_lane
                    next_lane += 1
                task_lanes[task_id] = new_lane
                active_lanes.add(new_lane)
            is_fork = True
            fork_lane = new_lane
        elif type_name == "TaskEnd" and task_id and task_id in task_lanes:
            lane = task_lanes.pop(task_id)
            is_merge = True
            merge_lane = lane
            active_lanes.discard(lane)
            heapq.heappush(free_lanes, lane)
        elif task_id:
            lane = task_lanes.get(task_id, MAIN_LANE)

        result.append(
            LaneEvent(
                index=index,
                event=event,
                lane=lane,
                active_lanes=sorted(active_lanes),
                is_fork=is_fork,
                is_merge=is_merge,
                fork_lane=fork_lane,
                merge_lane=merge_lane,
            )
        )

    return result


def compute_max_lane(lane_events: Sequence[LaneEvent]) -> int:
    highest = MAIN_LANE
    for lane_event in lane_events:
        for lane in lane_event.active_lanes:
            highest = max(highest, lane)
        if lane_event.fork_lane is not None:
            highest = max(highest, lane_event.fork_lane)
    return highest


def _task_purpose(event: Event) -> str:
    title = getattr(event.event_type, "title", None)
    if isinstance(title, str) and title.strip():
        return title.strip()
    text = first_text(event.content.blocks)
    if text and text.strip():
        return text.strip()
    return "Sub-agent"


def compute_task_info(lane_events: Sequence[LaneEvent]) -> dict[str, TaskInfo]:
    infos: dict[str, TaskInfo] = {}
    for lane_event in lane_events:
        event = lane_event.event
        task_id = event.task_id
        if not task_id:
            continue
        type_name = event.event_type.type
        if type_name == "TaskStart":
            purpose = _task_purpose(event)
            infos[task_id] = TaskInfo(
                task_id=task_id,
                title=purpose,
                purpose=purpose,
                started_at=event.timestamp,
                lane=lane_event.fork_lane if lane_event.fork_lane is not None else MAIN_LANE,
                active_lanes_at_start=list(lane_event.active_lanes),
            )
        elif type_name == "TaskEnd":
            info = infos.get(task_id)
            if info is None:
                continue
            info.ended_at = event.timestamp
            if info.started_at is not None:
                delta = event.timestamp - info.started_at
                info.duration_ms = max(0, int(delta.total_seconds() * 1000))
            info.active_lanes_at_end = list(lane_event.active_lanes)
        else:
            info = infos.get(task_id)
            if info is not None:
                info.event_count += 1
    return infos


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count > 1 else ''}"


def task_breakdown(lane_events: Sequence[LaneEvent], task_id: str) -> str:
    """Short activity summary for one task, e.g. ``"2 edits, 1 read, 3 tools"``."""
    edits = reads = shells = tools = messages = 0
    for lane_event in lane_events:
        if lane_event.event.task_id != task_id:
            continue
        type_name = lane_event.event.event_type.type
        if type_name in ("FileEdit", "FileCreate"):
            edits += 1
        elif type_name == "FileRead":
            reads += 1
        elif type_name == "ShellCommand":
            shells += 1
        elif type_name == "ToolCall":
            tools += 1
        elif type_name == "AgentMessage":
            messages += 1

    parts: list[str] = []
    if edits:
        parts.append(_plural(edits, "edit"))
    if reads:
        parts.append(_plural(reads, "read"))
    if shells:
        parts.append(f"{shells} shell")
    if tools:
        parts.append(_plural(tools, "tool"))
    if messages:
        parts.append(_plural(messages, "msg"))
    return ", ".join(parts)


def format_ms(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    seconds = round(ms / 1000)
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60}s"
