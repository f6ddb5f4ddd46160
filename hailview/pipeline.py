"""Compose the timeline stages for one session and one set of caller-owned view state."""
from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from hailview.boilerplate import is_boilerplate
from hailview.correlation import pair_tool_call_results
from hailview.display import CHRONOLOGICAL, build_display_items
from hailview.errors import UnsupportedViewModeError
from hailview.filters import UNIFIED, build_filter_options, default_enabled_keys, filter_indices
from hailview.lanes import compute_lane_events, compute_max_lane, compute_task_info
from hailview.models import DisplayItem, FilterOption, LaneEvent, Session, TaskInfo
from hailview.observability import record_pipeline_run, start_span
from hailview.search import NEXT, PREVIOUS, build_search_index, find_matches, step_match

logger = logging.getLogger("hailview.pipeline")


class TimelineView(BaseModel):
    session_id: str
    adapter: str
    view_mode: str
    query: str = ""
    pairs: dict[int, int] = Field(default_factory=dict)
    boilerplate_indices: list[int] = Field(default_factory=list)
    candidate_indices: list[int] = Field(default_factory=list)
    options: list[FilterOption] = Field(default_factory=list)
    enabled_keys: list[str] = Field(default_factory=list)
    rendered_indices: list[int] = Field(default_factory=list)
    lanes: list[LaneEvent] = Field(default_factory=list)
    max_lane: int = 0
    task_info: dict[str, TaskInfo] = Field(default_factory=dict)
    matches: list[int] = Field(default_factory=list)
    match_cursor: Optional[int] = None
    display_items: list[DisplayItem] = Field(default_factory=list)


def _resolve_cursor(cursor: Optional[int], match_count: int, direction: Optional[str]) -> Optional[int]:
    if direction in (NEXT, PREVIOUS):
        return step_match(cursor, match_count, direction)
    if match_count <= 0:
        return None
    if cursor is None or cursor < 0 or cursor >= match_count:
        return 0
    return cursor


def build_timeline(
    session: Session,
    view_mode: str = UNIFIED,
    enabled_keys: Optional[Iterable[str]] = None,
    query: Optional[str] = None,
    *,
    match_cursor: Optional[int] = None,
    direction: Optional[str] = None,
    narrow_to_matches: bool = True,
    task_view_mode: str = CHRONOLOGICAL,
    collapsed_tasks: Iterable[str] = (),
) -> TimelineView:
    """Run correlation, boilerplate removal, search, filtering and lane layout.

    ``enabled_keys`` of ``None`` enables every option of the active taxonomy.
    ``pairs``, ``boilerplate_indices``, ``candidate_indices`` and
    ``rendered_indices`` hold positions in ``session.events``. Everything
    computed on the rendered list addresses ``rendered_indices`` instead:
    ``matches``, ``match_cursor`` and ``LaneEvent.index`` in ``lanes`` and
    ``display_items``.
    Raises UnsupportedViewModeError when native mode is not available for the
    session's adapter.
    """
    adapter = session.agent.tool
    started = time.perf_counter()
    with start_span(
        "hailview.build_timeline",
        {"session.id": session.session_id, "adapter": adapter, "view_mode": view_mode},
    ):
        try:
            view = _build(
                session,
                view_mode,
                enabled_keys,
                query,
                match_cursor=match_cursor,
                direction=direction,
                narrow_to_matches=narrow_to_matches,
                task_view_mode=task_view_mode,
                collapsed_tasks=collapsed_tasks,
            )
        except UnsupportedViewModeError:
            record_pipeline_run(adapter, view_mode, "unsupported", (time.perf_counter() - started) * 1000)
            raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    record_pipeline_run(adapter, view_mode, "ok", elapsed_ms)
    logger.debug(
        "Built timeline for %s: %d/%d events rendered in %.1fms",
        session.session_id,
        len(view.rendered_indices),
        len(session.events),
        elapsed_ms,
    )
    return view


def _build(
    session: Session,
    view_mode: str,
    enabled_keys: Optional[Iterable[str]],
    query: Optional[str],
    *,
    match_cursor: Optional[int],
    direction: Optional[str],
    narrow_to_matches: bool,
    task_view_mode: str,
    collapsed_tasks: Iterable[str],
) -> TimelineView:
    events = session.events
    adapter = session.agent.tool
    query_text = (query or "").strip()

    pairs = pair_tool_call_results(events)

    boilerplate = [position for position, event in enumerate(events) if is_boilerplate(event)]
    hidden = set(boilerplate)
    candidates = [position for position in range(len(events)) if position not in hidden]

    if query_text and narrow_to_matches:
        index = build_search_index([events[position] for position in candidates])
        candidates = [candidates[hit] for hit in find_matches(index, query_text)]

    candidate_events = [events[position] for position in candidates]
    requested = None if enabled_keys is None else frozenset(enabled_keys)
    options = build_filter_options(candidate_events, view_mode, adapter, keep_keys=requested or ())
    enabled = default_enabled_keys(options) if requested is None else requested

    rendered = [candidates[hit] for hit in filter_indices(candidate_events, view_mode, enabled, adapter)]
    rendered_events = [events[position] for position in rendered]

    lanes = compute_lane_events(rendered_events)
    task_info = compute_task_info(lanes)

    matches = find_matches(build_search_index(rendered_events), query_text) if query_text else []
    cursor = _resolve_cursor(match_cursor, len(matches), direction)

    return TimelineView(
        session_id=session.session_id,
        adapter=adapter,
        view_mode=view_mode,
        query=query_text,
        pairs=pairs,
        boilerplate_indices=boilerplate,
        candidate_indices=candidates,
        options=options,
        enabled_keys=sorted(enabled),
        rendered_indices=rendered,
        lanes=lanes,
        max_lane=compute_max_lane(lanes),
        task_info=task_info,
        matches=matches,
        match_cursor=cursor,
        display_items=build_display_items(lanes, task_info, task_view_mode, collapsed_tasks),
    )
