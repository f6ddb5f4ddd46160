"""Timeline view API: one stateless call per render, filter state supplied by the client."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from hailview.display import CHRONOLOGICAL
from hailview.errors import MalformedSessionError, UnsupportedViewModeError
from hailview.filters import UNIFIED, is_native_adapter_supported
from hailview.models import FilterOption, Session, Stats
from hailview.observability import record_session_rejected
from hailview.parsers.hail import load_session
from hailview.pipeline import TimelineView, build_timeline
from hailview.stats import display_title
from hailview.validate import ValidationIssue, validate_session

logger = logging.getLogger("hailview.timeline")

timeline_router = APIRouter(prefix="/api/timeline", tags=["timeline"])


class TimelineRequest(BaseModel):
    session: dict[str, Any]
    viewMode: str = UNIFIED
    enabledKeys: Optional[list[str]] = None
    query: str = ""
    matchCursor: Optional[int] = None
    direction: Optional[str] = None
    taskViewMode: str = CHRONOLOGICAL
    collapsedTasks: list[str] = Field(default_factory=list)


class LaneRow(BaseModel):
    eventId: str
    lane: int = 0
    activeLanes: list[int] = Field(default_factory=list)
    isFork: bool = False
    isMerge: bool = False
    forkLane: Optional[int] = None
    mergeLane: Optional[int] = None


class TaskSummary(BaseModel):
    taskId: str
    title: str
    lane: int = 0
    eventCount: int = 0
    durationMs: int = 0


class TimelineResponse(BaseModel):
    sessionId: str
    title: str
    adapter: str
    viewMode: str
    nativeSupported: bool = False
    notice: Optional[str] = None
    options: list[FilterOption] = Field(default_factory=list)
    enabledKeys: list[str] = Field(default_factory=list)
    renderedEventIds: list[str] = Field(default_factory=list)
    hiddenEventIds: list[str] = Field(default_factory=list)
    pairs: dict[str, str] = Field(default_factory=dict)
    lanes: list[LaneRow] = Field(default_factory=list)
    maxLane: int = 0
    tasks: list[TaskSummary] = Field(default_factory=list)
    matchEventIds: list[str] = Field(default_factory=list)
    matchCursor: Optional[int] = None
    stats: Stats = Field(default_factory=Stats)


class ValidateRequest(BaseModel):
    session: dict[str, Any]


class ValidateResponse(BaseModel):
    sessionId: str
    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)


def _load_or_422(raw: dict[str, Any]) -> Session:
    try:
        return load_session(raw)
    except MalformedSessionError as exc:
        record_session_rejected(exc.kind)
        logger.warning("Rejected session payload: %s", exc)
        raise HTTPException(
            status_code=422,
            detail={"kind": exc.kind, "field": exc.field, "message": exc.detail},
        ) from exc


def _to_response(session: Session, view: TimelineView, notice: Optional[str]) -> TimelineResponse:
    events = session.events
    rendered = view.rendered_indices
    return TimelineResponse(
        sessionId=session.session_id,
        title=display_title(session),
        adapter=view.adapter,
        viewMode=view.view_mode,
        nativeSupported=is_native_adapter_supported(view.adapter),
        notice=notice,
        options=view.options,
        enabledKeys=view.enabled_keys,
        renderedEventIds=[events[position].event_id for position in rendered],
        hiddenEventIds=[events[position].event_id for position in view.boilerplate_indices],
        pairs={events[call].event_id: events[result].event_id for call, result in view.pairs.items()},
        lanes=[
            LaneRow(
                eventId=lane.event.event_id,
                lane=lane.lane,
                activeLanes=lane.active_lanes,
                isFork=lane.is_fork,
                isMerge=lane.is_merge,
                forkLane=lane.fork_lane,
                mergeLane=lane.merge_lane,
            )
            for lane in view.lanes
        ],
        maxLane=view.max_lane,
        tasks=[
            TaskSummary(
                taskId=info.task_id,
                title=info.title,
                lane=info.lane,
                eventCount=info.event_count,
                durationMs=info.duration_ms,
            )
            for info in view.task_info.values()
        ],
        matchEventIds=[events[rendered[hit]].event_id for hit in view.matches],
        matchCursor=view.match_cursor,
        stats=session.stats,
    )


def _build_with_fallback(session: Session, payload: TimelineRequest) -> tuple[TimelineView, Optional[str]]:
    options = dict(
        query=payload.query,
        match_cursor=payload.matchCursor,
        direction=payload.direction,
        task_view_mode=payload.taskViewMode,
        collapsed_tasks=payload.collapsedTasks,
    )
    try:
        return build_timeline(session, payload.viewMode, payload.enabledKeys, **options), None
    except UnsupportedViewModeError as exc:
        logger.info("Falling back to unified view: %s", exc)
        notice = f"Native view is not available for {exc.adapter or 'this session'}; showing the unified view."
        return build_timeline(session, UNIFIED, None, **options), notice


@timeline_router.post("/view", response_model=TimelineResponse)
async def view_timeline(payload: TimelineRequest):
    session = _load_or_422(payload.session)
    try:
        view, notice = _build_with_fallback(session, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _to_response(session, view, notice)


@timeline_router.post("/validate", response_model=ValidateResponse)
async def validate_timeline_session(payload: ValidateRequest):
    session = _load_or_422(payload.session)
    issues = validate_session(session)
    return ValidateResponse(sessionId=session.session_id, valid=not issues, issues=issues)
