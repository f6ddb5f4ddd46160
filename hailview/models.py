"""Pydantic models for HAIL sessions and the views derived from them."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic_core import PydanticCustomError

HAIL_VERSION = "hail-1.0.0"


# ── Event types ─────────────────────────────────────────────────────
#
# Wire shape is adjacently tagged: {"type": "ToolCall", "data": {"name": "Read"}}.
# Variant payload fields are flattened onto the model so callers read
# ``event.event_type.name`` instead of ``event.event_type.data.name``.

class _TaggedEventType(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _unpack_data(cls, value: Any) -> Any:
        if isinstance(value, dict) and isinstance(value.get("data"), dict):
            merged = {k: v for k, v in value.items() if k != "data"}
            merged.update(value["data"])
            return merged
        return value

    @model_serializer(mode="wrap")
    def _pack_data(self, handler: Any) -> dict[str, Any]:
        payload = handler(self)
        type_name = payload.pop("type")
        if len(type(self).model_fields) == 1:
            return {"type": type_name}
        return {"type": type_name, "data": {k: v for k, v in payload.items() if v is not None}}


class UserMessage(_TaggedEventType):
    type: Literal["UserMessage"] = "UserMessage"


class AgentMessage(_TaggedEventType):
    type: Literal["AgentMessage"] = "AgentMessage"


class SystemMessage(_TaggedEventType):
    type: Literal["SystemMessage"] = "SystemMessage"


class Thinking(_TaggedEventType):
    type: Literal["Thinking"] = "Thinking"


class ToolCall(_TaggedEventType):
    type: Literal["ToolCall"] = "ToolCall"
    name: str


class ToolResult(_TaggedEventType):
    type: Literal["ToolResult"] = "ToolResult"
    name: str
    is_error: bool = False
    call_id: Optional[str] = None


class FileRead(_TaggedEventType):
    type: Literal["FileRead"] = "FileRead"
    path: str


class CodeSearch(_TaggedEventType):
    type: Literal["CodeSearch"] = "CodeSearch"
    query: str


class FileSearch(_TaggedEventType):
    type: Literal["FileSearch"] = "FileSearch"
    pattern: str


class FileEdit(_TaggedEventType):
    type: Literal["FileEdit"] = "FileEdit"
    path: str
    diff: Optional[str] = None


class FileCreate(_TaggedEventType):
    type: Literal["FileCreate"] = "FileCreate"
    path: str


class FileDelete(_TaggedEventType):
    type: Literal["FileDelete"] = "FileDelete"
    path: str


class ShellCommand(_TaggedEventType):
    type: Literal["ShellCommand"] = "ShellCommand"
    command: str
    exit_code: Optional[int] = None


class ImageGenerate(_TaggedEventType):
    type: Literal["ImageGenerate"] = "ImageGenerate"
    prompt: str


class VideoGenerate(_TaggedEventType):
    type: Literal["VideoGenerate"] = "VideoGenerate"
    prompt: str


class AudioGenerate(_TaggedEventType):
    type: Literal["AudioGenerate"] = "AudioGenerate"
    prompt: str


class WebSearch(_TaggedEventType):
    type: Literal["WebSearch"] = "WebSearch"
    query: str


class WebFetch(_TaggedEventType):
    type: Literal["WebFetch"] = "WebFetch"
    url: str


class TaskStart(_TaggedEventType):
    type: Literal["TaskStart"] = "TaskStart"
    title: Optional[str] = None


class TaskEnd(_TaggedEventType):
    type: Literal["TaskEnd"] = "TaskEnd"
    summary: Optional[str] = None


class Custom(_TaggedEventType):
    type: Literal["Custom"] = "Custom"
    kind: str


_EVENT_TYPE_MODELS = (
    UserMessage,
    AgentMessage,
    SystemMessage,
    Thinking,
    ToolCall,
    ToolResult,
    FileRead,
    CodeSearch,
    FileSearch,
    FileEdit,
    FileCreate,
    FileDelete,
    ShellCommand,
    ImageGenerate,
    VideoGenerate,
    AudioGenerate,
    WebSearch,
    WebFetch,
    TaskStart,
    TaskEnd,
    Custom,
)

EVENT_TYPE_NAMES: tuple[str, ...] = tuple(m.model_fields["type"].default for m in _EVENT_TYPE_MODELS)

EventType = Annotated[
    Union[
        UserMessage,
        AgentMessage,
        SystemMessage,
        Thinking,
        ToolCall,
        ToolResult,
        FileRead,
        CodeSearch,
        FileSearch,
        FileEdit,
        FileCreate,
        FileDelete,
        ShellCommand,
        ImageGenerate,
        VideoGenerate,
        AudioGenerate,
        WebSearch,
        WebFetch,
        TaskStart,
        TaskEnd,
        Custom,
    ],
    Field(discriminator="type"),
]


# ── Content blocks ──────────────────────────────────────────────────

class _Block(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class TextBlock(_Block):
    type: Literal["Text"] = "Text"
    text: str


class CodeBlock(_Block):
    type: Literal["Code"] = "Code"
    code: str
    language: Optional[str] = None
    start_line: Optional[int] = None


class ImageBlock(_Block):
    type: Literal["Image"] = "Image"
    url: str
    alt: Optional[str] = None
    mime: Optional[str] = None


class VideoBlock(_Block):
    type: Literal["Video"] = "Video"
    url: str
    mime: Optional[str] = None


class AudioBlock(_Block):
    type: Literal["Audio"] = "Audio"
    url: str
    mime: Optional[str] = None


class FileBlock(_Block):
    type: Literal["File"] = "File"
    path: str
    content: Optional[str] = None


class JsonBlock(_Block):
    type: Literal["Json"] = "Json"
    data: JsonValue = None


class ReferenceBlock(_Block):
    type: Literal["Reference"] = "Reference"
    uri: str
    media_type: str


class UnknownBlock(_Block):
    """A block whose type this engine does not recognize, kept verbatim."""

    type: Literal["Unknown"] = "Unknown"
    raw_type: str = ""
    data: dict[str, JsonValue] = Field(default_factory=dict)

    @model_serializer(mode="plain")
    def _restore_original(self) -> dict[str, Any]:
        return {"type": self.raw_type, **self.data}


ContentBlock = Annotated[
    Union[
        TextBlock,
        CodeBlock,
        ImageBlock,
        VideoBlock,
        AudioBlock,
        FileBlock,
        JsonBlock,
        ReferenceBlock,
        UnknownBlock,
    ],
    Field(discriminator="type"),
]

_KNOWN_BLOCK_TYPES = {"Text", "Code", "Image", "Video", "Audio", "File", "Json", "Reference"}


def _wrap_unknown_block(block: Any) -> Any:
    if not isinstance(block, dict):
        return block
    raw_type = block.get("type")
    if raw_type in _KNOWN_BLOCK_TYPES:
        return block
    return {
        "type": "Unknown",
        "raw_type": str(raw_type or ""),
        "data": {k: v for k, v in block.items() if k != "type"},
    }


class Content(BaseModel):
    model_config = ConfigDict(frozen=True)

    blocks: tuple[ContentBlock, ...] = ()

    @field_validator("blocks", mode="before")
    @classmethod
    def _preserve_unknown_blocks(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [_wrap_unknown_block(block) for block in value]
        return value


# ── Session ─────────────────────────────────────────────────────────

class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    timestamp: datetime
    event_type: EventType
    task_id: Optional[str] = None
    content: Content = Field(default_factory=Content)
    duration_ms: Optional[int] = None
    attributes: dict[str, JsonValue] = Field(default_factory=dict)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _require_iso_timestamp(cls, value: Any) -> Any:
        # Numbers would otherwise be read as Unix epochs.
        if isinstance(value, (str, datetime)):
            return value
        raise PydanticCustomError(
            "datetime_type",
            "timestamp must be an ISO 8601 string, got {kind}",
            {"kind": type(value).__name__},
        )

    @field_validator("timestamp", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @property
    def type_name(self) -> str:
        return self.event_type.type


class Agent(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    tool: str
    tool_version: Optional[str] = None


class SessionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    related_session_ids: list[str] = Field(default_factory=list)
    attributes: dict[str, JsonValue] = Field(default_factory=dict)

    @field_validator("tags", mode="after")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        unique: list[str] = []
        for tag in value:
            if tag in seen:
                continue
            seen.add(tag)
            unique.append(tag)
        return unique


class Stats(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_count: int = 0
    message_count: int = 0
    tool_call_count: int = 0
    task_count: int = 0
    duration_seconds: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    user_message_count: int = 0
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str = HAIL_VERSION
    session_id: str
    agent: Agent
    context: SessionContext = Field(default_factory=SessionContext)
    events: tuple[Event, ...]
    stats: Stats = Field(default_factory=Stats)


# ── Derived view models ─────────────────────────────────────────────

class FilterOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.count == 0


class LaneEvent(BaseModel):
    kind: Literal["event"] = "event"
    index: int
    event: Event
    lane: int = 0
    active_lanes: list[int] = Field(default_factory=lambda: [0])
    is_fork: bool = False
    is_merge: bool = False
    fork_lane: Optional[int] = None
    merge_lane: Optional[int] = None


class TaskInfo(BaseModel):
    task_id: str
    title: str
    purpose: str
    event_count: int = 0
    duration_ms: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    lane: int = 0
    active_lanes_at_start: list[int] = Field(default_factory=list)
    active_lanes_at_end: list[int] = Field(default_factory=list)


class CollapsedTaskItem(BaseModel):
    kind: Literal["collapsed"] = "collapsed"
    task_id: str
    info: TaskInfo
    lane: int = 0
    active_lanes: list[int] = Field(default_factory=list)


class PairedToolCallItem(BaseModel):
    kind: Literal["paired"] = "paired"
    call: LaneEvent
    result: LaneEvent
    lane: int = 0
    active_lanes: list[int] = Field(default_factory=list)


class ConsecutiveGroupItem(BaseModel):
    kind: Literal["consecutive"] = "consecutive"
    events: list[LaneEvent]
    group_key: str
    count: int
    lane: int = 0
    active_lanes: list[int] = Field(default_factory=list)


DisplayItem = Annotated[
    Union[LaneEvent, CollapsedTaskItem, PairedToolCallItem, ConsecutiveGroupItem],
    Field(discriminator="kind"),
]
