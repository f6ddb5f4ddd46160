"""Error types raised by the timeline engine."""
from __future__ import annotations

MISSING_FIELD = "MissingField"
UNKNOWN_VARIANT = "UnknownVariant"
INVALID_TIMESTAMP = "InvalidTimestamp"
INVALID_EVENT = "InvalidEvent"
INVALID_SESSION = "InvalidSession"


class MalformedSessionError(ValueError):
    """A session payload could not be loaded. No partial session is returned."""

    def __init__(self, kind: str, detail: str, field: str = "") -> None:
        self.kind = kind
        self.detail = detail
        self.field = field
        location = f" at {field}" if field else ""
        super().__init__(f"{kind}{location}: {detail}")


class UnsupportedViewModeError(ValueError):
    """Native view was requested for an adapter without native grouping."""

    def __init__(self, adapter: str | None, view_mode: str = "native") -> None:
        self.adapter = adapter
        self.view_mode = view_mode
        super().__init__(f"view mode '{view_mode}' is not supported for adapter '{adapter or 'unknown'}'")
