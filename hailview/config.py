"""hailview configuration."""
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_list(name: str) -> list[str]:
    value = os.getenv(name) or ""
    return [item.strip() for item in value.split(",") if item.strip()]


LOG_LEVEL = os.getenv("HAILVIEW_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Adapters whose events have a tool-specific ("native") grouping.
NATIVE_ADAPTERS = frozenset(
    [
        "codex",
        "claude-code",
        "gemini",
        "amp",
        "cline",
        "cursor",
        "opencode",
        *_env_list("HAILVIEW_NATIVE_ADAPTERS"),
    ]
)

# Observability
OTEL_ENABLED = _env_bool("HAILVIEW_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("HAILVIEW_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("HAILVIEW_OTEL_SERVICE_NAME", "hailview")
PROM_PORT = _env_int("HAILVIEW_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("HAILVIEW_HOST", "0.0.0.0")
PORT = _env_int("HAILVIEW_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("HAILVIEW_FRONTEND_ORIGIN", "http://localhost:3000")
