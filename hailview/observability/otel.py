"""Tracing and metrics for timeline builds: OTLP export with a Prometheus fallback."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import FastAPI

from hailview import config

logger = logging.getLogger("hailview.observability")

_PIPELINE_RUNS = ("hailview_timeline_builds_total", "Timeline view computations by adapter and view mode")
_PIPELINE_LATENCY = ("hailview_timeline_build_ms", "Latency of a full timeline view computation")
_REJECTED = ("hailview_sessions_rejected_total", "Sessions rejected at load time, by error kind")

_initialized = False
_enabled = False
_tracer: Any | None = None
_providers: list[Any] = []
_fastapi_instrumentor: Any | None = None

# OTel instruments keyed by short name: "runs", "latency", "rejected".
_instruments: dict[str, Any] = {}
_prom_enabled = False
_prom_instruments: dict[str, Any] = {}


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    """Append ``signal_path`` (``/v1/traces``) unless the endpoint already carries it."""
    endpoint = (base_endpoint or "").strip()
    if not endpoint or endpoint.endswith(signal_path):
        return endpoint
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith("/v1"):
        endpoint = endpoint[: -len("/v1")]
    return endpoint + signal_path


def _labels(**values: str | None) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def _create_instruments(meter: Any) -> dict[str, Any]:
    name, description = _PIPELINE_RUNS
    runs = meter.create_counter(name, unit="1", description=description)
    name, description = _PIPELINE_LATENCY
    latency = meter.create_histogram(name, unit="ms", description=description)
    name, description = _REJECTED
    rejected = meter.create_counter(name, unit="1", description=description)
    return {"runs": runs, "latency": latency, "rejected": rejected}


def _start_prometheus_fallback(port: int) -> None:
    global _prom_enabled, _prom_instruments
    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(port)
        _prom_instruments = {
            "runs": Counter(*_PIPELINE_RUNS, ["adapter", "view_mode", "result"]),
            "latency": Histogram(*_PIPELINE_LATENCY, ["adapter", "view_mode"]),
            "rejected": Counter(*_REJECTED, ["kind"]),
        }
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started on port %s: %s", port, exc)
        _prom_enabled = False
        return
    _prom_enabled = True
    logger.info("Prometheus fallback metrics on port %s", port)


def initialize(app: FastAPI | None = None) -> None:
    """Set up OTLP tracing/metrics once; later calls only instrument ``app``."""
    global _initialized, _enabled, _tracer, _providers, _fastapi_instrumentor, _instruments

    if _initialized:
        if app is not None and _enabled and _fastapi_instrumentor is not None:
            _fastapi_instrumentor.instrument_app(app)
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("Telemetry off (HAILVIEW_OTEL_ENABLED is not set)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("Telemetry requested but OpenTelemetry is not importable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "hailview"
    resource = Resource.create({"service.name": service_name, "service.namespace": "hailview"})

    span_exporter = OTLPSpanExporter(endpoint=_normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces") or None)
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)

    metric_exporter = OTLPMetricExporter(endpoint=_normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics") or None)
    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[PeriodicExportingMetricReader(metric_exporter)],
    )
    metrics.set_meter_provider(meter_provider)

    _instruments = _create_instruments(metrics.get_meter("hailview"))
    _providers = [meter_provider, tracer_provider]
    _tracer = trace.get_tracer("hailview")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True
    if app is not None:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus_fallback(config.PROM_PORT)

    logger.info("Telemetry exporting to %s as service %s", config.OTEL_ENDPOINT, service_name)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    if app is not None and _fastapi_instrumentor is not None:
        try:
            _fastapi_instrumentor.uninstrument_app(app)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Could not uninstrument app: %s", exc)
    for provider in _providers:
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


def is_enabled() -> bool:
    return _enabled


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Any]:
    """Current-span context manager; yields ``None`` while telemetry is off."""
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_pipeline_run(adapter: str | None, view_mode: str, result: str, duration_ms: float) -> None:
    labels = _labels(adapter=adapter, view_mode=view_mode, result=result)
    latency_labels = _labels(adapter=adapter, view_mode=view_mode)
    elapsed = max(0.0, float(duration_ms))
    if _enabled and _instruments:
        _instruments["runs"].add(1, labels)
        _instruments["latency"].record(elapsed, latency_labels)
    if _prom_enabled and _prom_instruments:
        _prom_instruments["runs"].labels(**labels).inc()
        _prom_instruments["latency"].labels(**latency_labels).observe(elapsed)


def record_session_rejected(kind: str) -> None:
    labels = _labels(kind=kind)
    if _enabled and _instruments:
        _instruments["rejected"].add(1, labels)
    if _prom_enabled and _prom_instruments:
        _prom_instruments["rejected"].labels(**labels).inc()
