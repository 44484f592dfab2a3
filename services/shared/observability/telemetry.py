"""
Telemetry bootstrap for the entry service.

`setup_telemetry` configures JSON logging that stamps every record with the
service name, the inbound request id, and (when tracing is on) the active
trace/span ids. OpenTelemetry tracing is opt-in via ENABLE_TELEMETRY and
instruments both the FastAPI app and outbound httpx traffic, which covers the
OpenAI client used for category suggestions.
"""

from __future__ import annotations

import logging
import os
from contextvars import ContextVar, Token
from dataclasses import dataclass
from uuid import uuid4

from fastapi import FastAPI, Request
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, SpanContext
from pythonjsonlogger import jsonlogger

CORRELATION_ID_HEADER = "x-request-id"
RequestContextToken = Token

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(service_name)s %(request_id)s %(trace_id)s %(span_id)s"

_logging_configured = False
_httpx_instrumented = False
_request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)


@dataclass(frozen=True, slots=True)
class TelemetryConfig:
    service_name: str
    traces_enabled: bool
    console_export: bool
    otlp_endpoint: str


def load_telemetry_config(service_name: str) -> TelemetryConfig:
    return TelemetryConfig(
        service_name=os.getenv("OTEL_SERVICE_NAME", service_name),
        traces_enabled=_parse_bool(os.getenv("ENABLE_TELEMETRY", "false")),
        console_export=_parse_bool(os.getenv("OTEL_CONSOLE_EXPORT", "false")),
        otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318/v1/traces"),
    )


def setup_telemetry(app: FastAPI, service_name: str) -> TelemetryConfig:
    """
    Configure logging (always) and tracing (when enabled) for the FastAPI app.

    Returns the resolved TelemetryConfig so callers can report what was wired.
    """

    config = load_telemetry_config(service_name)
    _configure_logging(config)

    if config.traces_enabled:
        _configure_tracing(config)
        FastAPIInstrumentor.instrument_app(app)
        _instrument_httpx()
        LoggingInstrumentor().instrument(set_logging_format=False)
    return config


def ensure_request_id(request: Request | None, header_name: str = CORRELATION_ID_HEADER) -> str:
    """Reuse the inbound x-request-id (or one already stored on the request) or mint a UUID4."""

    if request is not None:
        existing = request.headers.get(header_name) or getattr(request.state, "request_id", None)
        if existing:
            request.state.request_id = existing
            return existing

    request_id = str(uuid4())
    if request is not None:
        request.state.request_id = request_id
    return request_id


def bind_request_context(request_id: str | None) -> RequestContextToken:
    """Expose the request id to log records emitted while the request is handled."""

    return _request_id_ctx_var.set(request_id)


def reset_request_context(token: RequestContextToken | None) -> None:
    if token is not None:
        _request_id_ctx_var.reset(token)


def current_request_id() -> str | None:
    return _request_id_ctx_var.get()


def _configure_logging(config: TelemetryConfig) -> None:
    global _logging_configured
    if _logging_configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
    handler.addFilter(_RequestContextLogFilter(config.service_name, config.traces_enabled))

    logging.basicConfig(level=logging.INFO, handlers=[handler], force=True)
    _logging_configured = True


def _configure_tracing(config: TelemetryConfig) -> None:
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: config.service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint)))
    if config.console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)


def _instrument_httpx() -> None:
    global _httpx_instrumented
    if _httpx_instrumented:
        return
    HTTPXClientInstrumentor().instrument()
    _httpx_instrumented = True


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class _RequestContextLogFilter(logging.Filter):
    def __init__(self, service_name: str, traces_enabled: bool) -> None:
        super().__init__()
        self._service_name = service_name
        self._traces_enabled = traces_enabled

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.service_name = self._service_name
        record.request_id = _request_id_ctx_var.get()
        record.trace_id = None
        record.span_id = None

        if self._traces_enabled:
            span = trace.get_current_span()
            span_context = span.get_span_context() if isinstance(span, Span) else None
            if isinstance(span_context, SpanContext) and span_context.is_valid:
                record.trace_id = format(span_context.trace_id, "032x")
                record.span_id = format(span_context.span_id, "016x")
        return True
