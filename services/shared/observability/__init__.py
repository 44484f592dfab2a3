"""
Shared observability helpers (telemetry, privacy utilities, etc.).

The service imports from this package so request ids, JSON logging, and the
rules for keeping user free text out of logs stay consistent.
"""

from .privacy import hash_payload, redact_fields, text_fingerprint
from .telemetry import (
    CORRELATION_ID_HEADER,
    RequestContextToken,
    TelemetryConfig,
    bind_request_context,
    current_request_id,
    ensure_request_id,
    reset_request_context,
    setup_telemetry,
)

__all__ = [
    "hash_payload",
    "redact_fields",
    "text_fingerprint",
    "CORRELATION_ID_HEADER",
    "RequestContextToken",
    "TelemetryConfig",
    "bind_request_context",
    "current_request_id",
    "ensure_request_id",
    "reset_request_context",
    "setup_telemetry",
]
