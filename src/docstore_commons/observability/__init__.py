"""Observability helpers: structured logging and metrics."""

from docstore_commons.observability.logging import (
    JsonFormatter,
    SamplingFilter,
    TextFormatter,
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    log_tagged_error,
)
from docstore_commons.observability.metrics import (
    MetricsRecorder,
    NoopMetricsRecorder,
    PrometheusMetricsRecorder,
    configure_prometheus_metrics,
    get_metrics_recorder,
    record_documents,
    record_operation,
    render_prometheus_metrics,
    set_metrics_recorder,
    track_operation,
)

__all__ = [
    "JsonFormatter",
    "MetricsRecorder",
    "NoopMetricsRecorder",
    "PrometheusMetricsRecorder",
    "SamplingFilter",
    "TextFormatter",
    "bootstrap_logging",
    "bootstrap_logging_from_app_settings",
    "configure_prometheus_metrics",
    "get_metrics_recorder",
    "log_tagged_error",
    "record_documents",
    "record_operation",
    "render_prometheus_metrics",
    "set_metrics_recorder",
    "track_operation",
]
