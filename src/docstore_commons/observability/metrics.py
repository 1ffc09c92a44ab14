"""Operation metrics for the document store and blob storage.

Each remote call is reported once, labelled with the resource (``mongodb``,
``s3``), the operation name and the collection it touched. Blob storage reports
its bucket in the collection label; database-wide calls such as ``connect`` or
``reconcile`` report ``none``.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Protocol

from docstore_commons.errors import MissingDependencyError

_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]+")
_LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
_NO_COLLECTION = "none"


def _import_prometheus_client() -> Any:
    try:
        import prometheus_client
    except ImportError as exc:  # pragma: no cover - depends on installed extras
        raise MissingDependencyError(
            "Prometheus metrics require dependency 'prometheus-client'. "
            "Install with: pip install docstore-commons"
        ) from exc
    return prometheus_client


def _name_label(value: str, *, fallback: str = "unknown") -> str:
    return _NAME_CHARS.sub("_", value.strip().lower()).strip("_") or fallback


def _collection_label(collection: str | None) -> str:
    if collection is None or not collection.strip():
        return _NO_COLLECTION
    return collection


class MetricsRecorder(Protocol):
    """Receives one observation per remote operation."""

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        collection: str | None,
        duration_seconds: float,
        success: bool,
    ) -> None: ...

    def observe_error(
        self,
        *,
        resource: str,
        operation: str,
        collection: str | None,
        error_type: str,
    ) -> None: ...

    def observe_documents(
        self,
        *,
        resource: str,
        operation: str,
        collection: str | None,
        count: int,
    ) -> None:
        """Count documents returned, inserted or deleted by ``operation``."""
        ...


class NoopMetricsRecorder:
    """Default recorder; drops every observation."""

    def observe_operation(self, **observation: Any) -> None:
        del observation

    def observe_error(self, **observation: Any) -> None:
        del observation

    def observe_documents(self, **observation: Any) -> None:
        del observation


class PrometheusMetricsRecorder:
    """Recorder backed by ``prometheus_client`` collectors.

    Exposes ``<prefix>_operation_latency_seconds``, ``<prefix>_operations_total``,
    ``<prefix>_operation_errors_total`` and ``<prefix>_documents_total``. Two
    recorders sharing a registry and prefix share the same collectors.
    """

    def __init__(self, *, registry: Any | None = None, prefix: str = "docstore") -> None:
        prometheus_client = _import_prometheus_client()
        self._registry = prometheus_client.REGISTRY if registry is None else registry
        self._prefix = _name_label(prefix, fallback="docstore")

        scope = ("resource", "operation", "collection")
        self._latency = self._collector(
            prometheus_client.Histogram,
            "operation_latency_seconds",
            "Latency of document store and blob operations.",
            (*scope, "status"),
            buckets=_LATENCY_BUCKETS,
        )
        self._operations = self._collector(
            prometheus_client.Counter,
            "operations_total",
            "Completed document store and blob operations.",
            (*scope, "status"),
        )
        self._errors = self._collector(
            prometheus_client.Counter,
            "operation_errors_total",
            "Failed operations by typed error.",
            (*scope, "error_type"),
        )
        self._documents = self._collector(
            prometheus_client.Counter,
            "documents_total",
            "Documents returned, inserted or deleted.",
            scope,
        )

    def _collector(
        self,
        kind: Any,
        suffix: str,
        documentation: str,
        labelnames: tuple[str, ...],
        **options: Any,
    ) -> Any:
        name = f"{self._prefix}_{suffix}"
        registered = getattr(self._registry, "_names_to_collectors", {})
        if name in registered:
            return registered[name]
        return kind(name, documentation, labelnames=labelnames, registry=self._registry, **options)

    def _scope(self, resource: str, operation: str, collection: str | None) -> dict[str, str]:
        return {
            "resource": _name_label(resource),
            "operation": _name_label(operation),
            "collection": _collection_label(collection),
        }

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        collection: str | None,
        duration_seconds: float,
        success: bool,
    ) -> None:
        labels = self._scope(resource, operation, collection)
        labels["status"] = "success" if success else "error"
        self._latency.labels(**labels).observe(max(0.0, duration_seconds))
        self._operations.labels(**labels).inc()

    def observe_error(
        self,
        *,
        resource: str,
        operation: str,
        collection: str | None,
        error_type: str,
    ) -> None:
        self._errors.labels(
            **self._scope(resource, operation, collection), error_type=error_type
        ).inc()

    def observe_documents(
        self,
        *,
        resource: str,
        operation: str,
        collection: str | None,
        count: int,
    ) -> None:
        if count > 0:
            self._documents.labels(**self._scope(resource, operation, collection)).inc(count)


_NOOP = NoopMetricsRecorder()
_recorder: MetricsRecorder = _NOOP


def get_metrics_recorder() -> MetricsRecorder:
    """Process-wide recorder used when a resource is given none."""
    return _recorder


def set_metrics_recorder(recorder: MetricsRecorder | None) -> MetricsRecorder:
    """Replace the process-wide recorder; ``None`` restores the no-op one."""
    global _recorder
    _recorder = _NOOP if recorder is None else recorder
    return _recorder


def configure_prometheus_metrics(
    *,
    registry: Any | None = None,
    prefix: str = "docstore",
    set_default: bool = True,
) -> PrometheusMetricsRecorder:
    recorder = PrometheusMetricsRecorder(registry=registry, prefix=prefix)
    if set_default:
        set_metrics_recorder(recorder)
    return recorder


def render_prometheus_metrics(*, registry: Any | None = None) -> bytes:
    """Exposition text for ``registry`` (the global registry by default)."""
    prometheus_client = _import_prometheus_client()
    target = prometheus_client.REGISTRY if registry is None else registry
    return bytes(prometheus_client.generate_latest(target))


def record_operation(
    *,
    resource: str,
    operation: str,
    collection: str | None,
    started: float,
    error: BaseException | None = None,
    metrics: MetricsRecorder | None = None,
) -> None:
    """Report one finished operation that began at ``started`` (``perf_counter``)."""
    recorder = get_metrics_recorder() if metrics is None else metrics
    recorder.observe_operation(
        resource=resource,
        operation=operation,
        collection=collection,
        duration_seconds=perf_counter() - started,
        success=error is None,
    )
    if error is not None:
        recorder.observe_error(
            resource=resource,
            operation=operation,
            collection=collection,
            error_type=type(error).__name__,
        )


def record_documents(
    *,
    resource: str,
    operation: str,
    collection: str | None,
    count: int,
    metrics: MetricsRecorder | None = None,
) -> None:
    recorder = get_metrics_recorder() if metrics is None else metrics
    recorder.observe_documents(
        resource=resource, operation=operation, collection=collection, count=count
    )


@contextmanager
def track_operation(
    resource: str,
    operation: str,
    *,
    collection: str | None = None,
    metrics: MetricsRecorder | None = None,
) -> Iterator[None]:
    """Time the enclosed block as one operation.

    An exception leaving the block is recorded under its own type name and
    re-raised; cancellation is not recorded.
    """
    started = perf_counter()
    try:
        yield
    except Exception as exc:
        record_operation(
            resource=resource,
            operation=operation,
            collection=collection,
            started=started,
            error=exc,
            metrics=metrics,
        )
        raise
    record_operation(
        resource=resource,
        operation=operation,
        collection=collection,
        started=started,
        metrics=metrics,
    )
