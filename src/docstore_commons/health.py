"""Liveness results reported by the document store and blob storage."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any


@dataclass(slots=True)
class HealthStatus:
    """Outcome of one liveness check.

    ``details`` holds short string facts such as the database name, and on
    failure the ``error_type`` of the exception that was caught.
    """

    healthy: bool
    latency_ms: float
    message: str | None = None
    details: dict[str, str] | None = None

    @classmethod
    def passed(cls, started: float, *, message: str = "ok", **details: str) -> HealthStatus:
        """Healthy result for a check that began at ``started`` (``perf_counter``)."""
        return cls(
            healthy=True,
            latency_ms=_elapsed_ms(started),
            message=message,
            details=details or None,
        )

    @classmethod
    def failed(cls, started: float, reason: BaseException | str, **details: str) -> HealthStatus:
        """Unhealthy result; an exception ``reason`` also records its type."""
        if isinstance(reason, BaseException):
            details = {"error_type": type(reason).__name__, **details}
        return cls(
            healthy=False,
            latency_ms=_elapsed_ms(started),
            message=str(reason),
            details=details or None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "healthy": self.healthy,
            "latency_ms": round(max(0.0, float(self.latency_ms)), 3),
        }
        if self.message is not None:
            payload["message"] = self.message
        if self.details:
            payload["details"] = dict(self.details)
        return payload


def _elapsed_ms(started: float) -> float:
    return (perf_counter() - started) * 1000
