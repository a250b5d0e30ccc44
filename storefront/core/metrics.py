from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0
    max_duration_ms: float = 0.0

    def record(self, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if status_code >= 400:
            self.error_count += 1

    def as_dict(self) -> dict[str, float | int]:
        avg = self.total_duration_ms / self.total_requests if self.total_requests else 0.0
        return {
            "total_requests": self.total_requests,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "avg_duration_ms": round(avg, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "error_count": self.error_count,
        }


class InMemoryRequestMetrics:
    """Per-process request counters keyed by route template and method."""

    def __init__(self) -> None:
        self._endpoints: dict[tuple[str, str], EndpointMetric] = {}
        self._statuses: Counter[int] = Counter()
        self._lock = Lock()

    def observe(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            self._endpoints.setdefault((endpoint, method), EndpointMetric()).record(status_code, duration_ms)
            self._statuses[status_code] += 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {f"{method} {endpoint}": metric.as_dict() for (endpoint, method), metric in self._endpoints.items()}

    def status_counts(self) -> dict[str, int]:
        with self._lock:
            return {str(code): self._statuses[code] for code in sorted(self._statuses)}

    def reset(self) -> None:
        with self._lock:
            self._endpoints.clear()
            self._statuses.clear()


request_metrics = InMemoryRequestMetrics()
