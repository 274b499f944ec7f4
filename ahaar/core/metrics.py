from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0

    def record(self, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        if status_code >= 400:
            self.error_count += 1

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.total_requests if self.total_requests else 0.0


class InMemoryRequestMetrics:
    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._brand_metrics: dict[str, EndpointMetric] = {}
        self._status_counts: dict[int, int] = {}
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        brand_id: str | None = None,
    ) -> None:
        with self._lock:
            self._metrics.setdefault((endpoint, method), EndpointMetric()).record(status_code, duration_ms)
            self._status_counts[status_code] = self._status_counts.get(status_code, 0) + 1
            if brand_id:
                self._brand_metrics.setdefault(brand_id, EndpointMetric()).record(status_code, duration_ms)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                f"{method} {endpoint}": {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": round(metric.avg_duration_ms, 2),
                    "error_count": metric.error_count,
                }
                for (endpoint, method), metric in self._metrics.items()
            }

    def snapshot_per_brand(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                brand_id: {
                    "requests": metric.total_requests,
                    "errors": metric.error_count,
                    "avg_duration_ms": round(metric.avg_duration_ms, 2),
                }
                for brand_id, metric in self._brand_metrics.items()
            }

    def status_counts(self) -> dict[str, int]:
        with self._lock:
            return {str(code): count for code, count in sorted(self._status_counts.items())}

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._brand_metrics.clear()
            self._status_counts.clear()


request_metrics = InMemoryRequestMetrics()
