"""
In-memory metrics for the plan service.

Counters and latency aggregates only. Keys are fixed vocabularies (error codes,
plan sources, safety verdicts, tier names) so no user content can end up here.
"""
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass
class LatencyStats:
    """Running sum/count/max of a latency in milliseconds."""
    sum_ms: int = 0
    count: int = 0
    max_ms: int = 0

    def record(self, ms: int) -> None:
        self.sum_ms += ms
        self.count += 1
        self.max_ms = max(self.max_ms, ms)

    @property
    def avg_ms(self) -> float:
        return self.sum_ms / self.count if self.count > 0 else 0.0

    def as_dict(self) -> dict:
        return {
            "sum_ms": self.sum_ms,
            "count": self.count,
            "avg_ms": round(self.avg_ms, 2),
            "max_ms": self.max_ms,
        }


@dataclass
class MetricsData:
    total_requests: int = 0
    success_count: int = 0
    error_count: int = 0
    rate_limited: int = 0
    error_codes: Counter = field(default_factory=Counter)
    plan_sources: Counter = field(default_factory=Counter)
    safety_verdicts: Counter = field(default_factory=Counter)
    tier_failures: Counter = field(default_factory=Counter)
    latency: LatencyStats = field(default_factory=LatencyStats)
    inference_latency: LatencyStats = field(default_factory=LatencyStats)
    started_at: float = field(default_factory=time.time)


class MetricsCollector:
    """
    Process-wide metrics singleton, safe to call from request handlers and
    threadpool workers.

    Usage:
        metrics = get_metrics_collector()
        metrics.record_request(latency_ms=150, inference_ms=120, success=True)
        metrics.record_plan(source="structured", verdict="none")
    """
    _instance: "MetricsCollector | None" = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsCollector":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._data = MetricsData()
                    instance._data_lock = threading.Lock()
                    cls._instance = instance
        return cls._instance

    def _count_failure(self, error_code: Optional[str]) -> None:
        # Caller holds _data_lock
        self._data.error_count += 1
        if error_code:
            self._data.error_codes[error_code] += 1

    def record_request(
        self,
        latency_ms: int,
        inference_ms: int,
        success: bool,
        error_code: str | None = None,
    ) -> None:
        """
        Record one finished generate request.

        inference_ms is 0 for crisis and fallback plans; those are left out of
        the inference latency so it only reflects real model calls.
        """
        with self._data_lock:
            self._data.total_requests += 1
            self._data.latency.record(latency_ms)

            if not success:
                self._count_failure(error_code)
                return

            self._data.success_count += 1
            if inference_ms > 0:
                self._data.inference_latency.record(inference_ms)

    def record_plan(
        self,
        source: str,
        verdict: str,
        tier_failures: Optional[Iterable[dict]] = None,
    ) -> None:
        """Count which tier produced a plan, the verdict, and any failed tiers."""
        with self._data_lock:
            self._data.plan_sources[source] += 1
            self._data.safety_verdicts[verdict] += 1
            self._data.tier_failures.update(
                failure.get("tier", "unknown") for failure in tier_failures or ()
            )

    def record_rate_limited(self) -> None:
        """A 429 counts as a request and as an error."""
        with self._data_lock:
            self._data.total_requests += 1
            self._data.rate_limited += 1
            self._count_failure("RATE_LIMITED")

    def get_snapshot(self) -> dict:
        """Plain-dict copy of the current values, ready for JSON."""
        with self._data_lock:
            data = self._data
            return {
                "uptime_seconds": int(time.time() - data.started_at),
                "total_requests": data.total_requests,
                "success_count": data.success_count,
                "error_count": data.error_count,
                "error_codes": dict(data.error_codes),
                "latency": data.latency.as_dict(),
                "inference_latency": data.inference_latency.as_dict(),
                "plan_sources": dict(data.plan_sources),
                "safety_verdicts": dict(data.safety_verdicts),
                "tier_failures": dict(data.tier_failures),
                "rate_limited": data.rate_limited,
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._data_lock:
            self._data = MetricsData()


def get_metrics_collector() -> MetricsCollector:
    """Get the singleton metrics collector instance."""
    return MetricsCollector()
