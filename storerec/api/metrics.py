"""Metrics service for tracking recommendation performance.

Singleton service counting computations per operation, their latency,
and fetch failures per source.
"""

import threading
from typing import Dict


class _LatencyStats:
    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms = float('inf')
        self.max_ms = 0.0

    def add(self, latency_ms: float) -> None:
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)

    def as_dict(self) -> Dict[str, float]:
        average = self.total_ms / self.count if self.count > 0 else 0.0
        return {
            "count": self.count,
            "average_latency_ms": round(average, 2),
            "min_latency_ms": round(self.min_ms, 2) if self.min_ms != float('inf') else 0.0,
            "max_latency_ms": round(self.max_ms, 2),
        }


class MetricsService:
    """Singleton service for tracking engine metrics.

    Thread-safe; the API serves sync endpoints from a thread pool.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize counters."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._operations: Dict[str, _LatencyStats] = {}
        self._fetch_failures: Dict[str, int] = {}
        self._stale_results = 0
        self._initialized = True

    def record_computation(self, operation: str, latency_ms: float) -> None:
        """Record one run of ``operation`` (e.g. "sections", "product_page")."""
        with self._lock:
            self._operations.setdefault(operation, _LatencyStats()).add(latency_ms)

    def record_fetch_failure(self, source: str) -> None:
        """Record a failed fetch from ``source``."""
        with self._lock:
            self._fetch_failures[source] = self._fetch_failures.get(source, 0) + 1

    def record_stale_result(self) -> None:
        """Record a computation discarded because a newer one started."""
        with self._lock:
            self._stale_results += 1

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with:
            - operations: per-operation count and latency summary
            - fetch_failures: failure count per source
            - stale_results: computations dropped as superseded
        """
        with self._lock:
            return {
                "operations": {
                    name: stats.as_dict() for name, stats in self._operations.items()
                },
                "fetch_failures": dict(self._fetch_failures),
                "stale_results": self._stale_results,
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._operations = {}
            self._fetch_failures = {}
            self._stale_results = 0


# Global singleton instance
metrics_service = MetricsService()
