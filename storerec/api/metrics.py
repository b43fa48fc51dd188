"""Metrics service for tracking recommendation performance.

Singleton service to track per-operation call counts and latency.
"""

import threading
from typing import Dict


class _OperationStats:
    __slots__ = ("count", "total_ms", "min_ms", "max_ms")

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms = float('inf')
        self.max_ms = 0.0


class MetricsService:
    """Singleton service for tracking API metrics.

    Thread-safe counters and latency tracking, keyed by operation name
    (e.g. "for_you", "similar", "trending", "track").
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
        """Initialize metrics counters."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._operations: Dict[str, _OperationStats] = {}
        self._initialized = True

    def record_call(self, operation: str, latency_ms: float) -> None:
        """Record one call of an operation with its latency.

        Args:
            operation: Operation name
            latency_ms: Latency in milliseconds
        """
        with self._lock:
            stats = self._operations.setdefault(operation, _OperationStats())
            stats.count += 1
            stats.total_ms += latency_ms
            stats.min_ms = min(stats.min_ms, latency_ms)
            stats.max_ms = max(stats.max_ms, latency_ms)

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with:
            - total_calls: Calls across all operations
            - operations: Per-operation count, average_latency_ms,
              min_latency_ms and max_latency_ms
        """
        with self._lock:
            operations = {}
            for name, stats in sorted(self._operations.items()):
                operations[name] = {
                    "count": stats.count,
                    "average_latency_ms": round(stats.total_ms / stats.count, 2) if stats.count else 0.0,
                    "min_latency_ms": round(stats.min_ms, 2) if stats.min_ms != float('inf') else 0.0,
                    "max_latency_ms": round(stats.max_ms, 2),
                }

            return {
                "total_calls": sum(s.count for s in self._operations.values()),
                "operations": operations,
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._operations = {}


# Global singleton instance
metrics_service = MetricsService()
