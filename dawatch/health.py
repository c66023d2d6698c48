"""
Endpoint Health Tracker

Per-endpoint request counters, cumulative mean latency and a health flag
driven by consecutive failures.
"""

import logging
import time
from typing import Callable, Dict, Iterable, Optional

from .models import EndpointMetrics

logger = logging.getLogger(__name__)


class EndpointHealthTracker:
    """
    Records the outcome of every RPC call.

    An endpoint turns unhealthy once its consecutive failures reach
    `failure_threshold` and turns healthy again on its next success.

    Average response time is the arithmetic mean over every request since
    start (not windowed): early samples keep their weight forever, so a
    long-running tracker reacts slowly to new latency regimes.
    """

    def __init__(
        self,
        endpoints: Iterable[str] = (),
        failure_threshold: int = 3,
        on_unhealthy: Optional[Callable[[str, EndpointMetrics], None]] = None,
    ):
        """
        Args:
            endpoints: Endpoints to pre-register (shown as healthy with no requests)
            failure_threshold: Consecutive failures that mark an endpoint unhealthy
            on_unhealthy: Called on every failure at or past the threshold
        """
        self.failure_threshold = failure_threshold
        self.on_unhealthy = on_unhealthy
        self._metrics: Dict[str, EndpointMetrics] = {}
        for endpoint in endpoints:
            self._ensure(endpoint)

    def _ensure(self, endpoint: str) -> EndpointMetrics:
        metrics = self._metrics.get(endpoint)
        if metrics is None:
            metrics = EndpointMetrics(endpoint=endpoint)
            self._metrics[endpoint] = metrics
        return metrics

    def record_outcome(self, endpoint: str, success: bool, latency_ms: float) -> None:
        """Record one call. Never raises."""
        metrics = self._ensure(endpoint)
        metrics.total_requests += 1

        if success:
            metrics.consecutive_failures = 0
            metrics.last_success_time = time.time()
            metrics.is_healthy = True
        else:
            metrics.failed_requests += 1
            metrics.consecutive_failures += 1

            if metrics.consecutive_failures >= self.failure_threshold:
                if metrics.is_healthy:
                    logger.warning(
                        f"[{endpoint}] marked unhealthy after "
                        f"{metrics.consecutive_failures} consecutive failures"
                    )
                metrics.is_healthy = False
                if self.on_unhealthy:
                    self.on_unhealthy(endpoint, metrics)

        n = metrics.total_requests
        metrics.average_response_time = (
            metrics.average_response_time * (n - 1) + latency_ms
        ) / n

    def get(self, endpoint: str) -> Optional[EndpointMetrics]:
        return self._metrics.get(endpoint)

    def metrics(self) -> Dict[str, EndpointMetrics]:
        """Live metrics, keyed by endpoint."""
        return self._metrics

    def snapshot(self) -> Dict[str, EndpointMetrics]:
        """Independent copies of all metrics."""
        return {name: m.copy() for name, m in self._metrics.items()}

    def healthy_count(self) -> int:
        return sum(1 for m in self._metrics.values() if m.is_healthy)
