"""
Monitor State

Owned aggregate of everything the watchdog keeps in memory: endpoint
metrics, network health, bounded result history and alerts.

The sampler is the only writer. It holds `lock` for a whole round;
acknowledgements and pull queries take the same lock.
"""

import csv
import io
import json
import threading
import time
from collections import deque
from typing import Deque, List, Optional

from .alerts import AlertManager
from .config import MonitorConfig, SamplerConfig
from .health import EndpointHealthTracker
from .models import NetworkHealth, SampleResult


class MonitorState:
    """Process-wide watchdog state."""

    def __init__(self, config: MonitorConfig):
        self.config = config
        self.endpoints: List[str] = list(config.endpoints)
        self.lock = threading.RLock()

        self.alerts = AlertManager(max_alerts=config.alert_history_size)
        self.tracker = EndpointHealthTracker(
            self.endpoints,
            failure_threshold=config.thresholds.consecutive_failures,
            on_unhealthy=self._on_endpoint_unhealthy,
        )
        self.network_health = NetworkHealth()
        self.history: Deque[SampleResult] = deque(maxlen=config.history_size)  # newest first

    def _on_endpoint_unhealthy(self, endpoint: str, metrics):
        self.alerts.create_alert(
            "rpc_failure",
            f"RPC {endpoint} has {metrics.consecutive_failures} consecutive failures",
            "critical",
        )

    # =========================================================================
    # Writes (sampler only)
    # =========================================================================

    def update_network_health(self, score: int):
        """Count one finished round; it succeeds iff it scored above zero."""
        self.network_health.total_checks += 1
        if score > 0:
            self.network_health.successful_checks += 1
        self.network_health.last_check = time.time()

    def record(self, result: SampleResult):
        """Append a result, evicting the oldest past capacity."""
        self.history.appendleft(result)

    def acknowledge_alert(self, alert_id: str) -> bool:
        with self.lock:
            return self.alerts.acknowledge(alert_id)

    # =========================================================================
    # Pull queries
    # =========================================================================

    def latest(self) -> Optional[SampleResult]:
        with self.lock:
            return self.history[0] if self.history else None

    def get_history(self, limit: int = SamplerConfig.DEFAULT_HISTORY_LIMIT) -> List[SampleResult]:
        """Most recent results, newest first."""
        with self.lock:
            return list(self.history)[:limit]

    def get_alerts(self, unacknowledged: bool = False) -> List[dict]:
        with self.lock:
            alerts = self.alerts.get_alerts(
                unacknowledged=unacknowledged, limit=SamplerConfig.MAX_ALERTS_RETURNED
            )
            return [a.to_dict() for a in alerts]

    def get_performance(self) -> dict:
        with self.lock:
            return {
                "rpc_metrics": {k: m.to_dict() for k, m in self.tracker.metrics().items()},
                "network_health": self.network_health.to_dict(),
                "recent_alerts": [
                    a.to_dict() for a in self.alerts.get_alerts(limit=SamplerConfig.RECENT_ALERTS)
                ],
            }

    def get_topology(self) -> dict:
        """Endpoints as graph nodes, linked in a ring when there are several."""
        with self.lock:
            nodes = []
            for i, endpoint in enumerate(self.endpoints):
                m = self.tracker.get(endpoint)
                nodes.append({
                    "id": i,
                    "label": endpoint,
                    "status": "healthy" if m.is_healthy else "unhealthy",
                    "response_time": m.average_response_time,
                    "success_rate": round(m.success_rate(), 1),
                })

        n = len(self.endpoints)
        connections = []
        if n > 1:
            connections = [{"from": i, "to": (i + 1) % n, "status": "active"} for i in range(n)]
        return {"nodes": nodes, "connections": connections}

    def export(self, fmt: str = "json") -> str:
        """
        Dump history for download.

        json: full history, alerts, metrics and network health.
        csv:  one row per round (timestamp, score, consistency, sample time).
        """
        with self.lock:
            history = list(self.history)
            if fmt == "csv":
                buf = io.StringIO()
                writer = csv.DictWriter(
                    buf, fieldnames=["timestamp", "da_score", "blocks_consistent", "sample_time"]
                )
                writer.writeheader()
                for result in history:
                    writer.writerow({
                        "timestamp": result.to_dict()["timestamp"],
                        "da_score": result.score.total,
                        "blocks_consistent": result.blocks_consistent,
                        "sample_time": result.sample_time_ms,
                    })
                return buf.getvalue()

            if fmt != "json":
                raise ValueError(f"Unsupported export format: {fmt}")

            data = {
                "export_date": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                "historical_data": [r.to_dict() for r in history],
                "alerts": [a.to_dict() for a in self.alerts.get_alerts()],
                "rpc_performance": {k: m.to_dict() for k, m in self.tracker.metrics().items()},
                "network_health": self.network_health.to_dict(),
            }
        return json.dumps(data, indent=2)
