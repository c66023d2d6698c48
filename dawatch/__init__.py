"""
DA Watch: Multi-Endpoint Data Availability Watchdog

Polls several Ethereum-compatible JSON-RPC endpoints and:
- Checks block and transaction hash agreement across endpoints
- Tracks per-endpoint latency, failures and health
- Computes a 0-100 data availability score with a letter grade
- Raises alerts and streams results to dashboard clients

Usage:
    from dawatch import DAWatch

    watch = DAWatch()
    watch.start()

    result = watch.get_latest()
    print(result.da_score, result.grade)
"""

import logging
import time
from dataclasses import replace
from typing import List, Optional

from .broadcast import Broadcaster
from .config import MonitorConfig
from .models import Alert, SampleResult, ScoreResult
from .rpc_client import RpcClient
from .sampler import Sampler
from .scorer import DAScorer, grade_for, score_da
from .state import MonitorState

logger = logging.getLogger(__name__)

__version__ = "1.0.0"
__all__ = [
    "DAWatch",
    "DAScorer",
    "MonitorConfig",
    "SampleResult",
    "ScoreResult",
    "Alert",
    "grade_for",
    "score_da",
]


class DAWatch:
    """
    Data availability watchdog.

    Wires RPC clients, the shared monitor state, the sampler loop and
    (optionally) the dashboard WebSocket feed.
    """

    def __init__(self, config: Optional[MonitorConfig] = None, endpoints: Optional[List[str]] = None):
        """
        Args:
            config: Monitor settings (default: MonitorConfig())
            endpoints: Overrides config.endpoints when given
        """
        config = config or MonitorConfig()
        if endpoints:
            config = replace(config, endpoints=list(endpoints))
        self.config = config

        self.state = MonitorState(self.config)
        self._clients = [
            RpcClient(url, timeout_ms=self.config.rpc_timeout_ms)
            for url in self.state.endpoints
        ]
        self._broadcaster: Optional[Broadcaster] = None
        self._sampler = Sampler(self.state, self._clients, self.config, on_result=self._on_result)

        self.running = False

    def start(self, serve: bool = True) -> bool:
        """
        Start the sampling loop, and the dashboard feed if `serve`.

        Returns:
            False if the dashboard feed was requested but failed to bind
        """
        ok = True
        if serve:
            self._broadcaster = Broadcaster(self.state, self.config.ws_host, self.config.ws_port)
            if self._broadcaster.start():
                print(f"  ✓ Dashboard feed on ws://{self.config.ws_host}:{self.config.ws_port}")
            else:
                print(f"  ✗ Dashboard feed failed to start")
                self._broadcaster.stop()
                self._broadcaster = None
                ok = False

        self._sampler.start()
        self.running = True
        print(
            f"  ⚡ DA Watch sampling {len(self.state.endpoints)} endpoints "
            f"every {self.config.poll_interval:g}s"
        )
        return ok

    def stop(self):
        """Stop sampling and the dashboard feed."""
        self.running = False
        self._sampler.stop()
        if self._broadcaster:
            self._broadcaster.stop()
            self._broadcaster = None
        for client in self._clients:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Error closing {client.endpoint}: {e}")

    def _on_result(self, result: SampleResult):
        if self._broadcaster:
            self._broadcaster.publish_result(result)

    def sample_once(self) -> SampleResult:
        """Run a single round synchronously."""
        return self._sampler.run_round()

    # =========================================================================
    # Pull queries
    # =========================================================================

    def get_latest(self) -> Optional[SampleResult]:
        return self.state.latest()

    def get_score(self) -> Optional[int]:
        latest = self.state.latest()
        return latest.da_score if latest else None

    def get_history(self, limit: int = 100) -> List[SampleResult]:
        return self.state.get_history(limit)

    def get_alerts(self, unacknowledged: bool = False) -> List[dict]:
        return self.state.get_alerts(unacknowledged)

    def acknowledge_alert(self, alert_id: str) -> bool:
        return self.state.acknowledge_alert(alert_id)

    def get_performance(self) -> dict:
        return self.state.get_performance()

    def get_topology(self) -> dict:
        return self.state.get_topology()

    def export(self, fmt: str = "json") -> str:
        return self.state.export(fmt)

    # =========================================================================
    # Status and diagnostics
    # =========================================================================

    def get_status(self) -> dict:
        latest = self.state.latest()
        return {
            "running": self.running,
            "endpoints": list(self.state.endpoints),
            "rounds": self._sampler.rounds,
            "da_score": latest.da_score if latest else None,
            "grade": latest.grade if latest else None,
            "dashboard_clients": self._broadcaster.client_count if self._broadcaster else 0,
            "performance": self.get_performance(),
        }

    def print_status(self):
        """Print formatted status to console."""
        latest = self.state.latest()
        performance = self.get_performance()

        print(f"\n{'='*60}")
        print(f"DA Watch Status")
        print(f"{'='*60}")
        if latest:
            print(f"Score:      {latest.da_score}/100 ({latest.grade})")
            print(f"Consistent: {'yes' if latest.blocks_consistent else 'NO'}")
            print(f"Sampled:    {len(latest.sampled_txs)} txs in {latest.sample_time_ms}ms")
            for name, points in latest.score.breakdown().items():
                print(f"  {name:20} {points}")
        else:
            print("Score:      N/A (no rounds yet)")

        health = performance["network_health"]
        print(f"Network:    {health['status']} ({health['successful_checks']}/{health['total_checks']} rounds)")

        print(f"\nPer-endpoint metrics:")
        for endpoint, m in performance["rpc_metrics"].items():
            flag = "✓" if m["is_healthy"] else "✗"
            print(
                f"  {flag} {endpoint:50} avg={m['average_response_time']:7.1f}ms "
                f"fail={m['failed_requests']}/{m['total_requests']}"
            )

        unacked = self.state.get_alerts(unacknowledged=True)
        if unacked:
            print(f"\n⚠️  {len(unacked)} unacknowledged alerts (latest: {unacked[0]['message']})")
        print(f"{'='*60}\n")


# Test function
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    print("Testing DA Watch...")
    watch = DAWatch()

    for i in range(3):
        result = watch.sample_once()
        print(f"[{i}] score={result.da_score} grade={result.grade} consistent={result.blocks_consistent}")
        time.sleep(2)

    watch.print_status()
    watch.stop()
