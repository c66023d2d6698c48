"""
DA Scorer

Combines consistency, endpoint health, latency, network reliability,
data freshness and error rate into a 0-100 data availability score.

Factors:
- block_consistency    0..25  hash agreement across endpoints
- tx_consistency       0..20  sampled transactions found everywhere
- rpc_health           0..20  share of healthy endpoints
- response_time        0..15  tiered on mean endpoint latency
- network_reliability  0..10  share of rounds that scored above zero
- data_freshness       0..5   age of the newest block
- error_penalty        -5..0  cumulative failed-request share
"""

import math
import time
from typing import Dict, Mapping, Optional, Sequence

from .config import ScoreConfig
from .consistency import blocks_consistent, majority_count, tx_consistent
from .models import (
    BlockSnapshot,
    EndpointMetrics,
    NetworkHealth,
    ScoreResult,
    TransactionSnapshot,
)


def grade_for(total: int) -> str:
    """Letter grade for a total score."""
    for minimum, grade in ScoreConfig.GRADES:
        if total >= minimum:
            return grade
    return ScoreConfig.FAILING_GRADE


def _scaled(maximum: int, part: int, whole: int) -> int:
    return math.floor(maximum * part / whole)


def _tier(value: float, tiers) -> int:
    for upper, points in tiers:
        if value < upper:
            return points
    return 0


class DAScorer:
    """
    Pure DA scoring function with configurable constants.

    Calling score() twice with the same inputs and the same `now`
    returns the same result.
    """

    def __init__(self, config: Optional[ScoreConfig] = None):
        self.config = config or ScoreConfig()

    def score(
        self,
        blocks: Sequence[Optional[BlockSnapshot]],
        tx_results: Sequence[Sequence[Optional[TransactionSnapshot]]],
        endpoint_metrics: Mapping[str, EndpointMetrics],
        network_health: NetworkHealth,
        now: Optional[float] = None,
    ) -> ScoreResult:
        """
        Score one sampling round.

        Args:
            blocks: One block (or None) per endpoint
            tx_results: Per sampled tx hash, one snapshot (or None) per endpoint
            endpoint_metrics: Tracker metrics keyed by endpoint
            network_health: Round counters
            now: Unix seconds used for freshness (default: current time)

        Returns:
            ScoreResult with total clamped to [0, 100]
        """
        if now is None:
            now = time.time()

        metrics = list(endpoint_metrics.values())
        factors: Dict[str, int] = {
            "block_consistency": self._block_consistency(blocks),
            "tx_consistency": self._tx_consistency(tx_results),
            "rpc_health": self._rpc_health(metrics),
            "response_time": self._response_time(metrics),
            "network_reliability": self._network_reliability(network_health),
            "data_freshness": self._data_freshness(blocks, now),
            "error_penalty": self._error_penalty(metrics),
        }

        total = sum(factors.values())
        total = max(self.config.MIN_SCORE, min(self.config.MAX_SCORE, total))

        return ScoreResult(total=total, factors=factors, grade=grade_for(total))

    def _block_consistency(self, blocks) -> int:
        present = [b for b in blocks if b is not None]
        if not present:
            return 0
        if blocks_consistent(present):
            return self.config.BLOCK_CONSISTENCY_MAX
        return _scaled(self.config.BLOCK_CONSISTENCY_MAX, majority_count(present), len(present))

    def _tx_consistency(self, tx_results) -> int:
        # Nothing sampled counts as perfect, unlike "no blocks" above
        if not tx_results:
            return self.config.TX_CONSISTENCY_MAX
        consistent = sum(1 for txs in tx_results if tx_consistent(txs))
        return _scaled(self.config.TX_CONSISTENCY_MAX, consistent, len(tx_results))

    def _rpc_health(self, metrics) -> int:
        if not metrics:
            return 0
        healthy = sum(1 for m in metrics if m.is_healthy)
        return _scaled(self.config.RPC_HEALTH_MAX, healthy, len(metrics))

    def _response_time(self, metrics) -> int:
        if not metrics:
            return 0
        mean_latency = sum(m.average_response_time for m in metrics) / len(metrics)
        return _tier(mean_latency, self.config.RESPONSE_TIME_TIERS)

    def _network_reliability(self, health: NetworkHealth) -> int:
        if health.total_checks == 0:
            return 0
        return _scaled(
            self.config.NETWORK_RELIABILITY_MAX,
            health.successful_checks,
            health.total_checks,
        )

    def _data_freshness(self, blocks, now: float) -> int:
        timestamps = [b.timestamp for b in blocks if b is not None and b.timestamp]
        if not timestamps:
            return 0
        age = now - max(timestamps)
        return _tier(age, self.config.FRESHNESS_TIERS)

    def _error_penalty(self, metrics) -> int:
        total_requests = sum(m.total_requests for m in metrics)
        if total_requests == 0:
            return 0
        failed = sum(m.failed_requests for m in metrics)
        return math.floor(self.config.ERROR_PENALTY_MAX * failed / total_requests)


def score_da(
    blocks: Sequence[Optional[BlockSnapshot]],
    tx_results: Sequence[Sequence[Optional[TransactionSnapshot]]],
    endpoint_metrics: Mapping[str, EndpointMetrics],
    network_health: NetworkHealth,
    now: Optional[float] = None,
) -> ScoreResult:
    """Score one round with the default constants."""
    return DAScorer().score(blocks, tx_results, endpoint_metrics, network_health, now=now)
