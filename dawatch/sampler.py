"""
Sampler Loop

Runs one polling round at a time:
1. Fetch the latest block from every endpoint (concurrently)
2. Sample up to N transaction hashes from the first endpoint's block
3. Fetch each sampled transaction from every endpoint (concurrently)
4. Score, record, alert, hand the result to the distribution layer

Calls inside a round fan out over a thread pool; all outcomes are fed to
the health tracker from the round's own thread after fan-in, so metrics
have a single writer.
"""

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from .config import MonitorConfig, SamplerConfig
from .consistency import blocks_consistent
from .models import SampleResult
from .rpc_client import RpcCallResult, RpcClient
from .scorer import DAScorer
from .state import MonitorState

logger = logging.getLogger(__name__)


class Sampler:
    """
    Drives sampling rounds against a fixed set of endpoints.

    Rounds never overlap: run_round() holds the state lock until the
    result is recorded, and the background loop only schedules the next
    round after the previous one returned.
    """

    def __init__(
        self,
        state: MonitorState,
        clients: Sequence[RpcClient],
        config: Optional[MonitorConfig] = None,
        scorer: Optional[DAScorer] = None,
        rng: Optional[random.Random] = None,
        on_result: Optional[Callable[[SampleResult], None]] = None,
    ):
        """
        Args:
            state: Shared monitor state (written only by this sampler)
            clients: One client per endpoint, in state.endpoints order
            config: Sampling settings (default: state.config)
            scorer: DA scorer (default constants if omitted)
            rng: Random source for transaction sampling
            on_result: Called with every finished SampleResult
        """
        self.state = state
        self.clients = list(clients)
        self.config = config or state.config
        self.scorer = scorer or DAScorer()
        self.rng = rng or random.Random()
        self.on_result = on_result

        self.running = False
        self.rounds = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    # =========================================================================
    # One round
    # =========================================================================

    def _fan_out(self, call: Callable[[RpcClient], RpcCallResult]) -> List[RpcCallResult]:
        """Run `call` against every client concurrently; results in client order."""
        if not self.clients:
            return []
        with ThreadPoolExecutor(max_workers=len(self.clients)) as executor:
            return list(executor.map(call, self.clients))

    def _record(self, results: List[RpcCallResult]):
        for r in results:
            self.state.tracker.record_outcome(r.endpoint, r.success, r.latency_ms)

    def _pick_transactions(self, first_block) -> List[str]:
        if first_block is None or not first_block.transactions:
            return []
        size = min(self.config.tx_sample_size, len(first_block.transactions))
        return self.rng.sample(first_block.transactions, size)

    def run_round(self) -> SampleResult:
        """Execute one full sampling round and return its result."""
        with self.state.lock:
            start = time.time()

            block_results = self._fan_out(
                lambda c: c.get_block("latest", SamplerConfig.INCLUDE_TXS)
            )
            self._record(block_results)
            blocks = tuple(r.data for r in block_results)

            sampled = self._pick_transactions(blocks[0] if blocks else None)

            tx_results = []
            for tx_hash in sampled:
                per_endpoint = self._fan_out(lambda c: c.get_transaction(tx_hash))
                self._record(per_endpoint)
                tx_results.append(tuple(r.data for r in per_endpoint))

            metrics = self.state.tracker.metrics()
            score = self.scorer.score(blocks, tx_results, metrics, self.state.network_health)

            result = SampleResult(
                timestamp=start,
                endpoints=tuple(self.state.endpoints),
                blocks=blocks,
                sampled_txs=tuple(sampled),
                tx_results=tuple(tx_results),
                blocks_consistent=blocks_consistent(blocks),
                score=score,
                endpoint_metrics=self.state.tracker.snapshot(),
                network_health=self.state.network_health.copy(),
                sample_time_ms=int((time.time() - start) * 1000),
            )

            self.state.update_network_health(score.total)
            self.state.record(result)
            self.state.alerts.evaluate(result, self.config.thresholds)
            self.rounds += 1

        logger.info(
            f"Round {self.rounds}: DA score {score.total}/100 ({score.grade}), "
            f"{len(sampled)} txs sampled, {result.sample_time_ms}ms"
        )

        if self.on_result:
            self.on_result(result)

        return result

    # =========================================================================
    # Background loop
    # =========================================================================

    def start(self):
        """Run rounds every poll_interval seconds in a background thread."""
        if self.running:
            return
        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="dawatch-sampler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        """Stop the loop; an in-flight round is allowed to finish."""
        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run_loop(self):
        while self.running:
            started = time.time()
            try:
                self.run_round()
            except Exception as e:
                logger.exception(f"Sampling round failed: {e}")

            # Late rounds are not made up; wait out what is left of the interval
            remaining = self.config.poll_interval - (time.time() - started)
            if self._stop_event.wait(max(0.0, remaining)):
                break
