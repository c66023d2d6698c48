"""
DA Watch Data Models

Dataclasses for block/transaction snapshots, endpoint metrics,
alerts and per-round sample results.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import time

from .config import ScoreConfig


def parse_quantity(value: Any, default: int = 0) -> int:
    """
    Decode a JSON-RPC quantity to int.

    Accepts hex strings ("0x1a"), decimal strings and ints.
    Anything else (None, garbage) returns `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16) if len(text) > 2 else default
            return int(text)
        except ValueError:
            return default
    return default


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def _parse_timestamp(value: Any) -> Optional[int]:
    """Block timestamp in unix seconds; None if missing or not a representable date."""
    if value is None:
        return None
    ts = parse_quantity(value, default=-1)
    if ts < 0 or _iso(ts) is None:
        return None
    return ts


@dataclass
class BlockSnapshot:
    """Latest block as reported by one endpoint at one sampling instant."""
    endpoint: str
    number: int
    hash: Optional[str]
    parent_hash: Optional[str] = None
    timestamp: Optional[int] = None  # unix seconds
    gas_used: int = 0
    gas_limit: int = 0
    transactions: List[str] = field(default_factory=list)  # tx hashes
    size: int = 0
    miner: Optional[str] = None
    difficulty: int = 0
    extra_data: Optional[str] = None

    @classmethod
    def from_rpc(cls, endpoint: str, payload: Any) -> Optional["BlockSnapshot"]:
        """Build from an eth_getBlockByNumber result; None if not a block object."""
        if not isinstance(payload, dict):
            return None

        tx_hashes = []
        transactions = payload.get("transactions")
        if not isinstance(transactions, list):
            transactions = []
        for tx in transactions:
            # includeTxs=true gives objects, false gives bare hashes
            tx_hash = tx.get("hash") if isinstance(tx, dict) else tx
            if isinstance(tx_hash, str):
                tx_hashes.append(tx_hash)

        return cls(
            endpoint=endpoint,
            number=parse_quantity(payload.get("number")),
            hash=payload.get("hash"),
            parent_hash=payload.get("parentHash"),
            timestamp=_parse_timestamp(payload.get("timestamp")),
            gas_used=parse_quantity(payload.get("gasUsed")),
            gas_limit=parse_quantity(payload.get("gasLimit")),
            transactions=tx_hashes,
            size=parse_quantity(payload.get("size")),
            miner=payload.get("miner"),
            difficulty=parse_quantity(payload.get("difficulty")),
            extra_data=payload.get("extraData"),
        )

    @property
    def tx_count(self) -> int:
        return len(self.transactions)

    def to_dict(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "number": self.number,
            "hash": self.hash,
            "parent_hash": self.parent_hash,
            "timestamp": _iso(self.timestamp) if self.timestamp else None,
            "gas_used": self.gas_used,
            "gas_limit": self.gas_limit,
            "tx_count": self.tx_count,
            "transactions": self.transactions[:3],
            "size": self.size,
            "miner": self.miner,
            "difficulty": self.difficulty,
            "extra_data": self.extra_data,
        }


@dataclass
class TransactionSnapshot:
    """One transaction as reported by one endpoint."""
    endpoint: str
    hash: Optional[str]
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    value: int = 0
    gas_price: int = 0
    gas: int = 0
    block_number: int = 0
    transaction_index: int = 0
    nonce: int = 0

    @classmethod
    def from_rpc(cls, endpoint: str, payload: Any) -> Optional["TransactionSnapshot"]:
        """Build from an eth_getTransactionByHash result; None if absent."""
        if not isinstance(payload, dict):
            return None
        return cls(
            endpoint=endpoint,
            hash=payload.get("hash"),
            from_address=payload.get("from"),
            to_address=payload.get("to"),
            value=parse_quantity(payload.get("value")),
            gas_price=parse_quantity(payload.get("gasPrice")),
            gas=parse_quantity(payload.get("gas")),
            block_number=parse_quantity(payload.get("blockNumber")),
            transaction_index=parse_quantity(payload.get("transactionIndex")),
            nonce=parse_quantity(payload.get("nonce")),
        )

    def to_dict(self) -> dict:
        # Wei amounts overflow JS numbers, send as strings
        return {
            "endpoint": self.endpoint,
            "hash": self.hash,
            "from": self.from_address,
            "to": self.to_address,
            "value": str(self.value),
            "gas_price": str(self.gas_price),
            "gas": str(self.gas),
            "block_number": self.block_number,
            "transaction_index": self.transaction_index,
            "nonce": self.nonce,
        }


@dataclass
class EndpointMetrics:
    """Rolling performance record for one RPC endpoint. Never reset."""
    endpoint: str
    average_response_time: float = 0.0  # ms, mean over every request
    total_requests: int = 0
    failed_requests: int = 0
    consecutive_failures: int = 0
    last_success_time: Optional[float] = None
    is_healthy: bool = True

    def success_rate(self) -> float:
        """Percentage of successful requests (0 before the first request)."""
        if self.total_requests == 0:
            return 0.0
        return (self.total_requests - self.failed_requests) / self.total_requests * 100

    def copy(self) -> "EndpointMetrics":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "average_response_time": self.average_response_time,
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "consecutive_failures": self.consecutive_failures,
            "last_success_time": _iso(self.last_success_time),
            "is_healthy": self.is_healthy,
        }


@dataclass
class NetworkHealth:
    """Cumulative per-round counters."""
    total_checks: int = 0
    successful_checks: int = 0
    last_check: Optional[float] = None

    @property
    def status(self) -> str:
        if self.total_checks == 0:
            return "unknown"
        if self.successful_checks == self.total_checks:
            return "healthy"
        return "degraded"

    def copy(self) -> "NetworkHealth":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "total_checks": self.total_checks,
            "successful_checks": self.successful_checks,
            "last_check": _iso(self.last_check),
        }


SEVERITIES = ("info", "warning", "critical")


@dataclass
class Alert:
    """Threshold alert. Only `acknowledged` changes after creation."""
    id: str
    type: str
    message: str
    severity: str = "warning"
    timestamp: float = field(default_factory=time.time)
    acknowledged: bool = False

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown alert severity: {self.severity}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "message": self.message,
            "severity": self.severity,
            "timestamp": _iso(self.timestamp),
            "acknowledged": self.acknowledged,
        }


# Factor name -> maximum points, in report order
FACTOR_MAXIMA: Dict[str, int] = {
    "block_consistency": ScoreConfig.BLOCK_CONSISTENCY_MAX,
    "tx_consistency": ScoreConfig.TX_CONSISTENCY_MAX,
    "rpc_health": ScoreConfig.RPC_HEALTH_MAX,
    "response_time": ScoreConfig.RESPONSE_TIME_MAX,
    "network_reliability": ScoreConfig.NETWORK_RELIABILITY_MAX,
    "data_freshness": ScoreConfig.DATA_FRESHNESS_MAX,
    "error_penalty": 0,  # penalty only subtracts
}


@dataclass(frozen=True)
class ScoreResult:
    """DA score with its per-factor contributions."""
    total: int
    factors: Dict[str, int]
    grade: str

    def breakdown(self) -> Dict[str, str]:
        """Human readable "points/max" per factor."""
        return {
            name: f"{self.factors.get(name, 0)}/{maximum}"
            for name, maximum in FACTOR_MAXIMA.items()
        }

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "grade": self.grade,
            "factors": dict(self.factors),
            "breakdown": self.breakdown(),
        }


@dataclass(frozen=True)
class SampleResult:
    """Everything observed and computed in one sampling round."""
    timestamp: float
    endpoints: Tuple[str, ...]
    blocks: Tuple[Optional[BlockSnapshot], ...]  # one per endpoint
    sampled_txs: Tuple[str, ...]
    tx_results: Tuple[Tuple[Optional[TransactionSnapshot], ...], ...]  # per sampled hash
    blocks_consistent: bool
    score: ScoreResult
    endpoint_metrics: Dict[str, EndpointMetrics]
    network_health: NetworkHealth
    sample_time_ms: int = 0

    @property
    def da_score(self) -> int:
        return self.score.total

    @property
    def grade(self) -> str:
        return self.score.grade

    def to_dict(self) -> dict:
        from .consistency import tx_consistent

        blocks = []
        for endpoint, block in zip(self.endpoints, self.blocks):
            blocks.append({
                "endpoint": endpoint,
                "success": block is not None,
                "data": block.to_dict() if block else None,
            })

        txs = []
        for tx_hash, per_endpoint in zip(self.sampled_txs, self.tx_results):
            txs.append({
                "tx_hash": tx_hash,
                "hashes": [tx.hash if tx else None for tx in per_endpoint],
                "consistent": tx_consistent(per_endpoint),
                "details": [
                    {
                        "endpoint": endpoint,
                        "success": tx is not None,
                        "data": tx.to_dict() if tx else None,
                    }
                    for endpoint, tx in zip(self.endpoints, per_endpoint)
                ],
            })

        return {
            "timestamp": _iso(self.timestamp),
            "da_score": self.score.total,
            "grade": self.score.grade,
            "score_factors": dict(self.score.factors),
            "score_breakdown": self.score.breakdown(),
            "blocks_consistent": self.blocks_consistent,
            "blocks": blocks,
            "sampled_txs": list(self.sampled_txs),
            "tx_details": txs,
            "performance": {
                "total_sample_time": self.sample_time_ms,
                "rpc_metrics": {k: m.to_dict() for k, m in self.endpoint_metrics.items()},
            },
            "network_health": self.network_health.to_dict(),
        }
