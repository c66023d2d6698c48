"""
Consistency Checker

Compares per-endpoint block and transaction payloads for hash agreement.
Absent entries (failed fetches) are represented as None and ignored.
"""

from collections import Counter
from typing import Dict, Optional, Sequence

from .models import BlockSnapshot, TransactionSnapshot


def _present_hashes(items: Sequence) -> list:
    return [item.hash for item in items if item is not None]


def blocks_consistent(blocks: Sequence[Optional[BlockSnapshot]]) -> bool:
    """
    True iff every endpoint that returned a block returned the same hash.

    No blocks at all counts as inconsistent.
    """
    return len(set(_present_hashes(blocks))) == 1


def tx_consistent(txs: Sequence[Optional[TransactionSnapshot]]) -> bool:
    """
    True iff at least one endpoint returned the transaction and all
    returned copies carry the same hash.
    """
    hashes = _present_hashes(txs)
    if not hashes:
        return False
    return len(set(hashes)) == 1


def majority_count(blocks: Sequence[Optional[BlockSnapshot]]) -> int:
    """Size of the largest group of present blocks sharing one hash."""
    counts = Counter(_present_hashes(blocks))
    if not counts:
        return 0
    return max(counts.values())


def classify_tx(
    endpoints: Sequence[str],
    txs: Sequence[Optional[TransactionSnapshot]],
    expected_hash: str,
) -> Dict[str, str]:
    """
    Per-endpoint verdict for one sampled transaction.

    Separates "endpoint did not return it" from "endpoint returned a
    different transaction"; tx_consistent() folds both into False.

    Args:
        endpoints: Endpoint URLs, same order as txs
        txs: One snapshot (or None) per endpoint
        expected_hash: Hash that was requested

    Returns:
        endpoint -> "ok" | "mismatch" | "missing"
    """
    verdicts: Dict[str, str] = {}
    for endpoint, tx in zip(endpoints, txs):
        if tx is None:
            verdicts[endpoint] = "missing"
        elif tx.hash != expected_hash:
            verdicts[endpoint] = "mismatch"
        else:
            verdicts[endpoint] = "ok"
    return verdicts
