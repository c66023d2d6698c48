"""
JSON-RPC Client

Issues eth_getBlockByNumber / eth_getTransactionByHash calls against one
Ethereum-compatible endpoint and reports latency and success.
"""

import logging
import time
from dataclasses import dataclass
from itertools import count
from typing import Any, Optional, Union

import requests

from .models import BlockSnapshot, TransactionSnapshot

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """Transport, HTTP or JSON-RPC level failure of a single call."""


@dataclass
class RpcCallResult:
    """Outcome of one RPC call as fed to the health tracker."""
    endpoint: str
    success: bool
    latency_ms: float
    data: Optional[Any] = None  # BlockSnapshot / TransactionSnapshot
    error: Optional[str] = None


def to_hex(n: int) -> str:
    """Encode an int as a JSON-RPC quantity."""
    return hex(n)


class RpcClient:
    """
    Minimal JSON-RPC 2.0 client for one endpoint.

    Failed calls are logged and returned as unsuccessful results;
    get_block()/get_transaction() never raise.
    """

    def __init__(
        self,
        endpoint: str,
        timeout_ms: int = 5000,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.timeout_ms = timeout_ms
        self._session = session or requests.Session()
        self._ids = count(1)

    def call(self, method: str, params: list) -> Any:
        """
        Perform one JSON-RPC request and return its `result`.

        Raises:
            RpcError: on timeout, connection error, bad status, non-JSON
                body or a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        try:
            resp = self._session.post(
                self.endpoint, json=payload, timeout=self.timeout_ms / 1000.0
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout:
            raise RpcError(f"timed out after {self.timeout_ms}ms") from None
        except requests.RequestException as e:
            raise RpcError(str(e)) from e
        except ValueError as e:
            raise RpcError(f"invalid JSON response: {e}") from e

        if not isinstance(body, dict):
            raise RpcError(f"unexpected response type {type(body).__name__}")
        if body.get("error"):
            err = body["error"]
            message = err.get("message") if isinstance(err, dict) else err
            raise RpcError(f"{method} error: {message}")

        return body.get("result")

    def _timed(self, method: str, params: list, parse) -> RpcCallResult:
        start = time.time()
        try:
            result = self.call(method, params)
        except RpcError as e:
            latency_ms = (time.time() - start) * 1000
            logger.warning(f"[{self.endpoint}] {method} failed: {e}")
            return RpcCallResult(self.endpoint, False, latency_ms, error=str(e))

        latency_ms = (time.time() - start) * 1000
        # null result = call succeeded, endpoint has no such object
        if result is None:
            return RpcCallResult(self.endpoint, True, latency_ms)

        try:
            data = parse(self.endpoint, result)
        except (TypeError, ValueError, AttributeError):
            data = None
        if data is None:
            logger.warning(f"[{self.endpoint}] {method} returned malformed result")
            return RpcCallResult(self.endpoint, False, latency_ms, error="malformed result")
        return RpcCallResult(self.endpoint, True, latency_ms, data=data)

    def get_block(
        self,
        block: Union[str, int] = "latest",
        include_txs: bool = True,
    ) -> RpcCallResult:
        """Fetch a block by tag ("latest") or number."""
        tag = to_hex(block) if isinstance(block, int) else block
        return self._timed("eth_getBlockByNumber", [tag, include_txs], BlockSnapshot.from_rpc)

    def get_transaction(self, tx_hash: str) -> RpcCallResult:
        """Fetch a transaction by hash."""
        return self._timed("eth_getTransactionByHash", [tx_hash], TransactionSnapshot.from_rpc)

    def close(self):
        self._session.close()
