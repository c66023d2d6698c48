"""
DA Watch Configuration

RPC endpoints, polling cadence, alert thresholds and scoring constants.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv


# Public Avalanche Fuji C-Chain endpoints
DEFAULT_ENDPOINTS: List[str] = [
    "https://api.avax-test.network/ext/bc/C/rpc",
    "https://avalanche-fuji-c-chain.publicnode.com",
]


@dataclass
class AlertThresholds:
    """Thresholds that turn a sampling round into alerts."""
    low_score: int = 30  # score <= this -> warning
    critical_score: int = 10  # score <= this -> critical
    response_time_ms: int = 5000  # per-call ceiling
    consecutive_failures: int = 3  # endpoint marked unhealthy at this count
    rpc_health_factor: int = 10  # rpcHealth factor below this -> warning
    response_time_factor: int = 8  # responseTime factor below this -> warning


@dataclass
class MonitorConfig:
    """Runtime configuration for one watchdog process."""
    endpoints: List[str] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    poll_interval: float = 10.0  # seconds between round starts
    rpc_timeout_ms: int = 5000
    tx_sample_size: int = 5
    history_size: int = 1000
    alert_history_size: int = 100
    ws_host: str = "0.0.0.0"
    ws_port: int = 3001
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    @classmethod
    def from_env(cls, env_path: Optional[Union[str, Path]] = None) -> "MonitorConfig":
        """
        Build a config from DAWATCH_* environment variables.

        A .env file is loaded first (explicit path, or the one python-dotenv
        finds from the working directory). Variables already set in the
        process environment win over the file.

        Raises:
            ValueError: on an unparseable number or an empty endpoint list
        """
        if env_path is not None:
            load_dotenv(env_path)
        else:
            load_dotenv()

        config = cls()

        urls = os.getenv("DAWATCH_RPC_URLS")
        if urls is not None:
            config.endpoints = [u.strip() for u in urls.split(",") if u.strip()]
        if not config.endpoints:
            raise ValueError("DAWATCH_RPC_URLS must name at least one endpoint")

        config.poll_interval = _env_number("DAWATCH_POLL_INTERVAL", config.poll_interval, float)
        config.rpc_timeout_ms = _env_number("DAWATCH_RPC_TIMEOUT_MS", config.rpc_timeout_ms, int)
        config.tx_sample_size = _env_number("DAWATCH_TX_SAMPLE_SIZE", config.tx_sample_size, int)
        config.ws_host = os.getenv("DAWATCH_WS_HOST", config.ws_host)
        config.ws_port = _env_number("DAWATCH_WS_PORT", config.ws_port, int)

        t = config.thresholds
        t.low_score = _env_number("DAWATCH_LOW_SCORE", t.low_score, int)
        t.critical_score = _env_number("DAWATCH_CRITICAL_SCORE", t.critical_score, int)
        t.response_time_ms = _env_number("DAWATCH_RESPONSE_TIME_MS", t.response_time_ms, int)
        t.consecutive_failures = _env_number(
            "DAWATCH_CONSECUTIVE_FAILURES", t.consecutive_failures, int
        )

        return config


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


# Scoring settings
class ScoreConfig:
    # Factor maxima (sum of positive factors = 95 + error penalty floor -5)
    BLOCK_CONSISTENCY_MAX = 25
    TX_CONSISTENCY_MAX = 20
    RPC_HEALTH_MAX = 20
    RESPONSE_TIME_MAX = 15
    NETWORK_RELIABILITY_MAX = 10
    DATA_FRESHNESS_MAX = 5
    ERROR_PENALTY_MAX = -5

    # (upper bound ms, points); first matching tier wins
    RESPONSE_TIME_TIERS = [(500, 15), (1000, 12), (2000, 8), (5000, 4)]

    # (max block age seconds, points)
    FRESHNESS_TIERS = [(30, 5), (60, 4), (300, 2)]

    # (minimum score, grade), highest first
    GRADES = [(90, "A+"), (80, "A"), (70, "B"), (60, "C"), (50, "D")]
    FAILING_GRADE = "F"

    MIN_SCORE = 0
    MAX_SCORE = 100


# Sampling / distribution settings
class SamplerConfig:
    # Blocks and txs are fetched with full transaction objects
    INCLUDE_TXS = True

    # Items sent to a dashboard client when it connects
    INITIAL_HISTORY = 50
    INITIAL_ALERTS = 20

    # Pull query defaults
    DEFAULT_HISTORY_LIMIT = 100
    MAX_ALERTS_RETURNED = 50
    RECENT_ALERTS = 10
