#!/usr/bin/env python3
"""
Data Availability Monitor

Polls a set of JSON-RPC endpoints, prints the DA score of every round
and serves live results to dashboard clients over WebSocket.

Configuration is read from DAWATCH_* environment variables (or a .env
file); command-line flags override it.

Usage:
    python examples/da_monitor.py
    python examples/da_monitor.py --rpc https://rpc-a.example --rpc https://rpc-b.example
    python examples/da_monitor.py --once --export report.json
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dawatch import DAWatch, MonitorConfig


def format_round(result) -> str:
    """One status line per sampling round."""
    ts = datetime.fromtimestamp(result.timestamp).strftime("%H:%M:%S")
    f = result.score.factors
    return (
        f"[{ts}] DA {result.da_score:3d}/100 ({result.grade:2}) | "
        f"blocks={f['block_consistency']:2d} txs={f['tx_consistency']:2d} "
        f"rpc={f['rpc_health']:2d} lat={f['response_time']:2d} "
        f"rel={f['network_reliability']:2d} fresh={f['data_freshness']} "
        f"err={f['error_penalty']} | sampled={len(result.sampled_txs)}"
    )


def write_export(watch: DAWatch, path: str):
    fmt = "csv" if path.endswith(".csv") else "json"
    Path(path).write_text(watch.export(fmt))
    print(f"Exported {fmt} to {path}")


def main():
    parser = argparse.ArgumentParser(description="Monitor data availability across RPC endpoints")
    parser.add_argument(
        "--rpc", action="append", dest="endpoints",
        help="RPC endpoint URL (repeatable). Default: DAWATCH_RPC_URLS or Fuji C-Chain"
    )
    parser.add_argument("--interval", type=float, help="Seconds between rounds. Default: 10")
    parser.add_argument("--timeout", type=int, help="Per-call timeout in ms. Default: 5000")
    parser.add_argument("--port", type=int, help="Dashboard WebSocket port. Default: 3001")
    parser.add_argument("--no-server", action="store_true", help="Do not serve the dashboard feed")
    parser.add_argument("--once", action="store_true", help="Run a single round and exit")
    parser.add_argument("--export", metavar="PATH", help="Write history to PATH (.json or .csv) on exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = MonitorConfig.from_env()
    if args.endpoints:
        config.endpoints = args.endpoints
    if args.interval is not None:
        config.poll_interval = args.interval
    if args.timeout is not None:
        config.rpc_timeout_ms = args.timeout
        config.thresholds.response_time_ms = args.timeout
    if args.port is not None:
        config.ws_port = args.port

    print(f"DA Watch - {len(config.endpoints)} endpoints")
    for url in config.endpoints:
        print(f"  {url}")
    print()

    watch = DAWatch(config)

    if args.once:
        print(format_round(watch.sample_once()))
        watch.print_status()
        if args.export:
            write_export(watch, args.export)
        watch.stop()
        return

    watch.start(serve=not args.no_server)
    last_seen = None

    try:
        while True:
            latest = watch.get_latest()
            if latest is not None and latest is not last_seen:
                print(format_round(latest))
                last_seen = latest
            time.sleep(0.5)

    except KeyboardInterrupt:
        print("\n\nStopping...")

    watch.print_status()
    if args.export:
        write_export(watch, args.export)
    watch.stop()


if __name__ == "__main__":
    main()
