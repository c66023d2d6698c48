"""
WebSocket Broadcaster

Pushes sampling results and alerts to connected dashboard clients and
answers their pull queries. Runs its own asyncio loop in a background
thread so the sampler can publish from ordinary threads.

Server -> client messages:
    {"type": "initial", "data": {...}}          on connect
    {"type": "da_update", "data": SampleResult}
    {"type": "alert", "data": Alert}
    {"type": "alert_acknowledged", "data": {"alert_id": ...}}

Client -> server messages:
    {"type": "acknowledge_alert", "alert_id": "..."}
    {"type": "get_history", "limit": 100}
    {"type": "get_alerts", "unacknowledged": true}
    {"type": "get_performance"}
    {"type": "get_topology"}
"""

import asyncio
import json
import logging
import threading
import time
from typing import Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed

from .config import SamplerConfig
from .models import SampleResult
from .state import MonitorState

logger = logging.getLogger(__name__)


class Broadcaster:
    """WebSocket distribution layer for one MonitorState."""

    def __init__(self, state: MonitorState, host: str = "0.0.0.0", port: int = 3001):
        self.state = state
        self.host = host
        self.port = port

        self.running = False
        self._clients: Set = set()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._ready = threading.Event()

        state.alerts.subscribe(self.publish)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, wait: float = 5.0) -> bool:
        """Start serving in a background thread. Returns True once listening."""
        self.running = True
        self._ready.clear()
        self._thread = threading.Thread(target=self._run_event_loop, name="dawatch-ws", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=wait)
        return self._ready.is_set()

    def stop(self):
        """Close all connections and stop the loop."""
        self.running = False
        self.state.alerts.unsubscribe(self.publish)
        if self._loop and self._stop and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._stop.set)
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None

    def _run_event_loop(self):
        """Run asyncio event loop in background thread."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        except Exception as e:
            if self.running:
                logger.error(f"WebSocket server error: {e}")
        finally:
            self._loop.close()

    async def _serve(self):
        self._stop = asyncio.Event()
        async with websockets.serve(self._handler, self.host, self.port):
            logger.info(f"Dashboard feed listening on ws://{self.host}:{self.port}")
            self._ready.set()
            await self._stop.wait()

    # =========================================================================
    # Connections
    # =========================================================================

    async def _handler(self, ws):
        self._clients.add(ws)
        logger.info(f"Dashboard client connected ({len(self._clients)} open)")
        try:
            initial = await asyncio.to_thread(self.initial_payload)
            await ws.send(json.dumps(initial))

            async for raw in ws:
                # State access may wait for a running round
                reply = await asyncio.to_thread(self.handle_message, raw)
                if reply is not None:
                    await ws.send(json.dumps(reply))
        except ConnectionClosed:
            pass
        finally:
            self._clients.discard(ws)
            logger.info(f"Dashboard client disconnected ({len(self._clients)} open)")

    def initial_payload(self) -> dict:
        """Snapshot sent to a client right after it connects."""
        history = self.state.get_history(SamplerConfig.INITIAL_HISTORY)
        performance = self.state.get_performance()
        return {
            "type": "initial",
            "data": {
                "historical_data": [r.to_dict() for r in history],
                "alerts": self.state.get_alerts()[:SamplerConfig.INITIAL_ALERTS],
                "rpc_performance": performance["rpc_metrics"],
                "network_health": performance["network_health"],
            },
        }

    def handle_message(self, raw) -> Optional[dict]:
        """
        Handle one client message.

        Returns:
            Reply to send back to that client, or None
        """
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return {"type": "error", "data": {"message": "invalid JSON"}}
        if not isinstance(message, dict):
            return {"type": "error", "data": {"message": "expected an object"}}

        msg_type = message.get("type")

        if msg_type == "acknowledge_alert":
            alert_id = message.get("alert_id") or message.get("alertId")
            if not alert_id:
                return {"type": "error", "data": {"message": "alert_id required"}}
            # Success is broadcast to everyone via the alert listener
            if self.state.acknowledge_alert(alert_id):
                return None
            return {"type": "error", "data": {"message": f"alert {alert_id} not found"}}

        if msg_type == "get_history":
            try:
                limit = int(message.get("limit") or SamplerConfig.DEFAULT_HISTORY_LIMIT)
            except (TypeError, ValueError):
                limit = SamplerConfig.DEFAULT_HISTORY_LIMIT
            return {
                "type": "history",
                "data": [r.to_dict() for r in self.state.get_history(limit)],
            }

        if msg_type == "get_alerts":
            unacked = bool(message.get("unacknowledged"))
            return {"type": "alerts", "data": self.state.get_alerts(unacknowledged=unacked)}

        if msg_type == "get_performance":
            return {"type": "performance", "data": self.state.get_performance()}

        if msg_type == "get_topology":
            return {"type": "topology", "data": self.state.get_topology()}

        logger.debug(f"Unknown client message type: {msg_type}")
        return {"type": "error", "data": {"message": f"unknown message type: {msg_type}"}}

    # =========================================================================
    # Publishing
    # =========================================================================

    def publish(self, message_type: str, data: dict):
        """Queue a message for every open client. Safe from any thread."""
        if not self._loop or not self._loop.is_running():
            return
        text = json.dumps({"type": message_type, "data": data, "sent_at": time.time()})
        asyncio.run_coroutine_threadsafe(self._broadcast(text), self._loop)

    def publish_result(self, result: SampleResult):
        self.publish("da_update", result.to_dict())

    async def _broadcast(self, text: str):
        for ws in list(self._clients):
            try:
                await ws.send(text)
            except ConnectionClosed:
                self._clients.discard(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)
