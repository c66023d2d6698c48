"""
Unit tests for alert management, configuration loading and the
dashboard message handler.
"""

import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

_project_root = os.path.normpath(os.path.join(os.path.dirname(__file__), os.pardir))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dawatch.alerts import AlertManager  # noqa: E402
from dawatch.broadcast import Broadcaster  # noqa: E402
from dawatch.config import DEFAULT_ENDPOINTS, AlertThresholds, MonitorConfig  # noqa: E402
from dawatch.models import Alert, NetworkHealth, SampleResult, ScoreResult  # noqa: E402
from dawatch.state import MonitorState  # noqa: E402

_NO_ENV_FILE = os.path.join(tempfile.gettempdir(), "dawatch-missing.env")


def _result(total: int, rpc_health: int = 20, response_time: int = 15) -> SampleResult:
    """SampleResult carrying only the score fields the alert rules read."""
    factors = {
        "block_consistency": 0,
        "tx_consistency": 0,
        "rpc_health": rpc_health,
        "response_time": response_time,
        "network_reliability": 0,
        "data_freshness": 0,
        "error_penalty": 0,
    }
    return SampleResult(
        timestamp=0.0,
        endpoints=(),
        blocks=(),
        sampled_txs=(),
        tx_results=(),
        blocks_consistent=False,
        score=ScoreResult(total=total, factors=factors, grade="F"),
        endpoint_metrics={},
        network_health=NetworkHealth(),
    )


class TestAlertHistory(unittest.TestCase):
    """Test 1 -- bounded, newest-first alert storage."""

    def test_newest_first(self):
        manager = AlertManager()
        first = manager.create_alert("a", "first")
        second = manager.create_alert("b", "second")
        self.assertEqual(manager.get_alerts(), [second, first])

    def test_capped_at_max_alerts(self):
        manager = AlertManager(max_alerts=100)
        created = [manager.create_alert("t", f"alert {i}") for i in range(105)]
        alerts = manager.get_alerts()
        self.assertEqual(len(alerts), 100)
        self.assertIs(alerts[0], created[-1])
        self.assertIs(alerts[-1], created[5])

    def test_ids_unique(self):
        manager = AlertManager()
        ids = {manager.create_alert("t", "m").id for _ in range(50)}
        self.assertEqual(len(ids), 50)

    def test_invalid_severity_rejected(self):
        with self.assertRaises(ValueError):
            Alert(id="x", type="t", message="m", severity="panic")

    def test_logged_at_severity(self):
        manager = AlertManager()
        with self.assertLogs("dawatch.alerts", level="CRITICAL") as logs:
            manager.create_alert("t", "very bad", "critical")
        self.assertIn("ALERT [CRITICAL]: very bad", logs.output[0])


class TestAcknowledgement(unittest.TestCase):
    """Test 2 -- acknowledging alerts."""

    def test_acknowledge_known_alert(self):
        manager = AlertManager()
        alert = manager.create_alert("t", "m")
        self.assertTrue(manager.acknowledge(alert.id))
        self.assertTrue(alert.acknowledged)

    def test_acknowledge_unknown_alert(self):
        self.assertFalse(AlertManager().acknowledge("nope"))

    def test_unacknowledged_filter(self):
        manager = AlertManager()
        a = manager.create_alert("t", "a")
        b = manager.create_alert("t", "b")
        manager.acknowledge(a.id)
        self.assertEqual(manager.get_alerts(unacknowledged=True), [b])
        self.assertEqual(len(manager.get_alerts()), 2)

    def test_listeners_notified(self):
        events = []
        manager = AlertManager()
        manager.subscribe(lambda kind, payload: events.append((kind, payload)))
        alert = manager.create_alert("t", "m", "info")
        manager.acknowledge(alert.id)

        self.assertEqual(events[0][0], "alert")
        self.assertEqual(events[0][1]["id"], alert.id)
        self.assertEqual(events[1], ("alert_acknowledged", {"alert_id": alert.id}))

    def test_unsubscribe(self):
        events = []
        manager = AlertManager()

        def listener(kind, payload):
            events.append(kind)

        manager.subscribe(listener)
        manager.create_alert("t", "first")
        manager.unsubscribe(listener)
        manager.unsubscribe(listener)
        manager.create_alert("t", "second")
        self.assertEqual(events, ["alert"])


class TestThresholdEvaluation(unittest.TestCase):
    """Test 3 -- alert rules applied to a round."""

    def _types(self, result):
        return [(a.type, a.severity) for a in AlertManager().evaluate(result, AlertThresholds())]

    def test_critical_score(self):
        self.assertEqual(self._types(_result(10)), [("low_da_score", "critical")])

    def test_low_score(self):
        self.assertEqual(self._types(_result(30)), [("low_da_score", "warning")])
        self.assertEqual(self._types(_result(11)), [("low_da_score", "warning")])

    def test_good_score(self):
        self.assertEqual(self._types(_result(31)), [])

    def test_factor_alerts(self):
        types = self._types(_result(80, rpc_health=9, response_time=7))
        self.assertEqual(types, [("rpc_health", "warning"), ("high_latency", "warning")])

    def test_factor_boundaries(self):
        self.assertEqual(self._types(_result(80, rpc_health=10, response_time=8)), [])

    def test_message_includes_breakdown(self):
        alerts = AlertManager().evaluate(_result(80, response_time=4), AlertThresholds())
        self.assertEqual(alerts[0].message, "High response time detected: 4/15")


class TestConfigFromEnv(unittest.TestCase):
    """Test 4 -- DAWATCH_* environment overrides."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = MonitorConfig.from_env(_NO_ENV_FILE)
        self.assertEqual(config.endpoints, DEFAULT_ENDPOINTS)
        self.assertEqual(config.poll_interval, 10.0)
        self.assertEqual(config.thresholds.consecutive_failures, 3)

    def test_overrides(self):
        env = {
            "DAWATCH_RPC_URLS": "https://a.example, https://b.example,",
            "DAWATCH_POLL_INTERVAL": "2.5",
            "DAWATCH_RPC_TIMEOUT_MS": "1500",
            "DAWATCH_WS_PORT": "9000",
            "DAWATCH_LOW_SCORE": "40",
            "DAWATCH_CONSECUTIVE_FAILURES": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            config = MonitorConfig.from_env(_NO_ENV_FILE)
        self.assertEqual(config.endpoints, ["https://a.example", "https://b.example"])
        self.assertEqual(config.poll_interval, 2.5)
        self.assertEqual(config.rpc_timeout_ms, 1500)
        self.assertEqual(config.ws_port, 9000)
        self.assertEqual(config.thresholds.low_score, 40)
        self.assertEqual(config.thresholds.consecutive_failures, 5)

    def test_dotenv_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, ".env")
            with open(path, "w") as f:
                f.write("DAWATCH_RPC_URLS=https://from-file.example\nDAWATCH_TX_SAMPLE_SIZE=3\n")
            with patch.dict(os.environ, {}, clear=True):
                config = MonitorConfig.from_env(path)
        self.assertEqual(config.endpoints, ["https://from-file.example"])
        self.assertEqual(config.tx_sample_size, 3)

    def test_bad_number(self):
        with patch.dict(os.environ, {"DAWATCH_POLL_INTERVAL": "soon"}, clear=True):
            with self.assertRaisesRegex(ValueError, "DAWATCH_POLL_INTERVAL"):
                MonitorConfig.from_env(_NO_ENV_FILE)

    def test_empty_endpoint_list(self):
        with patch.dict(os.environ, {"DAWATCH_RPC_URLS": " , "}, clear=True):
            with self.assertRaises(ValueError):
                MonitorConfig.from_env(_NO_ENV_FILE)


class TestDashboardMessages(unittest.TestCase):
    """Test 5 -- client message handling (no socket server started)."""

    def setUp(self):
        self.state = MonitorState(MonitorConfig(endpoints=["a", "b"]))
        self.broadcaster = Broadcaster(self.state)

    def _send(self, message):
        raw = message if isinstance(message, str) else json.dumps(message)
        return self.broadcaster.handle_message(raw)

    def test_acknowledge_alert(self):
        alert = self.state.alerts.create_alert("t", "m")
        self.assertIsNone(self._send({"type": "acknowledge_alert", "alertId": alert.id}))
        self.assertTrue(alert.acknowledged)

    def test_acknowledge_unknown(self):
        reply = self._send({"type": "acknowledge_alert", "alert_id": "missing"})
        self.assertEqual(reply["type"], "error")

    def test_invalid_json(self):
        self.assertEqual(self._send("{not json")["type"], "error")
        self.assertEqual(self._send("[1, 2]")["type"], "error")

    def test_unknown_type(self):
        self.assertEqual(self._send({"type": "subscribe"})["type"], "error")

    def test_queries(self):
        self.assertEqual(self._send({"type": "get_history", "limit": 5}), {"type": "history", "data": []})
        self.assertEqual(self._send({"type": "get_alerts"})["type"], "alerts")
        performance = self._send({"type": "get_performance"})["data"]
        self.assertEqual(set(performance["rpc_metrics"]), {"a", "b"})
        topology = self._send({"type": "get_topology"})["data"]
        self.assertEqual(len(topology["nodes"]), 2)

    def test_initial_payload(self):
        self.state.alerts.create_alert("t", "m")
        payload = self.broadcaster.initial_payload()
        self.assertEqual(payload["type"], "initial")
        self.assertEqual(len(payload["data"]["alerts"]), 1)
        self.assertEqual(payload["data"]["network_health"]["status"], "unknown")
        json.dumps(payload)

    def test_publish_without_server_is_noop(self):
        self.broadcaster.publish("alert", {"id": "x"})
        self.assertEqual(self.broadcaster.client_count, 0)

    def test_stop_detaches_from_alerts(self):
        with patch.object(Broadcaster, "publish") as publish:
            broadcaster = Broadcaster(self.state)
            self.state.alerts.create_alert("t", "before stop")
            self.assertEqual(publish.call_count, 1)

            broadcaster.stop()
            self.state.alerts.create_alert("t", "after stop")
            self.assertEqual(publish.call_count, 1)

    def test_replaced_broadcasters_do_not_accumulate(self):
        self.broadcaster.stop()
        for _ in range(3):
            Broadcaster(self.state).stop()
        self.assertEqual(self.state.alerts._listeners, [])


if __name__ == "__main__":
    unittest.main()
