"""
Alert Manager

Creates, stores and acknowledges threshold alerts. History is bounded
and newest-first; listeners are told about new and acknowledged alerts.
"""

import logging
import uuid
from collections import deque
from typing import Callable, Deque, List, Optional

from .config import AlertThresholds
from .models import Alert, SampleResult

logger = logging.getLogger(__name__)

AlertListener = Callable[[str, dict], None]

_LOG_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "critical": logging.CRITICAL,
}


class AlertManager:
    """Bounded alert history with acknowledgement."""

    def __init__(self, max_alerts: int = 100):
        self.max_alerts = max_alerts
        self._alerts: Deque[Alert] = deque(maxlen=max_alerts)  # newest first
        self._listeners: List[AlertListener] = []

    def subscribe(self, listener: AlertListener):
        """Register a callback receiving ("alert" | "alert_acknowledged", payload)."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: AlertListener):
        """Remove a callback added with subscribe(); unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event_type: str, payload: dict):
        for listener in self._listeners:
            try:
                listener(event_type, payload)
            except Exception as e:
                logger.error(f"Alert listener failed: {e}")

    def create_alert(self, alert_type: str, message: str, severity: str = "warning") -> Alert:
        """Store a new alert, evicting the oldest past capacity."""
        alert = Alert(id=uuid.uuid4().hex[:12], type=alert_type, message=message, severity=severity)
        # appendleft on a full deque drops from the right (oldest)
        self._alerts.appendleft(alert)

        logger.log(_LOG_LEVELS[severity], f"ALERT [{severity.upper()}]: {message}")
        self._notify("alert", alert.to_dict())
        return alert

    def acknowledge(self, alert_id: str) -> bool:
        """Mark an alert acknowledged. Returns False if it is not in history."""
        for alert in self._alerts:
            if alert.id == alert_id:
                alert.acknowledged = True
                self._notify("alert_acknowledged", {"alert_id": alert_id})
                return True
        return False

    def get_alerts(self, unacknowledged: bool = False, limit: Optional[int] = None) -> List[Alert]:
        """Alerts newest-first, optionally only unacknowledged ones."""
        alerts = [a for a in self._alerts if not (unacknowledged and a.acknowledged)]
        if limit is not None:
            alerts = alerts[:limit]
        return alerts

    def __len__(self) -> int:
        return len(self._alerts)

    def evaluate(self, result: SampleResult, thresholds: AlertThresholds) -> List[Alert]:
        """
        Raise alerts for one sampling round.

        - score <= critical_score              -> critical low_da_score
        - score <= low_score                   -> warning low_da_score
        - rpc_health factor < rpc_health_factor -> warning rpc_health
        - response_time factor < response_time_factor -> warning high_latency
        """
        created = []
        score = result.score
        breakdown = score.breakdown()

        if score.total <= thresholds.critical_score:
            created.append(self.create_alert(
                "low_da_score",
                f"Critical DA score: {score.total}/100 (Grade: {score.grade})",
                "critical",
            ))
        elif score.total <= thresholds.low_score:
            created.append(self.create_alert(
                "low_da_score",
                f"Low DA score: {score.total}/100 (Grade: {score.grade})",
                "warning",
            ))

        if score.factors["rpc_health"] < thresholds.rpc_health_factor:
            created.append(self.create_alert(
                "rpc_health",
                f"Poor RPC health: {breakdown['rpc_health']}",
                "warning",
            ))
        if score.factors["response_time"] < thresholds.response_time_factor:
            created.append(self.create_alert(
                "high_latency",
                f"High response time detected: {breakdown['response_time']}",
                "warning",
            ))

        return created
