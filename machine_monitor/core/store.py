from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from ..errors import MachineNotFound, ValidationError
from .buffers import RollingBuffer
from .models import (
    ALERT_CRITICAL,
    ALERT_TYPES,
    ALERT_WARNING,
    FEATURES,
    MACHINE_STATUSES,
    Alert,
    Machine,
    Prediction,
    Reading,
    TrainingAggregate,
    iso,
    utc_now,
)


DEFAULT_MACHINES = (
    Machine(1, "Machine A", "Healthy", "2025-05-09", "99.2%"),
    Machine(2, "Machine B", "Warning", "2025-05-08", "97.8%"),
    Machine(3, "Machine C", "Faulty", "2025-05-07", "85.3%"),
    Machine(4, "Machine D", "Healthy", "2025-05-10", "98.9%"),
    Machine(5, "Machine E", "Warning", "2025-05-09", "96.5%"),
)

# (machine, message, type, age)
DEFAULT_ALERTS = (
    ("Machine #5", "Predicted failure within 24 hrs", ALERT_CRITICAL, timedelta(minutes=2)),
    ("Machine #2", "Unusual vibration detected", ALERT_WARNING, timedelta(minutes=15)),
    ("Machine #7", "Temperature threshold exceeded", ALERT_WARNING, timedelta(hours=1)),
)


class MachineRegistry:
    """Keyed machine records; updates touch only status, uptime and lastChecked.

    Readers get copies, so the only way to change a record is ``update``.
    """

    def __init__(self, machines: Optional[List[Machine]] = None) -> None:
        self._lock = threading.RLock()
        source = DEFAULT_MACHINES if machines is None else machines
        self._machines: Dict[int, Machine] = {m.id: replace(m) for m in source}

    def list(self, status: Optional[str] = None) -> List[Machine]:
        with self._lock:
            machines = [replace(m) for m in self._machines.values()]
        if not status or status.lower() == "all":
            return machines
        wanted = status.lower()
        return [m for m in machines if m.status.lower() == wanted]

    def get(self, machine_id: int) -> Machine:
        with self._lock:
            machine = self._machines.get(machine_id)
            if machine is None:
                raise MachineNotFound(machine_id)
            return replace(machine)

    def update(self, machine_id: int, status: Optional[str] = None, uptime: Optional[str] = None) -> Machine:
        if status is not None and not isinstance(status, str):
            raise ValidationError("status must be a string")
        if uptime is not None and not isinstance(uptime, str):
            raise ValidationError("uptime must be a string")
        if status:
            status = status.capitalize()
            if status not in MACHINE_STATUSES:
                raise ValidationError(f"Invalid status: {status}")
        with self._lock:
            machine = self._machines.get(machine_id)
            if machine is None:
                raise MachineNotFound(machine_id)
            if status:
                machine.status = status
            if uptime:
                machine.uptime = uptime
            machine.last_checked = date.today().isoformat()
            return replace(machine)

    def counts(self) -> Dict[str, int]:
        machines = self.list()
        counts = {"total": len(machines)}
        for s in MACHINE_STATUSES:
            counts[s.lower()] = sum(1 for m in machines if m.status == s)
        return counts


class MonitorStore:
    """Process-wide owner of readings, alerts, machines and the training aggregate."""

    def __init__(
        self,
        reading_capacity: int = 1000,
        alert_capacity: int = 10,
        training: Optional[TrainingAggregate] = None,
        machines: Optional[MachineRegistry] = None,
        seed_alerts: bool = True,
    ) -> None:
        self.readings: RollingBuffer[Reading] = RollingBuffer(reading_capacity)
        self.alerts: RollingBuffer[Alert] = RollingBuffer(alert_capacity, newest_first=True)
        self.machines = machines or MachineRegistry()
        self.training = training or TrainingAggregate()
        self._alert_ids = itertools.count(1)
        self._alert_lock = threading.Lock()
        if seed_alerts:
            now = utc_now()
            # oldest first so the newest ends up at the head
            for machine, message, kind, age in reversed(DEFAULT_ALERTS):
                self.raise_alert(machine, message, kind, timestamp=now - age)

    # ───────────────────────────── readings ─────────────────────────────
    def add_reading(self, reading: Reading) -> None:
        self.readings.append(reading)

    def recent_readings(self, limit: int = 50, sensor: Optional[str] = None) -> List[Dict[str, Any]]:
        if sensor and sensor not in FEATURES:
            raise ValidationError(f"Unknown sensor: {sensor}")
        items = self.readings.read(limit)
        if sensor:
            return [{"timestamp": iso(r.timestamp), "value": getattr(r, sensor)} for r in items]
        return [r.to_dict() for r in items]

    # ───────────────────────────── alerts ─────────────────────────────
    def raise_alert(
        self, machine: str, message: str, kind: str = ALERT_WARNING, timestamp: Optional[datetime] = None
    ) -> Alert:
        if kind not in ALERT_TYPES:
            raise ValidationError(f"Invalid alert type: {kind}")
        # id allocation and insertion happen together so ids stay ordered in the buffer
        with self._alert_lock:
            alert = Alert(
                id=next(self._alert_ids),
                machine=machine,
                message=message,
                type=kind,
                timestamp=timestamp or utc_now(),
            )
            self.alerts.append(alert)
        return alert

    def recent_alerts(self, limit: Optional[int] = None) -> List[Alert]:
        return self.alerts.read(limit)

    # ───────────────────────────── summary ─────────────────────────────
    def dashboard_summary(self, reading: Reading, prediction: Prediction) -> Dict[str, Any]:
        return {
            "machineCount": self.machines.counts(),
            "recentAlerts": [a.to_dict() for a in self.recent_alerts(5)],
            "currentSensorData": reading.to_dict(),
            "prediction": prediction.to_dict(),
            "lastUpdated": iso(utc_now()),
        }
