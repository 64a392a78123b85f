from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config import AppConfig
from .broadcast import SubscriberRegistry
from .generator import SignalGenerator
from .models import ALERT_CRITICAL, ALERT_WARNING, RISK_HIGH, RISK_LOW, Alert, Prediction, Reading
from .scoring import score
from .store import MonitorStore


logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    reading: Reading
    prediction: Prediction
    alert: Optional[Alert] = None
    delivered: int = 0


class TickDriver:
    """Periodic generate -> store -> score -> alert -> publish loop.

    The driver thread is the only writer to the reading buffer and the only
    publisher, so ticks never interleave with each other.
    """

    def __init__(
        self,
        config: AppConfig,
        store: MonitorStore,
        registry: SubscriberRegistry,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.registry = registry
        self._rng = rng or random.Random()
        self.generator = SignalGenerator(self._rng)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    def seed(self, count: Optional[int] = None) -> None:
        n = self.config.runtime.seed_readings if count is None else count
        for _ in range(n):
            self.store.add_reading(self.generator.generate())

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        reading = self.generator.generate(now)
        self.store.add_reading(reading)
        prediction = score(reading, self.store.training)
        alert = self._maybe_alert(prediction)
        delivered = self.registry.publish(reading, prediction)
        self.ticks += 1
        return TickResult(reading, prediction, alert, delivered)

    def _maybe_alert(self, prediction: Prediction) -> Optional[Alert]:
        if self._rng.random() >= self.config.runtime.alert_sample_rate:
            return None
        if prediction.risk == RISK_LOW:
            return None
        kind = ALERT_CRITICAL if prediction.risk == RISK_HIGH else ALERT_WARNING
        machine = self.generator.random_machine_label()
        message = f"{prediction.risk} risk detected - {prediction.probability}% failure probability"
        alert = self.store.raise_alert(machine, message, kind)
        logger.info("Alert raised", extra={"machine": machine, "severity": kind, "risk": prediction.risk})
        return alert

    # ───────────────────────────── lifecycle ─────────────────────────────
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self.seed()
        self._thread = threading.Thread(target=self._run, name="TickDriver", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _run(self) -> None:
        cadence = self.config.runtime.tick_interval_sec
        while not self._stop.is_set():
            start = time.time()
            try:
                self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Tick failed")
            elapsed = time.time() - start
            self._stop.wait(timeout=max(0.0, cadence - elapsed))
