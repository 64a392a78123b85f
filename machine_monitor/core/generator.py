from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from .models import Reading, utc_now


@dataclass(frozen=True)
class SignalProfile:
    baseline: float
    amplitude: float = 0.0
    period_ms: float = 0.0  # divisor applied to epoch milliseconds inside sin()
    jitter: float = 0.0  # half-width of the uniform noise band

    def value(self, t_ms: float, rng: random.Random) -> float:
        base = self.baseline
        if self.amplitude and self.period_ms:
            base += math.sin(t_ms / self.period_ms) * self.amplitude
        return max(0.0, base + rng.uniform(-self.jitter, self.jitter))


PROFILES: Dict[str, SignalProfile] = {
    "vibration": SignalProfile(baseline=0.5, amplitude=0.3, period_ms=30_000, jitter=0.1),
    "temperature": SignalProfile(baseline=75.0, amplitude=5.0, period_ms=60_000, jitter=1.5),
    "current": SignalProfile(baseline=12.0, jitter=1.0),
    "sound": SignalProfile(baseline=45.0, jitter=4.0),
}


class SignalGenerator:
    """Synthetic multi-sensor source: slow sine baselines plus uniform jitter."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def generate(self, now: Optional[datetime] = None) -> Reading:
        ts = now or utc_now()
        t_ms = ts.timestamp() * 1000.0
        values = {name: profile.value(t_ms, self._rng) for name, profile in PROFILES.items()}
        return Reading(timestamp=ts, **values)

    def random_machine_label(self, fleet_size: int = 10) -> str:
        return f"Machine #{self._rng.randint(1, fleet_size)}"
