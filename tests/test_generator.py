from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Tuple

from machine_monitor.core.generator import PROFILES, SignalGenerator, SignalProfile
from machine_monitor.core.models import FEATURES


def profile_bounds(profile: SignalProfile) -> Tuple[float, float]:
    lo = profile.baseline - abs(profile.amplitude) - profile.jitter
    hi = profile.baseline + abs(profile.amplitude) + profile.jitter
    return max(0.0, lo), hi


def test_readings_stay_within_profile_bounds() -> None:
    gen = SignalGenerator(random.Random(7))
    start = datetime(2025, 5, 9, tzinfo=timezone.utc)
    for i in range(500):
        r = gen.generate(start + timedelta(seconds=3 * i))
        for name in FEATURES:
            lo, hi = profile_bounds(PROFILES[name])
            value = getattr(r, name)
            assert lo - 1e-9 <= value <= hi + 1e-9
            assert value >= 0.0


def test_timestamp_is_passed_through() -> None:
    now = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
    assert SignalGenerator().generate(now).timestamp == now


def test_same_seed_same_reading() -> None:
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    a = SignalGenerator(random.Random(1)).generate(now)
    b = SignalGenerator(random.Random(1)).generate(now)
    assert a == b


def test_clamped_at_zero() -> None:
    profile = SignalProfile(baseline=0.0, jitter=5.0)
    rng = random.Random(3)
    assert all(profile.value(0.0, rng) >= 0.0 for _ in range(200))


def test_vibration_follows_slow_sine() -> None:
    quiet = {name: SignalProfile(p.baseline, p.amplitude, p.period_ms, 0.0) for name, p in PROFILES.items()}
    rng = random.Random(0)
    vib = quiet["vibration"]
    # sin peaks at t = period * pi / 2
    peak_ms = vib.period_ms * 3.141592653589793 / 2
    assert abs(vib.value(peak_ms, rng) - 0.8) < 1e-9
    assert abs(vib.value(0.0, rng) - 0.5) < 1e-9


def test_machine_label() -> None:
    gen = SignalGenerator(random.Random(5))
    labels = {gen.random_machine_label() for _ in range(200)}
    assert labels <= {f"Machine #{i}" for i in range(1, 11)}
