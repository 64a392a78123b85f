from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..errors import ValidationError
from .models import (
    FEATURES,
    RISK_HIGH,
    RISK_LOW,
    RISK_MEDIUM,
    Prediction,
    Reading,
    TrainingAggregate,
)


# feature -> ((threshold, weight), ...) checked top-down, first strict ">" wins
FEATURE_RULES: Dict[str, Sequence[Tuple[float, float]]] = {
    "vibration": ((1.2, 0.3), (0.8, 0.1)),
    "temperature": ((80.0, 0.25), (75.0, 0.1)),
    "current": ((15.0, 0.2), (13.0, 0.05)),
    "sound": ((50.0, 0.15), (45.0, 0.05)),
}

TOOL_WEAR_LIMIT = 150.0
TOOL_WEAR_WEIGHT = 0.1

HIGH_CUTOFF = 0.7
MEDIUM_CUTOFF = 0.4


def risk_score(features: Mapping[str, float], aggregate: Optional[TrainingAggregate] = None) -> float:
    """Sum of rule weights for ``features``.

    Weights are added as floats in FEATURES order, tool wear last. Sums that
    read as 0.70 on paper come out as 0.7000000000000001 and classify High.
    """
    raw = 0.0
    for name in FEATURES:
        value = float(features[name])
        for threshold, weight in FEATURE_RULES[name]:
            if value > threshold:
                raw += weight
                break
    if aggregate is not None and not aggregate.is_empty:
        if aggregate.feature_averages.get("toolWear", 0.0) > TOOL_WEAR_LIMIT:
            raw += TOOL_WEAR_WEIGHT
    return raw


def classify(raw: float) -> Prediction:
    if raw > HIGH_CUTOFF:
        return Prediction(RISK_HIGH, min(90, 70 + math.floor(raw * 20)), "12-24 hours", raw)
    if raw > MEDIUM_CUTOFF:
        return Prediction(RISK_MEDIUM, min(60, 30 + math.floor(raw * 30)), "2-3 days", raw)
    return Prediction(RISK_LOW, math.floor(raw * 100), "> 1 week", raw)


def score(
    reading: Reading | Mapping[str, float],
    aggregate: Optional[TrainingAggregate] = None,
) -> Prediction:
    """Classify a reading's fault risk. Pure; identical inputs give identical output."""
    features = reading.features() if isinstance(reading, Reading) else reading
    return classify(risk_score(features, aggregate))


def validate_sensor_payload(body: Any) -> Dict[str, float]:
    """Parse the four sensor fields out of a JSON body."""
    if not isinstance(body, Mapping):
        raise ValidationError("Missing sensor data")
    missing = [name for name in FEATURES if body.get(name) in (None, "")]
    if missing:
        raise ValidationError("Missing sensor data")
    values: Dict[str, float] = {}
    for name in FEATURES:
        raw = body[name]
        if isinstance(raw, bool):
            raise ValidationError(f"Invalid value for {name}")
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid value for {name}")
        if math.isnan(value) or math.isinf(value) or value < 0:
            raise ValidationError(f"Invalid value for {name}")
        values[name] = value
    return values
