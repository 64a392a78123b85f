from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


FEATURES = ("vibration", "temperature", "current", "sound")

RISK_LOW = "Low"
RISK_MEDIUM = "Medium"
RISK_HIGH = "High"

ALERT_WARNING = "warning"
ALERT_CRITICAL = "critical"
ALERT_TYPES = (ALERT_WARNING, ALERT_CRITICAL)

MACHINE_STATUSES = ("Healthy", "Warning", "Faulty")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Reading:
    timestamp: datetime
    vibration: float
    temperature: float
    current: float
    sound: float

    def features(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in FEATURES}

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": iso(self.timestamp), **self.features()}


@dataclass(frozen=True)
class Prediction:
    risk: str  # "Low" | "Medium" | "High"
    probability: int  # percent, 0..100
    time_to_failure: str
    raw_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk": self.risk,
            "probability": self.probability,
            "timeToFailure": self.time_to_failure,
            "rawScore": self.raw_score,
        }


def relative_age(ts: datetime, now: Optional[datetime] = None) -> str:
    """Human label for how long ago ``ts`` was, e.g. "15 min ago"."""
    seconds = int(((now or utc_now()) - ts).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour ago" if hours == 1 else f"{hours} hours ago"
    days = hours // 24
    return f"{days} day ago" if days == 1 else f"{days} days ago"


@dataclass(frozen=True)
class Alert:
    id: int
    machine: str
    message: str
    type: str  # "warning" | "critical"
    timestamp: datetime

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "id": self.id,
            "machine": self.machine,
            "message": self.message,
            "type": self.type,
            "time": relative_age(self.timestamp, now),
            "timestamp": iso(self.timestamp),
        }


@dataclass(frozen=True)
class TrainingAggregate:
    sample_count: int = 0
    fault_count: int = 0
    healthy_count: int = 0
    feature_averages: Dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.sample_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sampleCount": self.sample_count,
            "faultCount": self.fault_count,
            "healthyCount": self.healthy_count,
            "featureAverages": dict(self.feature_averages),
        }


@dataclass
class Machine:
    id: int
    name: str
    status: str
    last_checked: str  # YYYY-MM-DD
    uptime: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "lastChecked": self.last_checked,
            "uptime": self.uptime,
        }
