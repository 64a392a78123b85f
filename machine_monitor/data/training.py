from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Union

import numpy as np
import pandas as pd

from ..core.models import TrainingAggregate


logger = logging.getLogger(__name__)

# dataset column -> (aggregate feature, integer-truncate)
COLUMNS = {
    "Air temperature [K]": ("airTemperature", False),
    "Process temperature [K]": ("processTemperature", False),
    "Torque [Nm]": ("torque", False),
    "Tool wear [min]": ("toolWear", True),
}
FAULT_COLUMN = "machine_fault"

EMPTY = TrainingAggregate()


def _coerce(frame: pd.DataFrame, column: str, truncate: bool) -> pd.Series:
    if column not in frame.columns:
        return pd.Series(0.0, index=frame.index)
    values = pd.to_numeric(frame[column], errors="coerce").astype(float)
    values = values.replace([np.inf, -np.inf], np.nan).fillna(0.0)
    if truncate:
        # integer columns: "12.7" counts as 12
        values = np.trunc(values)
    return values


def aggregate_frame(frame: pd.DataFrame) -> TrainingAggregate:
    """Summarize a frame of historical rows. Bad cells count as 0."""
    if frame.empty:
        return EMPTY
    averages = {
        feature: float(_coerce(frame, column, truncate).mean())
        for column, (feature, truncate) in COLUMNS.items()
    }
    faults = _coerce(frame, FAULT_COLUMN, truncate=True)
    return TrainingAggregate(
        sample_count=int(len(frame)),
        fault_count=int((faults == 1).sum()),
        healthy_count=int((faults == 0).sum()),
        feature_averages=averages,
    )


def load_rows(rows: Iterable[Mapping[str, Any]]) -> TrainingAggregate:
    return aggregate_frame(pd.DataFrame(list(rows)))


def load_csv(path: Union[str, Path]) -> TrainingAggregate:
    """Load the historical dataset; missing or unreadable files yield an empty aggregate."""
    p = Path(path)
    if not p.exists():
        logger.warning("Training data not found; scoring without aggregate", extra={"path": str(p)})
        return EMPTY
    try:
        frame = pd.read_csv(p, dtype=str, keep_default_na=False)
    except (OSError, ValueError, pd.errors.ParserError) as exc:
        logger.warning("Could not read training data: %s", exc, extra={"path": str(p)})
        return EMPTY
    agg = aggregate_frame(frame)
    logger.info("Loaded %d training samples", agg.sample_count, extra={"path": str(p)})
    return agg


class TrainingData:
    """Holds the aggregate computed once at startup."""

    def __init__(self, aggregate: TrainingAggregate = EMPTY) -> None:
        self._aggregate = aggregate

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "TrainingData":
        return cls(load_csv(path))

    def summarize(self) -> TrainingAggregate:
        return self._aggregate
