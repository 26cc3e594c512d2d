"""
Descriptive statistics over HMPI series.

Every function accepts WaterQualityReading objects, dicts carrying an 'hmpi'
or 'value' key, or plain numbers. Edge cases (too few points, zero variance)
return neutral values instead of raising.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from itertools import combinations
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from common.data_templates import CORRELATED_METALS
from common.models import WaterQualityReading

logger = logging.getLogger(__name__)

DEFAULT_TREND_WINDOW = 14
MIN_WEEKLY_POINTS = 30
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class TrendDelta:
    recent_avg: float
    older_avg: float
    change: float  # percent, positive means rising pollution

    @property
    def improving(self) -> bool:
        return self.change < 0


@dataclass(frozen=True)
class MetalCorrelation:
    metal1: str
    metal2: str
    coefficient: float

    def to_dict(self):
        return {"metal1": self.metal1, "metal2": self.metal2, "coefficient": self.coefficient}


def value_of(item: Any) -> Optional[float]:
    """HMPI (or 'value') of a reading, dict or number"""
    if isinstance(item, WaterQualityReading):
        return float(item.hmpi)
    if isinstance(item, dict):
        for key in ("hmpi", "value"):
            if item.get(key) is not None:
                return float(item[key])
        return None
    if isinstance(item, (int, float)) and not isinstance(item, bool):
        return float(item)
    return None


def timestamp_of(item: Any) -> Optional[datetime]:
    if isinstance(item, WaterQualityReading):
        return item.timestamp
    if isinstance(item, dict):
        stamp = item.get("timestamp")
        if isinstance(stamp, str):
            return pd.Timestamp(stamp).to_pydatetime()
        return stamp
    return None


def extract_values(data: Iterable[Any]) -> List[float]:
    return [v for v in (value_of(item) for item in data) if v is not None]


def extract_points(data: Iterable[Any]) -> List[Tuple[datetime, float]]:
    """(timestamp, value) pairs, skipping items without either"""
    points = []
    for item in data:
        value, stamp = value_of(item), timestamp_of(item)
        if value is not None and stamp is not None:
            points.append((stamp, value))
    return points


def mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else 0.0


def trend_delta(data: Iterable[Any], window: int = DEFAULT_TREND_WINDOW) -> Optional[TrendDelta]:
    """
    Percent change of the most recent window mean against the preceding window.

    With fewer than 2 * window points the window shrinks to n // 2. Returns
    None for fewer than 2 points or a zero older mean.
    """
    values = extract_values(data)
    n = len(values)
    if n < 2:
        return None
    if n < 2 * window:
        window = n // 2

    recent = values[-window:]
    older = values[-2 * window:-window]
    recent_avg, older_avg = mean(recent), mean(older)
    if older_avg == 0:
        return None
    return TrendDelta(recent_avg, older_avg, (recent_avg - older_avg) / older_avg * 100.0)


def volatility(data: Iterable[Any]) -> float:
    """Population standard deviation, 0 for fewer than 2 points"""
    values = extract_values(data)
    if len(values) < 2:
        return 0.0
    return float(np.std(values))


def weekly_pattern(data: Iterable[Any]) -> List[float]:
    """
    Mean value per day of week, index 0 = Sunday.

    Days without data are 0. Returns [] for fewer than 30 points.
    """
    points = extract_points(data)
    if len(points) < MIN_WEEKLY_POINTS:
        return []

    df = pd.DataFrame(points, columns=["timestamp", "value"])
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    # pandas counts Monday = 0
    df["day"] = (df["timestamp"].dt.dayofweek + 1) % 7
    averages = df.groupby("day")["value"].mean()
    return [float(averages.get(day, 0.0)) for day in range(7)]


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson r over the common length; 0 for empty input or zero variance"""
    n = min(len(x), len(y))
    if n == 0:
        return 0.0
    xs = np.asarray(x[:n], dtype=float)
    ys = np.asarray(y[:n], dtype=float)
    # exact zero variance; mean subtraction can leave rounding residue
    if np.ptp(xs) == 0 or np.ptp(ys) == 0:
        return 0.0
    dx = xs - xs.mean()
    dy = ys - ys.mean()

    r = float(np.sum(dx * dy) / np.sqrt(np.sum(dx * dx) * np.sum(dy * dy)))
    return max(-1.0, min(1.0, r))


def metal_value(item: Any, metal: str) -> float:
    """Concentration of one metal in a reading or dict, 0 when absent"""
    if isinstance(item, WaterQualityReading):
        found = item.metal(metal)
        return found.value if found is not None else 0.0
    if isinstance(item, dict):
        for entry in item.get("metals") or []:
            name = entry.metal if hasattr(entry, "metal") else entry.get("metal")
            if name == metal:
                return float(entry.value if hasattr(entry, "value") else entry.get("value", 0.0))
    return 0.0


def metal_correlations(data: Sequence[Any], metals: Sequence[str] = CORRELATED_METALS) -> List[MetalCorrelation]:
    """Pearson r for every metal pair, series aligned by reading index"""
    series = {metal: [metal_value(item, metal) for item in data] for metal in metals}
    return [
        MetalCorrelation(m1, m2, pearson_correlation(series[m1], series[m2]))
        for m1, m2 in combinations(metals, 2)
    ]


def linear_trend_slope(data: Iterable[Any], last_n: int = 10) -> float:
    """Least-squares slope over the last last_n points (per step)"""
    values = extract_values(data)[-last_n:]
    n = len(values)
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=float)
    y = np.asarray(values, dtype=float)
    denominator = n * np.sum(x * x) - np.sum(x) ** 2
    if denominator == 0:
        return 0.0
    return float((n * np.sum(x * y) - np.sum(x) * np.sum(y)) / denominator)
