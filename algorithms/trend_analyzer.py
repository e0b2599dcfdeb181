import math
from typing import Iterable, Optional, Sequence

import numpy as np


class TrendAnalyzer:
    """Derive trends, rolling comparisons and trend lines from week series."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    WINDOW: int = 4

    @staticmethod
    def round1(value: float) -> float:
        """Round to one decimal, halves away from zero."""
        scaled = abs(value) * 10
        return math.copysign(math.floor(scaled + 0.5) / 10, value) + 0.0

    @classmethod
    def direction(cls, change: float) -> str:
        if change > 0:
            return cls.UP
        if change < 0:
            return cls.DOWN
        return cls.STABLE

    @classmethod
    def week_over_week(cls, values: Sequence[float]) -> dict:
        """Compare the last two values of ``values``."""
        if len(values) < 2:
            return {"change": 0.0, "change_percent": 0.0, "direction": cls.STABLE}
        prev = float(values[-2])
        raw = float(values[-1]) - prev
        change = cls.round1(raw)
        percent = cls.round1(change / prev * 100) if prev != 0 else 0.0
        return {
            "change": change,
            "change_percent": percent,
            "direction": cls.direction(raw),
        }

    @classmethod
    def direction_from_signals(
        cls,
        current: dict,
        previous: Optional[dict],
        signals: Iterable[str],
    ) -> str:
        """Combine several signals with an OR rule favouring improvement.

        ``up`` when any signal improved, ``down`` when at least one regressed
        and none improved, ``stable`` otherwise.
        """
        if not current or not previous:
            return cls.STABLE
        improved = False
        regressed = False
        for name in signals:
            if current[name] > previous[name]:
                improved = True
            elif current[name] < previous[name]:
                regressed = True
        if improved:
            return cls.UP
        if regressed:
            return cls.DOWN
        return cls.STABLE

    @staticmethod
    def _window_average(rows: Sequence[dict], signals: Sequence[str]) -> Optional[dict]:
        if not rows:
            return None
        return {
            name: float(np.mean([float(r[name]) for r in rows])) for name in signals
        }

    @classmethod
    def rolling_comparison(
        cls,
        rows: Sequence[dict],
        signals: Sequence[str],
        window: int | None = None,
    ) -> dict:
        """Average the last ``window`` rows against the ``window`` before them."""
        size = window or cls.WINDOW
        n = len(rows)
        last = rows[max(0, n - size):]
        previous = rows[max(0, n - 2 * size):max(0, n - size)]
        last_avg = cls._window_average(last, signals)
        prev_avg = cls._window_average(previous, signals)
        return {
            "last": last_avg,
            "previous": prev_avg,
            "direction": cls.direction_from_signals(last_avg, prev_avg, signals),
        }

    @staticmethod
    def trend_line(values: Sequence[float]) -> list[dict]:
        """Return ordinary least squares predictions for each index."""
        if len(values) < 2:
            return []
        x = np.arange(len(values), dtype=float)
        y = np.array(values, dtype=float)
        x_mean = np.mean(x)
        y_mean = np.mean(y)
        den = np.sum((x - x_mean) ** 2)
        slope = float(np.sum((x - x_mean) * (y - y_mean)) / den)
        intercept = float(y_mean - slope * x_mean)
        return [
            {"index": int(i), "predicted_value": round(slope * i + intercept, 2)}
            for i in range(len(values))
        ]

    @classmethod
    def overall_average(cls, values: Sequence[float]) -> Optional[float]:
        """Mean of all weekly values except the most recent one."""
        history = list(values)[:-1]
        if not history:
            return None
        return cls.round1(float(np.mean(history)))
