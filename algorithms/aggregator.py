import math
from typing import Callable, Iterable, Optional, Tuple

from .events import MetricEvent

Extracted = Tuple[str, Optional[float], Optional[str]]


class Aggregator:
    """Fold metric events into week buckets."""

    @staticmethod
    def fold(
        events: Iterable[MetricEvent],
        predicate: Callable[[MetricEvent], bool],
        extractor: Callable[[MetricEvent], Extracted],
    ) -> list[dict]:
        """Return week buckets sorted by week key.

        ``extractor`` maps an event to ``(week_key, value, dimension)``. A
        ``None`` value still counts as a sample but does not contribute to
        the total; a ``None`` dimension is left out of ``per_dimension``.
        """
        grouped: dict[str, dict] = {}
        for event in events:
            if not predicate(event):
                continue
            key, value, dimension = extractor(event)
            entry = grouped.setdefault(
                key, {"values": [], "samples": 0, "dimensions": {}}
            )
            entry["samples"] += 1
            if value is not None:
                entry["values"].append(float(value))
            if dimension is not None:
                dim = entry["dimensions"].setdefault(
                    dimension, {"values": [], "count": 0}
                )
                dim["count"] += 1
                if value is not None:
                    dim["values"].append(float(value))

        buckets: list[dict] = []
        for key in sorted(grouped):
            entry = grouped[key]
            per_dimension = {
                name: {"total": math.fsum(d["values"]), "count": d["count"]}
                for name, d in sorted(entry["dimensions"].items())
            }
            buckets.append(
                {
                    "week_key": key,
                    "total": math.fsum(entry["values"]),
                    "sample_count": entry["samples"],
                    "value_count": len(entry["values"]),
                    "per_dimension": per_dimension,
                }
            )
        return buckets

    @staticmethod
    def average(bucket: dict) -> Optional[float]:
        """Return the mean of the contributing values of ``bucket``."""
        if bucket["value_count"] == 0:
            return None
        return bucket["total"] / bucket["value_count"]
