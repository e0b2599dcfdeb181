import datetime
from typing import Callable, Iterable, Optional, Tuple

from .events import MetricEvent

Sample = Tuple[datetime.datetime, float, int]


class PRDetector:
    """Detect personal records over a subject's complete history."""

    @staticmethod
    def detect(samples: Iterable[Sample]) -> Optional[dict]:
        """Return the record for ``samples`` of ``(date, magnitude, source_id)``.

        ``previous_max`` is the second element of the magnitudes sorted in
        descending order, so a repeated top value yields ``previous_max ==
        max``. ``achieved_at`` is the earliest date the maximum was reached.
        """
        data = list(samples)
        if not data:
            return None
        ordered = sorted((float(m) for _d, m, _s in data), reverse=True)
        best = ordered[0]
        previous = ordered[1] if len(ordered) > 1 else best
        first = min(
            ((d, s) for d, m, s in data if float(m) == best),
            key=lambda item: (item[0], item[1]),
        )
        return {
            "max": best,
            "previous_max": previous,
            "achieved_at": first[0],
            "source_id": first[1],
        }

    @classmethod
    def detect_all(
        cls,
        events: Iterable[MetricEvent],
        predicate: Callable[[MetricEvent], bool],
    ) -> list[dict]:
        """Return one record per subject among qualifying ``events``."""
        by_subject: dict = {}
        names: dict = {}
        for event in events:
            if not predicate(event):
                continue
            by_subject.setdefault(event.subject_id, []).append(
                (event.timestamp, float(event.magnitude), event.source_id)
            )
            names.setdefault(event.subject_id, event.subject_name)
        records: list[dict] = []
        for subject_id, samples in by_subject.items():
            found = cls.detect(samples)
            if found is None:
                continue
            records.append(
                {
                    "subject_id": subject_id,
                    "subject_name": names[subject_id],
                    "current_max": found["max"],
                    "previous_max": found["previous_max"],
                    "achieved_at": found["achieved_at"],
                    "source_id": found["source_id"],
                }
            )
        return records

    @staticmethod
    def within(
        records: Iterable[dict],
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
    ) -> list[dict]:
        """Keep records first achieved inside ``[start, end]``, newest first.

        Records are never recomputed for the window: a maximum set long ago
        is shown when its date falls inside the window.
        """
        kept = [
            r
            for r in records
            if (start is None or r["achieved_at"] >= start)
            and (end is None or r["achieved_at"] <= end)
        ]
        return sorted(
            kept, key=lambda r: (r["achieved_at"], str(r["subject_id"])), reverse=True
        )
