import datetime
from typing import NamedTuple, Optional


class MetricEvent(NamedTuple):
    """A single logged sample as handed over by storage.

    Workout sets carry load in ``magnitude`` and reps in ``count``; sleep and
    body measurements only use ``magnitude``. ``finished`` reflects whether
    the owning session has an end timestamp and is always true for metrics
    without sessions.
    """

    timestamp: datetime.datetime
    source_id: int
    magnitude: Optional[float] = None
    count: Optional[int] = None
    completed: Optional[bool] = None
    dimension: Optional[str] = None
    subject_id: Optional[int | str] = None
    subject_name: Optional[str] = None
    finished: bool = True
