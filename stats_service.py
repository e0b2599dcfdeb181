from __future__ import annotations
import datetime
import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from algorithms import (
    Aggregator,
    MetricEvent,
    PRDetector,
    TrendAnalyzer,
    WeekKeyCalculator,
)
from db import (
    AsyncEventRepository,
    AsyncExerciseCatalogRepository,
    AsyncPinnedExerciseRepository,
    AsyncUserRepository,
    BODY_MEASUREMENT,
    MEASUREMENT_FIELDS,
    SLEEP,
    WORKOUT,
    parse_timestamp,
)
from errors import (
    DuplicatePinError,
    NotFoundError,
    NotPinnedError,
    PinLimitError,
    ValidationError,
)
from settings_schema import AnalyticsSettings

logger = logging.getLogger(__name__)

Window = Tuple[Optional[datetime.datetime], Optional[datetime.datetime]]


class StatisticsService:
    """Compute dashboard reports from logged workouts, sleep and measurements."""

    PROGRESSION_SIGNALS = ("avg_magnitude", "total_volume")

    def __init__(
        self,
        event_repo: AsyncEventRepository,
        user_repo: AsyncUserRepository,
        catalog_repo: AsyncExerciseCatalogRepository,
        pinned_repo: AsyncPinnedExerciseRepository,
        settings: AnalyticsSettings | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.events = event_repo
        self.users = user_repo
        self.catalog = catalog_repo
        self.pins = pinned_repo
        self.settings = settings or AnalyticsSettings()
        self.clock = clock or datetime.datetime.now

    # configuration -------------------------------------------------------

    def metric_config(self, metric: str) -> Dict[str, object]:
        """Return window defaults, completeness rule and validity predicate."""
        s = self.settings
        configs = {
            "workout_volume": {
                "weeks": s.evolution_weeks,
                "align_to_week": True,
                "complete_weeks_only": False,
                "valid": self._is_finished,
            },
            "exercise_progression": {
                "weeks": None,
                "align_to_week": True,
                "complete_weeks_only": False,
                "valid": self._is_valid_set,
            },
            SLEEP: {
                "weeks": s.sleep_weeks,
                "align_to_week": False,
                "complete_weeks_only": True,
                "valid": self._has_magnitude,
            },
            BODY_MEASUREMENT: {
                "weeks": s.measurement_weeks,
                "align_to_week": False,
                "complete_weeks_only": True,
                "valid": self._has_magnitude,
            },
        }
        if metric not in configs:
            raise ValueError(f"unknown metric: {metric}")
        return configs[metric]

    @staticmethod
    def _parse_date(value: str) -> datetime.datetime:
        try:
            return parse_timestamp(value)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Invalid date format: {value!r}. Use ISO date strings."
            )

    def resolve_window(
        self,
        metric: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        weeks: Optional[int] = None,
    ) -> Window:
        """Return the inclusive ``(start, end)`` window for a report.

        Explicit dates win over ``weeks``, which wins over the metric
        default. ``(None, None)`` means the whole history.
        """
        if start_date or end_date:
            if not (start_date and end_date):
                raise ValidationError("start_date and end_date must be given together")
            start = datetime.datetime.combine(
                self._parse_date(start_date).date(), datetime.time.min
            )
            end = datetime.datetime.combine(
                self._parse_date(end_date).date(), datetime.time.max
            )
            if start > end:
                raise ValidationError("start_date must be less than or equal to end_date")
            return start, end

        config = self.metric_config(metric)
        if weeks is None:
            weeks = config["weeks"]
        if weeks is None:
            return None, None
        if weeks < 1:
            raise ValidationError("weeks must be a positive integer")
        now = self.clock()
        end = datetime.datetime.combine(now.date(), datetime.time.max)
        try:
            if config["align_to_week"]:
                first = WeekKeyCalculator.week_start(now) - datetime.timedelta(
                    weeks=weeks - 1
                )
            else:
                first = now.date() - datetime.timedelta(days=7 * weeks)
        except OverflowError:
            raise ValidationError(f"weeks={weeks} reaches past the earliest date")
        return datetime.datetime.combine(first, datetime.time.min), end

    # predicates ------------------------------------------------------------

    @staticmethod
    def _in_window(event: MetricEvent, window: Window) -> bool:
        start, end = window
        if start is not None and event.timestamp < start:
            return False
        if end is not None and event.timestamp > end:
            return False
        return True

    @staticmethod
    def _has_load_and_reps(event: MetricEvent) -> bool:
        return event.magnitude is not None and event.count is not None

    @staticmethod
    def _is_finished(event: MetricEvent) -> bool:
        return event.finished

    @classmethod
    def _is_valid_set(cls, event: MetricEvent) -> bool:
        return event.finished and cls._has_load_and_reps(event)

    @staticmethod
    def _has_magnitude(event: MetricEvent) -> bool:
        return event.magnitude is not None

    def _dimension(self, event: MetricEvent) -> Optional[str]:
        if not event.dimension or event.dimension == self.settings.uncategorized_dimension:
            return None
        return event.dimension

    def _pr_qualifies(self, event: MetricEvent) -> bool:
        return self._is_valid_set(event) and self._dimension(event) is not None

    @staticmethod
    def _set_volume(event: MetricEvent) -> float:
        if event.completed and event.magnitude and event.count:
            return event.magnitude * event.count
        return 0.0

    def _pr_entry(self, record: dict) -> dict:
        return {
            "subject_id": record["subject_id"],
            "subject_name": record["subject_name"],
            "value": record["current_max"],
            "previous_value": record["previous_max"],
            "achieved_date": record["achieved_at"].isoformat(),
            "source_id": record["source_id"],
            "unit": self.settings.load_unit,
        }

    async def _exercise_detail(self, exercise_id: int) -> tuple:
        detail = await self.catalog.fetch_detail(exercise_id)
        if detail is None:
            raise NotFoundError(f"exercise {exercise_id} not found")
        return detail

    async def _require_user(self, user_id: int) -> None:
        if not await self.users.exists(user_id):
            raise NotFoundError(f"user {user_id} not found")

    # workout reports -------------------------------------------------------

    async def workout_volume_stats(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        weeks: Optional[int] = None,
    ) -> Dict[str, list]:
        """Return weekly volume per muscle group and PRs set in the window."""
        window = self.resolve_window("workout_volume", start_date, end_date, weeks)
        valid = self.metric_config("workout_volume")["valid"]
        events = await self.events.fetch_events(user_id, WORKOUT)

        def weekly(event: MetricEvent):
            value = (
                event.magnitude * event.count
                if self._has_load_and_reps(event)
                else None
            )
            return (
                WeekKeyCalculator.week_key(event.timestamp),
                value,
                self._dimension(event),
            )

        buckets = Aggregator.fold(
            events,
            lambda e: valid(e) and self._in_window(e, window),
            weekly,
        )
        weekly_stats = [
            {
                "week_key": b["week_key"],
                "total_volume": round(b["total"], 2),
                "total_sets": b["sample_count"],
                "per_dimension": {
                    name: {"volume": round(d["total"], 2), "sets": d["count"]}
                    for name, d in b["per_dimension"].items()
                },
            }
            for b in buckets
        ]
        records = PRDetector.detect_all(events, self._pr_qualifies)
        recent = [self._pr_entry(r) for r in PRDetector.within(records, *window)]
        logger.debug(
            "workout volume for user %s: %d events, %d weeks, %d PRs in %s",
            user_id,
            len(events),
            len(weekly_stats),
            len(recent),
            window,
        )
        return {"recent_prs": recent, "weekly_stats": weekly_stats}

    async def exercise_progression(
        self,
        user_id: int,
        exercise_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, object]:
        """Return weekly load, volume and reps for one exercise with trends."""
        window = self.resolve_window("exercise_progression", start_date, end_date)
        valid = self.metric_config("exercise_progression")["valid"]
        _eid, name, _group = await self._exercise_detail(exercise_id)
        events = await self.events.fetch_events(user_id, WORKOUT)

        def qualifies(event: MetricEvent) -> bool:
            return (
                event.subject_id == exercise_id
                and valid(event)
                and self._in_window(event, window)
            )

        def key(event: MetricEvent) -> str:
            return WeekKeyCalculator.week_key(event.timestamp)

        loads = Aggregator.fold(events, qualifies, lambda e: (key(e), e.magnitude, None))
        volumes = Aggregator.fold(
            events, qualifies, lambda e: (key(e), e.magnitude * e.count, None)
        )
        reps = Aggregator.fold(events, qualifies, lambda e: (key(e), e.count, None))

        weeks: List[Dict[str, object]] = []
        for load, volume, rep in zip(loads, volumes, reps):
            weeks.append(
                {
                    "week_key": load["week_key"],
                    "avg_magnitude": TrendAnalyzer.round1(Aggregator.average(load)),
                    "total_volume": round(volume["total"], 2),
                    "avg_count": TrendAnalyzer.round1(Aggregator.average(rep)),
                    "sets_count": load["sample_count"],
                }
            )
        rolling = TrendAnalyzer.rolling_comparison(weeks, self.PROGRESSION_SIGNALS)
        return {
            "exercise_id": exercise_id,
            "exercise_name": name,
            "weeks": weeks,
            "current_week": weeks[-1] if weeks else None,
            "previous_week": weeks[-2] if len(weeks) > 1 else None,
            "avg_last_4_weeks": self._round_signals(rolling["last"]),
            "avg_previous_4_weeks": self._round_signals(rolling["previous"]),
            "trend": rolling["direction"],
            "trend_line": TrendAnalyzer.trend_line([w["avg_magnitude"] for w in weeks]),
        }

    @staticmethod
    def _round_signals(values: Optional[dict]) -> Optional[dict]:
        if values is None:
            return None
        return {
            "avg_magnitude": TrendAnalyzer.round1(values["avg_magnitude"]),
            "total_volume": round(values["total_volume"], 2),
        }

    async def exercise_history(
        self,
        user_id: int,
        exercise_id: int,
        limit: Optional[int] = None,
    ) -> List[Dict[str, object]]:
        """Return the most recent finished sessions containing ``exercise_id``."""
        if limit is None:
            limit = self.settings.history_limit_default
        top = self.settings.history_limit_max
        if limit < 1 or limit > top:
            raise ValidationError(f"limit must be a number between 1 and {top}")
        await self._exercise_detail(exercise_id)
        events = await self.events.fetch_events(user_id, WORKOUT)
        sessions: Dict[int, dict] = {}
        for event in events:
            if not event.finished or event.subject_id != exercise_id:
                continue
            entry = sessions.setdefault(
                event.source_id,
                {
                    "session_id": event.source_id,
                    "date": event.timestamp.isoformat(),
                    "sets": [],
                },
            )
            entry["sets"].append(
                {
                    "load": event.magnitude,
                    "reps": event.count,
                    "completed": bool(event.completed),
                }
            )
        ordered = sorted(
            sessions.values(),
            key=lambda s: (s["date"], s["session_id"]),
            reverse=True,
        )
        return ordered[:limit]

    async def dashboard(self, user_id: int) -> Dict[str, object]:
        """Return headline numbers for the home dashboard.

        Everything is derived from logged sets, so ``total_workouts`` and
        ``last_workout`` only see finished sessions holding at least one set.
        """
        now = self.clock()
        today = now.date()
        days = self.settings.dashboard_days
        events = await self.events.fetch_events(user_id, WORKOUT)
        finished = [e for e in events if e.finished]

        since = datetime.datetime.combine(
            today - datetime.timedelta(days=days), datetime.time.min
        )
        month_start = datetime.datetime(today.year, today.month, 1)
        total_workouts = len({e.source_id for e in finished if e.timestamp >= since})
        monthly_volume = math.fsum(
            self._set_volume(e) for e in finished if e.timestamp >= month_start
        )

        by_day: Dict[datetime.date, List[float]] = {}
        for e in finished:
            by_day.setdefault(e.timestamp.date(), []).append(self._set_volume(e))
        history = []
        for offset in range(days - 1, -1, -1):
            day = today - datetime.timedelta(days=offset)
            history.append(
                {"date": day.isoformat(), "volume": round(math.fsum(by_day.get(day, [])), 2)}
            )

        last_workout = None
        if finished:
            latest = max(finished, key=lambda e: (e.timestamp, e.source_id))
            volume = math.fsum(
                self._set_volume(e) for e in finished if e.source_id == latest.source_id
            )
            last_workout = {
                "id": latest.source_id,
                "date": latest.timestamp.isoformat(),
                "volume": round(volume, 2),
            }

        pr_since = datetime.datetime.combine(
            today - datetime.timedelta(days=self.settings.dashboard_pr_days),
            datetime.time.min,
        )
        records = PRDetector.detect_all(events, self._pr_qualifies)
        recent = PRDetector.within(records, pr_since, now)
        return {
            "total_workouts": total_workouts,
            "monthly_volume": round(monthly_volume, 2),
            "volume_history": history,
            "last_workout": last_workout,
            "recent_prs": [
                self._pr_entry(r) for r in recent[: self.settings.dashboard_pr_limit]
            ],
        }

    # sleep and body measurements ----------------------------------------

    def metric_trend(
        self,
        events: List[MetricEvent],
        metric: str,
        subject: str,
        window: Window,
    ) -> Dict[str, object]:
        """Build a weekly-average trend report for one scalar series."""
        config = self.metric_config(metric)
        valid = config["valid"]
        complete_weeks_only = config["complete_weeks_only"]
        current_week = WeekKeyCalculator.week_key(self.clock())

        def in_window(event: MetricEvent) -> bool:
            return (
                event.subject_id == subject
                and valid(event)
                and self._in_window(event, window)
            )

        def weekly(event: MetricEvent) -> bool:
            if not in_window(event):
                return False
            if complete_weeks_only:
                return WeekKeyCalculator.week_key(event.timestamp) < current_week
            return True

        buckets = Aggregator.fold(
            events,
            weekly,
            lambda e: (WeekKeyCalculator.week_key(e.timestamp), e.magnitude, None),
        )
        weekly_data = [
            {"week_key": b["week_key"], "value": TrendAnalyzer.round1(Aggregator.average(b))}
            for b in buckets
        ]
        values = [w["value"] for w in weekly_data]
        latest = max(
            (e for e in events if in_window(e)),
            key=lambda e: (e.timestamp, e.source_id),
            default=None,
        )
        return {
            "weekly_data": weekly_data,
            "trend": TrendAnalyzer.week_over_week(values),
            "current": {
                "value": latest.magnitude if latest else None,
                "date": latest.timestamp.isoformat() if latest else None,
            },
            "average": TrendAnalyzer.overall_average(values),
            "trend_line": TrendAnalyzer.trend_line(values),
        }

    async def sleep_stats(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        weeks: Optional[int] = None,
    ) -> Dict[str, object]:
        window = self.resolve_window(SLEEP, start_date, end_date, weeks)
        events = await self.events.fetch_events(user_id, SLEEP)
        return self.metric_trend(events, SLEEP, "sleep_hours", window)

    async def body_measurement_stats(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        weeks: Optional[int] = None,
    ) -> Dict[str, Dict[str, object]]:
        window = self.resolve_window(BODY_MEASUREMENT, start_date, end_date, weeks)
        events = await self.events.fetch_events(user_id, BODY_MEASUREMENT)
        return {
            field: self.metric_trend(events, BODY_MEASUREMENT, field, window)
            for field in MEASUREMENT_FIELDS
        }

    # pinned exercises ------------------------------------------------------

    async def get_pinned(self, user_id: int) -> List[int]:
        await self._require_user(user_id)
        return await self.pins.fetch(user_id)

    async def pin(self, user_id: int, exercise_id: int) -> None:
        await self._require_user(user_id)
        await self._exercise_detail(exercise_id)
        pinned = await self.pins.fetch(user_id)
        if exercise_id in pinned:
            raise DuplicatePinError("Exercise is already pinned")
        limit = self.settings.pin_limit
        if len(pinned) >= limit:
            raise PinLimitError(f"You can pin at most {limit} exercises")
        await self.pins.add(user_id, exercise_id)
        logger.info("user %s pinned exercise %s", user_id, exercise_id)

    async def unpin(self, user_id: int, exercise_id: int) -> None:
        await self._require_user(user_id)
        await self._exercise_detail(exercise_id)
        pinned = await self.pins.fetch(user_id)
        if exercise_id not in pinned:
            raise NotPinnedError("Exercise is not pinned")
        await self.pins.remove(user_id, exercise_id)
        logger.info("user %s unpinned exercise %s", user_id, exercise_id)
