import argparse
import asyncio
import datetime
import json
import logging

from config import YamlConfig
from db import (
    AsyncEventRepository,
    AsyncExerciseCatalogRepository,
    AsyncPinnedExerciseRepository,
    AsyncUserRepository,
    BodyMeasurementRepository,
    ExerciseCatalogRepository,
    ExerciseRepository,
    SetRepository,
    SleepRepository,
    UserRepository,
    WorkoutRepository,
)
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def demo_data(db_path: str, weeks: int = 6) -> int:
    """Populate the database with a demo user and return its id."""
    users = UserRepository(db_path)
    catalog = ExerciseCatalogRepository(db_path)
    workouts = WorkoutRepository(db_path)
    exercises = ExerciseRepository(db_path)
    sets = SetRepository(db_path)
    sleeps = SleepRepository(db_path)
    measurements = BodyMeasurementRepository(db_path)

    existing = {name: eid for eid, name, _group in catalog.fetch_all()}
    for name, group in (("Bench Press", "CHEST"), ("Squat", "LEGS"), ("Plank", None)):
        if name not in existing:
            existing[name] = catalog.add(name, group)
    user_id = users.create(f"demo-{datetime.datetime.now().timestamp()}@fitlog.local")

    today = datetime.date.today()
    for week in range(weeks, 0, -1):
        day = today - datetime.timedelta(weeks=week)
        start = datetime.datetime.combine(day, datetime.time(18, 0))
        sid = workouts.create(
            user_id,
            start.isoformat(),
            "Demo session",
            (start + datetime.timedelta(hours=1)).isoformat(),
        )
        step = weeks - week
        for name, load in (("Bench Press", 60.0), ("Squat", 80.0)):
            ex_id = exercises.add(sid, existing[name])
            for reps in (8, 8, 6):
                sets.add(ex_id, load + 2.5 * step, reps)
        plank = exercises.add(sid, existing["Plank"])
        sets.add(plank, 0.0, 1)
        for offset in range(0, 7, 2):
            sleeps.log(
                user_id,
                (day + datetime.timedelta(days=offset)).isoformat(),
                7.0 + 0.25 * (offset % 3),
                3,
            )
        measurements.log(user_id, day.isoformat(), 82.0 - 0.3 * step, 90.0 - 0.2 * step, 37.0)
    logger.info("seeded demo user %s with %d weeks of data", user_id, weeks)
    return user_id


def build_service(db_path: str, yaml_path: str) -> StatisticsService:
    return StatisticsService(
        AsyncEventRepository(db_path),
        AsyncUserRepository(db_path),
        AsyncExerciseCatalogRepository(db_path),
        AsyncPinnedExerciseRepository(db_path),
        settings=YamlConfig(yaml_path).settings(),
    )


def _window(args: argparse.Namespace) -> dict:
    return {
        "start_date": args.start,
        "end_date": args.end,
        "weeks": args.weeks,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Fitlog statistics commands")
    parser.add_argument("--db", default="fitlog.db")
    parser.add_argument("--yaml", default="settings.yaml")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    demo = sub.add_parser("demo")
    demo.add_argument("--weeks", type=int, default=6)

    for name in ("evolution", "sleep", "measurements"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--user", type=int, required=True)
        cmd.add_argument("--start")
        cmd.add_argument("--end")
        cmd.add_argument("--weeks", type=int)

    prog = sub.add_parser("progression")
    prog.add_argument("--user", type=int, required=True)
    prog.add_argument("--exercise", type=int, required=True)
    prog.add_argument("--start")
    prog.add_argument("--end")

    dash = sub.add_parser("dashboard")
    dash.add_argument("--user", type=int, required=True)

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "demo":
        print(json.dumps({"user_id": demo_data(args.db, args.weeks)}))
        return

    service = build_service(args.db, args.yaml)
    if args.cmd == "evolution":
        coro = service.workout_volume_stats(args.user, **_window(args))
    elif args.cmd == "sleep":
        coro = service.sleep_stats(args.user, **_window(args))
    elif args.cmd == "measurements":
        coro = service.body_measurement_stats(args.user, **_window(args))
    elif args.cmd == "progression":
        coro = service.exercise_progression(
            args.user, args.exercise, args.start, args.end
        )
    else:
        coro = service.dashboard(args.user)
    try:
        result = asyncio.run(coro)
    except (ValueError, LookupError) as e:
        parser.exit(1, f"error: {e}\n")
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
