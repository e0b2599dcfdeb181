import sqlite3
import aiosqlite
import datetime
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional

from algorithms.events import MetricEvent
from errors import NotFoundError

logger = logging.getLogger(__name__)

WORKOUT = "workout"
SLEEP = "sleep"
BODY_MEASUREMENT = "body_measurement"
MEASUREMENT_FIELDS = ("weight", "waist", "arm")


def parse_timestamp(value: str) -> datetime.datetime:
    """Return a stored ISO string as a naive local datetime."""
    dt = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT
                );""",
            ["id", "email", "name"],
        ),
        "exercise_catalog": (
            """CREATE TABLE exercise_catalog (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    muscle_group TEXT
                );""",
            ["id", "name", "muscle_group"],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    title TEXT,
                    start_at TEXT NOT NULL,
                    end_at TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "title", "start_at", "end_at"],
        ),
        "session_exercises": (
            """CREATE TABLE session_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercise_catalog(id) ON DELETE CASCADE
                );""",
            ["id", "session_id", "exercise_id"],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_exercise_id INTEGER NOT NULL,
                    actual_load REAL,
                    actual_reps INTEGER,
                    completed INTEGER NOT NULL DEFAULT 0,
                    rir INTEGER,
                    FOREIGN KEY(session_exercise_id) REFERENCES session_exercises(id) ON DELETE CASCADE
                );""",
            ["id", "session_exercise_id", "actual_load", "actual_reps", "completed", "rir"],
        ),
        "sleeps": (
            """CREATE TABLE sleeps (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    sleep_hours REAL NOT NULL,
                    sleep_quality INTEGER,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "date", "sleep_hours", "sleep_quality"],
        ),
        "body_measurements": (
            """CREATE TABLE body_measurements (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    weight REAL NOT NULL,
                    waist REAL,
                    arm REAL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "date", "weight", "waist", "arm"],
        ),
        "pinned_exercises": (
            """CREATE TABLE pinned_exercises (
                    user_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, exercise_id),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercise_catalog(id) ON DELETE CASCADE
                );""",
            ["user_id", "exercise_id", "position"],
        ),
    }

    def __init__(self, db_path: str = "fitlog.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s", table)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("completed", "position"):
                        return "0"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


class UserRepository(BaseRepository):
    """Repository for user accounts."""

    def create(self, email: str, name: str | None = None) -> int:
        return self.execute(
            "INSERT INTO users (email, name) VALUES (?, ?);",
            (email, name),
        )


class ExerciseCatalogRepository(BaseRepository):
    """Repository for exercise definitions."""

    def add(self, name: str, muscle_group: str | None = None) -> int:
        return self.execute(
            "INSERT INTO exercise_catalog (name, muscle_group) VALUES (?, ?);",
            (name, muscle_group),
        )

    def fetch_all(self) -> list[tuple[int, str, Optional[str]]]:
        return super().fetch_all(
            "SELECT id, name, muscle_group FROM exercise_catalog ORDER BY name;"
        )


class WorkoutRepository(BaseRepository):
    """Repository for workout session operations."""

    def create(
        self,
        user_id: int,
        start_at: str,
        title: str | None = None,
        end_at: str | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO workout_sessions (user_id, title, start_at, end_at) VALUES (?, ?, ?, ?);",
            (user_id, title, start_at, end_at),
        )


class ExerciseRepository(BaseRepository):
    """Repository for exercises performed within a session."""

    def add(self, session_id: int, exercise_id: int) -> int:
        return self.execute(
            "INSERT INTO session_exercises (session_id, exercise_id) VALUES (?, ?);",
            (session_id, exercise_id),
        )


class SetRepository(BaseRepository):
    """Repository for logged sets."""

    def add(
        self,
        session_exercise_id: int,
        load: float | None,
        reps: int | None,
        completed: bool = True,
        rir: int | None = None,
    ) -> int:
        if load is not None and load < 0:
            raise ValueError("load must be non-negative")
        if reps is not None and reps < 0:
            raise ValueError("reps must be non-negative")
        return self.execute(
            "INSERT INTO workout_sets (session_exercise_id, actual_load, actual_reps, completed, rir) VALUES (?, ?, ?, ?, ?);",
            (session_exercise_id, load, reps, int(completed), rir),
        )


class SleepRepository(BaseRepository):
    """Repository for sleep logs."""

    def log(
        self,
        user_id: int,
        date: str,
        sleep_hours: float,
        sleep_quality: int | None = None,
    ) -> int:
        if sleep_hours < 0 or sleep_hours > 24:
            raise ValueError("sleep_hours must be between 0 and 24")
        return self.execute(
            "INSERT INTO sleeps (user_id, date, sleep_hours, sleep_quality) VALUES (?, ?, ?, ?);",
            (user_id, date, sleep_hours, sleep_quality),
        )


class BodyMeasurementRepository(BaseRepository):
    """Repository for body measurement logs."""

    def log(
        self,
        user_id: int,
        date: str,
        weight: float,
        waist: float | None = None,
        arm: float | None = None,
    ) -> int:
        if weight <= 0:
            raise ValueError("weight must be positive")
        return self.execute(
            "INSERT INTO body_measurements (user_id, date, weight, waist, arm) VALUES (?, ?, ?, ?, ?);",
            (user_id, date, weight, waist, arm),
        )


class AsyncUserRepository(AsyncBaseRepository):
    """Async lookups on the users table."""

    async def exists(self, user_id: int) -> bool:
        rows = await self.fetch_all("SELECT 1 FROM users WHERE id = ?;", (user_id,))
        return bool(rows)


class AsyncExerciseCatalogRepository(AsyncBaseRepository):
    """Async lookups on exercise definitions."""

    async def fetch_detail(
        self, exercise_id: int
    ) -> Optional[tuple[int, str, Optional[str]]]:
        rows = await self.fetch_all(
            "SELECT id, name, muscle_group FROM exercise_catalog WHERE id = ?;",
            (exercise_id,),
        )
        return tuple(rows[0]) if rows else None


class AsyncPinnedExerciseRepository(AsyncBaseRepository):
    """Async repository for the per-user pinned exercise list."""

    async def fetch(self, user_id: int) -> list[int]:
        rows = await self.fetch_all(
            "SELECT exercise_id FROM pinned_exercises WHERE user_id = ? ORDER BY position, exercise_id;",
            (user_id,),
        )
        return [int(r[0]) for r in rows]

    async def add(self, user_id: int, exercise_id: int) -> None:
        await self.execute(
            "INSERT INTO pinned_exercises (user_id, exercise_id, position) "
            "SELECT ?, ?, COALESCE(MAX(position), -1) + 1 FROM pinned_exercises WHERE user_id = ?;",
            (user_id, exercise_id, user_id),
        )

    async def remove(self, user_id: int, exercise_id: int) -> None:
        await self.execute(
            "DELETE FROM pinned_exercises WHERE user_id = ? AND exercise_id = ?;",
            (user_id, exercise_id),
        )


class AsyncEventRepository(AsyncBaseRepository):
    """Bulk reader turning stored logs into ``MetricEvent`` records."""

    async def fetch_events(self, user_id: int, metric: str) -> list[MetricEvent]:
        """Return every event of ``metric`` logged by ``user_id``.

        The user lookup and the event query share one connection so a
        request performs a single round trip. Raises ``NotFoundError`` for
        unknown users.
        """
        loaders = {
            WORKOUT: self._workout_events,
            SLEEP: self._sleep_events,
            BODY_MEASUREMENT: self._measurement_events,
        }
        loader = loaders.get(metric)
        if loader is None:
            raise ValueError(f"unknown metric: {metric}")
        async with self._async_connection() as conn:
            cursor = await conn.execute("SELECT 1 FROM users WHERE id = ?;", (user_id,))
            if await cursor.fetchone() is None:
                raise NotFoundError(f"user {user_id} not found")
            events = await loader(conn, user_id)
        logger.debug("fetched %d %s events for user %s", len(events), metric, user_id)
        return events

    @staticmethod
    async def _rows(conn, query: str, params: Tuple) -> List[Tuple]:
        cursor = await conn.execute(query, params)
        return await cursor.fetchall()

    async def _workout_events(self, conn, user_id: int) -> list[MetricEvent]:
        rows = await self._rows(
            conn,
            "SELECT ws.id, ws.start_at, ws.end_at, st.actual_load, st.actual_reps, "
            "st.completed, ec.id, ec.name, ec.muscle_group "
            "FROM workout_sets st "
            "JOIN session_exercises se ON st.session_exercise_id = se.id "
            "JOIN workout_sessions ws ON se.session_id = ws.id "
            "JOIN exercise_catalog ec ON se.exercise_id = ec.id "
            "WHERE ws.user_id = ? ORDER BY ws.start_at, st.id;",
            (user_id,),
        )
        events: list[MetricEvent] = []
        for sid, start, end, load, reps, completed, ex_id, ex_name, group in rows:
            events.append(
                MetricEvent(
                    timestamp=parse_timestamp(start),
                    source_id=int(sid),
                    magnitude=float(load) if load is not None else None,
                    count=int(reps) if reps is not None else None,
                    completed=bool(completed),
                    dimension=group,
                    subject_id=int(ex_id),
                    subject_name=ex_name,
                    finished=end is not None,
                )
            )
        return events

    async def _sleep_events(self, conn, user_id: int) -> list[MetricEvent]:
        rows = await self._rows(
            conn,
            "SELECT id, date, sleep_hours FROM sleeps WHERE user_id = ? ORDER BY date, id;",
            (user_id,),
        )
        return [
            MetricEvent(
                timestamp=parse_timestamp(date),
                source_id=int(rid),
                magnitude=float(hours),
                subject_id="sleep_hours",
            )
            for rid, date, hours in rows
        ]

    async def _measurement_events(self, conn, user_id: int) -> list[MetricEvent]:
        rows = await self._rows(
            conn,
            "SELECT id, date, weight, waist, arm FROM body_measurements "
            "WHERE user_id = ? ORDER BY date, id;",
            (user_id,),
        )
        events: list[MetricEvent] = []
        for rid, date, *values in rows:
            ts = parse_timestamp(date)
            for field, value in zip(MEASUREMENT_FIELDS, values):
                if value is None:
                    continue
                events.append(
                    MetricEvent(
                        timestamp=ts,
                        source_id=int(rid),
                        magnitude=float(value),
                        subject_id=field,
                    )
                )
        return events
