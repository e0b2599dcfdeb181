import os
import sqlite3
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database


class TestSchemaMigration:
    def test_adds_missing_set_columns(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = sqlite3.connect(str(db_file))
        conn.execute(
            "CREATE TABLE workout_sets (id INTEGER PRIMARY KEY AUTOINCREMENT, session_exercise_id INTEGER NOT NULL, actual_load REAL, actual_reps INTEGER)"
        )
        conn.execute(
            "INSERT INTO workout_sets (session_exercise_id, actual_load, actual_reps) VALUES (1, 60.0, 5)"
        )
        conn.execute("CREATE TABLE workout_sets_old (id INTEGER)")
        conn.commit()
        conn.close()

        Database(str(db_file))

        conn = sqlite3.connect(str(db_file))
        cur = conn.execute("PRAGMA table_info(workout_sets)")
        cols = [row[1] for row in cur.fetchall()]
        assert cols == [
            "id",
            "session_exercise_id",
            "actual_load",
            "actual_reps",
            "completed",
            "rir",
        ]
        row = conn.execute(
            "SELECT actual_load, actual_reps, completed, rir FROM workout_sets"
        ).fetchone()
        assert row == (60.0, 5, 0, None)
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='workout_sets_old'"
        )
        assert cur.fetchone() is None
        conn.close()

    def test_creates_all_tables(self, tmp_path):
        db_file = tmp_path / "fresh.db"
        Database(str(db_file))
        conn = sqlite3.connect(str(db_file))
        names = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        conn.close()
        assert set(Database._TABLE_DEFINITIONS) <= names
