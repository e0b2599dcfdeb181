import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import FitlogAPI
from db import (
    ExerciseCatalogRepository,
    ExerciseRepository,
    SetRepository,
    SleepRepository,
    UserRepository,
    WorkoutRepository,
)


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_fitlog.db"
        self.yaml_path = "test_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = FitlogAPI(
            db_path=self.db_path,
            yaml_path=self.yaml_path,
            clock=lambda: datetime.datetime(2024, 1, 17, 12, 0),
        )
        self.client = TestClient(self.api.app)
        self.user = UserRepository(self.db_path).create("api@example.com")
        self.headers = {"X-User-Id": str(self.user)}
        self.bench = ExerciseCatalogRepository(self.db_path).add("Bench Press", "CHEST")
        workouts = WorkoutRepository(self.db_path)
        exercises = ExerciseRepository(self.db_path)
        sets = SetRepository(self.db_path)
        for day, load in ((2, 60.0), (9, 70.0), (16, 80.0)):
            sid = workouts.create(
                self.user,
                f"2024-01-{day:02d}T18:00:00",
                "Push",
                f"2024-01-{day:02d}T19:00:00",
            )
            sets.add(exercises.add(sid, self.bench), load, 5)
        SleepRepository(self.db_path).log(self.user, "2024-01-09", 7.0)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_evolution_window(self) -> None:
        response = self.client.get(
            "/statistics/evolution",
            params={"start_date": "2024-01-15", "end_date": "2024-01-21"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        prs = response.json()["recent_prs"]
        self.assertEqual(prs[0]["value"], 80.0)
        self.assertEqual(prs[0]["previous_value"], 70.0)

    def test_evolution_bad_range(self) -> None:
        response = self.client.get(
            "/statistics/evolution",
            params={"start_date": "2024-01-21", "end_date": "2024-01-15"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_evolution_weeks_out_of_range(self) -> None:
        response = self.client.get(
            "/statistics/evolution",
            params={"weeks": 1000000},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_unknown_user(self) -> None:
        response = self.client.get("/statistics/dashboard", headers={"X-User-Id": "999"})
        self.assertEqual(response.status_code, 404)

    def test_dashboard(self) -> None:
        response = self.client.get("/statistics/dashboard", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["total_workouts"], 3)
        self.assertEqual(len(data["volume_history"]), 30)

    def test_progression_and_history(self) -> None:
        response = self.client.get(
            f"/statistics/exercise/{self.bench}/progression", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["weeks"]), 3)

        response = self.client.get(
            f"/statistics/exercise/{self.bench}/history",
            params={"limit": 1},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

        response = self.client.get(
            f"/statistics/exercise/{self.bench}/history",
            params={"limit": 50},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.get(
            "/statistics/exercise/999/progression", headers=self.headers
        )
        self.assertEqual(response.status_code, 404)

    def test_pinned_exercises(self) -> None:
        url = f"/statistics/pinned-exercises/{self.bench}"
        self.assertEqual(self.client.post(url, headers=self.headers).status_code, 200)
        self.assertEqual(self.client.post(url, headers=self.headers).status_code, 400)
        response = self.client.get("/statistics/pinned-exercises", headers=self.headers)
        self.assertEqual(response.json(), {"exercise_ids": [self.bench]})
        self.assertEqual(self.client.delete(url, headers=self.headers).status_code, 200)
        self.assertEqual(self.client.delete(url, headers=self.headers).status_code, 400)

    def test_sleep_and_body_stats(self) -> None:
        response = self.client.get("/sleep/stats", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["weekly_data"][0]["value"], 7.0)

        response = self.client.get("/body-measurements/stats", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(set(response.json()), {"weight", "waist", "arm"})

    def test_missing_user_header(self) -> None:
        response = self.client.get("/statistics/dashboard")
        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
