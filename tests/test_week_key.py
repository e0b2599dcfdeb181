import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import WeekKeyCalculator


class WeekKeyTestCase(unittest.TestCase):
    def test_same_key_monday_to_sunday(self) -> None:
        keys = {
            WeekKeyCalculator.week_key(datetime.date(2024, 1, d)) for d in range(1, 8)
        }
        self.assertEqual(keys, {"2024-01-01"})

    def test_key_changes_sunday_to_monday(self) -> None:
        sunday = datetime.datetime(2024, 1, 7, 23, 59, 59)
        monday = datetime.datetime(2024, 1, 8, 0, 0, 0)
        self.assertEqual(WeekKeyCalculator.week_key(sunday), "2024-01-01")
        self.assertEqual(WeekKeyCalculator.week_key(monday), "2024-01-08")

    def test_week_crossing_year_and_month(self) -> None:
        self.assertEqual(
            WeekKeyCalculator.week_key(datetime.date(2025, 1, 1)), "2024-12-30"
        )
        self.assertEqual(
            WeekKeyCalculator.week_key(datetime.date(2024, 3, 2)), "2024-02-26"
        )

    def test_week_start_returns_monday(self) -> None:
        for offset in range(30):
            day = datetime.date(2024, 2, 10) + datetime.timedelta(days=offset)
            start = WeekKeyCalculator.week_start(day)
            self.assertEqual(start.weekday(), 0)
            self.assertTrue(0 <= (day - start).days <= 6)

    def test_time_of_day_ignored(self) -> None:
        morning = datetime.datetime(2024, 5, 15, 0, 0)
        night = datetime.datetime(2024, 5, 15, 23, 30)
        self.assertEqual(
            WeekKeyCalculator.week_key(morning), WeekKeyCalculator.week_key(night)
        )


if __name__ == "__main__":
    unittest.main()
