import datetime


class WeekKeyCalculator:
    """Map timestamps onto Monday-anchored week buckets."""

    @staticmethod
    def week_start(value: datetime.date | datetime.datetime) -> datetime.date:
        """Return the Monday of the calendar week containing ``value``."""
        day = value.date() if isinstance(value, datetime.datetime) else value
        # 0=Sunday .. 6=Saturday
        dow = (day.weekday() + 1) % 7
        offset = day.day - dow + (-6 if dow == 0 else 1)
        return day + datetime.timedelta(days=offset - day.day)

    @classmethod
    def week_key(cls, value: datetime.date | datetime.datetime) -> str:
        """Return ``YYYY-MM-DD`` of the Monday starting ``value``'s week."""
        monday = cls.week_start(value)
        return f"{monday.year:04d}-{monday.month:02d}-{monday.day:02d}"
