"""
Run context for weekly analytics generation.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .helpers import week_id_for


@dataclass(frozen=True)
class WeeklyAnalyticsContext:
    user_id: str
    week_start: date
    week_end: date
    timezone: str = "UTC"
    user_profile: Optional[dict] = None
    week_id: str = field(default="")

    def __post_init__(self):
        if self.week_end < self.week_start:
            raise ValueError(
                f"week_end {self.week_end} is before week_start {self.week_start}"
            )
        if not self.week_id:
            object.__setattr__(self, "week_id", week_id_for(self.week_start))

    @classmethod
    def from_dict(cls, data: dict) -> "WeeklyAnalyticsContext":
        """Build from JSON-style input; week_end defaults to week_start + 6 days."""
        week_start = date.fromisoformat(data["week_start"])
        week_end = (
            date.fromisoformat(data["week_end"])
            if data.get("week_end")
            else week_start + timedelta(days=6)
        )
        return cls(
            user_id=data["user_id"],
            week_start=week_start,
            week_end=week_end,
            timezone=data.get("timezone", "UTC"),
            user_profile=data.get("user_profile"),
            week_id=data.get("week_id", ""),
        )
