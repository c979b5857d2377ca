"""
Weekly analytics agent.
"""

from .context import WeeklyAnalyticsContext
from .agent import WeeklyAnalyticsAgent, WeeklyAnalyticsAssembler
from .helpers import week_id_for, assess_weekly_data

__all__ = [
    "WeeklyAnalyticsContext",
    "WeeklyAnalyticsAgent",
    "WeeklyAnalyticsAssembler",
    "week_id_for",
    "assess_weekly_data",
]
