"""Week numbering package."""

from src.weeks.clock import (
    DayOfYearWeekIndex,
    EpochWeekIndex,
    WeekClock,
    WeekIndexStrategy,
    WeekKey,
    last_week_for,
    week_index_for,
)

__all__ = [
    "DayOfYearWeekIndex",
    "EpochWeekIndex",
    "WeekClock",
    "WeekIndexStrategy",
    "WeekKey",
    "last_week_for",
    "week_index_for",
]
