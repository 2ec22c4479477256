"""
Week Clock

Maps calendar dates to epoch-anchored week numbers and back.

Week 1 is the epoch day and the six days after it. Week numbers never drop
to zero or below: a date before the epoch is measured by its absolute
distance from the epoch, so the seven days before the epoch are also
"week 1". That is a modeling simplification kept for compatibility with
existing data, not real calendar semantics: far-past dates get large,
ambiguous week numbers that collide with future weeks.

Two week-indexing schemes exist in the ledger:
- EpochWeekIndex: the week clock below (used for payments)
- DayOfYearWeekIndex: ceil(day_of_year / 7) (used for expenses by default)

They disagree with each other, so callers must pick one explicitly.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import Callable, NamedTuple, Optional, Union

from src.models.report import WeekRange


DateLike = Union[date, datetime]


class WeekKey(NamedTuple):
    """A week number together with the calendar year it is filed under."""
    week_number: int
    year: int


def _as_date(moment: DateLike) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(moment, datetime):
        return moment.date()
    return moment


def last_week_for(epoch: date) -> int:
    """Highest week number whose last day is still a representable date."""
    return ((date.max - _as_date(epoch)).days + 1) // 7


class WeekClock:
    """
    Deterministic date <-> week mapping anchored to a fixed epoch.

    The epoch must be treated as a system constant once payments exist.
    """

    def __init__(
        self,
        epoch: date,
        today: Optional[Callable[[], date]] = None,
    ):
        """
        Args:
            epoch: First day of week 1
            today: Provider of the current date (defaults to date.today)
        """
        self._epoch = _as_date(epoch)
        self._today = today or date.today

    @property
    def epoch(self) -> date:
        return self._epoch

    @property
    def last_week(self) -> int:
        return last_week_for(self._epoch)

    def week_number_of(self, moment: DateLike) -> int:
        """Week number (>= 1) containing the given date."""
        diff_days = (_as_date(moment) - self._epoch).days
        if diff_days >= 0:
            return diff_days // 7 + 1
        # Before the epoch: absolute distance, rounded up to whole weeks
        return -(diff_days // 7)

    def week_key_of(self, moment: DateLike) -> WeekKey:
        """(week_number, calendar year) for the given date."""
        day = _as_date(moment)
        return WeekKey(self.week_number_of(day), day.year)

    def range_of(self, week_number: int) -> WeekRange:
        """First and last day of the given week."""
        if week_number < 1:
            raise ValueError(f"Week numbers start at 1, got {week_number}")
        if week_number > self.last_week:
            raise ValueError(f"Week {week_number} ends after the last representable date")
        start = self._epoch + timedelta(days=(week_number - 1) * 7)
        return WeekRange(
            week_number=week_number,
            start=start,
            end=start + timedelta(days=6),
        )

    def today(self) -> date:
        return self._today()

    def current_week(self) -> WeekKey:
        """Week key for today."""
        return self.week_key_of(self.today())

    def current_year(self) -> int:
        return self.today().year


class WeekIndexStrategy(ABC):
    """A named way of turning a date into a week number."""

    name: str = ""

    @abstractmethod
    def week_of(self, moment: DateLike) -> int:
        """Week number for the given date."""
        pass


class EpochWeekIndex(WeekIndexStrategy):
    """Epoch-anchored weeks, identical to the payment week numbers."""

    name = "epoch"

    def __init__(self, clock: WeekClock):
        self._clock = clock

    def week_of(self, moment: DateLike) -> int:
        return self._clock.week_number_of(moment)


class DayOfYearWeekIndex(WeekIndexStrategy):
    """
    Calendar-year weeks: ceil(day_of_year / 7).

    Jan 1-7 is week 1 every year regardless of the epoch, so these numbers
    only line up with epoch weeks by coincidence.
    """

    name = "day_of_year"

    def week_of(self, moment: DateLike) -> int:
        day_of_year = _as_date(moment).timetuple().tm_yday
        return -(-day_of_year // 7)


def week_index_for(scheme: str, clock: WeekClock) -> WeekIndexStrategy:
    """Resolve a configured scheme name to a strategy."""
    if scheme == EpochWeekIndex.name:
        return EpochWeekIndex(clock)
    if scheme == DayOfYearWeekIndex.name:
        return DayOfYearWeekIndex()
    raise ValueError(f"Unknown week index scheme: {scheme}")
