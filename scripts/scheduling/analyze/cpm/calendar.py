"""
Work Calendar and Date Arithmetic.

Whole-day work calendars with per-weekday work flags and hours, plus
non-work exception dates (holidays, shutdowns).
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from .errors import InvalidCalendar


# Weekday slots follow the application convention: 0=Sunday ... 6=Saturday
DAY_NAMES = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')


def weekday_slot(dt: date) -> int:
    """Convert Python weekday (0=Monday) to calendar slot (0=Sunday)."""
    return (dt.weekday() + 1) % 7


@dataclass
class WorkCalendar:
    """
    Work calendar with a weekly pattern and exception dates.

    Handles:
    - Work/non-work flag and hours per day for each day of week
    - Exception dates that are never worked
    - Work-day stepping in both directions
    """

    calendar_id: str
    name: str = ""
    work_days: tuple = (False, True, True, True, True, True, False)
    hours_per_day: tuple = (0.0, 8.0, 8.0, 8.0, 8.0, 8.0, 0.0)
    exceptions: frozenset = field(default_factory=frozenset)
    is_default: bool = False

    def __post_init__(self):
        self.work_days = tuple(bool(d) for d in self.work_days)
        self.hours_per_day = tuple(float(h) for h in self.hours_per_day)
        self.exceptions = frozenset(self.exceptions)
        if len(self.work_days) != 7 or len(self.hours_per_day) != 7:
            raise InvalidCalendar(self.calendar_id, "weekly pattern must have 7 slots")

    @classmethod
    def standard(cls, calendar_id: str = 'standard', hours: float = 8.0) -> 'WorkCalendar':
        """Monday-Friday calendar."""
        return cls(
            calendar_id=calendar_id,
            name='Standard',
            work_days=(False, True, True, True, True, True, False),
            hours_per_day=(0.0, hours, hours, hours, hours, hours, 0.0),
        )

    @classmethod
    def from_weekdays(cls, calendar_id: str, days_per_week: int, hours: float = 8.0,
                      exceptions: Iterable[date] = (), name: str = "") -> 'WorkCalendar':
        """
        Build the 5, 6 and 7 day-per-week calendars.

        Args:
            calendar_id: Calendar ID
            days_per_week: 5 (Mon-Fri), 6 (Mon-Sat) or 7 (every day)
            hours: Hours worked on each work day
            exceptions: Non-work dates
            name: Calendar name
        """
        patterns = {
            5: (False, True, True, True, True, True, False),
            6: (False, True, True, True, True, True, True),
            7: (True, True, True, True, True, True, True),
        }
        if days_per_week not in patterns:
            raise InvalidCalendar(calendar_id, f"unsupported week of {days_per_week} days")
        work_days = patterns[days_per_week]
        return cls(
            calendar_id=calendar_id,
            name=name or f"{days_per_week}-day week",
            work_days=work_days,
            hours_per_day=tuple(hours if d else 0.0 for d in work_days),
            exceptions=frozenset(exceptions),
        )

    def has_work_week(self) -> bool:
        """Check if at least one weekday is worked."""
        return any(self._slot_worked(slot) for slot in range(7))

    def _slot_worked(self, slot: int) -> bool:
        return self.work_days[slot] and self.hours_per_day[slot] > 0

    def _max_search_days(self) -> int:
        # Every exception can block at most one day and every week holds a work day
        if not self.has_work_week():
            raise InvalidCalendar(self.calendar_id, "no working weekday defined")
        return 7 * (len(self.exceptions) + 1)

    def is_work_day(self, dt: date) -> bool:
        """Check if a date is a work day."""
        if dt in self.exceptions:
            return False
        return self._slot_worked(weekday_slot(dt))

    def hours_on(self, dt: date) -> float:
        """Get work hours available on a date."""
        if not self.is_work_day(dt):
            return 0.0
        return self.hours_per_day[weekday_slot(dt)]

    def next_work_day(self, dt: date) -> date:
        """Roll a date forward to the first work day on or after it."""
        max_days = self._max_search_days()
        current = dt
        for _ in range(max_days + 1):
            if self.is_work_day(current):
                return current
            current += timedelta(days=1)
        raise InvalidCalendar(self.calendar_id, f"no work day within {max_days} days of {dt}")

    def previous_work_day(self, dt: date) -> date:
        """Roll a date back to the last work day on or before it."""
        max_days = self._max_search_days()
        current = dt
        for _ in range(max_days + 1):
            if self.is_work_day(current):
                return current
            current -= timedelta(days=1)
        raise InvalidCalendar(self.calendar_id, f"no work day within {max_days} days before {dt}")

    def add_work_days(self, start: date, days: int) -> date:
        """
        Add (or subtract, for negative days) work days to a date.

        A zero offset returns the start rolled forward to a work day. For a
        positive offset the result is the work day following the last day
        consumed, so a task starting Monday with 5 days on a Mon-Fri calendar
        finishes on the next Monday.
        """
        days = int(days)
        if days == 0:
            return self.next_work_day(start)

        max_days = self._max_search_days()
        step = timedelta(days=1 if days > 0 else -1)
        remaining = abs(days)
        current = start

        while remaining > 0:
            # Each step reaches a work day within max_days
            for _ in range(max_days + 1):
                current += step
                if self.is_work_day(current):
                    break
            else:
                raise InvalidCalendar(self.calendar_id, f"no work day reachable from {current}")
            remaining -= 1

        return current

    def work_days_between(self, start: date, end: date) -> int:
        """
        Count work days in [start, end), negative when end precedes start.

        For a work day ``d``: ``work_days_between(d, add_work_days(d, n)) == n``.
        """
        if end < start:
            return -self.work_days_between(end, start)
        if not self.has_work_week():
            raise InvalidCalendar(self.calendar_id, "no working weekday defined")

        total_days = (end - start).days
        full_weeks, extra = divmod(total_days, 7)
        per_week = sum(1 for slot in range(7) if self._slot_worked(slot))

        count = full_weeks * per_week
        current = start + timedelta(days=full_weeks * 7)
        for _ in range(extra):
            if self._slot_worked(weekday_slot(current)):
                count += 1
            current += timedelta(days=1)

        # Weekly arithmetic counted exceptions that fall on work weekdays
        for exc in self.exceptions:
            if start <= exc < end and self._slot_worked(weekday_slot(exc)):
                count -= 1

        return count

    def work_hours_between(self, start: date, end: date) -> float:
        """Total work hours in [start, end)."""
        if end <= start:
            return 0.0
        total_hours = 0.0
        current = start
        while current < end:
            total_hours += self.hours_on(current)
            current += timedelta(days=1)
        return total_hours

    def validate(self) -> list[str]:
        """
        Validate calendar definition.

        Returns list of issues found (empty if valid).
        """
        issues = []
        if not self.has_work_week():
            issues.append(f"Calendar {self.calendar_id} has no working weekday")
        for slot in range(7):
            if self.hours_per_day[slot] < 0:
                issues.append(f"Calendar {self.calendar_id} has negative hours on {DAY_NAMES[slot]}")
            if self.hours_per_day[slot] > 24:
                issues.append(f"Calendar {self.calendar_id} has more than 24 hours on {DAY_NAMES[slot]}")
        return issues

    def __repr__(self) -> str:
        days = ''.join(DAY_NAMES[s][0] if self._slot_worked(s) else '-' for s in range(7))
        return f"WorkCalendar({self.calendar_id}, {days}, {len(self.exceptions)} exceptions)"


def resolve_default_calendar(calendars: dict[str, WorkCalendar]) -> Optional[WorkCalendar]:
    """
    Pick the project default calendar.

    The calendar flagged as default wins; without a flag the first calendar is
    used. More than one flagged default is a configuration error.
    """
    if not calendars:
        return None
    defaults = [cal for cal in calendars.values() if cal.is_default]
    if len(defaults) > 1:
        ids = ', '.join(cal.calendar_id for cal in defaults)
        raise InvalidCalendar(defaults[1].calendar_id, f"more than one default calendar ({ids})")
    if defaults:
        return defaults[0]
    return next(iter(calendars.values()))
