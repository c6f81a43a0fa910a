"""
Data models for CPM calculations.

Defines dataclasses for activities, links, and scheduling results.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

import pandas as pd


class ActivityKind(str, Enum):
    TASK = 'task'
    MILESTONE = 'milestone'
    SUMMARY = 'summary'


class RelationType(str, Enum):
    FS = 'FS'
    SS = 'SS'
    FF = 'FF'
    SF = 'SF'


class ConstraintType(str, Enum):
    NONE = ''
    SNET = 'SNET'     # start no earlier than
    SNLT = 'SNLT'     # start no later than
    MSO = 'MSO'       # must start on
    MFO = 'MFO'       # must finish on
    FNET = 'FNET'     # finish no earlier than
    FNLT = 'FNLT'     # finish no later than


MANDATORY_CONSTRAINTS = frozenset({
    ConstraintType.MSO, ConstraintType.MFO, ConstraintType.SNLT, ConstraintType.FNLT,
})
FLEXIBLE_CONSTRAINTS = frozenset({ConstraintType.SNET, ConstraintType.FNET})

SCHEDULE_COLUMNS = [
    'activity_id', 'name', 'kind', 'duration', 'percent_complete', 'calendar_id',
    'early_start', 'early_finish', 'late_start', 'late_finish',
    'work_hours', 'total_float', 'free_float', 'is_critical',
]


@dataclass
class Activity:
    """Represents a schedulable activity."""

    activity_id: str
    name: str = ""
    kind: ActivityKind = ActivityKind.TASK
    duration: int = 0                           # work days
    remaining_duration: Optional[int] = None
    calendar_id: Optional[str] = None           # None = project default calendar
    percent_complete: float = 0.0
    outline_level: int = 0

    # Constraints (optional)
    constraint_type: ConstraintType = ConstraintType.NONE
    constraint_date: Optional[date] = None

    # Manual scheduling pins the start date
    manual: bool = False
    manual_start: Optional[date] = None

    # Actuals (for completed/in-progress activities)
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None

    # CPM Results (calculated by engine)
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    total_float: Optional[int] = None
    free_float: Optional[int] = None
    is_critical: bool = False

    def __post_init__(self):
        self.kind = ActivityKind(self.kind)
        self.constraint_type = ConstraintType(self.constraint_type or '')

    def is_milestone(self) -> bool:
        return self.kind == ActivityKind.MILESTONE

    def is_summary(self) -> bool:
        return self.kind == ActivityKind.SUMMARY

    def is_completed(self) -> bool:
        return self.percent_complete >= 100

    def is_in_progress(self) -> bool:
        return 0 < self.percent_complete < 100

    def is_not_started(self) -> bool:
        return self.percent_complete <= 0

    def get_effective_duration(self) -> int:
        """Get duration still to be worked (remaining if in progress)."""
        if self.is_milestone():
            return 0
        if self.is_in_progress():
            if self.remaining_duration is not None:
                return self.remaining_duration
            return round(self.duration * (100 - self.percent_complete) / 100)
        return self.duration

    def reset_schedule(self) -> None:
        """Clear computed fields before a scheduler run."""
        self.early_start = None
        self.early_finish = None
        self.late_start = None
        self.late_finish = None
        self.total_float = None
        self.free_float = None
        self.is_critical = False

    def validate(self) -> list[str]:
        """
        Validate activity invariants.

        Returns list of issues found (empty if valid).
        """
        issues = []
        if not self.activity_id:
            issues.append("missing activity id")
        if self.duration < 0:
            issues.append(f"negative duration {self.duration}")
        if self.remaining_duration is not None:
            if self.remaining_duration < 0:
                issues.append(f"negative remaining duration {self.remaining_duration}")
            elif self.remaining_duration > self.duration:
                issues.append(
                    f"remaining duration {self.remaining_duration} exceeds duration {self.duration}"
                )
        if self.is_milestone() and self.duration != 0:
            issues.append(f"milestone with duration {self.duration}")
        if not 0 <= self.percent_complete <= 100:
            issues.append(f"percent complete {self.percent_complete} outside 0-100")
        if self.constraint_type != ConstraintType.NONE and self.constraint_date is None:
            issues.append(f"constraint {self.constraint_type.value} without a date")
        return issues


@dataclass(frozen=True)
class Dependency:
    """Represents a predecessor-successor relationship."""

    pred_id: str
    succ_id: str
    relation: RelationType = RelationType.FS
    lag_days: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'relation', RelationType(self.relation))

    def is_finish_to_start(self) -> bool:
        return self.relation == RelationType.FS

    def drives_finish(self) -> bool:
        """FF and SF links constrain the successor's finish."""
        return self.relation in (RelationType.FF, RelationType.SF)

    def from_predecessor_finish(self) -> bool:
        """FS and FF links are measured from the predecessor's finish."""
        return self.relation in (RelationType.FS, RelationType.FF)


@dataclass
class ScheduledNetwork:
    """Results from a CPM calculation."""

    activities: dict[str, Activity]
    order: list[str]                       # activity ids in topological order
    dependencies: list[Dependency]
    calendars: dict
    default_calendar_id: str
    project_start: date
    project_finish: date
    status_date: Optional[date]
    critical_path: list[str]               # activity ids in execution order
    duration_days: int                     # default-calendar work days
    critical_tolerance: int = 1
    target_finish: Optional[date] = None
    _successors: dict = field(default_factory=dict, repr=False)
    _predecessors: dict = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if not self._successors and not self._predecessors:
            for dep in self.dependencies:
                self._successors.setdefault(dep.pred_id, []).append(dep)
                self._predecessors.setdefault(dep.succ_id, []).append(dep)

    def get_activity(self, activity_id: str) -> Activity:
        return self.activities[activity_id]

    def predecessors_of(self, activity_id: str) -> list[Dependency]:
        """Links where activity_id is the successor, in input order."""
        return self._predecessors.get(activity_id, [])

    def successors_of(self, activity_id: str) -> list[Dependency]:
        """Links where activity_id is the predecessor, in input order."""
        return self._successors.get(activity_id, [])

    def calendar_for(self, activity: Activity):
        """Get the calendar an activity is scheduled on."""
        return self.calendars[activity.calendar_id or self.default_calendar_id]

    def get_critical_activities(self) -> list[Activity]:
        return [self.activities[aid] for aid in self.critical_path]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per activity in topological order."""
        rows = []
        for aid in self.order:
            a = self.activities[aid]
            work_hours = None
            if a.early_start and a.early_finish:
                work_hours = self.calendar_for(a).work_hours_between(a.early_start, a.early_finish)
            rows.append({
                'activity_id': a.activity_id,
                'name': a.name,
                'kind': a.kind.value,
                'duration': a.duration,
                'percent_complete': a.percent_complete,
                'calendar_id': a.calendar_id or self.default_calendar_id,
                'early_start': a.early_start,
                'early_finish': a.early_finish,
                'late_start': a.late_start,
                'late_finish': a.late_finish,
                'work_hours': work_hours,
                'total_float': a.total_float,
                'free_float': a.free_float,
                'is_critical': a.is_critical,
            })
        return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)

    def __repr__(self) -> str:
        return (f"ScheduledNetwork({len(self.activities)} activities, "
                f"{self.project_start} -> {self.project_finish}, "
                f"{len(self.critical_path)} critical)")
