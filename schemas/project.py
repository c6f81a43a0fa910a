"""
Project input payload schemas.

A project file is a JSON document holding calendars, activities (with their
predecessor links and optional duration distributions), a risk register
and checker thresholds. These models validate the document before it is
converted into scheduling objects.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class CalendarPayload(BaseModel):
    """
    Work calendar definition.

    Either a weekly pattern (``work_days`` / ``hours_per_day``, Sunday first)
    or a ``days_per_week`` shortcut (5, 6 or 7).
    """
    id: str = Field(description="Calendar identifier")
    name: str = Field(default="", description="Calendar name")
    days_per_week: Optional[Literal[5, 6, 7]] = Field(default=None, description="Mon-Fri, Mon-Sat or every day")
    work_days: Optional[list[bool]] = Field(default=None, description="Work flag per weekday, Sunday first")
    hours_per_day: Optional[list[float]] = Field(default=None, description="Work hours per weekday, Sunday first")
    hours: float = Field(default=8.0, ge=0, le=24, description="Hours per work day for days_per_week calendars")
    exceptions: list[date] = Field(default_factory=list, description="Non-work dates")
    is_default: bool = Field(default=False, description="Project default calendar")

    @field_validator('work_days', 'hours_per_day')
    @classmethod
    def seven_slots(cls, value):
        if value is not None and len(value) != 7:
            raise ValueError(f"expected 7 weekday values, got {len(value)}")
        return value

    @field_validator('hours_per_day')
    @classmethod
    def hours_in_day(cls, value):
        if value is not None:
            bad = [h for h in value if not 0 <= h <= 24]
            if bad:
                raise ValueError(f"hours per day must be within 0-24, got {bad}")
        return value

    @model_validator(mode='after')
    def pattern_or_shortcut(self):
        if self.days_per_week is None and self.work_days is None:
            raise ValueError("calendar needs work_days or days_per_week")
        return self


class PredecessorPayload(BaseModel):
    """Link from a predecessor activity."""
    id: str = Field(description="Predecessor activity id")
    type: Literal['FS', 'SS', 'FF', 'SF'] = Field(default='FS', description="Relationship type")
    lag: int = Field(default=0, description="Lag in work days (negative for lead)")


class DistributionPayload(BaseModel):
    """Duration distribution for risk analysis (work days)."""
    type: Literal['none', 'triangular', 'pert', 'uniform'] = Field(default='none')
    min: Optional[float] = Field(default=None, description="Optimistic duration")
    most_likely: Optional[float] = Field(default=None, description="Most likely duration")
    max: Optional[float] = Field(default=None, description="Pessimistic duration")


class ActivityPayload(BaseModel):
    """Activity with its predecessor links."""
    id: str = Field(min_length=1, description="Unique activity id")
    name: str = Field(default="", description="Activity name")
    type: Literal['task', 'milestone', 'summary'] = Field(default='task')
    duration: int = Field(default=0, ge=0, description="Original duration in work days")
    remaining_duration: Optional[int] = Field(default=None, ge=0, description="Remaining duration in work days")
    calendar: Optional[str] = Field(default=None, description="Calendar id (project default if omitted)")
    pct: float = Field(default=0.0, ge=0, le=100, description="Percent complete")
    outline_level: int = Field(default=0, ge=0, description="Outline level (summaries span deeper rows below)")
    constraint: Optional[Literal['SNET', 'SNLT', 'MSO', 'MFO', 'FNET', 'FNLT']] = None
    constraint_date: Optional[date] = None
    manual: bool = Field(default=False, description="Manually scheduled")
    manual_start: Optional[date] = Field(default=None, description="Pinned start of a manual activity")
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None
    predecessors: list[PredecessorPayload] = Field(default_factory=list)
    distribution: Optional[DistributionPayload] = None


class TaskImpactPayload(BaseModel):
    """Sampled schedule impact of a risk on one activity."""
    id: str = Field(description="Affected activity id")
    schedule: DistributionPayload = Field(description="Extra work days when the risk fires")


class RiskEventPayload(BaseModel):
    """Entry of the risk register."""
    id: str = Field(min_length=1, description="Unique risk id")
    name: str = Field(default="", description="Risk name")
    probability: float = Field(ge=0, le=100, description="Percent chance of firing per iteration")
    affected: list[str] = Field(default_factory=list, description="Activities lengthened by a fixed impact")
    impact_type: Literal['add_days', 'multiply'] = Field(default='add_days')
    impact: float = Field(default=0.0, description="Work days added, or duration factor")
    mitigated: bool = Field(default=False, description="Mitigation in place")
    mitigated_probability: Optional[float] = Field(default=None, ge=0, le=100)
    mitigated_impact: Optional[float] = Field(default=None)
    task_impacts: list[TaskImpactPayload] = Field(default_factory=list,
                                                  description="Sampled impacts replacing the fixed impact")


class ThresholdPayload(BaseModel):
    """Checker thresholds in work days."""
    long_lag_days: Optional[int] = Field(default=None, ge=0)
    large_margin_days: Optional[int] = Field(default=None, ge=0)
    long_duration_days: Optional[int] = Field(default=None, ge=0)


class ProjectPayload(BaseModel):
    """Complete project document."""
    name: str = Field(default="", description="Project name")
    start: date = Field(description="Project start date")
    status_date: Optional[date] = Field(default=None, description="Schedule status date")
    target_finish: Optional[date] = Field(default=None, description="Finish date seeding the backward pass")
    calendars: list[CalendarPayload] = Field(default_factory=list)
    activities: list[ActivityPayload] = Field(default_factory=list)
    risks: list[RiskEventPayload] = Field(default_factory=list)
    thresholds: ThresholdPayload = Field(default_factory=ThresholdPayload)

    @model_validator(mode='after')
    def single_default_calendar(self):
        defaults = [c.id for c in self.calendars if c.is_default]
        if len(defaults) > 1:
            raise ValueError(f"more than one default calendar: {defaults}")
        return self

    @model_validator(mode='after')
    def unique_risk_ids(self):
        ids = [r.id for r in self.risks]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate risk ids: {duplicates}")
        return self
