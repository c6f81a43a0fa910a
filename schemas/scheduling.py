"""
Schedule analysis output schemas.

Output Location: {OUTPUT_DIR}/ or the directory passed with --output
Date columns are written as ISO dates (YYYY-MM-DD).
"""

from typing import Optional
from pydantic import BaseModel, Field


class ScheduleRow(BaseModel):
    """
    Scheduled activity with CPM dates and float.

    File: schedule.csv
    """
    activity_id: str = Field(description="Activity identifier")
    name: Optional[str] = Field(default=None, description="Activity name")
    kind: str = Field(description="task, milestone or summary")
    duration: int = Field(description="Duration in work days")
    percent_complete: float = Field(description="Percent complete (0-100)")
    calendar_id: str = Field(description="Calendar the activity is scheduled on")
    early_start: Optional[str] = Field(default=None, description="Early start date")
    early_finish: Optional[str] = Field(default=None, description="Early finish date (exclusive)")
    late_start: Optional[str] = Field(default=None, description="Late start date")
    late_finish: Optional[str] = Field(default=None, description="Late finish date (exclusive)")
    work_hours: Optional[float] = Field(default=None, description="Work hours between early start and early finish")
    total_float: Optional[int] = Field(default=None, description="Total float in work days")
    free_float: Optional[int] = Field(default=None, description="Free float in work days")
    is_critical: bool = Field(description="Total float within the critical tolerance")


class FindingRow(BaseModel):
    """
    Schedule quality finding.

    File: findings.csv
    """
    activity_id: str = Field(description="Activity the finding is about")
    kind: str = Field(description="Check that produced the finding")
    severity: str = Field(description="error, warning or info")
    predecessor_id: Optional[str] = Field(default=None, description="Predecessor of the offending link")
    message: str = Field(description="Explanation")


class RiskActivityRow(BaseModel):
    """
    Monte Carlo statistics per activity.

    File: risk_activities.csv
    """
    activity_id: str = Field(description="Activity identifier")
    criticality_index: float = Field(description="Percent of iterations on the critical path")
    sensitivity_index: float = Field(description="Spearman correlation of duration with project duration")
    distribution: str = Field(description="Duration distribution type")


class RiskDurationRow(BaseModel):
    """
    Sorted Monte Carlo project outcomes.

    File: risk_durations.csv
    """
    rank: int = Field(description="Position in ascending order (1 = shortest)")
    duration_days: int = Field(description="Project duration in work days")
    finish_date: str = Field(description="Project finish date")


class RiskEventRow(BaseModel):
    """
    Monte Carlo risk event occurrence.

    File: risk_events.csv
    """
    risk_id: str = Field(description="Risk identifier")
    occurrence_pct: float = Field(description="Percent of iterations in which the risk fired")


class FloatPathRow(BaseModel):
    """
    Activity on a numbered float path.

    File: float_paths.csv
    """
    float_path: int = Field(description="Path number (1 = most critical)")
    activity_id: str = Field(description="Activity identifier")
    driving_predecessor_id: Optional[str] = Field(default=None, description="Driving predecessor on the path")
    relationship_float: Optional[int] = Field(default=None, description="Slack of the driving link in work days")
