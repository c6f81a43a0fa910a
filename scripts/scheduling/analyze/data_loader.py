"""
Data Loader for Project Files.

Loads a JSON project document, validates it with the payload schemas and
constructs the calendars, activities, links and distributions used by the
scheduler, the checker and the risk engine. Also writes analysis results
to schema-validated CSV files.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Union

from schemas.project import (
    ActivityPayload,
    CalendarPayload,
    ProjectPayload,
    RiskEventPayload,
    ThresholdPayload,
)
from schemas.validator import validated_df_to_csv
from src.config.settings import Settings
from .analysis.checker import Finding, ThresholdConfig, findings_to_dataframe
from .analysis.float_paths import FloatPath, float_paths_to_dataframe
from .analysis.monte_carlo import SimulationResult
from .analysis.risk_events import RiskEvent, TaskImpact
from .analysis.sampling import DurationDistribution
from .cpm.calendar import WorkCalendar
from .cpm.models import Activity, Dependency, ScheduledNetwork

logger = logging.getLogger(__name__)


@dataclass
class Project:
    """Scheduling inputs of one project."""

    name: str
    start: date
    calendars: dict[str, WorkCalendar]
    activities: list[Activity]
    links: list[Dependency]
    status_date: Optional[date] = None
    target_finish: Optional[date] = None
    distributions: dict[str, DurationDistribution] = field(default_factory=dict)
    risk_events: list[RiskEvent] = field(default_factory=list)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)

    def get_summary(self) -> dict:
        return {
            'name': self.name,
            'start': self.start,
            'status_date': self.status_date,
            'activities': len(self.activities),
            'links': len(self.links),
            'calendars': len(self.calendars),
            'distributions': len(self.distributions),
            'risk_events': len(self.risk_events),
        }


def load_calendars(payloads: list[CalendarPayload]) -> dict[str, WorkCalendar]:
    """
    Build work calendars from calendar payloads.

    Returns:
        Dict mapping calendar id to WorkCalendar, in document order
    """
    calendars = {}
    for p in payloads:
        if p.work_days is not None:
            hours = p.hours_per_day or [p.hours if worked else 0.0 for worked in p.work_days]
            cal = WorkCalendar(
                calendar_id=p.id,
                name=p.name,
                work_days=tuple(p.work_days),
                hours_per_day=tuple(hours),
                exceptions=frozenset(p.exceptions),
                is_default=p.is_default,
            )
        else:
            cal = WorkCalendar.from_weekdays(p.id, p.days_per_week, hours=p.hours,
                                             exceptions=p.exceptions, name=p.name)
            cal.is_default = p.is_default
        calendars[p.id] = cal
    return calendars


def load_activity(p: ActivityPayload) -> Activity:
    """Build an Activity from its payload."""
    return Activity(
        activity_id=p.id,
        name=p.name,
        kind=p.type,
        duration=p.duration,
        remaining_duration=p.remaining_duration,
        calendar_id=p.calendar,
        percent_complete=p.pct,
        outline_level=p.outline_level,
        constraint_type=p.constraint or '',
        constraint_date=p.constraint_date,
        manual=p.manual,
        manual_start=p.manual_start,
        actual_start=p.actual_start,
        actual_finish=p.actual_finish,
    )


def load_dependencies(payloads: list[ActivityPayload]) -> list[Dependency]:
    """Flatten per-activity predecessor lists into links, in document order."""
    dependencies = []
    for act in payloads:
        for pred in act.predecessors:
            dependencies.append(Dependency(
                pred_id=pred.id,
                succ_id=act.id,
                relation=pred.type,
                lag_days=pred.lag,
            ))
    return dependencies


def _distribution(d) -> DurationDistribution:
    return DurationDistribution(dist_type=d.type, minimum=d.min, most_likely=d.most_likely, maximum=d.max)


def load_distributions(payloads: list[ActivityPayload]) -> dict[str, DurationDistribution]:
    """Collect the duration distributions attached to activities."""
    distributions = {}
    for act in payloads:
        if act.distribution is None or act.distribution.type == 'none':
            continue
        distributions[act.id] = _distribution(act.distribution)
    return distributions


def load_risk_events(payloads: list[RiskEventPayload]) -> list[RiskEvent]:
    """Build the risk register, in document order."""
    return [
        RiskEvent(
            risk_id=p.id,
            name=p.name,
            probability=p.probability,
            affected_ids=tuple(p.affected),
            impact_type=p.impact_type,
            impact_value=p.impact,
            mitigated=p.mitigated,
            mitigated_probability=p.mitigated_probability,
            mitigated_impact_value=p.mitigated_impact,
            task_impacts=tuple(TaskImpact(t.id, _distribution(t.schedule)) for t in p.task_impacts),
        )
        for p in payloads
    ]


def load_thresholds(payload: ThresholdPayload) -> ThresholdConfig:
    """Checker thresholds, falling back to the configured defaults."""
    return ThresholdConfig(
        long_lag_days=_default(payload.long_lag_days, Settings.LONG_LAG_DAYS),
        large_margin_days=_default(payload.large_margin_days, Settings.LARGE_MARGIN_DAYS),
        long_duration_days=_default(payload.long_duration_days, Settings.LONG_DURATION_DAYS),
    )


def _default(value, fallback):
    return fallback if value is None else value


def project_from_payload(payload: ProjectPayload) -> Project:
    """Convert a validated project document into scheduling inputs."""
    return Project(
        name=payload.name,
        start=payload.start,
        calendars=load_calendars(payload.calendars),
        activities=[load_activity(a) for a in payload.activities],
        links=load_dependencies(payload.activities),
        status_date=payload.status_date,
        target_finish=payload.target_finish,
        distributions=load_distributions(payload.activities),
        risk_events=load_risk_events(payload.risks),
        thresholds=load_thresholds(payload.thresholds),
    )


def load_project(path: Union[str, Path]) -> Project:
    """
    Load a project JSON file.

    Args:
        path: Path to the project document

    Returns:
        Project with calendars, activities, links, distributions and thresholds

    Raises:
        FileNotFoundError: If the file doesn't exist
        pydantic.ValidationError: If the document doesn't match the project schema
    """
    path = Path(path)
    with open(path, encoding='utf-8') as f:
        data = json.load(f)

    payload = ProjectPayload.model_validate(data)
    project = project_from_payload(payload)
    summary = project.get_summary()
    logger.info(f"Loaded project '{project.name or path.stem}': {summary['activities']} activities, "
                f"{summary['links']} links, {summary['calendars']} calendars, "
                f"{summary['risk_events']} risk events")
    return project


# ----------------------------------------------------------------------
# Exports
# ----------------------------------------------------------------------

def export_schedule(result: ScheduledNetwork, output_dir: Path) -> Path:
    """Write schedule.csv."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / 'schedule.csv'
    validated_df_to_csv(result.to_dataframe(), path, index=False)
    return path


def export_float_paths(paths: list[FloatPath], output_dir: Path) -> Path:
    """Write float_paths.csv."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / 'float_paths.csv'
    validated_df_to_csv(float_paths_to_dataframe(paths), path, index=False)
    return path


def export_findings(findings: list[Finding], output_dir: Path) -> Path:
    """Write findings.csv."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / 'findings.csv'
    validated_df_to_csv(findings_to_dataframe(findings), path, index=False)
    return path


def export_simulation(result: SimulationResult, output_dir: Path) -> list[Path]:
    """Write risk_activities.csv, risk_durations.csv and, with a risk register, risk_events.csv."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    activities_path = output_dir / 'risk_activities.csv'
    durations_path = output_dir / 'risk_durations.csv'
    validated_df_to_csv(result.activities_dataframe(), activities_path, index=False)
    validated_df_to_csv(result.durations_dataframe(), durations_path, index=False)
    paths = [activities_path, durations_path]
    if result.risk_occurrence:
        events_path = output_dir / 'risk_events.csv'
        validated_df_to_csv(result.risks_dataframe(), events_path, index=False)
        paths.append(events_path)
    return paths
