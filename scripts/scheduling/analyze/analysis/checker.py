"""
Schedule Quality Checker.

Runs a fixed table of independent checks over every activity of a scheduled
network and reports structural and temporal problems as findings. Findings
are data: a network with problems still checks successfully.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

import pandas as pd

from ..cpm.engine import relationship_float
from ..cpm.models import (
    FLEXIBLE_CONSTRAINTS,
    MANDATORY_CONSTRAINTS,
    Activity,
    ScheduledNetwork,
)


class FindingKind(str, Enum):
    OPEN_ENDED = 'open_ended'
    NO_PREDECESSOR = 'no_predecessor'
    INVALID_DATES = 'invalid_dates'
    NON_STANDARD_RELATION = 'non_standard_relation'
    NEGATIVE_LAG = 'negative_lag'
    LONG_LAG = 'long_lag'
    LONG_DURATION = 'long_duration'
    LARGE_MARGIN = 'large_margin'
    MANDATORY_CONSTRAINT = 'mandatory_constraint'
    FLEXIBLE_CONSTRAINT = 'flexible_constraint'
    BROKEN_LOGIC = 'broken_logic'
    PROGRESS_AFTER_STATUS_DATE = 'progress_after_status_date'
    MISSING_ACTUAL_START = 'missing_actual_start'


class Severity(str, Enum):
    ERROR = 'error'
    WARNING = 'warning'
    INFO = 'info'


SEVERITY = {
    FindingKind.OPEN_ENDED: Severity.WARNING,
    FindingKind.NO_PREDECESSOR: Severity.WARNING,
    FindingKind.INVALID_DATES: Severity.ERROR,
    FindingKind.NON_STANDARD_RELATION: Severity.INFO,
    FindingKind.NEGATIVE_LAG: Severity.WARNING,
    FindingKind.LONG_LAG: Severity.WARNING,
    FindingKind.LONG_DURATION: Severity.WARNING,
    FindingKind.LARGE_MARGIN: Severity.INFO,
    FindingKind.MANDATORY_CONSTRAINT: Severity.WARNING,
    FindingKind.FLEXIBLE_CONSTRAINT: Severity.INFO,
    FindingKind.BROKEN_LOGIC: Severity.ERROR,
    FindingKind.PROGRESS_AFTER_STATUS_DATE: Severity.ERROR,
    FindingKind.MISSING_ACTUAL_START: Severity.ERROR,
}


@dataclass(frozen=True)
class Finding:
    """One diagnostic produced by the checker."""

    activity_id: str
    kind: FindingKind
    severity: Severity
    message: str
    predecessor_id: Optional[str] = None   # set for link-level findings


@dataclass(frozen=True)
class ThresholdConfig:
    """Limits for the threshold checks, in work days."""

    long_lag_days: int = 20
    large_margin_days: int = 20
    long_duration_days: int = 20

    def __post_init__(self):
        for name in ('long_lag_days', 'large_margin_days', 'long_duration_days'):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")


def _finding(activity: Activity, kind: FindingKind, message: str,
             predecessor_id: str = None) -> Finding:
    return Finding(activity.activity_id, kind, SEVERITY[kind], message, predecessor_id)


# ----------------------------------------------------------------------
# Rules: each yields the findings of one kind for one activity
# ----------------------------------------------------------------------

def _open_ended(net, a, thresholds):
    if not net.successors_of(a.activity_id) and not a.is_completed():
        yield _finding(a, FindingKind.OPEN_ENDED, "Activity has no successor")


def _no_predecessor(net, a, thresholds):
    if not net.predecessors_of(a.activity_id) and not a.is_completed():
        yield _finding(a, FindingKind.NO_PREDECESSOR, "Activity has no predecessor")


def _invalid_dates(net, a, thresholds):
    status = net.status_date
    if status is None:
        return
    if a.is_not_started() and a.early_start and a.early_start < status:
        yield _finding(a, FindingKind.INVALID_DATES,
                       f"Not started but early start {a.early_start} is before status date {status}")
    elif a.is_in_progress() and a.early_finish and a.early_finish < status:
        yield _finding(a, FindingKind.INVALID_DATES,
                       f"In progress but early finish {a.early_finish} is before status date {status}")


def _non_standard_relation(net, a, thresholds):
    for dep in net.predecessors_of(a.activity_id):
        if not dep.is_finish_to_start():
            yield _finding(a, FindingKind.NON_STANDARD_RELATION,
                           f"{dep.relation.value} link from {dep.pred_id}", dep.pred_id)


def _negative_lag(net, a, thresholds):
    for dep in net.predecessors_of(a.activity_id):
        if dep.lag_days < 0:
            yield _finding(a, FindingKind.NEGATIVE_LAG,
                           f"Lag of {dep.lag_days} days from {dep.pred_id}", dep.pred_id)


def _long_lag(net, a, thresholds):
    for dep in net.predecessors_of(a.activity_id):
        if dep.lag_days >= thresholds.long_lag_days:
            yield _finding(a, FindingKind.LONG_LAG,
                           f"Lag of {dep.lag_days} days from {dep.pred_id} "
                           f"(limit {thresholds.long_lag_days})", dep.pred_id)


def _long_duration(net, a, thresholds):
    if a.duration > thresholds.long_duration_days:
        yield _finding(a, FindingKind.LONG_DURATION,
                       f"Duration {a.duration} days exceeds {thresholds.long_duration_days}")


def _large_margin(net, a, thresholds):
    if a.total_float is not None and a.total_float > thresholds.large_margin_days:
        yield _finding(a, FindingKind.LARGE_MARGIN,
                       f"Total float {a.total_float} days exceeds {thresholds.large_margin_days}")


def _mandatory_constraint(net, a, thresholds):
    if a.constraint_type in MANDATORY_CONSTRAINTS:
        yield _finding(a, FindingKind.MANDATORY_CONSTRAINT,
                       f"{a.constraint_type.value} constraint on {a.constraint_date}")


def _flexible_constraint(net, a, thresholds):
    if a.constraint_type in FLEXIBLE_CONSTRAINTS:
        yield _finding(a, FindingKind.FLEXIBLE_CONSTRAINT,
                       f"{a.constraint_type.value} constraint on {a.constraint_date}")


def _broken_logic(net, a, thresholds):
    if a.early_start is None:
        return
    calendar = net.calendar_for(a)
    for dep in net.predecessors_of(a.activity_id):
        pred = net.get_activity(dep.pred_id)
        if pred.early_start is None:
            continue
        slack = relationship_float(pred, a, dep, calendar)
        if slack < 0:
            yield _finding(a, FindingKind.BROKEN_LOGIC,
                           f"{dep.relation.value} link from {dep.pred_id} violated by "
                           f"{-slack} days", dep.pred_id)


def _progress_after_status_date(net, a, thresholds):
    status = net.status_date
    if status and a.actual_start and a.actual_start > status:
        yield _finding(a, FindingKind.PROGRESS_AFTER_STATUS_DATE,
                       f"Actual start {a.actual_start} is after status date {status}")


def _missing_actual_start(net, a, thresholds):
    if a.percent_complete > 0 and a.actual_start is None:
        yield _finding(a, FindingKind.MISSING_ACTUAL_START,
                       f"{a.percent_complete:g}% complete without an actual start")


Rule = Callable[[ScheduledNetwork, Activity, ThresholdConfig], Iterator[Finding]]

RULES: dict[FindingKind, Rule] = {
    FindingKind.OPEN_ENDED: _open_ended,
    FindingKind.NO_PREDECESSOR: _no_predecessor,
    FindingKind.INVALID_DATES: _invalid_dates,
    FindingKind.NON_STANDARD_RELATION: _non_standard_relation,
    FindingKind.NEGATIVE_LAG: _negative_lag,
    FindingKind.LONG_LAG: _long_lag,
    FindingKind.LONG_DURATION: _long_duration,
    FindingKind.LARGE_MARGIN: _large_margin,
    FindingKind.MANDATORY_CONSTRAINT: _mandatory_constraint,
    FindingKind.FLEXIBLE_CONSTRAINT: _flexible_constraint,
    FindingKind.BROKEN_LOGIC: _broken_logic,
    FindingKind.PROGRESS_AFTER_STATUS_DATE: _progress_after_status_date,
    FindingKind.MISSING_ACTUAL_START: _missing_actual_start,
}


def check(network: ScheduledNetwork, thresholds: ThresholdConfig = None) -> list[Finding]:
    """
    Run every check over every non-summary activity.

    Args:
        network: Scheduled network
        thresholds: Limits for the lag, float and duration checks

    Returns:
        Findings ordered by activity (topological order), then by check kind
    """
    thresholds = thresholds or ThresholdConfig()
    findings = []
    for aid in network.order:
        activity = network.activities[aid]
        if activity.is_summary():
            continue
        for rule in RULES.values():
            findings.extend(rule(network, activity, thresholds))
    return findings


def summarize_findings(findings: list[Finding]) -> dict[FindingKind, int]:
    """Count findings per kind; every kind is present, in check order."""
    counts = Counter(f.kind for f in findings)
    return {kind: counts.get(kind, 0) for kind in FindingKind}


def findings_to_dataframe(findings: list[Finding]) -> pd.DataFrame:
    """One row per finding."""
    columns = ['activity_id', 'kind', 'severity', 'predecessor_id', 'message']
    rows = [{
        'activity_id': f.activity_id,
        'kind': f.kind.value,
        'severity': f.severity.value,
        'predecessor_id': f.predecessor_id,
        'message': f.message,
    } for f in findings]
    return pd.DataFrame(rows, columns=columns)
