"""
Critical Path Analysis.

Identifies critical and near-critical activities of a scheduled network and
summarizes the float distribution.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..cpm.models import Activity, ScheduledNetwork


@dataclass
class CriticalPathReport:
    """Critical and near-critical activities of a scheduled network."""

    critical_path: list[Activity]
    near_critical: list[Activity]
    float_distribution: dict[str, int]
    project_finish: date
    near_critical_days: int
    total_activities: int
    duration_days: int = 0
    negative_float: list[Activity] = field(default_factory=list)


def float_bucket(total_float: Optional[int], tolerance: int) -> str:
    """Label of the float distribution bucket for a float value (work days)."""
    if total_float is None:
        return 'unknown'
    if total_float < 0:
        return '<0 (behind)'
    if total_float <= tolerance:
        return f'0-{tolerance} (critical)'
    if total_float <= 5:
        return f'{tolerance + 1}-5 days'
    if total_float <= 10:
        return '6-10 days'
    if total_float <= 20:
        return '11-20 days'
    return '>20 days'


def analyze_critical_path(result: ScheduledNetwork,
                          near_critical_days: int = 5) -> CriticalPathReport:
    """
    Analyze critical path and near-critical activities.

    Args:
        result: Scheduled network
        near_critical_days: Float (work days) up to which a non-critical
                            activity counts as near-critical

    Returns:
        CriticalPathReport with critical path, near-critical activities and statistics
    """
    float_buckets = defaultdict(int)
    near_critical = []
    negative = []

    for aid in result.order:
        activity = result.activities[aid]
        if activity.is_summary():
            continue
        float_buckets[float_bucket(activity.total_float, result.critical_tolerance)] += 1
        if activity.total_float is None:
            continue
        if activity.total_float < 0:
            negative.append(activity)
        if not activity.is_critical and activity.total_float <= near_critical_days:
            near_critical.append(activity)

    near_critical.sort(key=lambda a: a.total_float)
    negative.sort(key=lambda a: a.total_float)
    critical = result.get_critical_activities()
    critical.sort(key=lambda a: a.early_start or date.max)

    return CriticalPathReport(
        critical_path=critical,
        near_critical=near_critical,
        float_distribution=dict(float_buckets),
        project_finish=result.project_finish,
        near_critical_days=near_critical_days,
        total_activities=sum(float_buckets.values()),
        duration_days=result.duration_days,
        negative_float=negative,
    )


def print_critical_path_report(report: CriticalPathReport) -> None:
    """Print a formatted critical path report."""
    print("=" * 80)
    print("CRITICAL PATH ANALYSIS REPORT")
    print("=" * 80)

    print(f"\nProject Finish: {report.project_finish} ({report.duration_days} work days)")
    print(f"Total Activities: {report.total_activities}")
    print(f"Critical Activities: {len(report.critical_path)}")
    print(f"Near-Critical Activities (<= {report.near_critical_days} days float): "
          f"{len(report.near_critical)}")
    if report.negative_float:
        print(f"Negative Float Activities: {len(report.negative_float)}")

    print("\n--- Float Distribution ---")
    for bucket, count in sorted(report.float_distribution.items()):
        pct = count / report.total_activities * 100 if report.total_activities else 0
        bar = '#' * int(pct / 2)
        print(f"  {bucket:25s}: {count:5d} ({pct:5.1f}%) {bar}")

    print("\n--- Critical Path (first 20 activities) ---")
    for i, activity in enumerate(report.critical_path[:20]):
        print(f"  {i+1:3d}. {activity.activity_id:20s} | {activity.name[:40]:40s} | "
              f"{activity.duration}d")

    if len(report.critical_path) > 20:
        print(f"  ... and {len(report.critical_path) - 20} more critical activities")

    print("\n--- Near-Critical Activities (first 10) ---")
    for i, activity in enumerate(report.near_critical[:10]):
        print(f"  {i+1:3d}. {activity.activity_id:20s} | Float: {activity.total_float:3d}d | "
              f"{activity.name[:35]:35s}")

    print("\n" + "=" * 80)
