"""
Multiple Float Path Analysis.

Numbers the driving chains of a scheduled network by criticality. Path 1
is traced backward from the end activity through driving predecessors;
each following path starts at the unassigned activity with the lowest
float and is traced the same way, never revisiting an assigned activity.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

import pandas as pd

from ..cpm.engine import relationship_float
from ..cpm.models import Activity, ScheduledNetwork

logger = logging.getLogger(__name__)

FLOAT_MODES = ('total_float', 'free_float')


@dataclass(frozen=True)
class FloatPathStep:
    activity_id: str
    driving_predecessor_id: Optional[str] = None
    relationship_float: Optional[int] = None    # slack of the link to the driving predecessor


@dataclass(frozen=True)
class FloatPath:
    """One numbered chain, earliest activity first."""

    number: int
    steps: tuple[FloatPathStep, ...]

    @property
    def activity_ids(self) -> list[str]:
        return [step.activity_id for step in self.steps]


def _float_of(activity: Activity, mode: str) -> float:
    value = activity.free_float if mode == 'free_float' else activity.total_float
    if value is None:
        value = activity.total_float
    return float('inf') if value is None else value


def _end_activity(result: ScheduledNetwork, tasks: list[Activity],
                  end_activity_id: Optional[str]) -> Optional[Activity]:
    if end_activity_id is not None:
        activity = result.activities.get(end_activity_id)
        if activity is None:
            raise ValueError(f"unknown end activity {end_activity_id!r}")
        if activity.is_summary():
            raise ValueError(f"end activity {end_activity_id!r} is a summary")
        return activity

    end = None
    for a in tasks:
        if a.early_finish and (end is None or a.early_finish > end.early_finish):
            end = a
    return end


def _driving_predecessor(result: ScheduledNetwork, activity: Activity, assigned: set,
                         mode: str) -> Optional[tuple[Activity, int]]:
    """
    Most driving unassigned predecessor and its relationship float.

    Ranked by relationship float, then float, then longest duration, then
    latest early finish; remaining ties keep link order.
    """
    calendar = result.calendar_for(activity)
    candidates = []
    for dep in result.predecessors_of(activity.activity_id):
        pred = result.activities[dep.pred_id]
        if pred.is_summary() or pred.activity_id in assigned:
            continue
        rf = max(0, relationship_float(pred, activity, dep, calendar))
        candidates.append((pred, rf))
    if not candidates:
        return None

    candidates.sort(key=lambda c: (
        c[1],
        _float_of(c[0], mode),
        -c[0].duration,
        -(c[0].early_finish or date.min).toordinal(),
    ))
    return candidates[0]


def multiple_float_paths(result: ScheduledNetwork, end_activity_id: str = None,
                         mode: str = 'total_float', max_paths: int = 10) -> list[FloatPath]:
    """
    Trace numbered float paths through a scheduled network.

    Args:
        result: Scheduled network
        end_activity_id: Activity the first path ends at (default: latest early finish)
        mode: 'total_float' or 'free_float', the float used to rank and start paths
        max_paths: Maximum number of paths

    Returns:
        Float paths in number order (1 = most critical)

    Raises:
        ValueError: Unknown mode, or an unknown or summary end activity
    """
    if mode not in FLOAT_MODES:
        raise ValueError(f"mode must be one of {', '.join(FLOAT_MODES)}, got {mode!r}")

    tasks = [result.activities[aid] for aid in result.order
             if not result.activities[aid].is_summary()]
    current = _end_activity(result, tasks, end_activity_id)

    assigned = set()
    paths = []
    number = 1
    while current is not None and number <= max_paths:
        steps = []
        tracing = current
        while tracing is not None:
            assigned.add(tracing.activity_id)
            best = _driving_predecessor(result, tracing, assigned, mode)
            if best is None:
                steps.append(FloatPathStep(tracing.activity_id))
                tracing = None
            else:
                pred, rf = best
                steps.append(FloatPathStep(tracing.activity_id, pred.activity_id, rf))
                tracing = pred
        paths.append(FloatPath(number, tuple(reversed(steps))))
        number += 1

        current = None
        for a in tasks:
            if a.activity_id in assigned:
                continue
            if current is None or _float_of(a, mode) < _float_of(current, mode):
                current = a
            elif (_float_of(a, mode) == _float_of(current, mode)
                  and (a.early_finish or date.min) > (current.early_finish or date.min)):
                current = a

    logger.debug(f"Traced {len(paths)} float paths covering {len(assigned)} activities")
    return paths


def float_paths_to_dataframe(paths: list[FloatPath]) -> pd.DataFrame:
    """One row per path step, paths in number order."""
    rows = [{
        'float_path': path.number,
        'activity_id': step.activity_id,
        'driving_predecessor_id': step.driving_predecessor_id,
        'relationship_float': step.relationship_float,
    } for path in paths for step in path.steps]
    return pd.DataFrame(rows, columns=['float_path', 'activity_id',
                                       'driving_predecessor_id', 'relationship_float'])


def print_float_paths(paths: list[FloatPath]) -> None:
    """Print float paths, one line per path."""
    print("\nFLOAT PATHS")
    print("-" * 40)
    if not paths:
        print("  (none)")
    for path in paths:
        print(f"  {path.number:>3}: {' -> '.join(path.activity_ids)}")
