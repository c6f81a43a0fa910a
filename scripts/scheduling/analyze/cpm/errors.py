"""
Error taxonomy for schedule analysis.

Scheduler errors abort the whole ``schedule`` call; no partial dates are
returned. Distribution errors are raised before any simulation iteration runs.
"""

from typing import Optional, Sequence


class ScheduleAnalysisError(Exception):
    """Base class for all schedule analysis errors."""


class SchedulingError(ScheduleAnalysisError):
    """Raised when a network cannot be scheduled."""


class CircularDependency(SchedulingError):
    """Raised when the predecessor graph contains a cycle."""

    def __init__(self, activity_id: str, cycle: Optional[Sequence[str]] = None):
        self.activity_id = activity_id
        self.cycle = list(cycle or [activity_id])
        path = ' -> '.join(self.cycle)
        super().__init__(f"Circular dependency detected at activity {activity_id}: {path}")


class InvalidCalendar(SchedulingError):
    """Raised when a calendar cannot be used for date arithmetic."""

    def __init__(self, calendar_id: Optional[str], reason: str):
        self.calendar_id = calendar_id
        self.reason = reason
        super().__init__(f"Invalid calendar {calendar_id!r}: {reason}")


class DanglingPredecessor(SchedulingError):
    """Raised when a link references an activity that is not in the network."""

    def __init__(self, activity_id: str, missing_id: str):
        self.activity_id = activity_id
        self.missing_id = missing_id
        super().__init__(
            f"Link on activity {activity_id!r} references unknown activity {missing_id!r}"
        )


class InvalidActivity(SchedulingError):
    """Raised when an activity violates the data model invariants."""

    def __init__(self, activity_id: str, errors: Sequence[str]):
        self.activity_id = activity_id
        self.errors = list(errors)
        super().__init__(f"Invalid activity {activity_id!r}: {'; '.join(self.errors)}")


class SimulationError(ScheduleAnalysisError):
    """Raised when a Monte Carlo simulation cannot be started."""


class InvalidDistributionParameters(SimulationError):
    """Raised when a duration distribution cannot be sampled correctly."""

    def __init__(self, activity_id: Optional[str], reason: str):
        self.activity_id = activity_id
        self.reason = reason
        target = f"activity {activity_id!r}" if activity_id else "simulation"
        super().__init__(f"Invalid distribution for {target}: {reason}")


class InvalidRiskEvent(SimulationError):
    """Raised when a risk event cannot be simulated."""

    def __init__(self, risk_id: str, reason: str):
        self.risk_id = risk_id
        self.reason = reason
        super().__init__(f"Invalid risk event {risk_id!r}: {reason}")
