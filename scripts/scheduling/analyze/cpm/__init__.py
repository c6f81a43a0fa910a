"""
CPM (Critical Path Method) Calculator.

This module provides:
- Work calendar date arithmetic
- Activity network construction with cycle detection and chain tracing
- Forward/backward pass CPM calculations with constraints and progress
- Float and critical path identification
"""

from .models import (
    Activity,
    ActivityKind,
    ConstraintType,
    Dependency,
    RelationType,
    ScheduledNetwork,
)
from .calendar import WorkCalendar
from .network import ActivityNetwork, trace_chain
from .engine import CPMEngine, schedule
from .errors import (
    ScheduleAnalysisError,
    SchedulingError,
    CircularDependency,
    InvalidCalendar,
    DanglingPredecessor,
    InvalidActivity,
    SimulationError,
    InvalidDistributionParameters,
    InvalidRiskEvent,
)

__all__ = [
    'Activity',
    'ActivityKind',
    'ConstraintType',
    'Dependency',
    'RelationType',
    'ScheduledNetwork',
    'WorkCalendar',
    'ActivityNetwork',
    'trace_chain',
    'CPMEngine',
    'schedule',
    'ScheduleAnalysisError',
    'SchedulingError',
    'CircularDependency',
    'InvalidCalendar',
    'DanglingPredecessor',
    'InvalidActivity',
    'SimulationError',
    'InvalidDistributionParameters',
    'InvalidRiskEvent',
]
