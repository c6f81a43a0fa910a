"""
Analysis modules over a scheduled network.
"""

from .checker import Finding, FindingKind, Severity, ThresholdConfig, check
from .critical_path import analyze_critical_path
from .float_paths import FloatPath, FloatPathStep, multiple_float_paths
from .monte_carlo import CancellationToken, SimulationResult, simulate
from .risk_events import ImpactType, RiskEvent, TaskImpact
from .sampling import DistributionType, DurationDistribution

__all__ = [
    'check',
    'Finding',
    'FindingKind',
    'Severity',
    'ThresholdConfig',
    'analyze_critical_path',
    'multiple_float_paths',
    'FloatPath',
    'FloatPathStep',
    'simulate',
    'CancellationToken',
    'SimulationResult',
    'RiskEvent',
    'TaskImpact',
    'ImpactType',
    'DistributionType',
    'DurationDistribution',
]
