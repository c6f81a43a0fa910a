"""
Discrete Risk Events for Schedule Risk.

A risk event fires in an iteration with its probability and then lengthens
the activities it affects, either by a fixed impact (add days or multiply
the duration) or by per-activity sampled impacts.

Draw order inside an iteration: one trigger draw per risk in register
order, then, for a triggered risk with sampled impacts, one draw per
applicable impact in impact order.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional

import numpy as np

from ..cpm.errors import InvalidDistributionParameters, InvalidRiskEvent
from ..cpm.models import Activity
from .sampling import DurationDistribution, sample_duration

# Smallest factor a multiplying impact may apply
MIN_IMPACT_FACTOR = 0.1


class ImpactType(str, Enum):
    ADD_DAYS = 'add_days'
    MULTIPLY = 'multiply'


@dataclass(frozen=True)
class TaskImpact:
    """Sampled extra work days one activity takes when the risk fires."""

    activity_id: str
    schedule: DurationDistribution


@dataclass(frozen=True)
class RiskEvent:
    """Entry of the risk register."""

    risk_id: str
    name: str = ""
    probability: float = 0.0                    # percent chance per iteration
    affected_ids: tuple = ()
    impact_type: ImpactType = ImpactType.ADD_DAYS
    impact_value: float = 0.0
    mitigated: bool = False
    mitigated_probability: Optional[float] = None
    mitigated_impact_value: Optional[float] = None
    task_impacts: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, 'impact_type', ImpactType(self.impact_type))
        object.__setattr__(self, 'affected_ids', tuple(self.affected_ids))
        object.__setattr__(self, 'task_impacts', tuple(self.task_impacts))

    @property
    def quantified(self) -> bool:
        """Per-activity sampled impacts replace the fixed impact."""
        return bool(self.task_impacts)

    def effective_probability(self, use_mitigated: bool = False) -> float:
        if use_mitigated and self.mitigated and self.mitigated_probability is not None:
            return self.mitigated_probability
        return self.probability

    def effective_impact(self, use_mitigated: bool = False) -> float:
        if use_mitigated and self.mitigated and self.mitigated_impact_value is not None:
            return self.mitigated_impact_value
        return self.impact_value

    def validate(self, known_ids: Iterable[str] = None) -> None:
        """
        Check the risk can be simulated.

        Raises:
            InvalidRiskEvent: Probability outside 0-100, non-finite impact,
                unknown activity or unusable impact distribution
        """
        for label, value in (('probability', self.probability),
                             ('mitigated probability', self.mitigated_probability)):
            if value is None:
                continue
            if not math.isfinite(value) or not 0 <= value <= 100:
                raise InvalidRiskEvent(self.risk_id, f"{label} {value} outside 0-100")

        for label, value in (('impact', self.impact_value),
                             ('mitigated impact', self.mitigated_impact_value)):
            if value is not None and not math.isfinite(value):
                raise InvalidRiskEvent(self.risk_id, f"{label} is not finite")

        if known_ids is not None:
            known = set(known_ids)
            referenced = list(self.affected_ids) + [t.activity_id for t in self.task_impacts]
            for aid in referenced:
                if aid not in known:
                    raise InvalidRiskEvent(self.risk_id, f"activity {aid!r} is not in the network")

        for impact in self.task_impacts:
            try:
                impact.schedule.validate(impact.activity_id)
            except InvalidDistributionParameters as exc:
                raise InvalidRiskEvent(self.risk_id, exc.reason) from exc


def is_impactable(activity: Activity) -> bool:
    """Risks only lengthen work that is still to be done."""
    return not (activity.is_summary() or activity.is_milestone() or activity.is_completed())


def applicable_impacts(risk: RiskEvent, activities: Mapping[str, Activity]) -> tuple[TaskImpact, ...]:
    """Sampled impacts that consume draws: open work with a real distribution."""
    return tuple(t for t in risk.task_impacts
                 if t.activity_id in activities
                 and is_impactable(activities[t.activity_id])
                 and not t.schedule.is_deterministic())


def draw_occurrences(risks: list[RiskEvent], impacts: list[tuple[TaskImpact, ...]],
                     rng: np.random.Generator, use_mitigated: bool = False) -> tuple:
    """
    Draw one iteration's risk outcomes.

    Returns:
        One entry per risk: None when it did not fire, otherwise the tuple of
        sampled impact days (empty for fixed impacts)
    """
    outcomes = []
    for risk, risk_impacts in zip(risks, impacts):
        if rng.random() * 100 >= risk.effective_probability(use_mitigated):
            outcomes.append(None)
            continue
        if risk.quantified:
            outcomes.append(tuple(sample_duration(t.schedule, rng) for t in risk_impacts))
        else:
            outcomes.append(())
    return tuple(outcomes)


def _round_days(value: float) -> int:
    return int(math.floor(value + 0.5))


def apply_occurrences(risks: list[RiskEvent], impacts: list[tuple[TaskImpact, ...]],
                      outcomes: tuple, activities: Mapping[str, Activity],
                      durations: dict, remaining: dict, use_mitigated: bool = False) -> None:
    """
    Lengthen sampled durations with the risks that fired.

    ``durations`` and ``remaining`` are the per-iteration overrides passed to
    the engine; they are updated in place. Risks apply in register order, so
    a multiplying risk scales days added by earlier risks.
    """
    for risk, risk_impacts, outcome in zip(risks, impacts, outcomes):
        if outcome is None:
            continue

        if risk.quantified:
            for impact, sampled in zip(risk_impacts, outcome):
                if sampled is None or sampled <= 0:
                    continue
                add = max(0, _round_days(sampled))
                _lengthen(activities[impact.activity_id], durations, remaining,
                          lambda days: max(1, days + add))
            continue

        change = _fixed_change(risk.impact_type, risk.effective_impact(use_mitigated))

        for aid in risk.affected_ids:
            activity = activities.get(aid)
            if activity is not None and is_impactable(activity):
                _lengthen(activity, durations, remaining, change)


def _lengthen(activity: Activity, durations: dict, remaining: dict, change) -> None:
    aid = activity.activity_id
    durations[aid] = change(durations.get(aid, activity.duration))
    if activity.is_in_progress():
        remaining[aid] = change(remaining.get(aid, activity.get_effective_duration()))


def _fixed_change(impact_type: ImpactType, value: float):
    """Duration update of a fixed impact."""
    if impact_type == ImpactType.MULTIPLY:
        factor = max(MIN_IMPACT_FACTOR, value)

        def change(days):
            return max(1, _round_days(days * factor))
    else:
        add = max(0, _round_days(value))

        def change(days):
            return days + add
    return change
