"""
Monte Carlo Schedule Risk Analysis.

Samples activity durations from their distributions, fires discrete risk
events, reschedules the network once per iteration and aggregates
criticality, sensitivity and risk occurrence statistics.

Determinism: one numpy Generator is seeded once and every draw for the whole
run is taken before any iteration executes, in iteration order, then activity
(topological) order, then draw order, followed by that iteration's risk
event draws in register order. Iterations are split into contiguous
chunks; each chunk fills its own accumulator and the accumulators are merged
in chunk order, so the result does not depend on the worker count.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Mapping, Optional

import numpy as np
import pandas as pd

from ..cpm.engine import CPMEngine
from ..cpm.errors import InvalidDistributionParameters, InvalidRiskEvent
from ..cpm.models import Activity, ScheduledNetwork
from ..cpm.network import ActivityNetwork
from .risk_events import RiskEvent, applicable_impacts, apply_occurrences, draw_occurrences
from .sampling import DurationDistribution, sample_duration, to_work_days

logger = logging.getLogger(__name__)

DEFAULT_HISTOGRAM_BINS = 20


class CancellationToken:
    """Cooperative cancellation flag, checked between iterations."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class HistogramBin:
    bin_start: float
    bin_end: float
    count: int
    cum_pct: float          # cumulative percentage 0-100


@dataclass(frozen=True)
class SimulationResult:
    """
    Outcome of one Monte Carlo run.

    Durations are project durations in work days of the default calendar,
    counted from the project start. ``durations`` and ``finish_dates`` are
    sorted ascending.
    """

    iterations: int                             # completed iterations
    requested_iterations: int
    cancelled: bool
    seed: int
    criticality: dict[str, float]               # activity id -> % of iterations critical
    sensitivity: dict[str, float]               # activity id -> Spearman rho
    distributions: dict[str, DurationDistribution]
    durations: tuple[int, ...]
    finish_dates: tuple[date, ...]
    deterministic_duration: int
    deterministic_finish: date
    mean_duration: float
    std_duration: float
    confidence_levels: tuple[int, ...] = (10, 50, 80, 90)
    risk_occurrence: dict[str, float] = field(default_factory=dict)    # risk id -> % of iterations fired
    use_mitigated: bool = False

    def percentile(self, p: float) -> Optional[int]:
        """Project duration not exceeded in p percent of iterations."""
        idx = self._percentile_index(p)
        return None if idx is None else self.durations[idx]

    def finish_date_percentile(self, p: float) -> Optional[date]:
        """Finish date not exceeded in p percent of iterations."""
        idx = self._percentile_index(p)
        return None if idx is None else self.finish_dates[idx]

    def _percentile_index(self, p: float) -> Optional[int]:
        if not 0 <= p <= 100:
            raise ValueError(f"percentile {p} outside 0-100")
        n = len(self.durations)
        if n == 0:
            return None
        return min(int(p / 100 * n), n - 1)

    def percentiles(self, levels=None) -> dict[int, int]:
        """Duration percentiles for the confidence levels (default: the run's levels)."""
        return {p: self.percentile(p) for p in (levels or self.confidence_levels)}

    def histogram(self, bins: int = DEFAULT_HISTOGRAM_BINS) -> list[HistogramBin]:
        """Equal-width histogram of project durations with cumulative percentages."""
        n = len(self.durations)
        if n == 0:
            return []
        low, high = self.durations[0], self.durations[-1]
        if low == high:
            return [HistogramBin(float(low), float(high + 1), n, 100.0)]

        values = np.asarray(self.durations)
        edges = low + np.arange(bins + 1) * ((high - low) / bins)
        edges[-1] = high + 0.001
        result = []
        cumulative = 0
        for i in range(bins):
            start, end = float(edges[i]), float(edges[i + 1])
            count = int(np.count_nonzero((values >= start) & (values < end)))
            cumulative += count
            result.append(HistogramBin(
                bin_start=round(start, 1),
                bin_end=round(end, 1),
                count=count,
                cum_pct=round(cumulative / n * 100, 1),
            ))
        return result

    def tornado(self, n: int = 10) -> list[tuple[str, float]]:
        """Activities with the strongest non-zero sensitivity, strongest first."""
        ranked = [(aid, rho) for aid, rho in self.sensitivity.items() if rho != 0]
        ranked.sort(key=lambda item: -abs(item[1]))
        return ranked[:n]

    def activities_dataframe(self) -> pd.DataFrame:
        """Criticality and sensitivity per activity."""
        rows = [{
            'activity_id': aid,
            'criticality_index': crit,
            'sensitivity_index': self.sensitivity.get(aid, 0.0),
            'distribution': self.distributions[aid].dist_type.value
            if aid in self.distributions else 'none',
        } for aid, crit in self.criticality.items()]
        return pd.DataFrame(rows, columns=['activity_id', 'criticality_index',
                                           'sensitivity_index', 'distribution'])

    def risks_dataframe(self) -> pd.DataFrame:
        """Share of iterations in which each risk event fired."""
        rows = [{'risk_id': rid, 'occurrence_pct': pct}
                for rid, pct in self.risk_occurrence.items()]
        return pd.DataFrame(rows, columns=['risk_id', 'occurrence_pct'])

    def durations_dataframe(self) -> pd.DataFrame:
        """Sorted project durations and finish dates, one row per iteration."""
        return pd.DataFrame({
            'rank': range(1, len(self.durations) + 1),
            'duration_days': list(self.durations),
            'finish_date': list(self.finish_dates),
        })

    def __repr__(self) -> str:
        status = ", cancelled" if self.cancelled else ""
        return (f"SimulationResult({self.iterations}/{self.requested_iterations} iterations{status}, "
                f"P50={self.percentile(50)}, P90={self.percentile(90)})")


@dataclass
class _Accumulator:
    """Per-chunk partial results."""

    critical_counts: np.ndarray
    risk_counts: np.ndarray
    durations: list = field(default_factory=list)
    finish_dates: list = field(default_factory=list)
    effective: list = field(default_factory=list)   # one row of activity days per iteration

    @property
    def completed(self) -> int:
        return len(self.durations)

    def merge(self, other: '_Accumulator') -> None:
        self.critical_counts += other.critical_counts
        self.risk_counts += other.risk_counts
        self.durations.extend(other.durations)
        self.finish_dates.extend(other.finish_dates)
        self.effective.extend(other.effective)


def validate_distributions(network: ScheduledNetwork,
                           distributions: Mapping[str, DurationDistribution]) -> None:
    """
    Check every distribution before a simulation starts.

    Raises:
        InvalidDistributionParameters: Unknown activity or unusable parameters
    """
    for aid, dist in distributions.items():
        if aid not in network.activities:
            raise InvalidDistributionParameters(aid, "activity is not in the network")
        dist.validate(aid)


def validate_risks(network: ScheduledNetwork, risks: list[RiskEvent]) -> None:
    """
    Check the risk register before a simulation starts.

    Raises:
        InvalidRiskEvent: Duplicate id, unknown activity or unusable impact
    """
    seen = set()
    for risk in risks:
        if risk.risk_id in seen:
            raise InvalidRiskEvent(risk.risk_id, "duplicate risk id")
        seen.add(risk.risk_id)
        risk.validate(network.activities)


def spearman(x, y) -> float:
    """
    Spearman rank correlation (average ranks for ties).

    Constant series correlate 0 by definition.
    """
    x_rank = pd.Series(x, dtype=float).rank(method='average')
    y_rank = pd.Series(y, dtype=float).rank(method='average')
    if len(x_rank) < 2 or x_rank.nunique() < 2 or y_rank.nunique() < 2:
        return 0.0
    rho = x_rank.corr(y_rank)
    if pd.isna(rho):
        return 0.0
    return float(np.clip(round(rho, 3), -1.0, 1.0))


class MonteCarloSimulator:
    """
    Monte Carlo simulation over a scheduled network.

    The network, distributions, risks and pre-drawn samples are read-only
    while iterations run; each iteration reschedules private copies.
    """

    def __init__(self, network: ScheduledNetwork,
                 distributions: Mapping[str, DurationDistribution],
                 risks: list[RiskEvent] = ()):
        self.network = network
        self.distributions = dict(distributions)
        self.risks = list(risks)
        validate_distributions(network, self.distributions)
        validate_risks(network, self.risks)

        # Rebuild the arena in input order so summary roll-up sees the outline
        arena = ActivityNetwork.build(network.activities.values(), network.dependencies)
        self.engine = CPMEngine(arena, network.calendars,
                                critical_tolerance=network.critical_tolerance)
        self.calendar = self.engine.default_calendar

        self.activity_ids = [aid for aid in network.order
                             if not network.activities[aid].is_summary()]
        self._position = {aid: i for i, aid in enumerate(self.activity_ids)}
        self.varied = [aid for aid in self.activity_ids
                       if self._is_varied(network.activities[aid])]
        self.risk_impacts = [applicable_impacts(risk, network.activities) for risk in self.risks]

    def _is_varied(self, activity: Activity) -> bool:
        dist = self.distributions.get(activity.activity_id)
        if dist is None or dist.is_deterministic():
            return False
        return not activity.is_milestone() and not activity.is_completed()

    def draw(self, iterations: int, rng: np.random.Generator,
             use_mitigated: bool = False) -> tuple[np.ndarray, list]:
        """
        Take every draw of the run up front.

        Returns:
            Sampled days of shape (iterations, varied activities) and the
            risk outcomes of each iteration
        """
        samples = np.zeros((iterations, len(self.varied)), dtype=np.int64)
        outcomes = []
        for i in range(iterations):
            for j, aid in enumerate(self.varied):
                samples[i, j] = to_work_days(sample_duration(self.distributions[aid], rng))
            outcomes.append(draw_occurrences(self.risks, self.risk_impacts, rng, use_mitigated))
        return samples, outcomes

    def iteration_durations(self, sampled: np.ndarray, outcome: tuple = (),
                            use_mitigated: bool = False) -> tuple[dict, dict]:
        """Duration and remaining-work overrides for one iteration."""
        durations = {}
        remaining = {}
        for aid, days in zip(self.varied, sampled):
            days = int(days)
            activity = self.network.activities[aid]
            durations[aid] = days
            if activity.is_in_progress():
                # Only the unfinished share varies
                remaining[aid] = to_work_days(days * (1 - activity.percent_complete / 100))
        if outcome:
            apply_occurrences(self.risks, self.risk_impacts, outcome, self.network.activities,
                              durations, remaining, use_mitigated)
        return durations, remaining

    def run_iteration(self, sampled: np.ndarray, outcome: tuple = (),
                      use_mitigated: bool = False):
        """Reschedule with one row of sampled durations and its risk outcomes."""
        durations, remaining = self.iteration_durations(sampled, outcome, use_mitigated)
        result = self.engine.run(self.network.project_start,
                                 status_date=self.network.status_date,
                                 durations=durations, remaining=remaining)
        total = self.calendar.work_days_between(result.project_start, result.project_finish)
        return result, total, durations

    def _run_chunk(self, start: int, stop: int, samples: np.ndarray, outcomes: list,
                   use_mitigated: bool, token: Optional[CancellationToken],
                   progress: Optional[Callable[[int], None]]) -> _Accumulator:
        acc = _Accumulator(critical_counts=np.zeros(len(self.activity_ids), dtype=np.int64),
                           risk_counts=np.zeros(len(self.risks), dtype=np.int64))
        activities = self.network.activities
        for i in range(start, stop):
            if token is not None and token.cancelled:
                break
            result, total, durations = self.run_iteration(samples[i], outcomes[i], use_mitigated)
            for aid in result.critical_path:
                acc.critical_counts[self._position[aid]] += 1
            for k, outcome in enumerate(outcomes[i]):
                if outcome is not None:
                    acc.risk_counts[k] += 1
            acc.durations.append(total)
            acc.finish_dates.append(result.project_finish)
            acc.effective.append([durations.get(aid, activities[aid].duration)
                                  for aid in self.activity_ids])
            if progress is not None:
                progress(1)
        return acc

    def run(self, iterations: int, seed: Optional[int] = None,
            cancellation_token: CancellationToken = None, workers: int = 1,
            progress: Callable[[int], None] = None,
            confidence_levels=(10, 50, 80, 90),
            use_mitigated: bool = False) -> SimulationResult:
        """
        Run the simulation.

        Args:
            iterations: Number of iterations (at least 1)
            seed: Random seed (drawn at random and recorded when None)
            cancellation_token: Stops the run between iterations when cancelled
            workers: Number of worker threads
            progress: Called with the number of newly completed iterations
            confidence_levels: Percentiles reported by SimulationResult.percentiles()
            use_mitigated: Use mitigated probabilities and impacts of mitigated risks

        Returns:
            SimulationResult over the completed iterations
        """
        if iterations < 1:
            raise InvalidDistributionParameters(None, f"iterations must be at least 1, got {iterations}")
        if seed is None:
            seed = int(np.random.default_rng().integers(0, 2**31 - 1))

        rng = np.random.default_rng(seed)
        samples, outcomes = self.draw(iterations, rng, use_mitigated)

        workers = max(1, min(workers, iterations))
        bounds = np.linspace(0, iterations, workers + 1).astype(int)
        chunks = [(int(bounds[k]), int(bounds[k + 1])) for k in range(workers)]
        logger.info(f"Running {iterations} iterations (seed={seed}, workers={workers}, "
                    f"{len(self.varied)} varied activities, {len(self.risks)} risks)")

        if workers == 1:
            partials = [self._run_chunk(0, iterations, samples, outcomes, use_mitigated,
                                        cancellation_token, progress)]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._run_chunk, start, stop, samples, outcomes,
                                       use_mitigated, cancellation_token, progress)
                           for start, stop in chunks]
                partials = [f.result() for f in futures]

        total = partials[0]
        for partial in partials[1:]:
            total.merge(partial)

        cancelled = total.completed < iterations
        if cancelled:
            logger.warning(f"Simulation cancelled after {total.completed} of {iterations} iterations")
        return self._summarize(total, iterations, seed, cancelled, confidence_levels, use_mitigated)

    def _summarize(self, acc: _Accumulator, requested: int, seed: int, cancelled: bool,
                   confidence_levels, use_mitigated: bool) -> SimulationResult:
        completed = acc.completed
        durations = np.asarray(acc.durations, dtype=float)

        criticality = {}
        sensitivity = {}
        for pos, aid in enumerate(self.activity_ids):
            count = int(acc.critical_counts[pos])
            criticality[aid] = round(count / completed * 100, 1) if completed else 0.0
            sensitivity[aid] = 0.0
        if completed:
            # Days after risk events, so risk-only activities are ranked too
            effective = np.asarray(acc.effective, dtype=float)
            for pos, aid in enumerate(self.activity_ids):
                sensitivity[aid] = spearman(effective[:, pos], durations)

        risk_occurrence = {
            risk.risk_id: round(int(acc.risk_counts[k]) / completed * 100, 1) if completed else 0.0
            for k, risk in enumerate(self.risks)
        }

        base = self.network
        det_duration = self.calendar.work_days_between(base.project_start, base.project_finish)

        return SimulationResult(
            iterations=completed,
            requested_iterations=requested,
            cancelled=cancelled,
            seed=seed,
            criticality=criticality,
            sensitivity=sensitivity,
            distributions=dict(self.distributions),
            durations=tuple(sorted(int(d) for d in acc.durations)),
            finish_dates=tuple(sorted(acc.finish_dates)),
            deterministic_duration=det_duration,
            deterministic_finish=base.project_finish,
            mean_duration=round(float(durations.mean()), 1) if completed else 0.0,
            std_duration=round(float(durations.std()), 1) if completed else 0.0,
            confidence_levels=tuple(confidence_levels),
            risk_occurrence=risk_occurrence,
            use_mitigated=use_mitigated,
        )


def simulate(network: ScheduledNetwork, distributions: Mapping[str, DurationDistribution],
             iterations: int = 1000, seed: Optional[int] = None,
             cancellation_token: CancellationToken = None, workers: int = 1,
             progress: Callable[[int], None] = None,
             confidence_levels=(10, 50, 80, 90),
             risks: list[RiskEvent] = (), use_mitigated: bool = False) -> SimulationResult:
    """
    Run a Monte Carlo schedule risk simulation.

    Args:
        network: Scheduled network (not modified)
        distributions: Duration distribution by activity id
        iterations: Number of iterations (at least 1)
        seed: Random seed; identical inputs and seed give identical results
        cancellation_token: Optional external cancellation signal
        workers: Number of worker threads
        progress: Called with the number of newly completed iterations
        confidence_levels: Percentiles reported by SimulationResult.percentiles()
        risks: Risk register; each risk fires per iteration with its probability
        use_mitigated: Use mitigated probabilities and impacts of mitigated risks

    Returns:
        SimulationResult (partial, with cancelled=True, when cancelled)

    Raises:
        InvalidDistributionParameters: Before any iteration runs
        InvalidRiskEvent: Before any iteration runs
    """
    simulator = MonteCarloSimulator(network, distributions, risks)
    return simulator.run(iterations, seed=seed, cancellation_token=cancellation_token,
                         workers=workers, progress=progress,
                         confidence_levels=confidence_levels,
                         use_mitigated=use_mitigated)
