"""
Unit tests for discrete risk events.
"""

from datetime import date

import numpy as np
import pytest

from scripts.scheduling.analyze.analysis.monte_carlo import simulate
from scripts.scheduling.analyze.analysis.risk_events import (
    RiskEvent,
    TaskImpact,
    apply_occurrences,
    draw_occurrences,
)
from scripts.scheduling.analyze.analysis.sampling import DurationDistribution
from scripts.scheduling.analyze.cpm.engine import schedule
from scripts.scheduling.analyze.cpm.errors import InvalidRiskEvent
from scripts.scheduling.analyze.cpm.models import Activity


@pytest.fixture
def network(parallel, calendars, project_start):
    """A(5) and B(2) feeding C(2): seven work days."""
    return schedule(*parallel, calendars, project_start)


def certain(**kwargs):
    return RiskEvent('R1', probability=100, affected_ids=('A',), **kwargs)


class TestRiskEvent:
    """Test the risk register entry."""

    def test_mitigated_values(self):
        risk = RiskEvent('R1', probability=60, impact_value=4, mitigated=True,
                         mitigated_probability=20, mitigated_impact_value=1)
        assert risk.effective_probability() == 60
        assert risk.effective_probability(use_mitigated=True) == 20
        assert risk.effective_impact(use_mitigated=True) == 1

    def test_unmitigated_risk_ignores_mitigated_values(self):
        risk = RiskEvent('R1', probability=60, mitigated_probability=20)
        assert risk.effective_probability(use_mitigated=True) == 60

    def test_quantified(self):
        impact = TaskImpact('A', DurationDistribution('uniform', minimum=1, maximum=3))
        assert RiskEvent('R1', task_impacts=[impact]).quantified
        assert not RiskEvent('R1').quantified

    @pytest.mark.parametrize("risk", [
        RiskEvent('R1', probability=120),
        RiskEvent('R1', probability=50, mitigated_probability=-1),
        RiskEvent('R1', probability=50, impact_value=float('nan')),
        RiskEvent('R1', probability=50, affected_ids=('Z',)),
        RiskEvent('R1', probability=50, task_impacts=[
            TaskImpact('A', DurationDistribution('uniform', minimum=5, maximum=1))]),
    ])
    def test_invalid(self, risk):
        with pytest.raises(InvalidRiskEvent) as exc:
            risk.validate(['A', 'B'])
        assert exc.value.risk_id == 'R1'


class TestDrawAndApply:
    """Test trigger draws and duration updates."""

    def test_certain_and_impossible_risks(self):
        risks = [RiskEvent('always', probability=100), RiskEvent('never', probability=0)]
        rng = np.random.default_rng(1)
        for _ in range(50):
            assert draw_occurrences(risks, [(), ()], rng) == ((), None)

    def test_only_open_work_is_lengthened(self):
        activities = {
            'A': Activity('A', duration=4),
            'M': Activity('M', kind='milestone'),
            'S': Activity('S', kind='summary'),
            'D': Activity('D', duration=2, percent_complete=100,
                          actual_start=date(2024, 1, 1), actual_finish=date(2024, 1, 2)),
        }
        risk = RiskEvent('R1', probability=100, affected_ids=('A', 'M', 'S', 'D'), impact_value=3)
        durations, remaining = {}, {}
        apply_occurrences([risk], [()], ((),), activities, durations, remaining)
        assert durations == {'A': 7}
        assert remaining == {}

    def test_multiply_rounds_half_up(self):
        activities = {'A': Activity('A', duration=5)}
        durations = {}
        apply_occurrences([certain(impact_type='multiply', impact_value=1.5)], [()], ((),),
                          activities, durations, {})
        assert durations == {'A': 8}

    def test_multiply_factor_floor(self):
        activities = {'A': Activity('A', duration=20)}
        durations = {}
        apply_occurrences([certain(impact_type='multiply', impact_value=0)], [()], ((),),
                          activities, durations, {})
        assert durations == {'A': 2}

    def test_in_progress_lengthens_remaining_work(self):
        activities = {'A': Activity('A', duration=10, percent_complete=50,
                                    actual_start=date(2024, 1, 1))}
        durations, remaining = {}, {}
        apply_occurrences([certain(impact_value=3)], [()], ((),), activities, durations, remaining)
        assert durations == {'A': 13}
        assert remaining == {'A': 8}

    def test_sampled_impacts(self):
        activities = {'A': Activity('A', duration=4), 'B': Activity('B', duration=2)}
        dist = DurationDistribution('uniform', minimum=0, maximum=5)
        impacts = (TaskImpact('A', dist), TaskImpact('B', dist))
        risk = RiskEvent('R1', probability=100, task_impacts=impacts)
        durations = {}
        apply_occurrences([risk], [impacts], ((2.4, 0.0),), activities, durations, {})
        assert durations == {'A': 6}

    def test_risks_that_did_not_fire(self):
        durations = {'A': 5}
        apply_occurrences([certain(impact_value=3)], [()], (None,),
                          {'A': Activity('A', duration=5)}, durations, {})
        assert durations == {'A': 5}


class TestSimulationWithRisks:
    """Test risk events inside the Monte Carlo engine."""

    def test_certain_risk_always_applies(self, network):
        result = simulate(network, {}, iterations=20, seed=1, risks=[certain(impact_value=3)])
        assert set(result.durations) == {10}
        assert result.risk_occurrence == {'R1': 100.0}
        assert result.deterministic_duration == 7

    def test_impossible_risk_never_applies(self, network):
        risk = RiskEvent('R1', probability=0, affected_ids=('A',), impact_value=3)
        result = simulate(network, {}, iterations=20, seed=1, risks=[risk])
        assert set(result.durations) == {7}
        assert result.risk_occurrence == {'R1': 0.0}

    def test_multiplying_risk(self, network):
        risk = certain(impact_type='multiply', impact_value=2)
        result = simulate(network, {}, iterations=5, seed=1, risks=[risk])
        assert set(result.durations) == {12}

    def test_mitigation(self, network):
        risk = certain(impact_value=3, mitigated=True, mitigated_probability=0)
        assert set(simulate(network, {}, iterations=10, seed=1, risks=[risk]).durations) == {10}
        mitigated = simulate(network, {}, iterations=10, seed=1, risks=[risk], use_mitigated=True)
        assert set(mitigated.durations) == {7}
        assert mitigated.use_mitigated

    def test_mitigated_impact(self, network):
        risk = certain(impact_value=3, mitigated=True, mitigated_impact_value=1)
        result = simulate(network, {}, iterations=5, seed=1, risks=[risk], use_mitigated=True)
        assert set(result.durations) == {8}

    def test_sampled_impact(self, network):
        impact = TaskImpact('B', DurationDistribution('pert', minimum=6, most_likely=6, maximum=6))
        risk = RiskEvent('R1', probability=100, task_impacts=[impact])
        result = simulate(network, {}, iterations=5, seed=1, risks=[risk])
        # B grows to 8 days and overtakes A
        assert set(result.durations) == {10}
        assert result.criticality['B'] == 100.0

    def test_risk_driven_activity_is_sensitive(self, network):
        risk = RiskEvent('R1', probability=50, affected_ids=('A',), impact_value=5)
        result = simulate(network, {}, iterations=200, seed=3, risks=[risk])
        assert 0 < result.risk_occurrence['R1'] < 100
        assert result.sensitivity['A'] == 1.0
        assert result.sensitivity['B'] == 0.0

    def test_workers_do_not_change_result(self, network):
        dists = {'A': DurationDistribution('triangular', minimum=3, most_likely=5, maximum=10)}
        risks = [RiskEvent('R1', probability=40, affected_ids=('C',), impact_value=2)]
        single = simulate(network, dists, iterations=120, seed=11, risks=risks, workers=1)
        pooled = simulate(network, dists, iterations=120, seed=11, risks=risks, workers=3)
        assert single == pooled

    def test_invalid_risk_before_any_iteration(self, network):
        calls = []
        with pytest.raises(InvalidRiskEvent):
            simulate(network, {}, iterations=10, seed=1, progress=calls.append,
                     risks=[RiskEvent('R1', probability=50, affected_ids=('Z',))])
        assert calls == []

    def test_duplicate_risk_ids(self, network):
        risks = [RiskEvent('R1', probability=10), RiskEvent('R1', probability=20)]
        with pytest.raises(InvalidRiskEvent):
            simulate(network, {}, iterations=10, seed=1, risks=risks)

    def test_risks_dataframe(self, network):
        result = simulate(network, {}, iterations=10, seed=1, risks=[certain(impact_value=1)])
        df = result.risks_dataframe()
        assert list(df.columns) == ['risk_id', 'occurrence_pct']
        assert df['occurrence_pct'].tolist() == [100.0]
