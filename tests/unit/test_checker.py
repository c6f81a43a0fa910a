"""
Unit tests for the schedule quality checker.
"""

from datetime import date

import pytest

from scripts.scheduling.analyze.analysis.checker import (
    RULES,
    FindingKind,
    Severity,
    ThresholdConfig,
    check,
    findings_to_dataframe,
    summarize_findings,
)
from scripts.scheduling.analyze.cpm.engine import schedule
from scripts.scheduling.analyze.cpm.models import Activity, Dependency


def d(day, month=1):
    return date(2024, month, day)


def run_check(activities, links, calendars, status_date=None, **thresholds):
    result = schedule(activities, links, calendars, d(1), status_date=status_date)
    return check(result, ThresholdConfig(**thresholds))


def kinds_for(findings, activity_id):
    return [f.kind for f in findings if f.activity_id == activity_id]


class TestThresholdConfig:
    """Test threshold configuration."""

    def test_defaults(self):
        config = ThresholdConfig()
        assert (config.long_lag_days, config.large_margin_days, config.long_duration_days) == (20, 20, 20)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            ThresholdConfig(long_lag_days=-1)


class TestRuleTable:
    """Test the rule table itself."""

    def test_thirteen_rules_in_kind_order(self):
        assert list(RULES) == list(FindingKind)
        assert len(RULES) == 13


class TestStructuralChecks:
    """Test open ends, missing predecessors and relation checks."""

    def test_open_ended_and_no_predecessor(self, chain, calendars):
        findings = run_check(*chain, calendars)
        assert kinds_for(findings, 'A') == [FindingKind.NO_PREDECESSOR]
        assert kinds_for(findings, 'B') == [FindingKind.OPEN_ENDED]

    def test_completed_activities_not_flagged(self, calendars):
        activities = [Activity('A', duration=2, percent_complete=100,
                               actual_start=d(1), actual_finish=d(2))]
        assert run_check(activities, [], calendars) == []

    def test_negative_lag(self, calendars):
        activities = [Activity('A', duration=5), Activity('B', duration=3)]
        findings = run_check(activities, [Dependency('A', 'B', lag_days=-2)], calendars)
        negative = [f for f in findings if f.kind == FindingKind.NEGATIVE_LAG]
        assert len(negative) == 1
        assert negative[0].activity_id == 'B'
        assert negative[0].predecessor_id == 'A'
        assert negative[0].severity == Severity.WARNING

    def test_non_standard_relation(self, calendars):
        activities = [Activity('A', duration=5), Activity('B', duration=3)]
        findings = run_check(activities, [Dependency('A', 'B', 'SS', 1)], calendars)
        assert FindingKind.NON_STANDARD_RELATION in kinds_for(findings, 'B')

    @pytest.mark.parametrize("lag,expected", [(20, True), (19, False)])
    def test_long_lag(self, calendars, lag, expected):
        activities = [Activity('A', duration=5), Activity('B', duration=3)]
        findings = run_check(activities, [Dependency('A', 'B', lag_days=lag)], calendars)
        assert (FindingKind.LONG_LAG in kinds_for(findings, 'B')) == expected

    def test_one_finding_per_offending_link(self, calendars):
        activities = [Activity('A', duration=1), Activity('B', duration=1), Activity('C', duration=1)]
        links = [Dependency('A', 'C', 'SS'), Dependency('B', 'C', 'FF')]
        findings = run_check(activities, links, calendars)
        relation = [f for f in findings if f.kind == FindingKind.NON_STANDARD_RELATION]
        assert [f.predecessor_id for f in relation] == ['A', 'B']


class TestThresholdChecks:
    """Test duration and float thresholds."""

    @pytest.mark.parametrize("duration,expected", [(40, True), (15, False)])
    def test_long_duration(self, calendars, duration, expected):
        findings = run_check([Activity('A', duration=duration)], [], calendars,
                             long_duration_days=20)
        assert (FindingKind.LONG_DURATION in kinds_for(findings, 'A')) == expected

    def test_large_margin(self, calendars):
        activities = [Activity('A', duration=30), Activity('B', duration=2), Activity('C', duration=1)]
        links = [Dependency('A', 'C'), Dependency('B', 'C')]
        findings = run_check(activities, links, calendars)
        assert FindingKind.LARGE_MARGIN in kinds_for(findings, 'B')
        assert FindingKind.LARGE_MARGIN not in kinds_for(findings, 'A')
        assert FindingKind.LONG_DURATION in kinds_for(findings, 'A')


class TestConstraintChecks:
    """Test constraint classification."""

    @pytest.mark.parametrize("ctype", ['MSO', 'MFO', 'SNLT', 'FNLT'])
    def test_mandatory(self, calendars, ctype):
        activity = Activity('A', duration=2, constraint_type=ctype, constraint_date=d(10))
        assert FindingKind.MANDATORY_CONSTRAINT in kinds_for(run_check([activity], [], calendars), 'A')

    @pytest.mark.parametrize("ctype", ['SNET', 'FNET'])
    def test_flexible(self, calendars, ctype):
        activity = Activity('A', duration=2, constraint_type=ctype, constraint_date=d(10))
        kinds = kinds_for(run_check([activity], [], calendars), 'A')
        assert FindingKind.FLEXIBLE_CONSTRAINT in kinds
        assert FindingKind.MANDATORY_CONSTRAINT not in kinds


class TestTemporalChecks:
    """Test status date and progress checks."""

    def test_unstarted_before_status_date(self, calendars):
        activity = Activity('A', duration=2, manual=True, manual_start=d(2))
        findings = run_check([activity], [], calendars, status_date=d(10))
        assert FindingKind.INVALID_DATES in kinds_for(findings, 'A')

    def test_in_progress_finishing_before_status_date(self, calendars):
        activity = Activity('A', duration=2, percent_complete=50, actual_start=d(1),
                            manual=True, manual_start=d(1))
        findings = run_check([activity], [], calendars, status_date=d(10))
        assert FindingKind.INVALID_DATES in kinds_for(findings, 'A')

    def test_no_invalid_dates_without_status_date(self, calendars):
        activity = Activity('A', duration=2, manual=True, manual_start=d(2))
        assert FindingKind.INVALID_DATES not in kinds_for(run_check([activity], [], calendars), 'A')

    def test_progress_after_status_date(self, calendars):
        activity = Activity('A', duration=5, percent_complete=10, actual_start=d(15))
        findings = run_check([activity], [], calendars, status_date=d(10))
        assert FindingKind.PROGRESS_AFTER_STATUS_DATE in kinds_for(findings, 'A')

    def test_missing_actual_start(self, calendars):
        activity = Activity('A', duration=5, percent_complete=30)
        findings = run_check([activity], [], calendars)
        missing = [f for f in findings if f.kind == FindingKind.MISSING_ACTUAL_START]
        assert len(missing) == 1
        assert missing[0].severity == Severity.ERROR


class TestBrokenLogic:
    """Test link violations."""

    def test_manual_start_before_predecessor_finish(self, chain, calendars):
        activities, links = chain
        activities[1].manual = True
        activities[1].manual_start = d(3)
        findings = run_check(activities, links, calendars)
        broken = [f for f in findings if f.kind == FindingKind.BROKEN_LOGIC]
        assert len(broken) == 1
        assert broken[0].activity_id == 'B'
        assert broken[0].predecessor_id == 'A'

    def test_scheduled_network_has_no_broken_logic(self, calendars):
        activities = [Activity(x, duration=n) for x, n in [('A', 3), ('B', 4), ('C', 2)]]
        links = [Dependency('A', 'B', 'SS', 1), Dependency('A', 'C', 'FF', -1),
                 Dependency('B', 'C', lag_days=-2)]
        findings = run_check(activities, links, calendars)
        assert FindingKind.BROKEN_LOGIC not in [f.kind for f in findings]


class TestCheckOutput:
    """Test ordering, summaries and exports."""

    def test_ordered_by_activity_then_kind(self, calendars):
        activities = [Activity('B', duration=40), Activity('A', duration=3)]
        findings = run_check(activities, [Dependency('A', 'B', lag_days=-1)], calendars)
        assert [(f.activity_id, f.kind) for f in findings] == [
            ('A', FindingKind.NO_PREDECESSOR),
            ('B', FindingKind.OPEN_ENDED),
            ('B', FindingKind.NEGATIVE_LAG),
            ('B', FindingKind.LONG_DURATION),
        ]

    def test_summaries_skipped(self, calendars):
        activities = [Activity('S', kind='summary'), Activity('A', duration=1, outline_level=1)]
        findings = run_check(activities, [], calendars)
        assert kinds_for(findings, 'S') == []

    def test_summarize_findings(self, chain, calendars):
        counts = summarize_findings(run_check(*chain, calendars))
        assert list(counts) == list(FindingKind)
        assert counts[FindingKind.OPEN_ENDED] == 1
        assert counts[FindingKind.BROKEN_LOGIC] == 0

    def test_findings_to_dataframe(self, chain, calendars):
        df = findings_to_dataframe(run_check(*chain, calendars))
        assert list(df.columns) == ['activity_id', 'kind', 'severity', 'predecessor_id', 'message']
        assert list(df['kind']) == ['no_predecessor', 'open_ended']

    def test_empty_dataframe_keeps_columns(self):
        assert list(findings_to_dataframe([]).columns) == [
            'activity_id', 'kind', 'severity', 'predecessor_id', 'message']
