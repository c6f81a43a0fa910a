"""
Unit tests for project loading and CSV exports.
"""

import json
from datetime import date

import pandas as pd
import pytest
from pydantic import ValidationError

from schemas.scheduling import FindingRow, FloatPathRow, RiskDurationRow, RiskEventRow, ScheduleRow
from schemas.validator import validate_output_file
from scripts.scheduling.analyze.analysis.checker import FindingKind, check
from scripts.scheduling.analyze.analysis.float_paths import multiple_float_paths
from scripts.scheduling.analyze.analysis.monte_carlo import simulate
from scripts.scheduling.analyze.analysis.risk_events import ImpactType
from scripts.scheduling.analyze.analysis.sampling import DistributionType
from scripts.scheduling.analyze.cpm.engine import schedule
from scripts.scheduling.analyze.cpm.models import ActivityKind, RelationType
from scripts.scheduling.analyze.data_loader import (
    export_findings,
    export_float_paths,
    export_schedule,
    export_simulation,
    load_project,
)


def run_schedule(project):
    return schedule(project.activities, project.links, project.calendars, project.start,
                    status_date=project.status_date, target_finish=project.target_finish)


class TestLoadProject:
    """Test conversion of project documents into scheduling inputs."""

    def test_counts(self, project_file):
        project = load_project(project_file)
        summary = project.get_summary()
        assert summary['activities'] == 6
        assert summary['links'] == 5
        assert summary['calendars'] == 2
        assert summary['distributions'] == 3
        assert summary['risk_events'] == 2

    def test_calendars(self, project_file):
        project = load_project(project_file)
        std = project.calendars['std']
        assert std.is_default
        assert not std.is_work_day(date(2024, 1, 15))
        assert project.calendars['cont'].is_work_day(date(2024, 1, 6))

    def test_activities_and_links(self, project_file):
        project = load_project(project_file)
        kinds = {a.activity_id: a.kind for a in project.activities}
        assert kinds['P'] == ActivityKind.SUMMARY
        assert kinds['F'] == ActivityKind.MILESTONE
        ss = [dep for dep in project.links if dep.succ_id == 'D'][0]
        assert ss.relation == RelationType.SS
        assert ss.lag_days == 2

    def test_risk_events(self, project_file):
        r1, r2 = load_project(project_file).risk_events
        assert r1.affected_ids == ('A',)
        assert r1.impact_type == ImpactType.ADD_DAYS
        assert r1.effective_probability(use_mitigated=True) == 10
        assert r1.effective_probability() == 30
        assert r2.quantified
        assert r2.task_impacts[0].activity_id == 'B'
        assert r2.task_impacts[0].schedule.dist_type == DistributionType.TRIANGULAR

    def test_thresholds_fall_back_to_settings(self, project_file):
        thresholds = load_project(project_file).thresholds
        assert thresholds.long_lag_days == 10
        assert thresholds.large_margin_days == 5
        assert thresholds.long_duration_days == 20

    def test_invalid_document(self, tmp_path):
        path = tmp_path / 'bad.json'
        path.write_text(json.dumps({'start': 'not a date'}), encoding='utf-8')
        with pytest.raises(ValidationError):
            load_project(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_project(tmp_path / 'missing.json')


class TestLoadedProjectAnalysis:
    """Test the loaded project through the scheduler and checker."""

    def test_schedule(self, project_file):
        result = run_schedule(load_project(project_file))
        assert result.get_activity('B').early_finish == date(2024, 1, 23)
        assert result.get_activity('C').early_finish == date(2024, 1, 26)
        assert result.project_finish == date(2024, 1, 26)
        assert result.duration_days == 18
        assert result.critical_path == ['A', 'B', 'C', 'F']
        summary = result.get_activity('P')
        assert (summary.early_start, summary.early_finish) == (date(2024, 1, 1), date(2024, 1, 26))

    def test_check(self, project_file):
        project = load_project(project_file)
        findings = check(run_schedule(project), project.thresholds)
        kinds_d = [f.kind for f in findings if f.activity_id == 'D']
        assert FindingKind.NON_STANDARD_RELATION in kinds_d
        assert FindingKind.LARGE_MARGIN in kinds_d


class TestExports:
    """Test schema-validated CSV exports."""

    def test_export_schedule(self, project_file, tmp_path):
        path = export_schedule(run_schedule(load_project(project_file)), tmp_path / 'out')
        assert validate_output_file(path, ScheduleRow) == []
        assert len(pd.read_csv(path)) == 6

    def test_export_findings(self, project_file, tmp_path):
        project = load_project(project_file)
        path = export_findings(check(run_schedule(project), project.thresholds), tmp_path)
        assert validate_output_file(path, FindingRow) == []

    def test_export_simulation(self, project_file, tmp_path):
        project = load_project(project_file)
        result = simulate(run_schedule(project), project.distributions, iterations=50, seed=42)
        activities_path, durations_path = export_simulation(result, tmp_path)
        assert validate_output_file(durations_path, RiskDurationRow) == []
        activities = pd.read_csv(activities_path)
        assert set(activities['activity_id']) == {'A', 'B', 'C', 'D', 'F'}

    def test_export_simulation_with_risks(self, project_file, tmp_path):
        project = load_project(project_file)
        result = simulate(run_schedule(project), project.distributions, iterations=50, seed=42,
                          risks=project.risk_events)
        paths = export_simulation(result, tmp_path)
        assert [p.name for p in paths] == ['risk_activities.csv', 'risk_durations.csv', 'risk_events.csv']
        assert validate_output_file(paths[2], RiskEventRow) == []
        assert list(pd.read_csv(paths[2])['risk_id']) == ['R1', 'R2']

    def test_export_float_paths(self, project_file, tmp_path):
        paths = multiple_float_paths(run_schedule(load_project(project_file)))
        path = export_float_paths(paths, tmp_path)
        assert validate_output_file(path, FloatPathRow) == []
        df = pd.read_csv(path)
        # C and the handover milestone finish together; the first in order ends path 1
        assert list(df.loc[df['float_path'] == 1, 'activity_id']) == ['A', 'B', 'C']
        assert list(df.loc[df['float_path'] == 2, 'activity_id']) == ['D', 'F']
