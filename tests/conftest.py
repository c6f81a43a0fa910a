"""Pytest configuration and fixtures."""
import json
from datetime import date

import pytest

from scripts.scheduling.analyze.cpm.calendar import WorkCalendar
from scripts.scheduling.analyze.cpm.models import Activity, Dependency

# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)


@pytest.fixture
def project_start() -> date:
    return MONDAY


@pytest.fixture
def standard_calendar() -> WorkCalendar:
    """Mon-Fri 8h calendar."""
    return WorkCalendar.standard()


@pytest.fixture
def calendars(standard_calendar) -> dict:
    return {standard_calendar.calendar_id: standard_calendar}


@pytest.fixture
def chain():
    """A(5) -> B(3) finish-to-start."""
    activities = [
        Activity('A', name='Excavation', duration=5),
        Activity('B', name='Foundations', duration=3),
    ]
    links = [Dependency('A', 'B')]
    return activities, links


@pytest.fixture
def parallel():
    """A(5) and B(2) both feeding C(2); B has three days of float."""
    activities = [
        Activity('A', duration=5),
        Activity('B', duration=2),
        Activity('C', duration=2),
    ]
    links = [Dependency('A', 'C'), Dependency('B', 'C')]
    return activities, links


@pytest.fixture
def project_document() -> dict:
    """Project JSON document with calendars, links, distributions and risks."""
    return {
        'name': 'Warehouse',
        'start': '2024-01-01',
        'status_date': '2024-01-01',
        'calendars': [
            {'id': 'std', 'name': 'Standard', 'days_per_week': 5, 'is_default': True,
             'exceptions': ['2024-01-15']},
            {'id': 'cont', 'name': 'Continuous', 'days_per_week': 7},
        ],
        'activities': [
            {'id': 'P', 'name': 'Project', 'type': 'summary', 'outline_level': 0},
            {'id': 'A', 'name': 'Site prep', 'duration': 5, 'outline_level': 1,
             'distribution': {'type': 'triangular', 'min': 4, 'most_likely': 5, 'max': 9}},
            {'id': 'B', 'name': 'Structure', 'duration': 10, 'outline_level': 1,
             'predecessors': [{'id': 'A', 'type': 'FS', 'lag': 0}],
             'distribution': {'type': 'pert', 'min': 8, 'most_likely': 10, 'max': 16}},
            {'id': 'C', 'name': 'Curing', 'duration': 3, 'calendar': 'cont', 'outline_level': 1,
             'predecessors': [{'id': 'B'}]},
            {'id': 'D', 'name': 'Services', 'duration': 4, 'outline_level': 1,
             'predecessors': [{'id': 'A', 'type': 'SS', 'lag': 2}],
             'distribution': {'type': 'uniform', 'min': 3, 'max': 6}},
            {'id': 'F', 'name': 'Handover', 'type': 'milestone', 'outline_level': 1,
             'predecessors': [{'id': 'C'}, {'id': 'D'}]},
        ],
        'risks': [
            {'id': 'R1', 'name': 'Ground conditions', 'probability': 30, 'affected': ['A'],
             'impact': 3, 'mitigated': True, 'mitigated_probability': 10},
            {'id': 'R2', 'name': 'Late steel', 'probability': 20,
             'task_impacts': [{'id': 'B', 'schedule': {'type': 'triangular', 'min': 1,
                                                       'most_likely': 2, 'max': 5}}]},
        ],
        'thresholds': {'long_lag_days': 10, 'large_margin_days': 5},
    }


@pytest.fixture
def project_file(tmp_path, project_document):
    path = tmp_path / 'project.json'
    path.write_text(json.dumps(project_document), encoding='utf-8')
    return path
