"""
Shared fixtures: a small three-section tutorial backed by an in-memory
Pulse table, and an isolated config directory for every test.
"""

import pandas as pd
import pytest
from rich.console import Console

from vistutor.tutorial.controller import TutorialController
from vistutor.tutorial.datasets import DatasetContext
from vistutor.tutorial.document import load_document


@pytest.fixture(autouse=True)
def vistutor_home(tmp_path, monkeypatch):
    """Keep config, history and workspace out of the real home directory"""
    home = tmp_path / 'vistutor-home'
    monkeypatch.setenv('VISTUTOR_HOME', str(home))
    return home


@pytest.fixture
def pulse():
    return pd.DataFrame({
        'Age': [19, 25, 40, 52],
        'Income': [12000, 31000, 56000, 70000],
        'Gender': ['Female', 'Male', 'Female', 'Male'],
    })


@pytest.fixture
def datasets(pulse):
    return DatasetContext({'Pulse': pulse})


@pytest.fixture
def spec():
    return {
        'title': 'Test tutorial',
        'datasets': {'Pulse': 'builtin:pulse'},
        'sections': [
            {
                'id': 'intro',
                'title': 'Intro',
                'narrative': 'Look at the data first.',
                'exercises': [
                    {
                        'id': 'peek',
                        'code': 'Pulse.head()',
                        'datasets': ['Pulse'],
                        'hint': 'Try Pulse.describe()',
                        'solution': 'Pulse.head(2)',
                    },
                ],
            },
            {
                'id': 'select',
                'title': 'Selecting columns',
                'exercises': [
                    {'id': 'select-cols', 'code': 'Pulse[["Age", "Income"]]', 'datasets': ['Pulse']},
                ],
            },
            {
                'id': 'outro',
                'title': 'Wrapping up',
                'narrative': 'Done.',
            },
        ],
    }


@pytest.fixture
def document(spec, datasets):
    return load_document(spec, datasets=datasets)


@pytest.fixture
def controller(document):
    return TutorialController(document)


@pytest.fixture
def console():
    """A console that records to memory"""
    return Console(record=True, width=120, force_terminal=False, color_system=None)
