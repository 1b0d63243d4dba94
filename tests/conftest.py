"""Shared fixtures and import-path setup for the test suite."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_root_on_path()

from linseq.features import FeatureTemplate  # noqa: E402
from linseq.types import State  # noqa: E402


def make_sentence(*rows: tuple[str, str, str]) -> list[State]:
    """Builds a sentence from `(word, pos, label)` rows."""
    return [State(label=label, fields=(word, pos)) for word, pos, label in rows]


@pytest.fixture
def chunk_corpus() -> list[list[State]]:
    return [
        make_sentence(("He", "PRP", "B-NP"), ("reckons", "VBZ", "B-VP"), ("the", "DT", "B-NP"), ("deficit", "NN", "I-NP")),
        make_sentence(("the", "DT", "B-NP"), ("current", "JJ", "I-NP"), ("account", "NN", "I-NP")),
        make_sentence(("He", "PRP", "B-NP"), ("said", "VBD", "B-VP")),
    ]


@pytest.fixture
def word_template() -> FeatureTemplate:
    """One extractor emitting the current word as the feature string."""
    return FeatureTemplate().add(lambda states, pos: states[pos].word)
