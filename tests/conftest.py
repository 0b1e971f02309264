"""
Pytest configuration and shared fixtures
"""

import sys
from pathlib import Path

import pytest

# Modules live at the repository root
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

from tab_models import TabDocument  # noqa: E402
from diagnostics import DiagnosticLog  # noqa: E402


def make_column(fret="0", note_length="1/4th", column_id="c", chord_effect=""):
    """Ten-slot column with ``fret`` on the high e string."""
    return ["", fret, "", "", "", "", "", chord_effect, note_length, column_id]


def make_measure_line(bpm=-1, column_id="m"):
    return ["", "", "", "", "", "", "", str(bpm), "measureLine", column_id]


def make_tab_subsection(columns, bpm=-1, repetitions=1, subsection_id="tab-1"):
    return {
        "id": subsection_id,
        "type": "tab",
        "bpm": bpm,
        "repetitions": repetitions,
        "data": columns,
    }


def make_chord_sequence(strums, chords, note_length="1/4th", bpm=-1, repetitions=1,
                        sequence_id="seq-1"):
    return {
        "id": sequence_id,
        "repetitions": repetitions,
        "bpm": bpm,
        "strummingPattern": {
            "id": "pattern-1",
            "noteLength": note_length,
            "strums": [{"palmMute": "", "strum": strum} for strum in strums],
        },
        "data": chords,
    }


def make_chord_subsection(sequences, bpm=-1, repetitions=1, subsection_id="chord-1"):
    return {
        "id": subsection_id,
        "type": "chord",
        "bpm": bpm,
        "repetitions": repetitions,
        "data": sequences,
    }


def make_document(sections, progression=None, baseline_bpm=75):
    """``sections`` is a list of (section_id, [subsections])."""
    data = {
        "title": "Test Tab",
        "baselineBpm": baseline_bpm,
        "sections": [
            {"id": section_id, "title": section_id.title(), "data": subsections}
            for section_id, subsections in sections
        ],
    }
    if progression is not None:
        data["sectionProgression"] = [
            {"id": f"p{index}", "sectionId": section_id, "repetitions": repetitions}
            for index, (section_id, repetitions) in enumerate(progression)
        ]
    return data


class TabBuilders:
    """Document builders exposed to tests through the ``build`` fixture."""
    column = staticmethod(make_column)
    measure_line = staticmethod(make_measure_line)
    tab_subsection = staticmethod(make_tab_subsection)
    chord_sequence = staticmethod(make_chord_sequence)
    chord_subsection = staticmethod(make_chord_subsection)
    document = staticmethod(make_document)

    @staticmethod
    def parse(data):
        return TabDocument.model_validate(data)


@pytest.fixture
def build():
    return TabBuilders


@pytest.fixture
def diagnostics():
    return DiagnosticLog()


@pytest.fixture
def four_quarters_data():
    """One tab subsection at 120 BPM with four quarter notes, played once."""
    columns = [make_column(fret=str(fret), column_id=f"c{fret}") for fret in range(4)]
    return make_document(
        [("intro", [make_tab_subsection(columns, bpm=120)])],
        progression=[("intro", 1)],
    )


@pytest.fixture
def four_quarters(four_quarters_data):
    return TabDocument.model_validate(four_quarters_data)


@pytest.fixture
def eighth_strums():
    """One chord subsection at 100 BPM with a four-strum eighth-note pattern."""
    sequence = make_chord_sequence(["v", "^", "v", "^"], ["G", "", "C", ""], note_length="1/8th")
    return TabDocument.model_validate(make_document(
        [("verse", [make_chord_subsection([sequence], bpm=100)])],
        progression=[("verse", 1)],
    ))


@pytest.fixture
def suite_path():
    return Path(__file__).parent / "test_suite.json"
