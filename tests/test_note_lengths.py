"""
Tests for note-length resolution and duration arithmetic.
"""

import pytest

from note_lengths import (
    get_note_length_multiplier, get_note_length_multiplier_string, get_note_length_timing,
    resolve_note_length, calculate_duration_seconds, calculate_ghost_elapsed_seconds,
    get_supported_note_lengths, is_measure_line, get_module_info,
)


class TestMultipliers:

    @pytest.mark.parametrize("tag, expected", [
        ("1/4th", 1.0),
        ("1/4th triplet", 0.6667),
        ("1/8th", 0.5),
        ("1/8th triplet", 0.3333),
        ("1/16th", 0.25),
        ("1/16th triplet", 0.1667),
        ("measureLine", 0.0),
    ])
    def test_known_tags(self, tag, expected):
        assert get_note_length_multiplier(tag) == expected

    def test_string_encoding(self):
        assert get_note_length_multiplier_string("1/8th") == "0.5"
        assert get_note_length_multiplier_string("1/4th triplet") == "0.6667"
        assert get_note_length_multiplier_string("measureLine") == "0"

    def test_every_supported_tag_has_a_multiplier(self):
        for tag in get_supported_note_lengths():
            assert get_note_length_multiplier(tag) >= 0


class TestUnknownTags:

    def test_unknown_tag_defaults_to_quarter(self, diagnostics):
        assert get_note_length_multiplier("1/32nd", diagnostics) == 1.0

    def test_unknown_tag_is_reported(self, diagnostics):
        resolve_note_length("whole", diagnostics)
        assert diagnostics.kinds() == ["unknownNoteLength"]
        assert diagnostics.entries[0].noteLength == "whole"
        assert diagnostics.entries[0].fallback == "1/4th"

    def test_known_tag_is_not_reported(self, diagnostics):
        resolve_note_length("1/16th", diagnostics)
        assert len(diagnostics) == 0

    def test_measure_line_is_not_playable(self, diagnostics):
        assert resolve_note_length("measureLine", diagnostics) == "measureLine"
        assert resolve_note_length("measureLine", diagnostics, playable_only=True) == "1/4th"
        assert [entry.noteLength for entry in diagnostics] == ["measureLine"]

    def test_timing_reports_once(self, diagnostics):
        tag, multiplier = get_note_length_timing("", diagnostics)
        assert (tag, multiplier) == ("1/4th", "1")
        assert len(diagnostics) == 1

    def test_without_sink_does_not_raise(self):
        assert get_note_length_multiplier("bogus") == 1.0


class TestDurations:

    def test_quarter_at_120(self):
        assert calculate_duration_seconds(120, 1) == 0.5

    def test_eighth_at_100(self):
        assert calculate_duration_seconds(100, 0.5) == pytest.approx(0.3)

    def test_measure_line_takes_no_time(self):
        assert calculate_duration_seconds(120, 0) == 0.0

    def test_playback_speed_scales_duration(self):
        assert calculate_duration_seconds(120, 1, playback_speed=2.0) == 0.25
        assert calculate_duration_seconds(120, 1, playback_speed=0.5) == 1.0

    def test_ghost_elapsed_rounds_up_with_margin(self):
        # 1.5 + 0.5 + 1 = 3.0 exactly
        assert calculate_ghost_elapsed_seconds(1.5, 120, 1, 1) == 3
        # 0.9 + 0.3 + 1 = 2.2 -> 3
        assert calculate_ghost_elapsed_seconds(0.9, 100, 0.5, 1) == 3


def test_is_measure_line():
    assert is_measure_line("measureLine")
    assert not is_measure_line("1/4th")


def test_module_info_lists_triplets():
    info = get_module_info()
    assert info["default_note_length"] == "1/4th"
    assert sorted(info["triplets"]) == ["1/16th triplet", "1/4th triplet", "1/8th triplet"]
