"""
Tests for full-tab and scoped compilation.

Covers:
- normalization, monotonicity and the terminal boundary entry
- section progression handling (repetitions, missing sections, defaults)
- loop ranges and playback speed
- scoped previews of sections, subsections and chord sequences
- strumming-pattern previews, progression timing, empty-document check
"""

import pytest

from tab_models import TabDocument, ChordGroupingLocation, StrummingPattern
from tab_compiler import (
    expand_full_tab, expand_specific_chord_grouping, expand_strumming_pattern_preview,
    compute_section_progression_timing, generate_default_section_progression,
    tab_is_effectively_empty, slice_loop_range, normalize_elapsed_seconds,
)


def elapsed(timeline):
    return [entry.elapsedSeconds for entry in timeline.metadata]


class TestFullTabScenarios:

    def test_four_quarters(self, four_quarters):
        timeline = expand_full_tab(four_quarters)
        assert elapsed(timeline) == [0, 0.5, 1.0, 1.5, 3]

    def test_repetition_count_two(self, build):
        columns = [build.column() for _ in range(4)]
        document = build.parse(build.document(
            [("a", [build.tab_subsection(columns, bpm=120, repetitions=2)])],
            progression=[("a", 1)],
        ))
        timeline = expand_full_tab(document)
        playable = [entry.elapsedSeconds for entry in timeline.playable_entries()]
        assert playable == [0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5]

    def test_eighth_strums(self, eighth_strums):
        timeline = expand_full_tab(eighth_strums)
        assert elapsed(timeline)[:4] == [0, 0.3, 0.6, 0.9]

    def test_chord_sequence_inherits_subsection_tempo(self, eighth_strums):
        timeline = expand_full_tab(eighth_strums)
        assert {entry.bpm for entry in timeline.metadata} == {100}

    def test_progression_repetitions_produce_section_passes(self, four_quarters_data, build):
        four_quarters_data["sectionProgression"][0]["repetitions"] = 3
        timeline = expand_full_tab(build.parse(four_quarters_data))
        assert len(timeline.sections) == 3
        assert len(timeline.playable_entries()) == 12
        assert [entry.location.sectionRepeatIndex for entry in timeline.metadata[:12:4]] == [0, 1, 2]


class TestNormalizationAndGhost:

    def test_first_entry_is_zero(self, four_quarters):
        timeline = expand_full_tab(four_quarters, start_loop_index=2)
        assert timeline.metadata[0].elapsedSeconds == 0

    def test_monotonic(self, build):
        document = build.parse(build.document([("a", [
            build.tab_subsection([
                build.column(), build.measure_line(bpm=200), build.column(note_length="1/16th"),
                build.measure_line(), build.column(note_length="1/8th triplet"),
            ], bpm=90, repetitions=2),
            build.chord_subsection([build.chord_sequence(["v", "", "^"], ["A", "", ""], repetitions=2)]),
        ])]))
        timeline = expand_full_tab(document)
        metadata = timeline.metadata
        for current, following in zip(metadata, metadata[1:]):
            assert current.elapsedSeconds <= following.elapsedSeconds
        playable = timeline.playable_entries()
        for current, following in zip(playable, playable[1:]):
            assert current.elapsedSeconds < following.elapsedSeconds

    def test_playback_indices_contiguous(self, build):
        document = build.parse(build.document([("a", [
            build.tab_subsection([build.column(), build.measure_line(), build.column()], repetitions=3),
        ])]))
        timeline = expand_full_tab(document)
        assert [entry.playbackIndex for entry in timeline.playable_entries()] == list(range(6))

    def test_ghost_entry(self, four_quarters):
        timeline = expand_full_tab(four_quarters)
        last, ghost = timeline.metadata[-2], timeline.metadata[-1]
        assert ghost.location.chordIndex == last.location.chordIndex + 1
        assert ghost.location.model_dump(exclude={"chordIndex"}) == last.location.model_dump(exclude={"chordIndex"})
        assert ghost.bpm == last.bpm
        assert ghost.noteLengthMultiplier == last.noteLengthMultiplier
        assert ghost.playbackIndex is None
        assert ghost.elapsedSeconds == 3

    def test_callback_receives_metadata(self, four_quarters):
        received = []
        timeline = expand_full_tab(four_quarters, set_playback_metadata=received.append)
        assert received == [timeline.metadata]

    def test_input_not_mutated(self, four_quarters):
        before = four_quarters.model_dump()
        expand_full_tab(four_quarters)
        assert four_quarters.model_dump() == before


class TestProgression:

    def test_missing_section_skipped(self, four_quarters_data, build, diagnostics):
        four_quarters_data["sectionProgression"].append({"id": "p9", "sectionId": "gone", "repetitions": 2})
        timeline = expand_full_tab(build.parse(four_quarters_data), diagnostics=diagnostics)
        assert len(timeline.sections) == 1
        assert diagnostics.kinds() == ["unresolvedSection"]
        assert diagnostics.entries[0].sectionId == "gone"

    def test_empty_progression_plays_every_section_once(self, build):
        document = build.parse(build.document([
            ("a", [build.tab_subsection([build.column()], bpm=60)]),
            ("b", [build.tab_subsection([build.column()], bpm=60)]),
        ]))
        timeline = expand_full_tab(document)
        assert [section.id for section in timeline.sections] == ["a", "b"]
        assert [entry.location.sectionIndex for entry in timeline.playable_entries()] == [0, 1]

    def test_progression_order_and_section_index(self, build):
        document = build.parse(build.document(
            [("a", [build.tab_subsection([build.column()], bpm=60)]),
             ("b", [build.tab_subsection([build.column()], bpm=60)])],
            progression=[("b", 1), ("a", 1)],
        ))
        timeline = expand_full_tab(document)
        assert [entry.location.sectionIndex for entry in timeline.playable_entries()] == [1, 0]

    def test_empty_document(self):
        timeline = expand_full_tab(TabDocument())
        assert timeline.sections == []
        assert timeline.metadata == []

    def test_default_progression(self, build):
        document = build.parse(build.document([("verse", []), ("chorus", [])]))
        progression = generate_default_section_progression(document.sections)
        assert [(entry.id, entry.sectionId, entry.repetitions) for entry in progression] == [
            ("0", "verse", 1), ("1", "chorus", 1),
        ]
        assert progression[1].title == "Chorus"


class TestLoopRange:

    def test_slice_to_end(self, four_quarters):
        timeline = expand_full_tab(four_quarters, start_loop_index=1)
        assert elapsed(timeline) == [0, 0.5, 1.0, 3]

    def test_slice_with_end(self, four_quarters):
        timeline = expand_full_tab(four_quarters, start_loop_index=1, end_loop_index=3)
        assert elapsed(timeline) == [0, 0.5, 2]
        assert timeline.metadata[0].location.chordIndex == 1

    def test_empty_range_falls_back_to_start_entry(self, four_quarters):
        timeline = expand_full_tab(four_quarters, start_loop_index=2, end_loop_index=2)
        assert len(timeline.metadata) == 2
        assert timeline.metadata[0].location.chordIndex == 2

    def test_slice_helper_out_of_range(self):
        assert slice_loop_range([], 3, -1) == []

    def test_normalize_helper(self):
        assert normalize_elapsed_seconds([]) == []


class TestPlaybackSpeed:

    def test_half_speed_doubles_times(self, four_quarters):
        timeline = expand_full_tab(four_quarters, playback_speed=0.5)
        assert elapsed(timeline) == [0, 1.0, 2.0, 3.0, 5]

    def test_invalid_speed(self, four_quarters):
        with pytest.raises(ValueError):
            expand_full_tab(four_quarters, playback_speed=0)


class TestScopedCompilation:

    @pytest.fixture
    def document(self, build):
        return build.parse(build.document([
            ("intro", [build.tab_subsection([build.column()], bpm=60)]),
            ("verse", [
                build.tab_subsection([build.column(), build.column()], bpm=120, repetitions=2),
                build.chord_subsection([
                    build.chord_sequence(["v", "^"], ["G", ""], sequence_id="s0"),
                    build.chord_sequence(["v", "v", "v"], ["C", "", "D"], repetitions=2, sequence_id="s1"),
                ], bpm=60),
            ]),
        ], progression=[("intro", 1), ("verse", 1)]))

    def test_whole_section(self, document):
        timeline = expand_specific_chord_grouping(document, ChordGroupingLocation(sectionIndex=1))
        assert len(timeline.sections) == 1
        assert timeline.sections[0].id == "verse"
        assert timeline.metadata[0].elapsedSeconds == 0
        assert timeline.metadata[0].playbackIndex == 0
        # 4 tab columns + 2 strums + 6 strums, no ghost entry
        assert len(timeline.metadata) == 12

    def test_subsection_keeps_its_repetitions(self, document):
        timeline = expand_specific_chord_grouping(
            document, ChordGroupingLocation(sectionIndex=1, subSectionIndex=0)
        )
        assert elapsed(timeline) == [0, 0.5, 1.0, 1.5]
        assert len(timeline.sections[0].data) == 2

    def test_chord_sequence(self, document):
        timeline = expand_specific_chord_grouping(
            document, ChordGroupingLocation(sectionIndex=1, subSectionIndex=1, chordSequenceIndex=1)
        )
        assert elapsed(timeline) == [0, 1.0, 2.0, 3.0, 4.0, 5.0]
        assert {entry.location.chordSequenceIndex for entry in timeline.metadata} == {1}
        chord_subsection = timeline.sections[0].data[0]
        assert [sequence.id for sequence in chord_subsection.data] == ["s1", "s1"]

    def test_chord_sequence_index_ignored_without_subsection(self, document):
        timeline = expand_specific_chord_grouping(
            document, ChordGroupingLocation(sectionIndex=0, chordSequenceIndex=5)
        )
        assert len(timeline.metadata) == 1

    @pytest.mark.parametrize("location", [
        {"sectionIndex": 7},
        {"sectionIndex": -1},
        {"sectionIndex": 1, "subSectionIndex": 9},
        {"sectionIndex": 1, "subSectionIndex": 1, "chordSequenceIndex": 9},
        {"sectionIndex": 1, "subSectionIndex": 0, "chordSequenceIndex": 0},
    ])
    def test_missing_unit_gives_empty_timeline(self, document, diagnostics, location):
        timeline = expand_specific_chord_grouping(
            document, ChordGroupingLocation(**location), diagnostics=diagnostics
        )
        assert timeline.sections == []
        assert timeline.metadata == []
        assert diagnostics.kinds() == ["unresolvedLocation"]


class TestStrummingPatternPreview:

    def test_preview(self):
        pattern = StrummingPattern.model_validate({
            "id": "p",
            "noteLength": "1/8th",
            "strums": [{"strum": "v"}, {"strum": ""}, {"strum": "^"}],
        })
        timeline = expand_strumming_pattern_preview(pattern)
        sequence = timeline.sections[0].data[0].data[0]
        assert sequence.data == ["C", "", "C"]
        assert {entry.bpm for entry in timeline.metadata} == {75}
        assert elapsed(timeline) == pytest.approx([0, 0.4, 0.8])

    def test_custom_bpm(self):
        pattern = StrummingPattern.model_validate({"strums": [{"strum": "v"}, {"strum": "v"}]})
        timeline = expand_strumming_pattern_preview(pattern, bpm=60)
        assert elapsed(timeline) == [0, 1.0]


class TestProgressionTiming:

    def test_start_and_end_seconds(self, build):
        document = build.parse(build.document(
            [("a", [build.tab_subsection([build.column() for _ in range(3)], bpm=120)]),
             ("b", [build.tab_subsection([build.column()], bpm=60)])],
            progression=[("a", 2), ("missing", 1), ("b", 1)],
        ))
        timed = compute_section_progression_timing(document)
        # a: 2 x 1.5s = 3.0s, missing: zero span, b: 1s
        assert [(entry.startSeconds, entry.endSeconds) for entry in timed] == [(0, 3), (3, 3), (3, 4)]

    def test_floors_partial_seconds(self, build):
        document = build.parse(build.document(
            [("a", [build.tab_subsection([build.column()], bpm=80)])],
            progression=[("a", 1), ("a", 1)],
        ))
        timed = compute_section_progression_timing(document)
        assert [(entry.startSeconds, entry.endSeconds) for entry in timed] == [(0, 0), (0, 1)]

    def test_original_entries_untouched(self, four_quarters):
        compute_section_progression_timing(four_quarters)
        assert four_quarters.sectionProgression[0].startSeconds is None


class TestEmptyCheck:

    def test_no_sections(self):
        assert tab_is_effectively_empty(TabDocument())

    def test_first_section_empty(self, build):
        assert tab_is_effectively_empty(build.parse(build.document([("a", [])])))

    def test_has_content(self, four_quarters):
        assert not tab_is_effectively_empty(four_quarters)
