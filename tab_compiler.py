#!/usr/bin/env python3
"""
Tab Timeline Compiler
=====================

Entry points that turn a ``TabDocument`` into a ``CompiledTimeline``:

- ``expand_full_tab``: the whole tab in section-progression order, zero-based
  and closed with a terminal boundary entry.
- ``expand_specific_chord_grouping``: one section, subsection or chord
  sequence on its own, for previews.
- ``expand_strumming_pattern_preview``: a standalone strumming pattern.

Plus the helpers the editor calls around them: section-progression timing,
the default progression and the empty-document check.

Example:
    document = TabDocument.model_validate(data)
    timeline = expand_full_tab(document)
    for entry in timeline.metadata:
        print(entry.elapsedSeconds, entry.location.chordIndex)
"""

import logging
import math
from typing import Callable, List, Optional, Tuple

from tab_constants import (
    ELAPSED_SECONDS_DECIMALS, GHOST_ENTRY_MARGIN_SECONDS, LOOP_TO_END,
    PREVIEW_BPM, PREVIEW_CHORD_NAME,
)
from tab_models import (
    TabDocument, Section, SectionProgressionEntry, ChordGroupingLocation,
    ChordSequence, ChordSubsection, StrummingPattern,
    PlaybackLocation, PlaybackMetadata, PlaybackSection, PlaybackChordSubsection,
    CompiledTimeline,
)
from tab_expansion import (
    PlaybackCursor, ExpansionSettings,
    expand_section, expand_subsection_repetitions, expand_chord_sequence_repetitions,
)
from note_lengths import calculate_ghost_elapsed_seconds
from tempo import resolve_subsection_bpm
from diagnostics import UnresolvedSection, UnresolvedLocation, resolve_sink

logger = logging.getLogger(__name__)

MetadataCallback = Callable[[List[PlaybackMetadata]], None]

# ============================================================================
# Progression Helpers
# ============================================================================

def generate_default_section_progression(sections: List[Section]) -> List[SectionProgressionEntry]:
    """One entry per section, in document order, each played once."""
    return [
        SectionProgressionEntry(
            id=str(position),
            sectionId=section.id,
            title=section.title,
            repetitions=1,
        )
        for position, section in enumerate(sections)
    ]


def get_effective_progression(document: TabDocument) -> List[SectionProgressionEntry]:
    if document.sectionProgression:
        return document.sectionProgression
    return generate_default_section_progression(document.sections)


def resolve_progression_entry(document: TabDocument, entry: SectionProgressionEntry,
                              progression_index: int, diagnostics=None) -> Optional[int]:
    """Section index for ``entry``, reporting entries that point nowhere."""
    section_index = document.find_section_index(entry.sectionId)
    if section_index is None:
        resolve_sink(diagnostics).report(
            UnresolvedSection(
                message=(f"Progression entry {progression_index} references missing "
                         f"section '{entry.sectionId}', skipping"),
                sectionId=entry.sectionId,
                progressionIndex=progression_index,
            )
        )
    return section_index


def tab_is_effectively_empty(document: TabDocument) -> bool:
    """True when there are no sections or the first section has no subsections."""
    return not document.sections or not document.sections[0].data


def check_playback_speed(playback_speed: float):
    if playback_speed <= 0:
        raise ValueError(f"Playback speed must be positive, got {playback_speed}")

# ============================================================================
# Full-Tab Compilation
# ============================================================================

def normalize_elapsed_seconds(metadata: List[PlaybackMetadata]) -> List[PlaybackMetadata]:
    """Shift every entry so the first one starts at zero."""
    if not metadata:
        return []
    offset = metadata[0].elapsedSeconds
    return [
        entry.model_copy(update={
            "elapsedSeconds": round(entry.elapsedSeconds - offset, ELAPSED_SECONDS_DECIMALS)
        })
        for entry in metadata
    ]


def slice_loop_range(metadata: List[PlaybackMetadata], start_loop_index: int,
                     end_loop_index: int) -> List[PlaybackMetadata]:
    """
    Entries in ``[start_loop_index, end_loop_index)``.

    ``end_loop_index`` of -1 runs to the end. An empty range falls back to
    the single entry at ``start_loop_index`` when there is one.
    """
    end = len(metadata) if end_loop_index == LOOP_TO_END else end_loop_index
    selected = metadata[start_loop_index:end]
    if not selected and 0 <= start_loop_index < len(metadata):
        selected = [metadata[start_loop_index]]
    return selected


def build_ghost_entry(last: PlaybackMetadata, playback_speed: float = 1.0) -> PlaybackMetadata:
    """
    Terminal boundary entry placed after ``last``.

    Same location with the innermost index moved one past the end, same
    tempo and length, and a loose end time: one more unit plus a second,
    rounded up to a whole second.
    """
    return PlaybackMetadata(
        location=last.location.model_copy(update={"chordIndex": last.location.chordIndex + 1}),
        bpm=last.bpm,
        noteLength=last.noteLength,
        noteLengthMultiplier=last.noteLengthMultiplier,
        elapsedSeconds=calculate_ghost_elapsed_seconds(
            last.elapsedSeconds, last.bpm, float(last.noteLengthMultiplier),
            GHOST_ENTRY_MARGIN_SECONDS, playback_speed
        ),
        type=last.type,
        playbackIndex=None,
    )


def expand_progression(document: TabDocument, settings: ExpansionSettings,
                       cursor: PlaybackCursor = PlaybackCursor()
                       ) -> Tuple[List[PlaybackSection], List[PlaybackMetadata], PlaybackCursor]:
    """Expand every resolvable progression entry, each once per its repetitions."""
    sections: List[PlaybackSection] = []
    metadata: List[PlaybackMetadata] = []

    for progression_index, entry in enumerate(get_effective_progression(document)):
        section_index = resolve_progression_entry(
            document, entry, progression_index, settings.diagnostics
        )
        if section_index is None:
            continue

        section = document.sections[section_index]
        for repeat_index in range(entry.repetitions):
            compiled, section_metadata, cursor = expand_section(
                section, section_index, repeat_index, cursor, settings
            )
            sections.append(compiled)
            metadata.extend(section_metadata)

    return sections, metadata, cursor


def expand_full_tab(document: TabDocument,
                    set_playback_metadata: Optional[MetadataCallback] = None,
                    playback_speed: float = 1.0,
                    start_loop_index: int = 0,
                    end_loop_index: int = LOOP_TO_END,
                    diagnostics=None) -> CompiledTimeline:
    """
    Compile the whole tab in section-progression order.

    Missing sections are skipped. The metadata is sliced to the loop range,
    shifted to start at zero and closed with a ghost entry that has no
    playback index. When ``set_playback_metadata`` is given it also receives
    the final metadata list.

    Args:
        document: Parsed tab document
        set_playback_metadata: Optional callback receiving the metadata
        playback_speed: Tempo scale, 1.0 is as written
        start_loop_index: First metadata entry to keep
        end_loop_index: Metadata entry to stop before, -1 for the end
        diagnostics: Sink for diagnostics, the logging sink when None

    Returns:
        CompiledTimeline with the compiled sections and metadata
    """
    check_playback_speed(playback_speed)
    settings = ExpansionSettings(
        baseline_bpm=document.baselineBpm,
        playback_speed=playback_speed,
        diagnostics=diagnostics,
    )

    sections, metadata, cursor = expand_progression(document, settings)
    logger.debug(f"Expanded {len(sections)} section passes into {len(metadata)} metadata entries, "
                 f"{cursor.index} playable")

    if start_loop_index != 0 or end_loop_index != LOOP_TO_END:
        metadata = slice_loop_range(metadata, start_loop_index, end_loop_index)

    metadata = normalize_elapsed_seconds(metadata)
    if metadata:
        metadata.append(build_ghost_entry(metadata[-1], playback_speed))

    if set_playback_metadata is not None:
        set_playback_metadata(metadata)

    return CompiledTimeline(sections=sections, metadata=metadata)

# ============================================================================
# Scoped Compilation
# ============================================================================

def lookup(items: list, index: Optional[int]):
    if index is None or index < 0 or index >= len(items):
        return None
    return items[index]


def expand_specific_chord_grouping(document: TabDocument, location: ChordGroupingLocation,
                                   playback_speed: float = 1.0,
                                   diagnostics=None) -> CompiledTimeline:
    """
    Compile one addressed unit for preview.

    The unit is a chord sequence when both ``subSectionIndex`` and
    ``chordSequenceIndex`` are given, a subsection when only
    ``subSectionIndex`` is, and otherwise the whole section. The timeline
    starts at zero, keeps the unit's own repetitions and gets no ghost entry.
    An address that does not exist compiles to an empty timeline.
    """
    check_playback_speed(playback_speed)
    settings = ExpansionSettings(
        baseline_bpm=document.baselineBpm,
        playback_speed=playback_speed,
        diagnostics=diagnostics,
    )
    cursor = PlaybackCursor()

    section = lookup(document.sections, location.sectionIndex)
    if section is None:
        return unresolved_location(location, diagnostics)

    base_location = PlaybackLocation(sectionIndex=location.sectionIndex)

    if location.subSectionIndex is None:
        compiled, metadata, cursor = expand_section(
            section, location.sectionIndex, 0, cursor, settings
        )
        return CompiledTimeline(sections=[compiled], metadata=metadata)

    subsection = lookup(section.data, location.subSectionIndex)
    if subsection is None:
        return unresolved_location(location, diagnostics)

    subsection_location = base_location.model_copy(
        update={"subSectionIndex": location.subSectionIndex}
    )
    compiled = PlaybackSection(id=section.id, title=section.title)

    if location.chordSequenceIndex is None:
        passes, metadata, cursor = expand_subsection_repetitions(
            subsection, subsection_location, cursor, settings
        )
        compiled.data.extend(passes)
        return CompiledTimeline(sections=[compiled], metadata=metadata)

    if not isinstance(subsection, ChordSubsection):
        return unresolved_location(location, diagnostics)

    sequence = lookup(subsection.data, location.chordSequenceIndex)
    if sequence is None:
        return unresolved_location(location, diagnostics)

    subsection_bpm = resolve_subsection_bpm(subsection.bpm, settings.baseline_bpm)
    passes, metadata, cursor = expand_chord_sequence_repetitions(
        sequence,
        subsection_location.model_copy(update={"chordSequenceIndex": location.chordSequenceIndex}),
        subsection_bpm, cursor, settings
    )
    compiled.data.append(
        PlaybackChordSubsection(id=subsection.id, bpm=subsection_bpm, data=passes)
    )
    return CompiledTimeline(sections=[compiled], metadata=metadata)


def unresolved_location(location: ChordGroupingLocation, diagnostics=None) -> CompiledTimeline:
    resolve_sink(diagnostics).report(
        UnresolvedLocation(
            message=f"Nothing to preview at {location.model_dump(exclude_none=True)}",
            sectionIndex=location.sectionIndex,
            subSectionIndex=location.subSectionIndex,
            chordSequenceIndex=location.chordSequenceIndex,
        )
    )
    return CompiledTimeline()


def expand_strumming_pattern_preview(pattern: StrummingPattern, bpm: float = PREVIEW_BPM,
                                     playback_speed: float = 1.0,
                                     diagnostics=None) -> CompiledTimeline:
    """
    Compile a lone strumming pattern so pattern edits can be auditioned.

    Every non-empty strum plays a C chord at ``bpm``.
    """
    check_playback_speed(playback_speed)
    sequence = ChordSequence(
        id=pattern.id,
        strummingPattern=pattern,
        data=[PREVIEW_CHORD_NAME if strum.strum else "" for strum in pattern.strums],
    )
    subsection = ChordSubsection(id=pattern.id, bpm=bpm, data=[sequence])
    section = Section(id=pattern.id, data=[subsection])
    settings = ExpansionSettings(
        baseline_bpm=bpm, playback_speed=playback_speed, diagnostics=diagnostics
    )

    compiled, metadata, _ = expand_section(section, 0, 0, PlaybackCursor(), settings)
    return CompiledTimeline(sections=[compiled], metadata=metadata)

# ============================================================================
# Section Progression Timing
# ============================================================================

def compute_section_progression_timing(document: TabDocument,
                                       diagnostics=None) -> List[SectionProgressionEntry]:
    """
    Progression entries with whole-second ``startSeconds``/``endSeconds``.

    Times are floored and measured from the start of the tab at normal speed.
    Entries whose section is missing get a zero-length span at the current
    position.
    """
    settings = ExpansionSettings(baseline_bpm=document.baselineBpm, diagnostics=diagnostics)
    cursor = PlaybackCursor()
    timed: List[SectionProgressionEntry] = []

    for progression_index, entry in enumerate(get_effective_progression(document)):
        start_seconds = math.floor(cursor.elapsed_seconds)
        section_index = resolve_progression_entry(document, entry, progression_index, diagnostics)

        if section_index is not None:
            section = document.sections[section_index]
            for repeat_index in range(entry.repetitions):
                _, _, cursor = expand_section(section, section_index, repeat_index, cursor, settings)

        timed.append(entry.model_copy(update={
            "startSeconds": start_seconds,
            "endSeconds": math.floor(cursor.elapsed_seconds),
        }))

    return timed
