#!/usr/bin/env python3
"""
Unit Expanders
==============

One expander per nesting level: section, subsection, tab subsection, chord
subsection and chord sequence. Each expander takes the running
``PlaybackCursor`` (elapsed seconds and next playback index) and returns its
compiled output, the metadata entries it produced and the advanced cursor.
No expander mutates its input or keeps state between calls.

Repetitions are expanded into separate passes: a subsection repeated twice
becomes two compiled subsections in the section's output, each with its own
``subSectionRepeatIndex`` in the metadata locations.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, NamedTuple, Optional, Tuple

from tab_constants import ELAPSED_SECONDS_DECIMALS, MEASURE_LINE, MetadataType
from tab_models import (
    Section, TabSubsection, ChordSubsection, ChordSequence,
    PlaybackLocation, PlaybackMetadata, PlaybackSection,
    PlaybackTabSubsection, PlaybackChordSubsection, PlaybackChordSequence,
)
from note_lengths import get_note_length_timing, calculate_duration_seconds
from tempo import resolve_bpm, resolve_measure_line_bpm, resolve_subsection_bpm

logger = logging.getLogger(__name__)

# ============================================================================
# Expansion State
# ============================================================================

class PlaybackCursor(NamedTuple):
    """Position reached so far in one compilation."""
    elapsed_seconds: float = 0.0
    index: int = 0

    def advance(self, seconds: float) -> "PlaybackCursor":
        """Move past one playable unit lasting ``seconds``."""
        elapsed = round(self.elapsed_seconds + seconds, ELAPSED_SECONDS_DECIMALS)
        return PlaybackCursor(elapsed, self.index + 1)


@dataclass(frozen=True)
class ExpansionSettings:
    """Per-call settings shared by every expander."""
    baseline_bpm: float
    playback_speed: float = 1.0
    diagnostics: Optional[Any] = None


ExpansionResult = Tuple[Any, List[PlaybackMetadata], PlaybackCursor]

# ============================================================================
# Section Level
# ============================================================================

def expand_section(section: Section, section_index: int, section_repeat_index: int,
                   cursor: PlaybackCursor, settings: ExpansionSettings) -> ExpansionResult:
    """
    Expand one pass through ``section``.

    Every subsection is expanded once per its own repetition count; the
    passes are appended to the compiled section in playback order.
    """
    compiled = PlaybackSection(id=section.id, title=section.title)
    metadata: List[PlaybackMetadata] = []
    location = PlaybackLocation(sectionIndex=section_index, sectionRepeatIndex=section_repeat_index)

    for subsection_index, subsection in enumerate(section.data):
        passes, subsection_metadata, cursor = expand_subsection_repetitions(
            subsection, location.model_copy(update={"subSectionIndex": subsection_index}),
            cursor, settings
        )
        compiled.data.extend(passes)
        metadata.extend(subsection_metadata)

    return compiled, metadata, cursor


def expand_subsection_repetitions(subsection, location: PlaybackLocation,
                                  cursor: PlaybackCursor, settings: ExpansionSettings) -> ExpansionResult:
    """Expand ``subsection`` once per repetition, returning the list of passes."""
    passes = []
    metadata: List[PlaybackMetadata] = []

    for repeat_index in range(subsection.repetitions):
        compiled, pass_metadata, cursor = expand_subsection(
            subsection, location.model_copy(update={"subSectionRepeatIndex": repeat_index}),
            cursor, settings
        )
        passes.append(compiled)
        metadata.extend(pass_metadata)

    return passes, metadata, cursor


def expand_subsection(subsection, location: PlaybackLocation,
                      cursor: PlaybackCursor, settings: ExpansionSettings) -> ExpansionResult:
    """Dispatch one pass of a subsection to the expander for its kind."""
    if isinstance(subsection, TabSubsection):
        return expand_tab_subsection(subsection, location, cursor, settings)
    elif isinstance(subsection, ChordSubsection):
        return expand_chord_subsection(subsection, location, cursor, settings)
    else:
        raise TypeError(f"Unsupported subsection type: {type(subsection).__name__}")

# ============================================================================
# Tab Subsections
# ============================================================================

def expand_tab_subsection(subsection: TabSubsection, location: PlaybackLocation,
                          cursor: PlaybackCursor, settings: ExpansionSettings) -> ExpansionResult:
    """
    Expand one pass through a tab subsection.

    The running tempo starts at the subsection's resolved BPM. A measure line
    changes it (or resets it to the subsection BPM when its override is unset),
    is recorded in the metadata as a ``measureLine`` entry that takes no time,
    and never receives a playback index.
    """
    subsection_bpm = resolve_subsection_bpm(subsection.bpm, settings.baseline_bpm)
    current_bpm = subsection_bpm

    compiled = PlaybackTabSubsection(id=subsection.id, bpm=subsection_bpm)
    metadata: List[PlaybackMetadata] = []

    for column_index, column in enumerate(subsection.data):
        column_location = location.model_copy(update={"chordIndex": column_index})

        if column.is_measure_line:
            current_bpm = resolve_measure_line_bpm(column.bpm_after_line, subsection_bpm)
            metadata.append(PlaybackMetadata(
                location=column_location,
                bpm=current_bpm,
                noteLength=MEASURE_LINE,
                noteLengthMultiplier="0",
                elapsedSeconds=cursor.elapsed_seconds,
                type=MetadataType.MEASURE_LINE.value,
            ))
        else:
            note_length, multiplier = get_note_length_timing(
                column.noteLength, settings.diagnostics, playable_only=True
            )
            metadata.append(PlaybackMetadata(
                location=column_location,
                bpm=current_bpm,
                noteLength=note_length,
                noteLengthMultiplier=multiplier,
                elapsedSeconds=cursor.elapsed_seconds,
                type=MetadataType.TAB.value,
                playbackIndex=cursor.index,
            ))
            compiled.indices.append(cursor.index)
            cursor = cursor.advance(
                calculate_duration_seconds(current_bpm, float(multiplier), settings.playback_speed)
            )

        compiled.data.append(column.model_copy(deep=True))
        compiled.columnBpms.append(current_bpm)

    return compiled, metadata, cursor

# ============================================================================
# Chord Subsections
# ============================================================================

def expand_chord_subsection(subsection: ChordSubsection, location: PlaybackLocation,
                            cursor: PlaybackCursor, settings: ExpansionSettings) -> ExpansionResult:
    """Expand one pass through a chord subsection, repeating each sequence."""
    subsection_bpm = resolve_subsection_bpm(subsection.bpm, settings.baseline_bpm)
    compiled = PlaybackChordSubsection(id=subsection.id, bpm=subsection_bpm)
    metadata: List[PlaybackMetadata] = []

    for sequence_index, sequence in enumerate(subsection.data):
        passes, sequence_metadata, cursor = expand_chord_sequence_repetitions(
            sequence, location.model_copy(update={"chordSequenceIndex": sequence_index}),
            subsection_bpm, cursor, settings
        )
        compiled.data.extend(passes)
        metadata.extend(sequence_metadata)

    return compiled, metadata, cursor


def expand_chord_sequence_repetitions(sequence: ChordSequence, location: PlaybackLocation,
                                      subsection_bpm: float, cursor: PlaybackCursor,
                                      settings: ExpansionSettings) -> ExpansionResult:
    passes = []
    metadata: List[PlaybackMetadata] = []

    for repeat_index in range(sequence.repetitions):
        compiled, pass_metadata, cursor = expand_chord_sequence(
            sequence, location.model_copy(update={"chordSequenceRepeatIndex": repeat_index}),
            subsection_bpm, cursor, settings
        )
        passes.append(compiled)
        metadata.extend(pass_metadata)

    return passes, metadata, cursor


def sounding_chord_names(chord_names: List[str], strums: List[str]) -> List[str]:
    """
    Chord heard at each strum position.

    An empty chord name on a non-empty strum keeps the last named chord
    ringing. Empty names on silent strums stay empty.

    Example:
        sounding_chord_names(["G", "", "", "C"], ["v", "^", "", "v"])
        # ["G", "G", "", "C"]
    """
    sounding = []
    last_chord = ""
    for position, strum in enumerate(strums):
        name = chord_names[position] if position < len(chord_names) else ""
        if name:
            last_chord = name
            sounding.append(name)
        elif strum:
            sounding.append(last_chord)
        else:
            sounding.append("")
    return sounding


def expand_chord_sequence(sequence: ChordSequence, location: PlaybackLocation,
                          subsection_bpm: float, cursor: PlaybackCursor,
                          settings: ExpansionSettings) -> ExpansionResult:
    """
    Expand one pass through a chord sequence.

    Every strum position of the pattern is one playable unit at the pattern's
    note length and the sequence's resolved tempo.
    """
    bpm = resolve_bpm(sequence.bpm, subsection_bpm)
    pattern = sequence.strummingPattern
    note_length, multiplier = get_note_length_timing(
        pattern.noteLength, settings.diagnostics, playable_only=True
    )
    duration = calculate_duration_seconds(bpm, float(multiplier), settings.playback_speed)

    compiled = PlaybackChordSequence(
        id=sequence.id,
        strummingPattern=pattern.model_copy(deep=True),
        bpm=bpm,
        data=list(sequence.data),
        soundingChordNames=sounding_chord_names(
            sequence.data, [strum.strum for strum in pattern.strums]
        ),
    )
    metadata: List[PlaybackMetadata] = []

    for strum_index in range(len(pattern.strums)):
        metadata.append(PlaybackMetadata(
            location=location.model_copy(update={"chordIndex": strum_index}),
            bpm=bpm,
            noteLength=note_length,
            noteLengthMultiplier=multiplier,
            elapsedSeconds=cursor.elapsed_seconds,
            type=MetadataType.STRUM.value,
            playbackIndex=cursor.index,
        ))
        compiled.indices.append(cursor.index)
        cursor = cursor.advance(duration)

    return compiled, metadata, cursor
