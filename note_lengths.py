#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Note Length Support Module
==========================

Maps note-length tags to duration multipliers and turns a multiplier and a
tempo into seconds. Everything that needs to know how long a column or a
strum lasts goes through this module, so there is exactly one fallback for
tags it does not recognise.

Multipliers are relative to one beat (a quarter note is 1):
- 1/4th: 1
- 1/4th triplet: 0.6667
- 1/8th: 0.5
- 1/8th triplet: 0.3333
- 1/16th: 0.25
- 1/16th triplet: 0.1667
- measureLine: 0 (takes no time)

Triplet multipliers are stored as truncated decimals, matching the values
persisted alongside existing tabs.
"""

import math
from typing import Any, Dict, List, Tuple
import logging

from tab_constants import NoteLength, DEFAULT_NOTE_LENGTH, MEASURE_LINE, PLAYABLE_NOTE_LENGTHS
from diagnostics import UnknownNoteLength, resolve_sink

logger = logging.getLogger(__name__)

# ============================================================================
# Note Length Definitions
# ============================================================================

NOTE_LENGTH_CONFIGS = {
    NoteLength.QUARTER.value: {
        "name": "Quarter",
        "multiplier": "1",
        "triplet": False,
    },
    NoteLength.QUARTER_TRIPLET.value: {
        "name": "Quarter Triplet",
        "multiplier": "0.6667",
        "triplet": True,
    },
    NoteLength.EIGHTH.value: {
        "name": "Eighth",
        "multiplier": "0.5",
        "triplet": False,
    },
    NoteLength.EIGHTH_TRIPLET.value: {
        "name": "Eighth Triplet",
        "multiplier": "0.3333",
        "triplet": True,
    },
    NoteLength.SIXTEENTH.value: {
        "name": "Sixteenth",
        "multiplier": "0.25",
        "triplet": False,
    },
    NoteLength.SIXTEENTH_TRIPLET.value: {
        "name": "Sixteenth Triplet",
        "multiplier": "0.1667",
        "triplet": True,
    },
    NoteLength.MEASURE_LINE.value: {
        "name": "Measure Line",
        "multiplier": "0",
        "triplet": False,
    },
}

# ============================================================================
# Core Note Length Functions
# ============================================================================

def get_supported_note_lengths() -> List[str]:
    """Return list of all supported note-length tags."""
    return list(NOTE_LENGTH_CONFIGS.keys())

def is_note_length_supported(note_length: str) -> bool:
    """Check if a note-length tag is known."""
    return note_length in NOTE_LENGTH_CONFIGS

def is_measure_line(note_length: str) -> bool:
    return note_length == MEASURE_LINE

def resolve_note_length(note_length: str, diagnostics=None, playable_only: bool = False) -> str:
    """
    Return the tag that should be used for timing ``note_length``.

    Known tags come back unchanged. Anything else resolves to a quarter note
    and an ``UnknownNoteLength`` diagnostic goes to the sink. With
    ``playable_only`` a measure line is treated as unknown too.

    Example:
        resolve_note_length("1/8th")    # "1/8th"
        resolve_note_length("1/32nd")   # "1/4th", with a diagnostic
        resolve_note_length("measureLine", playable_only=True)  # "1/4th"
    """
    known = PLAYABLE_NOTE_LENGTHS if playable_only else NOTE_LENGTH_CONFIGS
    if note_length in known:
        return note_length

    resolve_sink(diagnostics).report(
        UnknownNoteLength(
            message=f"Unknown note length '{note_length}', using {DEFAULT_NOTE_LENGTH}",
            noteLength=str(note_length),
            fallback=DEFAULT_NOTE_LENGTH,
        )
    )
    return DEFAULT_NOTE_LENGTH

def get_note_length_timing(note_length: str, diagnostics=None,
                           playable_only: bool = False) -> Tuple[str, str]:
    """Resolved tag and its string-encoded multiplier, reporting unknown tags once."""
    resolved = resolve_note_length(note_length, diagnostics, playable_only)
    return resolved, NOTE_LENGTH_CONFIGS[resolved]["multiplier"]

def get_note_length_multiplier_string(note_length: str, diagnostics=None) -> str:
    """String-encoded multiplier, as written into playback metadata."""
    return get_note_length_timing(note_length, diagnostics)[1]

def get_note_length_multiplier(note_length: str, diagnostics=None) -> float:
    """
    Numeric multiplier for a note-length tag, where a quarter note is 1.0.

    Example:
        get_note_length_multiplier("1/8th")          # 0.5
        get_note_length_multiplier("1/8th triplet")  # 0.3333
        get_note_length_multiplier("measureLine")    # 0.0
    """
    return float(get_note_length_multiplier_string(note_length, diagnostics))

# ============================================================================
# Duration Calculations
# ============================================================================

def calculate_duration_seconds(bpm: float, multiplier: float, playback_speed: float = 1.0) -> float:
    """
    Seconds taken by one unit at ``bpm`` with the given length multiplier.

    This is ``60 / ((bpm / multiplier) * playback_speed)``. A zero multiplier
    (measure line) takes no time.

    Example:
        calculate_duration_seconds(120, 1)     # 0.5
        calculate_duration_seconds(100, 0.5)   # 0.3
    """
    multiplier = float(multiplier)
    if multiplier == 0:
        return 0.0
    return 60 / ((float(bpm) / multiplier) * playback_speed)

def calculate_ghost_elapsed_seconds(last_elapsed: float, bpm: float, multiplier: float,
                                    margin: float, playback_speed: float = 1.0) -> int:
    """
    Elapsed time of the terminal boundary entry.

    One more unit after ``last_elapsed`` plus ``margin`` seconds, rounded up
    to a whole second.
    """
    duration = calculate_duration_seconds(bpm, multiplier, playback_speed)
    return math.ceil(last_elapsed + duration + margin)

# ============================================================================
# Module Information
# ============================================================================

def get_module_info() -> Dict[str, Any]:
    """Get information about this note length module."""
    return {
        "module": "note_lengths",
        "version": "1.0.0",
        "supported_note_lengths": get_supported_note_lengths(),
        "default_note_length": DEFAULT_NOTE_LENGTH,
        "triplets": [tag for tag, config in NOTE_LENGTH_CONFIGS.items() if config["triplet"]],
    }
