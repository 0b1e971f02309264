#!/usr/bin/env python3
"""
Tab Timeline Compiler - Constants and Definitions
=================================================

Enums and constants shared by the models, the resolvers and the expanders:
note lengths, strum gestures, palm-mute regions, the positional layout of a
tab column, and the defaults and limits used while compiling.
"""

from enum import Enum
from typing import List


# ============================================================================
# Note Length Constants
# ============================================================================

class NoteLength(Enum):
    """Note-length tags as they are stored in tab documents."""
    QUARTER = "1/4th"
    QUARTER_TRIPLET = "1/4th triplet"
    EIGHTH = "1/8th"
    EIGHTH_TRIPLET = "1/8th triplet"
    SIXTEENTH = "1/16th"
    SIXTEENTH_TRIPLET = "1/16th triplet"
    MEASURE_LINE = "measureLine"  # Non-playable bar marker

    def __str__(self):
        return self.value

# Every tag except the measure line takes time
PLAYABLE_NOTE_LENGTHS: List[str] = [
    length.value for length in NoteLength if length is not NoteLength.MEASURE_LINE
]

MEASURE_LINE = NoteLength.MEASURE_LINE.value
DEFAULT_NOTE_LENGTH = NoteLength.QUARTER.value


# ============================================================================
# Strum and Palm Mute Constants
# ============================================================================

class StrumGesture(Enum):
    """Base strum gestures; decorations are appended (e.g. "v>", "^.")."""
    DOWN = "v"
    UP = "^"
    SLAP = "s"
    REST = "r"
    SILENT = ""

    def __str__(self):
        return self.value

class StrumDecoration(Enum):
    """Decorations that can follow a strum gesture."""
    ACCENT = ">"
    STACCATO = "."

    def __str__(self):
        return self.value

class PalmMuteRegion(Enum):
    """Palm-mute flag carried by columns and strums."""
    NONE = ""
    CONTINUE = "-"
    START = "start"
    END = "end"

    def __str__(self):
        return self.value

VALID_PALM_MUTE_VALUES = [region.value for region in PalmMuteRegion]


# ============================================================================
# Tab Column Layout
# ============================================================================

# Positional slots of a persisted tab column. Order is part of the storage
# format and must not change.
PALM_MUTE_SLOT = 0
FIRST_STRING_SLOT = 1
LAST_STRING_SLOT = 6
CHORD_EFFECT_SLOT = 7
NOTE_LENGTH_SLOT = 8
COLUMN_ID_SLOT = 9
LENGTH_MODIFIED_SLOT = 10  # Optional trailing slot

COLUMN_SLOT_COUNT = 10
STRING_COUNT = LAST_STRING_SLOT - FIRST_STRING_SLOT + 1


# ============================================================================
# Tempo and Repetition Constants
# ============================================================================

# In-band "not set, inherit from the enclosing scope" value
BPM_SENTINEL = -1

DEFAULT_BASELINE_BPM = 75
DEFAULT_REPETITIONS = 1

# Strumming pattern previews play at this tempo with this chord
PREVIEW_BPM = 75
PREVIEW_CHORD_NAME = "C"


# ============================================================================
# Playback Metadata Constants
# ============================================================================

class MetadataType(Enum):
    """Kind of instant a metadata entry describes."""
    TAB = "tab"
    STRUM = "strum"
    MEASURE_LINE = "measureLine"

    def __str__(self):
        return self.value

# Elapsed seconds are kept to the microsecond
ELAPSED_SECONDS_DECIMALS = 6

# Seconds added after the last unit when building the terminal entry
GHOST_ENTRY_MARGIN_SECONDS = 1

# End of a loop range that means "until the end of the timeline"
LOOP_TO_END = -1


# ============================================================================
# Validation Constants
# ============================================================================

# Upper bound on playable units a single compilation may expand to
MAX_EXPANDED_UNITS = 100_000

MIN_BPM = 1
MAX_BPM = 400
