#!/usr/bin/env python3
"""
Pydantic V2 Data Models for the Tab Timeline Compiler
=====================================================

Input models mirror the documents the tab editor persists (sections,
subsections, columns, chord sequences, strumming patterns, the section
progression). Output models describe what the compiler hands to the
playback layer: the repetition-expanded playback tree and the flat
playback metadata sequence.

Input validation is deliberately lenient. Stored sentinels (-1 BPM, 0
repetitions, empty strings) are normalized rather than rejected, so a
half-edited document still compiles.
"""

import json
import logging
from typing import Annotated, Any, Dict, List, Optional, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator, model_serializer

from tab_constants import (
    COLUMN_SLOT_COUNT, PALM_MUTE_SLOT, FIRST_STRING_SLOT, LAST_STRING_SLOT,
    CHORD_EFFECT_SLOT, NOTE_LENGTH_SLOT, COLUMN_ID_SLOT, LENGTH_MODIFIED_SLOT,
    STRING_COUNT, DEFAULT_NOTE_LENGTH, DEFAULT_REPETITIONS, DEFAULT_BASELINE_BPM,
    MEASURE_LINE, MetadataType
)
from tempo import is_bpm_set

logger = logging.getLogger(__name__)

# ============================================================================
# Normalization Helpers
# ============================================================================

def normalize_repetitions(value: Any) -> int:
    """Repetition counts below 1 (or missing) mean "play once"."""
    try:
        repetitions = int(value)
    except (TypeError, ValueError):
        return DEFAULT_REPETITIONS
    return repetitions if repetitions > 0 else DEFAULT_REPETITIONS

def normalize_bpm(value: Any) -> Optional[float]:
    """Map the stored "inherit" encodings (-1, "-1", "", None) to None."""
    if not is_bpm_set(value):
        return None
    return float(value)

# ============================================================================
# Strumming Models
# ============================================================================

class Strum(BaseModel):
    """One strum of a strumming pattern."""
    palmMute: str = ""
    strum: str = Field("", description="Gesture: v, ^, s, r or empty, optionally with > or .")

class StrummingPattern(BaseModel):
    """A rhythm shared by every strum of a chord sequence."""
    id: str = ""
    noteLength: str = DEFAULT_NOTE_LENGTH
    strums: List[Strum] = Field(default_factory=list)

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        return "" if v is None else str(v)

class ChordSequence(BaseModel):
    """A run of strums with the chord names assigned to them."""
    id: str = ""
    repetitions: int = DEFAULT_REPETITIONS
    bpm: Optional[float] = Field(None, description="Tempo override, None inherits")
    strummingPattern: StrummingPattern = Field(default_factory=StrummingPattern)
    data: List[str] = Field(default_factory=list, description="Chord name per strum")

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        return "" if v is None else str(v)

    @field_validator('repetitions', mode='before')
    @classmethod
    def validate_repetitions(cls, v):
        return normalize_repetitions(v)

    @field_validator('bpm', mode='before')
    @classmethod
    def validate_bpm(cls, v):
        return normalize_bpm(v)

    @field_validator('data', mode='before')
    @classmethod
    def validate_chord_names(cls, v):
        if v is None:
            return []
        return ["" if name is None else str(name) for name in v]

# ============================================================================
# Tab Column Model
# ============================================================================

def column_slots_to_fields(slots: List[Any]) -> Dict[str, Any]:
    """Read the positional column layout into named fields."""
    padded = ["" if slot is None else str(slot) for slot in slots]
    padded += [""] * (COLUMN_SLOT_COUNT - len(padded))

    return {
        "palmMute": padded[PALM_MUTE_SLOT],
        "frets": padded[FIRST_STRING_SLOT:LAST_STRING_SLOT + 1],
        "chordEffect": padded[CHORD_EFFECT_SLOT],
        "noteLength": padded[NOTE_LENGTH_SLOT],
        "id": padded[COLUMN_ID_SLOT],
        "lengthModified": (len(padded) > LENGTH_MODIFIED_SLOT
                           and padded[LENGTH_MODIFIED_SLOT].lower() == "true"),
    }

class TabColumn(BaseModel):
    """
    One vertical slice of a tab subsection.

    Persisted as a list of ten strings: palm mute, six frets, chord effect,
    note length, id (plus an optional "length modified" flag). The model
    accepts that list directly and serializes back to it.
    """
    palmMute: str = ""
    frets: List[str] = Field(default_factory=lambda: [""] * STRING_COUNT)
    chordEffect: str = ""
    noteLength: str = DEFAULT_NOTE_LENGTH
    id: str = ""
    lengthModified: bool = False

    @model_validator(mode='before')
    @classmethod
    def parse_positional_slots(cls, data):
        if isinstance(data, (list, tuple)):
            return column_slots_to_fields(list(data))
        return data

    @field_validator('frets')
    @classmethod
    def validate_frets(cls, v):
        if len(v) != STRING_COUNT:
            raise ValueError(f"Column must have {STRING_COUNT} fret slots, got {len(v)}")
        return v

    @property
    def is_measure_line(self) -> bool:
        return self.noteLength == MEASURE_LINE

    @property
    def bpm_after_line(self) -> Optional[float]:
        """Tempo override carried by a measure line, None when unset."""
        if not self.is_measure_line:
            return None
        return normalize_bpm(self.chordEffect)

    def to_slots(self) -> List[str]:
        slots = [self.palmMute, *self.frets, self.chordEffect, self.noteLength, self.id]
        if self.lengthModified:
            slots.append("true")
        return slots

    @model_serializer
    def serialize_slots(self) -> List[str]:
        return self.to_slots()

# ============================================================================
# Subsection and Section Models
# ============================================================================

class TabSubsection(BaseModel):
    """Note-by-note subsection made of columns."""
    id: str = ""
    type: Literal["tab"] = "tab"
    bpm: Optional[float] = None
    repetitions: int = DEFAULT_REPETITIONS
    data: List[TabColumn] = Field(default_factory=list)

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        return "" if v is None else str(v)

    @field_validator('repetitions', mode='before')
    @classmethod
    def validate_repetitions(cls, v):
        return normalize_repetitions(v)

    @field_validator('bpm', mode='before')
    @classmethod
    def validate_bpm(cls, v):
        return normalize_bpm(v)

class ChordSubsection(BaseModel):
    """Strum-pattern driven subsection made of chord sequences."""
    id: str = ""
    type: Literal["chord"] = "chord"
    bpm: Optional[float] = None
    repetitions: int = DEFAULT_REPETITIONS
    data: List[ChordSequence] = Field(default_factory=list)

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        return "" if v is None else str(v)

    @field_validator('repetitions', mode='before')
    @classmethod
    def validate_repetitions(cls, v):
        return normalize_repetitions(v)

    @field_validator('bpm', mode='before')
    @classmethod
    def validate_bpm(cls, v):
        return normalize_bpm(v)

Subsection = Annotated[Union[TabSubsection, ChordSubsection], Field(discriminator="type")]

class Section(BaseModel):
    """A named top-level block of a tab."""
    id: str
    title: str = ""
    data: List[Subsection] = Field(default_factory=list)

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        return "" if v is None else str(v)

class SectionProgressionEntry(BaseModel):
    """
    One entry of the playlist that defines full-tab playback order.

    ``startSeconds``/``endSeconds`` are filled in by
    ``compute_section_progression_timing``.
    """
    id: str = ""
    sectionId: str = ""
    title: str = ""
    repetitions: int = DEFAULT_REPETITIONS
    startSeconds: Optional[int] = None
    endSeconds: Optional[int] = None

    @field_validator('id', 'sectionId', mode='before')
    @classmethod
    def stringify_ids(cls, v):
        return "" if v is None else str(v)

    @field_validator('repetitions', mode='before')
    @classmethod
    def validate_repetitions(cls, v):
        return normalize_repetitions(v)

class TabDocument(BaseModel):
    """
    Everything the compiler needs from the editor: the sections, the
    section progression and the tab-wide tempo.
    """
    title: str = ""
    baselineBpm: float = DEFAULT_BASELINE_BPM
    sections: List[Section] = Field(default_factory=list)
    sectionProgression: List[SectionProgressionEntry] = Field(default_factory=list)

    # info that can be used to generate a valid schema for the JSON format used
    model_config = {
        "title": "Tab Timeline Compiler Document Schema",
        "json_schema_extra": {
            "$schema": "https://json-schema.org/draft/2020-12/schema",
        }
    }

    @field_validator('baselineBpm', mode='before')
    @classmethod
    def validate_baseline_bpm(cls, v):
        bpm = normalize_bpm(v)
        return DEFAULT_BASELINE_BPM if bpm is None else bpm

    def find_section_index(self, section_id: str) -> Optional[int]:
        """Position of the section with ``section_id``, None when absent."""
        if not section_id:
            return None
        for index, section in enumerate(self.sections):
            if section.id == section_id:
                return index
        return None

class ChordGroupingLocation(BaseModel):
    """
    Address of the unit a scoped preview compiles.

    ``chordSequenceIndex`` only narrows the address when
    ``subSectionIndex`` is also given.
    """
    sectionIndex: int
    subSectionIndex: Optional[int] = None
    chordSequenceIndex: Optional[int] = None

# ============================================================================
# Playback Output Models
# ============================================================================

class PlaybackLocation(BaseModel):
    """Where a metadata entry points back into the source document."""
    sectionIndex: int
    sectionRepeatIndex: int = 0
    subSectionIndex: int = 0
    subSectionRepeatIndex: int = 0
    chordSequenceIndex: Optional[int] = None
    chordSequenceRepeatIndex: Optional[int] = None
    chordIndex: int = 0

class PlaybackMetadata(BaseModel):
    """One time-stamped instant of a compiled timeline."""
    location: PlaybackLocation
    bpm: float
    noteLength: str
    noteLengthMultiplier: str
    elapsedSeconds: float
    type: str = MetadataType.TAB.value
    playbackIndex: Optional[int] = None

    @property
    def is_playable(self) -> bool:
        return self.type != MetadataType.MEASURE_LINE.value

class PlaybackTabSubsection(BaseModel):
    """One pass through a tab subsection."""
    id: str
    type: Literal["tab"] = "tab"
    bpm: float
    data: List[TabColumn] = Field(default_factory=list)
    columnBpms: List[float] = Field(default_factory=list, description="Tempo in effect at each column")
    indices: List[int] = Field(default_factory=list, description="Playback index of each playable column")

class PlaybackChordSequence(BaseModel):
    """One pass through a chord sequence."""
    id: str
    strummingPattern: StrummingPattern
    bpm: float
    data: List[str] = Field(default_factory=list)
    soundingChordNames: List[str] = Field(default_factory=list)
    indices: List[int] = Field(default_factory=list)

class PlaybackChordSubsection(BaseModel):
    """One pass through a chord subsection."""
    id: str
    type: Literal["chord"] = "chord"
    bpm: float
    data: List[PlaybackChordSequence] = Field(default_factory=list)

PlaybackSubsection = Annotated[
    Union[PlaybackTabSubsection, PlaybackChordSubsection], Field(discriminator="type")
]

class PlaybackSection(BaseModel):
    """One pass through a section."""
    id: str
    title: str = ""
    data: List[PlaybackSubsection] = Field(default_factory=list)

class CompiledTimeline(BaseModel):
    """Compiler output: the playback tree and the flat metadata sequence."""
    sections: List[PlaybackSection] = Field(default_factory=list)
    metadata: List[PlaybackMetadata] = Field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return self.metadata[-1].elapsedSeconds if self.metadata else 0.0

    def playable_entries(self) -> List[PlaybackMetadata]:
        return [entry for entry in self.metadata if entry.playbackIndex is not None]

# ============================================================================
# Error and Response Models
# ============================================================================

class TimelineError(BaseModel):
    """Structured error returned to callers instead of a traceback."""
    isError: bool = True
    errorType: str = "error"
    message: str
    suggestion: str = ""

class JSONError(TimelineError):
    errorType: str = "json_error"

class TabFormatError(TimelineError):
    errorType: str = "validation_error"

class ExpansionLimitError(TimelineError):
    errorType: str = "expansion_limit_error"

class ProcessingError(TimelineError):
    errorType: str = "processing_error"

class TimelineResponse(BaseModel):
    """Response envelope used by the CLI and the MCP tools."""
    success: bool
    timeline: Optional[CompiledTimeline] = None
    error: Optional[TimelineError] = None
    warnings: List[Dict[str, Any]] = []
    diagnostics: List[Dict[str, Any]] = []

# ============================================================================
# Schema Export
# ============================================================================

def create_schema() -> Dict[str, Any]:
    """Generate JSON Schema for tab documents."""
    return TabDocument.model_json_schema()

def save_schema(filename: str = "tab-document-schema.json"):
    """Save JSON Schema to file."""

    with open(filename, 'w', encoding='utf-8') as f:
        json.dump(create_schema(), f, indent=2)

    logger.info(f"Schema saved to {filename}")
