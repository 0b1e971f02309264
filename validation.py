#!/usr/bin/env python3
"""
Tab Document Validation
=======================

Opt-in checks run by the CLI and the MCP tools before compiling. The
compiler itself tolerates everything checked here; validation exists so a
caller can be told about a problem instead of silently getting a
best-effort timeline.

Every stage returns the same error dict shape used by the surfaces:

    {"isError": True, "errorType": "...", "message": "...", "suggestion": "..."}

or ``{"isError": False}``. Problems that do not stop compilation are
collected as warnings instead.
"""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from tab_constants import (
    StrumGesture, StrumDecoration, VALID_PALM_MUTE_VALUES,
    PLAYABLE_NOTE_LENGTHS, MAX_EXPANDED_UNITS, MIN_BPM, MAX_BPM
)
from tab_models import TabDocument, TabSubsection, ChordSubsection
from note_lengths import is_note_length_supported, is_measure_line
from tempo import is_bpm_set
from diagnostics import ExpansionLimit, resolve_sink

logger = logging.getLogger(__name__)

VALID_SUBSECTION_TYPES = ["tab", "chord"]
VALID_STRUM_GESTURES = [gesture.value for gesture in StrumGesture]
VALID_STRUM_DECORATIONS = [decoration.value for decoration in StrumDecoration]

# ============================================================================
# Schema Validation
# ============================================================================

def validate_schema(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the raw document shape before parsing.

    Expects:
    - sections: array of {id, data: [...]}
    - each subsection: type "tab" or "chord" with a data array
    - sectionProgression (optional): array
    """
    if not isinstance(data, dict):
        return {
            "isError": True,
            "errorType": "validation_error",
            "message": "Tab document must be a JSON object",
            "suggestion": "Wrap the document in {\"sections\": [...], \"sectionProgression\": [...]}"
        }

    if "sections" not in data:
        return {
            "isError": True,
            "errorType": "validation_error",
            "message": "Missing required field: sections",
            "suggestion": "Add 'sections' property to root object"
        }

    if not isinstance(data["sections"], list):
        return {
            "isError": True,
            "errorType": "validation_error",
            "message": "Sections must be an array",
            "suggestion": "Provide sections like: \"sections\": [{\"id\": \"intro\", \"data\": [...]}]"
        }

    if "sectionProgression" in data and not isinstance(data["sectionProgression"], list):
        return {
            "isError": True,
            "errorType": "validation_error",
            "message": "sectionProgression must be an array",
            "suggestion": "Provide entries like: {\"sectionId\": \"intro\", \"repetitions\": 1}"
        }

    for section_idx, section in enumerate(data["sections"]):
        if not isinstance(section, dict) or "id" not in section:
            return {
                "isError": True,
                "errorType": "validation_error",
                "section": section_idx,
                "message": f"Section {section_idx} missing id",
                "suggestion": "Each section needs an 'id' the progression can reference"
            }

        if not isinstance(section.get("data", []), list):
            return {
                "isError": True,
                "errorType": "validation_error",
                "section": section_idx,
                "message": f"Section '{section['id']}' data must be an array of subsections",
                "suggestion": "Use \"data\": [{\"type\": \"tab\", \"data\": [...]}]"
            }

        for subsection_idx, subsection in enumerate(section.get("data", [])):
            subsection_type = subsection.get("type") if isinstance(subsection, dict) else None
            if subsection_type not in VALID_SUBSECTION_TYPES:
                return {
                    "isError": True,
                    "errorType": "validation_error",
                    "section": section_idx,
                    "subSection": subsection_idx,
                    "message": f"Invalid subsection type '{subsection_type}' in section '{section['id']}'",
                    "suggestion": f"Use one of: {', '.join(VALID_SUBSECTION_TYPES)}"
                }

    return {"isError": False}


def parse_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse into a ``TabDocument``, turning pydantic errors into an error dict."""
    try:
        return {"isError": False, "document": TabDocument.model_validate(data)}
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return {
            "isError": True,
            "errorType": "validation_error",
            "message": f"Invalid tab document at {location}: {first['msg']}",
            "suggestion": "Check the field against the schema returned by get_json_schema"
        }

# ============================================================================
# Content Validation
# ============================================================================

def validate_bpm_value(bpm: Any, where: str) -> Dict[str, Any]:
    if not is_bpm_set(bpm):
        return {"isError": False}
    value = float(bpm)
    if value < MIN_BPM or value > MAX_BPM:
        return {
            "isError": True,
            "errorType": "validation_error",
            "message": f"BPM {value:g} out of range at {where}",
            "suggestion": f"Use a tempo between {MIN_BPM} and {MAX_BPM}, or -1 to inherit"
        }
    return {"isError": False}


def validate_tempo(document: TabDocument) -> Dict[str, Any]:
    """Every explicit tempo, measure-line overrides included, must be in range."""
    result = validate_bpm_value(document.baselineBpm, "baselineBpm")
    if result["isError"]:
        return result

    for section in document.sections:
        for subsection_idx, subsection in enumerate(section.data):
            where = f"section '{section.id}' subsection {subsection_idx}"
            result = validate_bpm_value(subsection.bpm, where)
            if result["isError"]:
                return result

            if isinstance(subsection, TabSubsection):
                for column_idx, column in enumerate(subsection.data):
                    result = validate_bpm_value(column.bpm_after_line,
                                                f"{where} measure line {column_idx}")
                    if result["isError"]:
                        return result
            else:
                for sequence_idx, sequence in enumerate(subsection.data):
                    result = validate_bpm_value(sequence.bpm,
                                                f"{where} chord sequence {sequence_idx}")
                    if result["isError"]:
                        return result

    return {"isError": False}


def is_valid_strum(strum: str) -> bool:
    """A base gesture optionally followed by accent/staccato decorations."""
    if not strum:
        return True
    gesture, decorations = strum[0], strum[1:]
    if gesture not in VALID_STRUM_GESTURES:
        return False
    return all(mark in VALID_STRUM_DECORATIONS for mark in decorations)


def validate_strumming_patterns(document: TabDocument) -> Dict[str, Any]:
    for section in document.sections:
        for subsection in section.data:
            if not isinstance(subsection, ChordSubsection):
                continue
            for sequence_idx, sequence in enumerate(subsection.data):
                for strum_idx, strum in enumerate(sequence.strummingPattern.strums):
                    if not is_valid_strum(strum.strum):
                        return {
                            "isError": True,
                            "errorType": "validation_error",
                            "message": (f"Invalid strum '{strum.strum}' at position {strum_idx} of "
                                        f"chord sequence {sequence_idx} in section '{section.id}'"),
                            "suggestion": "Use v, ^, s, r or empty, optionally followed by > or ."
                        }
                    if strum.palmMute not in VALID_PALM_MUTE_VALUES:
                        return {
                            "isError": True,
                            "errorType": "validation_error",
                            "message": f"Invalid palm mute '{strum.palmMute}' in section '{section.id}'",
                            "suggestion": f"Use one of: {VALID_PALM_MUTE_VALUES}"
                        }
    return {"isError": False}


def validate_columns(document: TabDocument) -> Dict[str, Any]:
    for section in document.sections:
        for subsection in section.data:
            if not isinstance(subsection, TabSubsection):
                continue
            for column_idx, column in enumerate(subsection.data):
                if column.palmMute not in VALID_PALM_MUTE_VALUES:
                    return {
                        "isError": True,
                        "errorType": "validation_error",
                        "message": (f"Invalid palm mute '{column.palmMute}' at column {column_idx} "
                                    f"in section '{section.id}'"),
                        "suggestion": f"Use one of: {VALID_PALM_MUTE_VALUES}"
                    }
    return {"isError": False}

# ============================================================================
# Warnings
# ============================================================================

def collect_warnings(document: TabDocument) -> List[Dict[str, Any]]:
    """Problems the compiler works around, reported so the author can fix them."""
    warnings = []
    section_ids = {section.id for section in document.sections}

    for progression_idx, entry in enumerate(document.sectionProgression):
        if entry.sectionId not in section_ids:
            warnings.append({
                "type": "unresolved_section",
                "progressionIndex": progression_idx,
                "message": f"Section progression entry references missing section '{entry.sectionId}'",
                "suggestion": "It will be skipped during playback"
            })

    for section in document.sections:
        for subsection_idx, subsection in enumerate(section.data):
            if isinstance(subsection, TabSubsection):
                for column_idx, column in enumerate(subsection.data):
                    if not is_measure_line(column.noteLength) and not is_note_length_supported(column.noteLength):
                        warnings.append({
                            "type": "unknown_note_length",
                            "section": section.id,
                            "subSection": subsection_idx,
                            "column": column_idx,
                            "message": f"Unknown note length '{column.noteLength}'",
                            "suggestion": "It will be played as a quarter note"
                        })
            else:
                for sequence_idx, sequence in enumerate(subsection.data):
                    pattern = sequence.strummingPattern
                    if pattern.noteLength not in PLAYABLE_NOTE_LENGTHS:
                        warnings.append({
                            "type": "unknown_note_length",
                            "section": section.id,
                            "subSection": subsection_idx,
                            "chordSequence": sequence_idx,
                            "message": f"Strumming pattern note length '{pattern.noteLength}' is not playable",
                            "suggestion": "Use one of the quarter, eighth or sixteenth lengths"
                        })
                    if len(sequence.data) > len(pattern.strums):
                        warnings.append({
                            "type": "extra_chord_names",
                            "section": section.id,
                            "subSection": subsection_idx,
                            "chordSequence": sequence_idx,
                            "message": (f"{len(sequence.data)} chord names for "
                                        f"{len(pattern.strums)} strums"),
                            "suggestion": "Chord names past the last strum are never played"
                        })

    return warnings

# ============================================================================
# Expansion Limits
# ============================================================================

def count_subsection_units(subsection) -> int:
    """Playable units in one pass of ``subsection``."""
    if isinstance(subsection, TabSubsection):
        return sum(1 for column in subsection.data if not column.is_measure_line)
    elif isinstance(subsection, ChordSubsection):
        return sum(
            sequence.repetitions * len(sequence.strummingPattern.strums)
            for sequence in subsection.data
        )
    else:
        raise TypeError(f"Unsupported subsection type: {type(subsection).__name__}")


def estimate_expanded_length(document: TabDocument) -> int:
    """
    Playable units a full-tab compilation would produce, without expanding.

    Follows the same progression rules as the compiler: an empty progression
    plays every section once and missing sections count as nothing.
    """
    # reversed so the first section with a duplicated id wins, as in lookup
    units_per_section = {
        section.id: sum(
            subsection.repetitions * count_subsection_units(subsection)
            for subsection in section.data
        )
        for section in reversed(document.sections)
    }

    if not document.sectionProgression:
        return sum(units_per_section[section.id] for section in document.sections)

    return sum(
        entry.repetitions * units_per_section.get(entry.sectionId, 0)
        for entry in document.sectionProgression
    )


def check_expansion_limit(document: TabDocument, limit: int = MAX_EXPANDED_UNITS,
                          diagnostics=None) -> Dict[str, Any]:
    """Refuse documents whose nested repetitions would expand past ``limit``."""
    expanded = estimate_expanded_length(document)
    if expanded > limit:
        resolve_sink(diagnostics).report(
            ExpansionLimit(
                message=f"Document expands to {expanded} playable units, limit is {limit}",
                expandedUnits=expanded,
                limit=limit,
            )
        )
        return {
            "isError": True,
            "errorType": "expansion_limit_error",
            "message": f"Document expands to {expanded} playable units (limit {limit})",
            "suggestion": "Reduce nested repetition counts or split the tab"
        }
    return {"isError": False, "expandedUnits": expanded}

# ============================================================================
# Pipeline
# ============================================================================

def validate_tab_document(data: Dict[str, Any], limit: int = MAX_EXPANDED_UNITS,
                          diagnostics=None) -> Dict[str, Any]:
    """
    Validation pipeline.

    Returns the first error found, or ``{"isError": False, "document": ...,
    "warnings": [...]}`` with the parsed document ready to compile.
    """
    # Stage 1: Raw shape
    schema_result = validate_schema(data)
    if schema_result["isError"]:
        return schema_result

    # Stage 2: Model parsing
    parse_result = parse_document(data)
    if parse_result["isError"]:
        return parse_result
    document: TabDocument = parse_result["document"]

    # Stage 3: Content checks
    for stage in (validate_tempo, validate_strumming_patterns, validate_columns):
        stage_result = stage(document)
        if stage_result["isError"]:
            logger.warning(f"{stage.__name__} failed: {stage_result['message']}")
            return stage_result

    # Stage 4: Size
    limit_result = check_expansion_limit(document, limit, diagnostics)
    if limit_result["isError"]:
        return limit_result

    warnings = collect_warnings(document)
    logger.info(f"All validation stages passed with {len(warnings)} warnings")
    return {"isError": False, "document": document, "warnings": warnings}
