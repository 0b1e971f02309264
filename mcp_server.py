#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tab Timeline Compiler - MCP Server Implementation
=================================================

FastMCP server exposing the compiler as tools:
- compile_tab: full-tab timeline (playback tree + metadata)
- preview_chord_grouping: one section, subsection or chord sequence
- get_json_schema: the input document schema

Key MCP Implementation Details:
- stdio transport locally (stdout for JSON-RPC, stderr for logging)
- SSE transport when PORT or RENDER is set (hosted deployments)
- Structured error responses instead of tracebacks

Usage:
    python mcp_server.py

For Claude Desktop integration, add to config:
{
  "mcpServers": {
    "tab-timeline": {
      "command": "python",
      "args": ["/path/to/mcp_server.py"]
    }
  }
}
"""

import sys
import os
import logging
import json
from typing import Dict, Any
from fastmcp import FastMCP

from tab_models import (
    ChordGroupingLocation, TimelineResponse, JSONError, ProcessingError, TabFormatError,
    ExpansionLimitError, create_schema
)
from tab_compiler import expand_full_tab, expand_specific_chord_grouping
from validation import validate_tab_document
from diagnostics import DiagnosticLog

logger = logging.getLogger(__name__)

DEFAULT_SSE_PORT = 8001

# ============================================================================
#  MCP Server Setup
# ============================================================================

mcp = FastMCP("Tab Timeline Compiler")


def error_response(error: Dict[str, Any]) -> TimelineResponse:
    """Wrap a validation error dict in a failed response."""
    error_class = TabFormatError
    if error.get("errorType") == ExpansionLimitError.model_fields["errorType"].default:
        error_class = ExpansionLimitError
    return TimelineResponse(success=False, error=error_class(
        errorType=error.get("errorType", "validation_error"),
        message=error["message"],
        suggestion=error.get("suggestion", ""),
    ))


def json_error_response(e: json.JSONDecodeError) -> TimelineResponse:
    logger.error(f"JSON parsing error: {e}")
    return TimelineResponse(success=False, error=JSONError(
        message=f"Invalid JSON format: {str(e)}",
        suggestion="Check JSON syntax - ensure proper quotes, brackets, and commas",
    ))


def compile_tab(tab_data: str, playback_speed: float = 1.0,
                start_loop_index: int = 0, end_loop_index: int = -1) -> TimelineResponse:
    """
    Compile a tab document into its playback timeline.

    The document has `sections` (each with `id`, `title` and `data`: a list of
    subsections), an optional `sectionProgression` (entries of `sectionId` and
    `repetitions`, defaults to every section once) and an optional
    `baselineBpm` (default 75).

    Subsections are either `{"type": "tab", "bpm": 120, "repetitions": 1,
    "data": [columns]}` where each column is the ten-slot list
    `[palmMute, e, B, G, D, A, E, chordEffect, noteLength, id]`, or
    `{"type": "chord", "bpm": -1, "repetitions": 1, "data": [chordSequences]}`.
    A bpm of -1 inherits from the enclosing level. A column whose note length
    is `measureLine` marks a bar and may carry a new bpm in its chordEffect slot.

    Args:
        tab_data: Tab document as a JSON string
        playback_speed: Tempo scale, 1.0 plays as written
        start_loop_index: First metadata entry of the loop range
        end_loop_index: Metadata entry to stop before, -1 for the end

    Returns:
        TimelineResponse with the compiled timeline, warnings and diagnostics.
        Each metadata entry has `location`, `bpm`, `noteLength`,
        `noteLengthMultiplier`, `elapsedSeconds`, `type` and `playbackIndex`;
        the last one is a boundary entry with no playbackIndex.
    """
    logger.info("Received tab compilation request")

    try:
        data_dict = json.loads(tab_data)

        diagnostics = DiagnosticLog()
        validation_result = validate_tab_document(data_dict, diagnostics=diagnostics)
        if validation_result["isError"]:
            logger.warning(f"Validation failed: {validation_result['message']}")
            return error_response(validation_result)

        if playback_speed <= 0:
            return TimelineResponse(success=False, error=TabFormatError(
                message=f"Playback speed must be positive, got {playback_speed}",
                suggestion="Use 1.0 for normal speed, 0.5 for half speed",
            ))

        timeline = expand_full_tab(
            validation_result["document"],
            playback_speed=playback_speed,
            start_loop_index=start_loop_index,
            end_loop_index=end_loop_index,
            diagnostics=diagnostics,
        )
        logger.info(f"Compiled {len(timeline.metadata)} metadata entries")

        return TimelineResponse(
            success=True,
            timeline=timeline,
            warnings=validation_result["warnings"],
            diagnostics=diagnostics.to_list(),
        )

    except json.JSONDecodeError as e:
        return json_error_response(e)

    except Exception as e:
        logger.error(f"Unexpected error during compilation: {e}")
        return TimelineResponse(success=False, error=ProcessingError(
            message=f"Unexpected error during compilation: {str(e)}",
            suggestion="Check input format against get_json_schema and try again",
        ))


def preview_chord_grouping(tab_data: str, location: str) -> TimelineResponse:
    """
    Compile one unit of a tab on its own, starting at zero.

    Args:
        tab_data: Tab document as a JSON string
        location: JSON object with `sectionIndex`, optional `subSectionIndex`
            and optional `chordSequenceIndex`, e.g. `{"sectionIndex": 0,
            "subSectionIndex": 1}`

    Returns:
        TimelineResponse with a single compiled section. An address that does
        not exist gives an empty timeline plus an `unresolvedLocation`
        diagnostic.
    """
    logger.info("Received preview request")

    try:
        data_dict = json.loads(tab_data)
        address = ChordGroupingLocation.model_validate(json.loads(location))

        diagnostics = DiagnosticLog()
        validation_result = validate_tab_document(data_dict, diagnostics=diagnostics)
        if validation_result["isError"]:
            logger.warning(f"Validation failed: {validation_result['message']}")
            return error_response(validation_result)

        timeline = expand_specific_chord_grouping(
            validation_result["document"], address, diagnostics=diagnostics
        )

        return TimelineResponse(
            success=True,
            timeline=timeline,
            warnings=validation_result["warnings"],
            diagnostics=diagnostics.to_list(),
        )

    except json.JSONDecodeError as e:
        return json_error_response(e)

    except Exception as e:
        logger.error(f"Error during preview: {e}")
        return TimelineResponse(success=False, error=ProcessingError(
            message=f"Preview error: {str(e)}",
            suggestion="Location needs an integer sectionIndex",
        ))


def get_json_schema() -> Dict[str, Any]:
    """JSON Schema of the tab document accepted by compile_tab."""
    return create_schema()


mcp.tool()(compile_tab)
mcp.tool()(preview_chord_grouping)
mcp.tool()(get_json_schema)

# ============================================================================
#  MCP Server Startup
# ============================================================================

def main():
    """Start the MCP server in appropriate mode based on environment."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - MCP-TIMELINE - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    is_production = any([
        os.getenv('RENDER'),           # Render
        os.getenv('PORT'),             # Most cloud platforms
    ])

    try:
        if is_production:
            port = int(os.environ.get("PORT", DEFAULT_SSE_PORT))
            logger.info(f"Starting MCP server in SSE mode on port {port}")
            mcp.run(transport='sse', host="0.0.0.0", port=port)
        else:
            logger.info("Starting MCP server in stdio mode")
            mcp.run()
    except KeyboardInterrupt:
        logger.info("MCP server stopped by user")

if __name__ == "__main__":
    main()
