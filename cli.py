#!/usr/bin/env python3
"""
Tab Timeline Compiler - Standalone Command Line Interface
=========================================================

Compiles a tab document JSON file into its playback timeline without the MCP
server. Useful for checking what the compiler makes of a document, and for
producing golden outputs for the test suite.

Usage Examples:
    python cli.py tab.json                               # Timeline to stdout
    python cli.py tab.json timeline.json                 # Timeline to file
    python cli.py --validate tab.json                    # Validation only
    python cli.py --section 0 --subsection 1 tab.json    # Preview one subsection
    python cli.py --playback-speed 0.5 tab.json          # Half speed
    python cli.py --verbose tab.json                     # Detailed logging
"""

import sys
import json
import argparse
import logging
from pathlib import Path
from typing import Optional

from tab_models import ChordGroupingLocation, TimelineResponse
from tab_compiler import expand_full_tab, expand_specific_chord_grouping
from validation import validate_tab_document
from diagnostics import DiagnosticLog

# ============================================================================
# Cross-Platform Compatibility Setup
# ============================================================================

def setup_cross_platform_environment():
    """Force UTF-8 console output on Windows."""
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')

def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure logging for CLI usage.

    Logs go to stderr so stdout only ever carries the timeline JSON.
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - TIMELINE-CLI - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Tab Timeline Compiler CLI starting (verbose={'on' if verbose else 'off'})")
    return logger

# ============================================================================
# File I/O Operations
# ============================================================================

def load_json_file(file_path: Path, logger: logging.Logger) -> Optional[dict]:
    """
    Load and parse a JSON file, printing a readable error on failure.

    On a syntax error the offending line is echoed with a pointer under the
    column, since a human is reading this.
    """
    logger.debug(f"Loading JSON file: {file_path}")

    if not file_path.exists():
        logger.error(f"Input file not found: {file_path}")
        print(f"Error: Input file '{file_path}' does not exist.", file=sys.stderr)
        return None

    if not file_path.is_file():
        logger.error(f"Path is not a file: {file_path}")
        print(f"Error: '{file_path}' is not a regular file.", file=sys.stderr)
        return None

    try:
        text = file_path.read_text(encoding='utf-8')
    except UnicodeDecodeError as e:
        logger.error(f"Unicode decoding failed: {e}")
        print(f"Error: Cannot read '{file_path}' - file encoding issue.", file=sys.stderr)
        print("  Try saving the file as UTF-8 encoding.", file=sys.stderr)
        return None
    except OSError as e:
        logger.error(f"Unexpected error loading file: {e}")
        print(f"Error: Cannot read '{file_path}': {e}", file=sys.stderr)
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing failed: {e}")
        print(f"Error: Invalid JSON in '{file_path}':", file=sys.stderr)
        print(f"  Line {e.lineno}, Column {e.colno}: {e.msg}", file=sys.stderr)

        lines = text.splitlines()
        if e.lineno <= len(lines):
            print(f"  >>> {lines[e.lineno - 1].rstrip()}", file=sys.stderr)
            if e.colno > 0:
                print(" " * (e.colno - 1 + 6) + "^", file=sys.stderr)
        return None

    logger.debug(f"Successfully loaded JSON with {len(data)} top-level keys")
    return data

def save_output_file(content: str, file_path: Path, logger: logging.Logger) -> bool:
    """Write the timeline JSON, creating parent directories as needed."""
    logger.debug(f"Saving output to: {file_path}")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding='utf-8')
        logger.info(f"Timeline successfully saved to: {file_path}")
        return True

    except PermissionError:
        logger.error(f"Permission denied writing to: {file_path}")
        print(f"Error: Permission denied writing to '{file_path}'.", file=sys.stderr)
        print("  Check file permissions and try again.", file=sys.stderr)
        return False

    except OSError as e:
        logger.error(f"OS error writing file: {e}")
        print(f"Error: Cannot write to '{file_path}': {e}", file=sys.stderr)
        return False

# ============================================================================
# Compilation Pipeline
# ============================================================================

def print_validation_error(error: dict):
    print("Validation Error:", file=sys.stderr)
    print(f"  Type: {error.get('errorType', 'unknown')}", file=sys.stderr)
    if 'section' in error:
        print(f"  Section: {error['section']}", file=sys.stderr)
    if 'subSection' in error:
        print(f"  Subsection: {error['subSection']}", file=sys.stderr)
    print(f"  Problem: {error['message']}", file=sys.stderr)
    print(f"  Solution: {error['suggestion']}", file=sys.stderr)

def build_location(args: argparse.Namespace) -> Optional[ChordGroupingLocation]:
    """Preview address from the flags, None for a full-tab compile."""
    if args.section is None:
        return None
    return ChordGroupingLocation(
        sectionIndex=args.section,
        subSectionIndex=args.subsection,
        chordSequenceIndex=args.chord_sequence,
    )

def process_timeline(data: dict, logger: logging.Logger, validate_only: bool = False,
                     location: Optional[ChordGroupingLocation] = None,
                     playback_speed: float = 1.0) -> Optional[str]:
    """
    Validate and compile ``data``.

    Returns the response JSON, an empty string after a successful
    validation-only run, or None when validation failed.
    """
    logger.debug("Running validation pipeline")
    diagnostics = DiagnosticLog()
    validation_result = validate_tab_document(data, diagnostics=diagnostics)

    if validation_result["isError"]:
        logger.error("Validation failed")
        print_validation_error(validation_result)
        return None

    warnings = validation_result["warnings"]
    for warning in warnings:
        print(f"Warning: {warning['message']} ({warning['suggestion']})", file=sys.stderr)

    if validate_only:
        print("✓ Validation successful - input file is valid", file=sys.stderr)
        return ""

    document = validation_result["document"]
    if location is None:
        logger.debug("Compiling full tab")
        timeline = expand_full_tab(document, playback_speed=playback_speed,
                                   diagnostics=diagnostics)
    else:
        logger.debug(f"Compiling preview at {location.model_dump(exclude_none=True)}")
        timeline = expand_specific_chord_grouping(document, location,
                                                  playback_speed=playback_speed,
                                                  diagnostics=diagnostics)

    logger.info(f"Compiled {len(timeline.metadata)} metadata entries, "
                f"{timeline.duration_seconds:g}s")

    response = TimelineResponse(
        success=True,
        timeline=timeline,
        warnings=warnings,
        diagnostics=diagnostics.to_list(),
    )
    return response.model_dump_json(indent=2, exclude_none=True)

# ============================================================================
# Command Line Interface
# ============================================================================

def positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number

def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile a tab document into its playback timeline",
        epilog="""
Examples:
  %(prog)s tab.json                              # Timeline to console
  %(prog)s tab.json timeline.json                # Save timeline to file
  %(prog)s --validate tab.json                   # Check input validity only
  %(prog)s --section 1 --subsection 0 tab.json   # Preview a single subsection
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        'input_file',
        type=Path,
        help='JSON file containing the tab document'
    )

    parser.add_argument(
        'output_file',
        type=Path,
        nargs='?',
        help='Output file for the compiled timeline (default: print to console)'
    )

    parser.add_argument(
        '--validate',
        action='store_true',
        help='Validate input file without compiling'
    )

    parser.add_argument(
        '--section',
        type=int,
        help='Compile only this section (index) for preview'
    )

    parser.add_argument(
        '--subsection',
        type=int,
        help='With --section, compile only this subsection (index)'
    )

    parser.add_argument(
        '--chord-sequence',
        type=int,
        help='With --subsection, compile only this chord sequence (index)'
    )

    parser.add_argument(
        '--playback-speed',
        type=positive_float,
        default=1.0,
        help='Tempo scale applied to every duration (default: 1.0)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging for debugging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version='Tab Timeline Compiler 0.1.0'
    )

    return parser

def main(argv=None) -> int:
    """
    CLI entry point.

    Exit codes:
    - 0: Success
    - 1: Input/output errors
    - 2: Validation errors
    """
    setup_cross_platform_environment()

    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if args.subsection is not None and args.section is None:
        parser.error("--subsection requires --section")
    if args.chord_sequence is not None and args.subsection is None:
        parser.error("--chord-sequence requires --subsection")

    logger = setup_logging(args.verbose)

    logger.info(f"Loading input file: {args.input_file}")
    data = load_json_file(args.input_file, logger)
    if data is None:
        return 1

    output = process_timeline(data, logger, args.validate, build_location(args),
                              args.playback_speed)
    if output is None:
        return 2

    if args.validate:
        logger.info("Validation completed successfully")
        return 0

    if args.output_file:
        if not save_output_file(output, args.output_file, logger):
            return 1
        print(f"✓ Timeline compiled successfully: {args.output_file}")
        return 0

    print(output)
    logger.info("Timeline sent to console")
    return 0

# ============================================================================
# Entry Point
# ============================================================================

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        sys.exit(1)
