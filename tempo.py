"""
Tempo resolution.

A unit's tempo cascades: chord sequence, then subsection, then the tab's
baseline BPM. ``None`` (stored as the sentinel -1) at any level means
"inherit from the enclosing level".
"""

from typing import Optional, Union

from tab_constants import BPM_SENTINEL

BpmValue = Union[int, float, str, None]


def is_bpm_set(bpm: BpmValue) -> bool:
    """
    True when ``bpm`` carries an explicit tempo.

    None, empty strings, the sentinel and anything that is not a positive
    number all count as unset.
    """
    if bpm is None:
        return False
    try:
        value = float(bpm.strip() if isinstance(bpm, str) else bpm)
    except (TypeError, ValueError):
        return False
    return value != BPM_SENTINEL and value > 0


def resolve_bpm(override: BpmValue, enclosing: float) -> float:
    """
    Return ``override`` when it is set, else the enclosing scope's tempo.

    Example:
        resolve_bpm(None, 120)   # 120.0
        resolve_bpm(-1, 120)     # 120.0
        resolve_bpm(90, 120)     # 90.0
    """
    if is_bpm_set(override):
        return float(override)
    return float(enclosing)


def resolve_measure_line_bpm(override: BpmValue, subsection_bpm: float) -> float:
    """
    Tempo in effect after a measure line.

    An explicit override replaces the current tempo. An unset override resets
    to the subsection's own tempo, not to whatever an earlier measure line
    had set.
    """
    return resolve_bpm(override, subsection_bpm)


def resolve_subsection_bpm(subsection_bpm: Optional[float], baseline_bpm: float) -> float:
    return resolve_bpm(subsection_bpm, baseline_bpm)
