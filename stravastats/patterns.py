from __future__ import annotations

import re
from typing import Optional, Tuple

# digits with optional thousands separators and decimal part, then mi/km
_NUMBER = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"
_UNIT = r"mi|km"
_CLOCK = r"\d{1,2}:\d{2}:\d{2}"

DISTANCE_RE = re.compile(rf"(?<![\w.,])({_NUMBER})\s*({_UNIT})(?![\w])", re.IGNORECASE)
DURATION_RE = re.compile(rf"(?<![\d:])({_CLOCK})(?![\d:])")

DISTANCE_LINE_RE = re.compile(rf"^({_NUMBER})\s*({_UNIT})$", re.IGNORECASE)
DURATION_LINE_RE = re.compile(rf"^({_CLOCK})$")


def find_distance(text: str) -> Optional[Tuple[str, str]]:
    """Return ``(value, unit)`` of the first distance token in ``text``."""
    match = DISTANCE_RE.search(text)
    if match is None:
        return None
    return match.group(1), match.group(2)


def find_duration(text: str) -> Optional[str]:
    """Return the first ``H:MM:SS`` / ``HH:MM:SS`` token in ``text``."""
    match = DURATION_RE.search(text)
    return match.group(1) if match else None


def match_distance_line(line: str) -> Optional[Tuple[str, str]]:
    match = DISTANCE_LINE_RE.match(line)
    if match is None:
        return None
    return match.group(1), match.group(2)


def match_duration_line(line: str) -> Optional[str]:
    match = DURATION_LINE_RE.match(line)
    return match.group(1) if match else None
