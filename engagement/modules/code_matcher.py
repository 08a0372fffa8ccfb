"""
Code Matcher Module - Tutoring Center Engagement Core

Maps a raw scanned string onto a roster entry. Badge scanners often wrap the
student code in extra characters (prefixes, URLs, trailing newlines), so a
code contained anywhere in the scanned text also counts as a match.

Matching rules (case-insensitive, surrounding whitespace ignored):
- an exact code match always wins, wherever it sits in the roster
- otherwise the first roster entry whose code occurs inside the text wins
- students without a code never match
"""

import logging
from typing import Iterable, Optional

from engagement.modules.models import Student

logger = logging.getLogger(__name__)


def _normalize(value) -> str:
    if not isinstance(value, str):
        return ''
    return value.strip().lower()


def match_code(raw_text, roster: Iterable[Student]) -> Optional[Student]:
    """
    Find the student a scanned string belongs to.

    Args:
        raw_text: Decoded scanner text (anything that is not a string is ignored)
        roster: Students in roster order

    Returns:
        Optional[Student]: Matched student or None
    """
    needle = _normalize(raw_text)
    if not needle:
        return None

    substring_hit = None
    for student in roster:
        code = _normalize(student.code)
        if not code:
            continue
        if code == needle:
            return student
        if substring_hit is None and code in needle:
            substring_hit = student

    return substring_hit


class CodeMatcher:
    """Roster lookup used by the attendance resolver."""

    def match(self, raw_text, roster: Iterable[Student]) -> Optional[Student]:
        students = list(roster)
        student = match_code(raw_text, students)
        if student is None:
            logger.debug(f"No roster entry for scanned text {raw_text!r}")
        elif _normalize(student.code) != _normalize(raw_text):
            logger.debug(f"Scanned text {raw_text!r} matched code {student.code} by substring")
        return student
