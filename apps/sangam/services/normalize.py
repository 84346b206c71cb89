"""Deterministic text normalization for embedding inputs.

Whitespace here is the ASCII set only. The backlog query in repo.py uses
NON_BLANK_PATTERN as a Postgres regex, so "blank" means the same thing in SQL
and in Python.
"""

import re

MAX_NORMALIZED_CHARS = 15000

WHITESPACE = " \t\n\r\f\v"
NON_BLANK_PATTERN = r"[^ \t\n\r\f\v]"

_WHITESPACE_RUN = re.compile(r"[ \t\n\r\f\v]+")
_NON_BLANK = re.compile(NON_BLANK_PATTERN)


def has_text(text: str | None) -> bool:
    """True iff text has at least one non-whitespace character."""
    return bool(text) and _NON_BLANK.search(text) is not None


def normalize_text(text: str | None, max_chars: int = MAX_NORMALIZED_CHARS) -> str:
    """
    Normalize text before embedding.
    - strip
    - collapse any whitespace run (spaces, tabs, newlines) to a single space
    - cap at max_chars
    """
    if not text:
        return ""
    s = _WHITESPACE_RUN.sub(" ", text.strip(WHITESPACE))
    return s[:max_chars]
