"""Small plain-text helpers shared by the fields, preview, and renderer."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f-\x9f]")
TAB_WIDTH = 2


def clamp(value: int, low: int, high: int) -> int:
    return min(high, max(low, value))


def clean_term(value: str) -> str:
    """Collapse runs of whitespace (newlines included) to one space and trim."""
    return _WHITESPACE_RE.sub(" ", value or "").strip()


def expand_tabs(value: str) -> str:
    return value.replace("\t", " " * TAB_WIDTH)


def expanded_col(line: str, col: int) -> int:
    """Map a character column in ``line`` to its column after tab expansion."""
    return col + line.count("\t", 0, max(col, 0)) * (TAB_WIDTH - 1)


def sanitize_display(value: str) -> str:
    """Replace control bytes with ``?`` so text cannot drive the terminal.

    Tabs are kept; one character in always maps to one character out, so
    column arithmetic on the original text stays valid.
    """
    if _CONTROL_RE.search(value) is None:
        return value
    return _CONTROL_RE.sub("?", value)


def expanded_span(line: str, first: int, last: int) -> tuple[int, int]:
    """Map an inclusive character span to display columns after tab expansion.

    A tab at ``last`` covers all of its expanded cells.
    """
    end = expanded_col(line, last)
    if 0 <= last < len(line) and line[last] == "\t":
        end += TAB_WIDTH - 1
    return expanded_col(line, first), end
