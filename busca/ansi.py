"""ANSI-aware text measurement and line shaping utilities.

Strings are read as a stream of two token kinds: escape sequences, which take
no room on screen, and visible characters. Every helper here walks that stream
instead of slicing raw strings, so color codes produced by a highlighter are
never cut in half and never counted as width.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from .text import sanitize_display

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_SGR_RE = re.compile(r"\x1b\[[0-9;]*m")
RESET = "\x1b[0m"
_RESET_SEQUENCES = frozenset({"\x1b[m", "\x1b[0m"})


def iter_ansi_tokens(text: str) -> Iterator[tuple[bool, str]]:
    """Yield ``(is_escape, token)`` pairs; visible tokens are single characters."""
    i = 0
    n = len(text)
    while i < n:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                yield True, match.group(0)
                i = match.end()
                continue
        yield False, text[i]
        i += 1


def is_style_sequence(seq: str) -> bool:
    return _SGR_RE.fullmatch(seq) is not None


def next_active_style(active: str, seq: str) -> str:
    """Return the active style after ``seq`` has been emitted."""
    if not is_style_sequence(seq):
        return active
    if seq in _RESET_SEQUENCES:
        return ""
    return seq


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text or "")


def sanitize_styled(text: str) -> str:
    """Keep SGR color sequences and make everything else terminal-inert.

    Other escape sequences and control characters are replaced one character
    for one with ``?``, exactly like ``sanitize_display`` does for plain text,
    so the visible characters of both versions line up.
    """
    out: list[str] = []
    for is_escape, token in iter_ansi_tokens(text):
        if is_escape and is_style_sequence(token):
            out.append(token)
        else:
            out.append(sanitize_display(token))
    return "".join(out)


def visible_length(text: str) -> int:
    return sum(1 for is_escape, _ in iter_ansi_tokens(text) if not is_escape)


def truncate_visible(text: str, max_visible: int) -> str:
    """Keep at most ``max_visible`` visible characters of ``text``.

    Escape sequences before the cut are copied verbatim. When the cut lands
    while a style is still open, a reset is appended so the style cannot leak
    into whatever is drawn next.
    """
    if max_visible <= 0:
        return ""

    out: list[str] = []
    shown = 0
    active = ""
    for is_escape, token in iter_ansi_tokens(text):
        if shown >= max_visible:
            break
        out.append(token)
        if is_escape:
            active = next_active_style(active, token)
        else:
            shown += 1
    if active:
        out.append(RESET)
    return "".join(out)


def pad_to(text: str, width: int) -> str:
    """Truncate or right-pad ``text`` so it occupies exactly ``width`` cells."""
    out = text or ""
    if visible_length(out) > width:
        out = truncate_visible(out, width)
    missing = width - visible_length(out)
    if missing > 0:
        out += " " * missing
    return out


def overlay(
    base: str,
    cursor_offset: int | None = None,
    selection_start: int | None = None,
    selection_end: int | None = None,
    *,
    cursor_style: str,
    selection_style: str,
) -> str:
    """Paint a cursor cell and a selection span over an already styled line.

    Offsets are visible-character offsets; the selection span is inclusive.
    After each highlighted cell the style that was active in ``base`` is
    re-emitted, so the original coloring continues past the highlight.
    """
    has_selection = selection_start is not None and selection_end is not None
    out: list[str] = []
    active = ""
    visible = 0
    for is_escape, token in iter_ansi_tokens(base):
        if is_escape:
            active = next_active_style(active, token)
            out.append(token)
            continue
        if cursor_offset is not None and visible == cursor_offset:
            out.append(cursor_style + token + RESET + active)
        elif has_selection and selection_start <= visible <= selection_end:
            out.append(selection_style + token + RESET + active)
        else:
            out.append(token)
        visible += 1
    return "".join(out)


def highlight_positions(text: str, positions: list[int], style: str, restore: str = "") -> str:
    """Wrap characters of plain ``text`` at ``positions`` in ``style``.

    ``restore`` is re-emitted after each mark so a row-wide style survives.
    """
    if not positions:
        return text
    marks = set(positions)
    out: list[str] = []
    for idx, ch in enumerate(text):
        if idx in marks:
            out.append(style + ch + RESET + restore)
        else:
            out.append(ch)
    return "".join(out)
