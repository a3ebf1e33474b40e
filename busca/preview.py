"""File preview: cached file loading plus the cursor/selection buffer.

``PreviewBuffer`` keeps the cursor inside the loaded text at all times:
``cursor_line`` is a valid line index and ``cursor_col`` a valid column of
that line (0 on empty lines). ``preferred_col`` remembers where the cursor
wants to be when vertical moves cross shorter lines.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .ansi import sanitize_styled, strip_ansi
from .text import clamp, clean_term, sanitize_display

LOGGER = logging.getLogger(__name__)

UNREADABLE_PLACEHOLDER = "[unable to read file]"
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


class Highlighter(Protocol):
    def highlight(self, path: Path, source: str) -> str | None: ...


@dataclass(frozen=True)
class FileLines:
    plain: list[str]
    color: list[str] | None = None


@dataclass(frozen=True)
class Position:
    line: int
    col: int


def split_lines(text: str) -> list[str]:
    """Split on any line-ending convention; always returns at least one line."""
    return _LINE_BREAK_RE.split(text) or [""]


def read_text(path: Path) -> str:
    """Read text using tolerant encoding fallback order.

    Attempts UTF-8, UTF-8 with BOM, then latin-1; as a final fallback decodes
    raw bytes with UTF-8 replacement semantics.
    """
    for encoding in ("utf-8", "utf-8-sig", "latin-1"):
        try:
            return path.read_text(encoding=encoding)
        except UnicodeDecodeError:
            continue
    return path.read_bytes().decode("utf-8", errors="replace")


def load_file_lines(path: Path, highlighter: Highlighter | None = None) -> FileLines:
    """Load ``path`` for preview, colorizing it when a highlighter is given.

    Read failures yield a single placeholder line. Highlighting is
    best-effort; its result is only kept when it has as many lines and the
    same visible text as the plain version, so cursor rows always line up.
    """
    try:
        source = read_text(path)
    except OSError as exc:
        LOGGER.info("cannot read %s: %s", path, exc)
        return FileLines(plain=[UNREADABLE_PLACEHOLDER])

    plain = [sanitize_display(line) for line in split_lines(source)]
    if highlighter is None:
        return FileLines(plain=plain)

    rendered = highlighter.highlight(path, "\n".join(plain))
    if rendered is None:
        return FileLines(plain=plain)
    color = [sanitize_styled(line) for line in split_lines(rendered)]
    if len(color) != len(plain):
        LOGGER.debug("dropping highlight for %s: %d vs %d lines", path, len(color), len(plain))
        return FileLines(plain=plain)
    if any(strip_ansi(styled) != text for styled, text in zip(color, plain)):
        LOGGER.debug("dropping highlight for %s: visible text differs", path)
        return FileLines(plain=plain)
    return FileLines(plain=plain, color=color)


class FileCache:
    """Loaded previews keyed by resolved absolute path."""

    def __init__(self, root: Path, highlighter: Highlighter | None = None) -> None:
        self.root = root
        self.highlighter = highlighter
        self._entries: dict[Path, FileLines] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, relative_path: str) -> FileLines:
        key = (self.root / relative_path).resolve()
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        lines = load_file_lines(key, self.highlighter)
        self._entries[key] = lines
        return lines

    def clear(self) -> None:
        self._entries.clear()


@dataclass
class PreviewBuffer:
    path: str = ""
    plain_lines: list[str] = field(default_factory=lambda: [""])
    color_lines: list[str] | None = None
    cursor_line: int = 0
    cursor_col: int = 0
    preferred_col: int = 0
    anchor: Position | None = None
    top: int = 0

    @property
    def last_line(self) -> int:
        return max(len(self.plain_lines) - 1, 0)

    def last_col(self, line: int) -> int:
        return max(len(self.plain_lines[line]) - 1, 0)

    def reset(self) -> None:
        self.load("", FileLines(plain=[""]))
        self.top = 0

    def load(self, path: str, lines: FileLines, line: int = 1, col: int = 1) -> None:
        """Show ``lines`` with the cursor on 1-based ``line``/``col``."""
        self.path = path
        self.plain_lines = lines.plain or [""]
        self.color_lines = lines.color
        self.cursor_line = clamp(line - 1, 0, self.last_line)
        self.cursor_col = clamp(col - 1, 0, self.last_col(self.cursor_line))
        self.preferred_col = self.cursor_col
        self.anchor = None

    def move_vertical(self, delta: int) -> None:
        self.cursor_line = clamp(self.cursor_line + delta, 0, self.last_line)
        self.cursor_col = clamp(self.preferred_col, 0, self.last_col(self.cursor_line))

    def move_horizontal(self, delta: int) -> None:
        self.cursor_col = clamp(self.cursor_col + delta, 0, self.last_col(self.cursor_line))
        self.preferred_col = self.cursor_col

    def toggle_anchor(self) -> None:
        if self.anchor is not None:
            self.anchor = None
        else:
            self.anchor = Position(self.cursor_line, self.cursor_col)

    def clear_anchor(self) -> None:
        self.anchor = None

    def selection_range(self) -> tuple[Position, Position] | None:
        """Return ``(start, end)`` of the anchor and cursor in document order."""
        if self.anchor is None:
            return None
        cursor = Position(self.cursor_line, self.cursor_col)
        if (self.anchor.line, self.anchor.col) > (cursor.line, cursor.col):
            return cursor, self.anchor
        return self.anchor, cursor

    def extract_selection_text(self) -> str:
        """Return the selected text flattened to one whitespace-normalized line."""
        selection = self.selection_range()
        if selection is None:
            return ""
        start, end = selection
        chunks: list[str] = []
        for idx in range(start.line, end.line + 1):
            raw = self.plain_lines[idx] if idx < len(self.plain_lines) else ""
            if not raw:
                chunks.append("")
                continue
            last = len(raw) - 1
            first_col = clamp(start.col, 0, last) if idx == start.line else 0
            last_col = clamp(end.col, 0, last) if idx == end.line else last
            if first_col <= last_col:
                chunks.append(raw[first_col : last_col + 1])
        return clean_term(" ".join(chunks))

    def selection_span(self, line: int) -> tuple[int, int] | None:
        """Return the inclusive column span selected on ``line``, if any."""
        selection = self.selection_range()
        if selection is None:
            return None
        start, end = selection
        if not start.line <= line <= end.line:
            return None
        last = self.last_col(line) if line < len(self.plain_lines) else 0
        first_col = clamp(start.col if line == start.line else 0, 0, last)
        last_col = clamp(end.col if line == end.line else last, 0, last)
        if first_col > last_col:
            return None
        return first_col, last_col
