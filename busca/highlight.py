"""Syntax highlighters for the preview pane.

``bat`` is preferred when it is installed; Pygments is the in-process
fallback. Every highlighter returns ``None`` on any failure so the preview
silently falls back to plain text.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_HIGHLIGHT_BYTES = 2 * 1024 * 1024
DEFAULT_HIGHLIGHT_TIMEOUT = 5.0
DEFAULT_STYLE = "monokai"
HIGHLIGHTER_CHOICES = ("auto", "bat", "pygments", "none")

_PYGMENTS_READY = False
_PYGMENTS_AVAILABLE = False
_PYGMENTS_HIGHLIGHT = None
_PYGMENTS_GET_LEXER_FOR_FILENAME = None
_PYGMENTS_TEXT_LEXER = None
_PYGMENTS_TERMINAL_FORMATTER = None
_PYGMENTS_GET_STYLE_BY_NAME = None
_PYGMENTS_FORMATTERS: dict[str, object] = {}


def highlight_allowed(path: Path, max_bytes: int) -> bool:
    """Return whether ``path`` is a regular file no larger than ``max_bytes``."""
    try:
        return path.is_file() and path.stat().st_size <= max_bytes
    except OSError:
        return False


class BatHighlighter:
    """Color a file by running ``bat`` on it."""

    name = "bat"

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_HIGHLIGHT_BYTES,
        timeout: float = DEFAULT_HIGHLIGHT_TIMEOUT,
        executable: str = "bat",
    ) -> None:
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.executable = executable

    def command(self, path: Path) -> list[str]:
        return [self.executable, "--color=always", "--style=plain", "--paging=never", "--tabs=0", "--", str(path)]

    def highlight(self, path: Path, source: str) -> str | None:
        if not highlight_allowed(path, self.max_bytes):
            return None
        try:
            proc = subprocess.run(
                self.command(path),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            LOGGER.debug("bat failed for %s: %s", path, exc)
            return None
        if proc.returncode != 0:
            LOGGER.debug("bat exited with %s for %s", proc.returncode, path)
            return None
        return proc.stdout


def _ensure_pygments_loaded() -> bool:
    """Lazily import and cache Pygments callables.

    Returns whether Pygments is available in the runtime environment.
    """
    global _PYGMENTS_READY
    global _PYGMENTS_AVAILABLE
    global _PYGMENTS_HIGHLIGHT
    global _PYGMENTS_GET_LEXER_FOR_FILENAME
    global _PYGMENTS_TEXT_LEXER
    global _PYGMENTS_TERMINAL_FORMATTER
    global _PYGMENTS_GET_STYLE_BY_NAME

    if _PYGMENTS_READY:
        return _PYGMENTS_AVAILABLE

    _PYGMENTS_READY = True
    try:
        from pygments import highlight as pygments_highlight
        from pygments.formatters import TerminalFormatter
        from pygments.lexers import TextLexer, get_lexer_for_filename
        from pygments.styles import get_style_by_name
    except ImportError:
        _PYGMENTS_AVAILABLE = False
        return False

    _PYGMENTS_HIGHLIGHT = pygments_highlight
    _PYGMENTS_GET_LEXER_FOR_FILENAME = get_lexer_for_filename
    _PYGMENTS_TEXT_LEXER = TextLexer
    _PYGMENTS_TERMINAL_FORMATTER = TerminalFormatter
    _PYGMENTS_GET_STYLE_BY_NAME = get_style_by_name
    _PYGMENTS_AVAILABLE = True
    return True


def _formatter_for_style(style: str):
    """Return a cached terminal formatter, falling back to the default style."""
    formatter = _PYGMENTS_FORMATTERS.get(style)
    if formatter is not None:
        return formatter
    assert _PYGMENTS_GET_STYLE_BY_NAME is not None
    assert _PYGMENTS_TERMINAL_FORMATTER is not None
    try:
        _PYGMENTS_GET_STYLE_BY_NAME(style)
        formatter = _PYGMENTS_TERMINAL_FORMATTER(style=style)
    except Exception:
        formatter = _PYGMENTS_TERMINAL_FORMATTER(style=DEFAULT_STYLE)
    _PYGMENTS_FORMATTERS[style] = formatter
    return formatter


class PygmentsHighlighter:
    """Color source text in-process with Pygments."""

    name = "pygments"

    def __init__(self, style: str = DEFAULT_STYLE, max_bytes: int = DEFAULT_MAX_HIGHLIGHT_BYTES) -> None:
        self.style = style
        self.max_bytes = max_bytes

    def highlight(self, path: Path, source: str) -> str | None:
        if not highlight_allowed(path, self.max_bytes):
            return None
        if not _ensure_pygments_loaded():
            return None
        formatter = _formatter_for_style(self.style)
        try:
            assert _PYGMENTS_GET_LEXER_FOR_FILENAME is not None
            lexer = _PYGMENTS_GET_LEXER_FOR_FILENAME(path.name, source, stripnl=False, ensurenl=False)
        except Exception:
            assert _PYGMENTS_TEXT_LEXER is not None
            lexer = _PYGMENTS_TEXT_LEXER(stripnl=False, ensurenl=False)
        try:
            assert _PYGMENTS_HIGHLIGHT is not None
            return _PYGMENTS_HIGHLIGHT(source, lexer, formatter)
        except Exception as exc:
            LOGGER.debug("pygments failed for %s: %s", path, exc)
            return None


def select_highlighter(
    name: str,
    *,
    style: str = DEFAULT_STYLE,
    max_bytes: int = DEFAULT_MAX_HIGHLIGHT_BYTES,
    timeout: float = DEFAULT_HIGHLIGHT_TIMEOUT,
    which=shutil.which,
):
    """Resolve a highlighter choice (see ``HIGHLIGHTER_CHOICES``) to an instance.

    ``auto`` picks ``bat`` when it is on ``PATH`` and Pygments otherwise.
    ``none`` and an explicit ``bat`` that is not installed return ``None``.
    """
    if name == "none":
        return None
    if name == "bat" or (name == "auto" and which("bat") is not None):
        if which("bat") is None:
            return None
        return BatHighlighter(max_bytes=max_bytes, timeout=timeout)
    return PygmentsHighlighter(style=style, max_bytes=max_bytes)
