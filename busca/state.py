"""The single application state record shared by every handler.

``AppState`` is created once by ``build_state`` and passed by reference to
the input controller, the renderer, and the event loop. Each subsystem owns a
disjoint slice: the session owns the running search, the match store owns the
result list and selection, and the preview buffer owns the cursor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .matches import MatchStore
from .preview import FileCache, Highlighter, PreviewBuffer
from .search import DEFAULT_MAX_RESULTS, SearchSession, spawn_rg

FOCUS_SEARCH = "search"
FOCUS_FUZZY = "fuzzy"
FOCUS_PREVIEW = "preview"
FOCUS_ORDER = (FOCUS_SEARCH, FOCUS_FUZZY, FOCUS_PREVIEW)


@dataclass
class TextField:
    """One-line editable text with a cursor offset in ``[0, len(text)]``."""

    text: str = ""
    cursor: int = 0

    def set(self, text: str) -> None:
        self.text = text
        self.cursor = len(text)

    def insert(self, chars: str) -> bool:
        if not chars:
            return False
        self.text = self.text[: self.cursor] + chars + self.text[self.cursor :]
        self.cursor += len(chars)
        return True

    def backspace(self) -> bool:
        if self.cursor <= 0:
            return False
        self.text = self.text[: self.cursor - 1] + self.text[self.cursor :]
        self.cursor -= 1
        return True

    def clear(self) -> bool:
        changed = bool(self.text)
        self.text = ""
        self.cursor = 0
        return changed

    def move(self, delta: int) -> None:
        self.cursor = min(max(self.cursor + delta, 0), len(self.text))

    def home(self) -> None:
        self.cursor = 0

    def end(self) -> None:
        self.cursor = len(self.text)


@dataclass
class AppState:
    root: Path
    matches: MatchStore
    session: SearchSession
    file_cache: FileCache
    preview: PreviewBuffer = field(default_factory=PreviewBuffer)
    focus: str = FOCUS_SEARCH
    search_field: TextField = field(default_factory=TextField)
    fuzzy_field: TextField = field(default_factory=TextField)


def build_state(
    root: Path,
    *,
    max_results: int = DEFAULT_MAX_RESULTS,
    highlighter: Highlighter | None = None,
    spawn=spawn_rg,
) -> AppState:
    """Wire the store, file cache, and search session around ``root``."""
    store = MatchStore()
    cache = FileCache(root, highlighter)
    session = SearchSession(
        root,
        store,
        max_results=max_results,
        spawn=spawn,
        on_reset=cache.clear,
    )
    return AppState(root=root, matches=store, session=session, file_cache=cache)
