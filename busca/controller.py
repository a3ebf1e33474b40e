"""Keyboard dispatch across the search, fuzzy, and preview panels.

The focus-switch key is handled before anything else; every other key goes
to the handler of the focused panel. Handlers mutate ``AppState`` in place
and never draw; the event loop redraws after each key.
"""

from __future__ import annotations

import logging

from .matches import Match
from .state import (
    FOCUS_FUZZY,
    FOCUS_ORDER,
    FOCUS_PREVIEW,
    FOCUS_SEARCH,
    AppState,
    TextField,
)
from .text import clean_term

LOGGER = logging.getLogger(__name__)

KEY_FOCUS = "TAB"
KEY_CONFIRM = "ENTER"
KEY_CANCEL = "ESC"
KEY_TOGGLE_SELECTION = "v"

_PREVIEW_MOVES = {
    "UP": (-1, 0),
    "k": (-1, 0),
    "DOWN": (1, 0),
    "j": (1, 0),
    "LEFT": (0, -1),
    "h": (0, -1),
    "RIGHT": (0, 1),
    "l": (0, 1),
}


def edit_text_field(text_field: TextField, key: str) -> bool:
    """Apply one editing key to ``text_field``; return whether its text changed."""
    if key == "BACKSPACE":
        return text_field.backspace()
    if key == "CTRL_U":
        return text_field.clear()
    if key == "LEFT":
        text_field.move(-1)
        return False
    if key == "RIGHT":
        text_field.move(1)
        return False
    if key in {"HOME", "CTRL_A"}:
        text_field.home()
        return False
    if key in {"END", "CTRL_E"}:
        text_field.end()
        return False
    if len(key) == 1 and key.isprintable():
        return text_field.insert(key)
    return False


class InputStateMachine:
    """Route key tokens to per-panel handlers and keep the preview in sync."""

    def __init__(self, state: AppState) -> None:
        self.state = state
        self._synced_match: Match | None = None

    def handle_key(self, key: str) -> None:
        if key == KEY_FOCUS:
            self.cycle_focus()
            return
        if self.state.focus == FOCUS_SEARCH:
            self._handle_search_key(key)
        elif self.state.focus == FOCUS_FUZZY:
            self._handle_fuzzy_key(key)
        else:
            self._handle_preview_key(key)

    def cycle_focus(self) -> None:
        idx = FOCUS_ORDER.index(self.state.focus)
        self.state.focus = FOCUS_ORDER[(idx + 1) % len(FOCUS_ORDER)]

    def run_search(self) -> None:
        """Start a search for the normalized search-field text."""
        state = self.state
        term = clean_term(state.search_field.text)
        state.search_field.set(term)
        state.fuzzy_field.clear()
        state.session.start(term)
        self.apply_fuzzy_filter()

    def apply_fuzzy_filter(self) -> None:
        self.state.matches.set_query(self.state.fuzzy_field.text)
        self.sync_preview(force=True)

    def refresh_matches(self) -> bool:
        """Fold newly streamed matches into the ranked view if any arrived."""
        if not self.state.matches.stale:
            return False
        self.state.matches.refresh()
        self.sync_preview()
        return True

    def sync_preview(self, force: bool = False) -> None:
        """Load the selected match into the preview.

        Without ``force`` the preview is left alone while the selected match
        is unchanged, so streaming results do not reset the cursor.
        """
        state = self.state
        current = state.matches.current()
        if current is None:
            if self._synced_match is not None or force:
                state.preview.reset()
            self._synced_match = None
            return
        match = current.match
        if not force and match is self._synced_match:
            return
        self._synced_match = match
        lines = state.file_cache.get(match.file)
        state.preview.load(match.file, lines, match.line, match.col)

    def _handle_search_key(self, key: str) -> None:
        if key == KEY_CONFIRM:
            self.run_search()
            self.state.focus = FOCUS_FUZZY
            return
        edit_text_field(self.state.search_field, key)

    def _handle_fuzzy_key(self, key: str) -> None:
        state = self.state
        if key in {"UP", "DOWN"}:
            state.matches.move_selection(-1 if key == "UP" else 1)
            self.sync_preview(force=True)
            return
        if key == KEY_CONFIRM:
            state.focus = FOCUS_PREVIEW
            return
        if edit_text_field(state.fuzzy_field, key):
            self.apply_fuzzy_filter()

    def _handle_preview_key(self, key: str) -> None:
        preview = self.state.preview
        move = _PREVIEW_MOVES.get(key)
        if move is not None:
            delta_line, delta_col = move
            if delta_line:
                preview.move_vertical(delta_line)
            else:
                preview.move_horizontal(delta_col)
            return
        if key == KEY_TOGGLE_SELECTION:
            preview.toggle_anchor()
            return
        if key == KEY_CANCEL:
            preview.clear_anchor()
            return
        if key == KEY_CONFIRM and preview.anchor is not None:
            text = preview.extract_selection_text()
            if text:
                LOGGER.debug("searching for selected preview text %r", text)
                self.state.search_field.set(text)
                self.run_search()
                self.state.focus = FOCUS_FUZZY
            preview.clear_anchor()
