"""Main interactive event loop.

Single-threaded: one ``select`` call waits on stdin and on every pipe of the
search processes that are still being drained. Keys go to the input state
machine, pipe data goes to the search session, and the screen is redrawn
whenever something changed or the terminal was resized.
"""

from __future__ import annotations

import logging
import select
import shutil
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from .config import BuscaConfig
from .controller import InputStateMachine
from .highlight import select_highlighter
from .keys import has_pending_input, read_key
from .render import render_frame
from .state import AppState, build_state
from .terminal import TerminalController

LOGGER = logging.getLogger(__name__)

IDLE_POLL_SECONDS = 0.1
DEFAULT_TERMINAL_SIZE = (100, 28)
KEY_QUIT = "CTRL_C"


def run_event_loop(
    state: AppState,
    controller: InputStateMachine,
    terminal: TerminalController,
    stdin_fd: int,
    *,
    get_terminal_size: Callable[..., object] = shutil.get_terminal_size,
    read: Callable[[int], str] = read_key,
    wait: Callable[..., tuple[list, list, list]] = select.select,
    pending: Callable[[], bool] = has_pending_input,
) -> None:
    """Run until the quit key is pressed or stdin closes."""
    last_size: tuple[int, int] | None = None
    dirty = True
    while True:
        term = get_terminal_size(DEFAULT_TERMINAL_SIZE)
        size = (term.columns, term.lines)
        if size != last_size:
            last_size = size
            dirty = True
        if controller.refresh_matches():
            dirty = True
        if dirty:
            terminal.write_frame(render_frame(state, term.lines, term.columns))
            dirty = False

        # Bytes already read ahead by the key decoder never show up in select.
        queued = pending()
        ready, _, _ = wait([stdin_fd, *state.session.watched_fds()], [], [], 0 if queued else IDLE_POLL_SECONDS)
        ready = list(ready)
        if queued and stdin_fd not in ready:
            ready.append(stdin_fd)
        for fd in ready:
            if fd != stdin_fd and state.session.pump(fd):
                dirty = True
        if stdin_fd in ready:
            key = read(stdin_fd)
            if key == KEY_QUIT or not key:
                return
            controller.handle_key(key)
            dirty = True


def _exit_on_sigterm(_signum, _frame) -> None:
    raise SystemExit(143)


def run_app(root: Path, config: BuscaConfig, no_color: bool = False) -> None:
    """Build application state for ``root`` and run the TUI until quit."""
    highlighter = None
    if not no_color:
        highlighter = select_highlighter(
            config.highlighter,
            style=config.style,
            max_bytes=config.max_highlight_bytes,
            timeout=config.highlight_timeout,
        )
    LOGGER.info(
        "starting in %s (max_results=%d, highlighter=%s)",
        root,
        config.max_results,
        getattr(highlighter, "name", "none"),
    )
    state = build_state(root, max_results=config.max_results, highlighter=highlighter)
    controller = InputStateMachine(state)
    stdin_fd = sys.stdin.fileno()
    terminal = TerminalController(stdin_fd, sys.stdout.fileno())
    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    try:
        with terminal.raw_mode():
            controller.run_search()
            run_event_loop(state, controller, terminal, stdin_fd)
    finally:
        state.session.shutdown()
