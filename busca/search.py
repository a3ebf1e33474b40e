"""Streaming ripgrep runs for the match list.

One ``SearchSession`` owns every ``rg`` process it has spawned. Only the most
recent run is authoritative: each run is tagged with the sequence number that
was current when it started, and every callback compares that tag with
``SearchSession.sequence`` before touching shared state. Superseded runs are
terminated but still drained until their pipes close, so their late output is
provably ignored and the child is reaped.

The session never blocks. The event loop asks for ``watched_fds()``, waits on
them with ``select`` and hands each readable descriptor to ``pump()``.
"""

from __future__ import annotations

import codecs
import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .matches import MatchStore, parse_rg_record
from .text import clean_term

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50_000
STDERR_LIMIT = 8192
READ_CHUNK_BYTES = 64 * 1024
SUCCESS_EXIT_CODES = (0, 1)

PHASE_IDLE = "idle"
PHASE_STREAMING = "streaming"
PHASE_COMPLETED = "completed"
PHASE_CAPPED = "capped"
PHASE_ERRORED = "errored"


def build_rg_command(term: str) -> list[str]:
    return [
        "rg",
        "-i",
        "--no-ignore",
        "--json",
        "--line-number",
        "--column",
        "--no-heading",
        "--color=never",
        "--",
        term,
        ".",
    ]


def spawn_rg(cmd: list[str], cwd: Path) -> subprocess.Popen:
    return subprocess.Popen(
        cmd,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


@dataclass
class _Run:
    """Pipes of one spawned process that are still being drained."""

    seq: int
    process: Any
    pipes: dict[int, tuple[str, Any]] = field(default_factory=dict)
    decoders: dict[int, codecs.IncrementalDecoder] = field(default_factory=dict)


class SearchSession:
    """Own the active ``rg`` run and feed its matches into a ``MatchStore``."""

    def __init__(
        self,
        root: Path,
        store: MatchStore,
        *,
        max_results: int = DEFAULT_MAX_RESULTS,
        spawn: Callable[[list[str], Path], Any] = spawn_rg,
        on_reset: Callable[[], None] | None = None,
    ) -> None:
        self.root = root
        self.store = store
        self.max_results = max_results
        self.sequence = 0
        self.process: Any = None
        self.capped = False
        self.phase = PHASE_IDLE
        self.status = "Set rg term in top field, press Enter, then use fuzzy filter."
        self.ignored_records = 0
        self._spawn = spawn
        self._on_reset = on_reset
        self._remainder = ""
        self._stderr_text = ""
        self._runs: list[_Run] = []

    def start(self, query: str) -> int:
        """Supersede any running search and start a new one for ``query``.

        Returns the sequence number of the new run. An empty query (after
        whitespace normalization) only clears the results.
        """
        term = clean_term(query)
        self.sequence += 1
        seq = self.sequence
        self._terminate_current()
        self.store.clear()
        if self._on_reset is not None:
            self._on_reset()
        self.capped = False
        self.ignored_records = 0
        self._remainder = ""
        self._stderr_text = ""

        if not term:
            self.phase = PHASE_IDLE
            self.status = "RG term is empty."
            return seq

        LOGGER.debug("starting rg run %d for %r in %s", seq, term, self.root)
        try:
            process = self._spawn(build_rg_command(term), self.root)
        except OSError as exc:
            self.handle_error(seq, exc)
            return seq

        run = _Run(seq=seq, process=process)
        for kind, pipe in (("stdout", process.stdout), ("stderr", process.stderr)):
            if pipe is None:
                continue
            fd = pipe.fileno()
            run.pipes[fd] = (kind, pipe)
            run.decoders[fd] = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._runs.append(run)
        self.process = process
        self.phase = PHASE_STREAMING
        self.status = "rg searching..."
        return seq

    def shutdown(self) -> None:
        """Terminate and reap every process this session still tracks."""
        self.sequence += 1
        self.process = None
        for run in self._runs:
            if run.process.poll() is None:
                run.process.terminate()
            for _kind, pipe in run.pipes.values():
                pipe.close()
            try:
                run.process.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                run.process.kill()
                run.process.wait()
        self._runs = []

    def _terminate_current(self) -> None:
        process = self.process
        self.process = None
        if process is not None and process.poll() is None:
            LOGGER.debug("terminating superseded rg process %s", getattr(process, "pid", "?"))
            process.terminate()

    def watched_fds(self) -> list[int]:
        return [fd for run in self._runs for fd in run.pipes]

    def pump(self, fd: int, read: Callable[[int, int], bytes] = os.read) -> bool:
        """Read once from ``fd`` and dispatch the result to its run's callbacks.

        Returns whether the authoritative state changed.
        """
        run = next((item for item in self._runs if fd in item.pipes), None)
        if run is None:
            return False
        kind, pipe = run.pipes[fd]
        data = read(fd, READ_CHUNK_BYTES)
        decoder = run.decoders[fd]
        changed = False
        if data:
            text = decoder.decode(data)
            if text:
                changed = self._dispatch(run.seq, kind, text)
            return changed

        tail = decoder.decode(b"", final=True)
        if tail:
            changed = self._dispatch(run.seq, kind, tail)
        del run.pipes[fd]
        pipe.close()
        if not run.pipes:
            self._runs.remove(run)
            code = run.process.wait()
            changed = self.handle_close(run.seq, code) or changed
        return changed

    def _dispatch(self, seq: int, kind: str, text: str) -> bool:
        if kind == "stdout":
            return self.handle_stdout(seq, text)
        return self.handle_stderr(seq, text)

    def handle_stdout(self, seq: int, chunk: str) -> bool:
        """Consume a stdout chunk, appending every complete match record."""
        if seq != self.sequence or self.capped:
            return False
        records = (self._remainder + chunk).split("\n")
        self._remainder = records.pop()
        appended = False
        for raw in records:
            if self._append_record(raw.rstrip("\r")):
                appended = True
            if len(self.store.all_matches) >= self.max_results:
                self._hit_cap()
                break
        return appended

    def handle_stderr(self, seq: int, chunk: str) -> bool:
        if seq != self.sequence:
            return False
        if len(self._stderr_text) < STDERR_LIMIT:
            self._stderr_text = (self._stderr_text + chunk)[:STDERR_LIMIT]
        return False

    def handle_error(self, seq: int, exc: BaseException) -> bool:
        if seq != self.sequence:
            return False
        self.process = None
        self.phase = PHASE_ERRORED
        self.status = f"rg failed: {exc}"
        LOGGER.warning("rg run %d failed: %s", seq, exc)
        return True

    def handle_close(self, seq: int, code: int | None) -> bool:
        if seq != self.sequence:
            LOGGER.debug("ignoring exit of superseded rg run %d", seq)
            return False
        self.process = None

        tail = self._remainder.strip()
        self._remainder = ""
        if tail and not self.capped and len(self.store.all_matches) < self.max_results:
            self._append_record(tail)

        if self.capped:
            self.phase = PHASE_CAPPED
            self.status = f"rg matches capped at {self.max_results}"
        elif (code or 0) not in SUCCESS_EXIT_CODES:
            self.phase = PHASE_ERRORED
            self.status = clean_term(self._stderr_text) or f"rg exited with status {code}"
        else:
            self.phase = PHASE_COMPLETED
            self.status = f"rg matches: {len(self.store.all_matches)}"
        LOGGER.info(
            "rg run %d finished (%s): %d matches, %d ignored records",
            seq,
            self.phase,
            len(self.store.all_matches),
            self.ignored_records,
        )
        return True

    def _append_record(self, raw: str) -> bool:
        if not raw:
            return False
        match = parse_rg_record(raw)
        if match is None:
            self.ignored_records += 1
            return False
        self.store.append(match)
        return True

    def _hit_cap(self) -> None:
        self.capped = True
        self._remainder = ""
        process = self.process
        if process is not None and process.poll() is None:
            process.terminate()
