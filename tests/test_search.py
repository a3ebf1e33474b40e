"""Streaming search session tests.

A fake process stands in for ``rg`` so every event (stdout chunk, stderr,
exit) can be delivered in a chosen order, including late events from runs
that have already been superseded.
"""

from __future__ import annotations

import itertools
import json
import os
import unittest
from pathlib import Path

from busca import search as search_mod
from busca.matches import MatchStore
from busca.search import SearchSession

_FDS = itertools.count(1000)


def rg_record(path: str, line: int = 1, text: str = "hello") -> str:
    return json.dumps(
        {
            "type": "match",
            "data": {
                "path": {"text": path},
                "lines": {"text": text + "\n"},
                "line_number": line,
                "submatches": [{"start": 0, "end": 1}],
            },
        },
        ensure_ascii=False,
    )


class FakePipe:
    def __init__(self) -> None:
        self.fd = next(_FDS)
        self.closed = False

    def fileno(self) -> int:
        return self.fd

    def close(self) -> None:
        self.closed = True


class FakeProcess:
    def __init__(self, cmd: list[str], cwd: Path) -> None:
        self.cmd = cmd
        self.cwd = cwd
        self.stdout = FakePipe()
        self.stderr = FakePipe()
        self.returncode: int | None = None
        self.terminated = False

    def poll(self) -> int | None:
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15

    def kill(self) -> None:
        self.returncode = -9

    def wait(self, timeout: float | None = None) -> int:
        if self.returncode is None:
            self.returncode = 0
        return self.returncode


class FakeSpawner:
    def __init__(self) -> None:
        self.processes: list[FakeProcess] = []

    def __call__(self, cmd: list[str], cwd: Path) -> FakeProcess:
        process = FakeProcess(cmd, cwd)
        self.processes.append(process)
        return process


class SearchSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MatchStore()
        self.spawner = FakeSpawner()
        self.resets = 0

        def on_reset() -> None:
            self.resets += 1

        self.session = SearchSession(
            Path("/project"),
            self.store,
            max_results=100,
            spawn=self.spawner,
            on_reset=on_reset,
        )

    def test_build_rg_command_passes_term_after_separator(self) -> None:
        cmd = search_mod.build_rg_command("-v needle")
        self.assertEqual(cmd[:4], ["rg", "-i", "--no-ignore", "--json"])
        self.assertEqual(cmd[-3:], ["--", "-v needle", "."])

    def test_start_spawns_in_root_and_reports_searching(self) -> None:
        seq = self.session.start("  needle \n ")

        self.assertEqual(seq, 1)
        process = self.spawner.processes[0]
        self.assertEqual(process.cmd[-2], "needle")
        self.assertEqual(process.cwd, Path("/project"))
        self.assertEqual(self.session.status, "rg searching...")
        self.assertEqual(self.session.phase, search_mod.PHASE_STREAMING)
        self.assertEqual(sorted(self.session.watched_fds()), sorted([process.stdout.fd, process.stderr.fd]))
        self.assertEqual(self.resets, 1)

    def test_empty_term_clears_without_spawning(self) -> None:
        self.session.start("needle")
        self.session.handle_stdout(1, rg_record("a.txt") + "\n")
        self.session.start("   ")

        self.assertEqual(len(self.spawner.processes), 1)
        self.assertTrue(self.spawner.processes[0].terminated)
        self.assertEqual(self.store.all_matches, [])
        self.assertEqual(self.session.status, "RG term is empty.")
        self.assertEqual(self.session.phase, search_mod.PHASE_IDLE)

    def test_records_split_across_chunks_are_joined(self) -> None:
        seq = self.session.start("hello")
        record = rg_record("./a.txt", line=7)

        self.assertFalse(self.session.handle_stdout(seq, record[:10]))
        self.assertTrue(self.session.handle_stdout(seq, record[10:] + "\n" + rg_record("b.txt")[:5]))

        self.assertEqual([m.file for m in self.store.all_matches], ["a.txt"])
        self.assertEqual(self.store.all_matches[0].line, 7)

    def test_unterminated_last_record_is_parsed_on_close(self) -> None:
        seq = self.session.start("hello")
        self.session.handle_stdout(seq, rg_record("a.txt"))
        self.assertEqual(self.store.all_matches, [])

        self.assertTrue(self.session.handle_close(seq, 0))

        self.assertEqual(len(self.store.all_matches), 1)
        self.assertEqual(self.session.status, "rg matches: 1")
        self.assertEqual(self.session.phase, search_mod.PHASE_COMPLETED)

    def test_non_match_and_malformed_records_are_counted_not_kept(self) -> None:
        seq = self.session.start("hello")
        begin = json.dumps({"type": "begin", "data": {"path": {"text": "a.txt"}}})
        self.session.handle_stdout(seq, f"{begin}\n{{broken\n{rg_record('a.txt')}\n")
        self.session.handle_close(seq, 0)

        self.assertEqual(len(self.store.all_matches), 1)
        self.assertEqual(self.session.ignored_records, 2)

    def test_cap_stops_at_limit_and_terminates_process(self) -> None:
        session = SearchSession(Path("/project"), self.store, max_results=50_000, spawn=self.spawner)
        seq = session.start("hello")
        records = "".join(rg_record(f"f{idx}.txt", line=idx + 1) + "\n" for idx in range(50_001))

        session.handle_stdout(seq, records)
        self.assertTrue(self.spawner.processes[0].terminated)
        self.assertFalse(session.handle_stdout(seq, rg_record("late.txt") + "\n"))
        session.handle_close(seq, -15)

        self.assertEqual(len(self.store.all_matches), 50_000)
        self.assertTrue(session.capped)
        self.assertIn("capped", session.status)
        self.assertEqual(session.phase, search_mod.PHASE_CAPPED)

    def test_superseded_run_callbacks_change_nothing(self) -> None:
        first = self.session.start("one")
        second = self.session.start("two")
        self.assertTrue(self.spawner.processes[0].terminated)
        self.assertEqual(self.session.status, "rg searching...")

        self.assertFalse(self.session.handle_stdout(first, rg_record("late.txt") + "\n"))
        self.assertFalse(self.session.handle_stderr(first, "boom"))
        self.assertFalse(self.session.handle_error(first, OSError("boom")))
        self.assertFalse(self.session.handle_close(first, 2))

        self.assertEqual(self.store.all_matches, [])
        self.assertEqual(self.session.status, "rg searching...")
        self.assertEqual(self.session.phase, search_mod.PHASE_STREAMING)

        self.session.handle_stdout(second, rg_record("b.txt") + "\n")
        self.session.handle_close(second, 0)
        self.assertEqual([m.file for m in self.store.all_matches], ["b.txt"])
        self.assertEqual(self.session.status, "rg matches: 1")

    def test_superseded_run_is_drained_through_pump(self) -> None:
        self.session.start("one")
        old = self.spawner.processes[0]
        self.session.start("two")

        payload = {old.stdout.fd: [(rg_record("late.txt") + "\n").encode(), b""], old.stderr.fd: [b""]}

        def read(fd: int, _size: int) -> bytes:
            return payload[fd].pop(0)

        self.assertFalse(self.session.pump(old.stdout.fd, read=read))
        self.assertFalse(self.session.pump(old.stdout.fd, read=read))
        self.assertFalse(self.session.pump(old.stderr.fd, read=read))

        self.assertEqual(self.store.all_matches, [])
        self.assertTrue(old.stdout.closed and old.stderr.closed)
        new = self.spawner.processes[1]
        self.assertEqual(sorted(self.session.watched_fds()), sorted([new.stdout.fd, new.stderr.fd]))
        self.assertEqual(self.session.status, "rg searching...")

    def test_pump_decodes_utf8_split_across_reads(self) -> None:
        self.session.start("café")
        process = self.spawner.processes[0]
        data = (rg_record("menu.txt", text="café au lait") + "\n").encode("utf-8")
        split = data.index("é".encode("utf-8")) + 1
        chunks = {process.stdout.fd: [data[:split], data[split:], b""], process.stderr.fd: [b""]}

        def read(fd: int, _size: int) -> bytes:
            return chunks[fd].pop(0)

        self.assertFalse(self.session.pump(process.stdout.fd, read=read))
        self.assertTrue(self.session.pump(process.stdout.fd, read=read))
        self.session.pump(process.stdout.fd, read=read)
        self.assertTrue(self.session.pump(process.stderr.fd, read=read))

        self.assertEqual(self.store.all_matches[0].text, "café au lait")
        self.assertEqual(self.session.status, "rg matches: 1")
        self.assertEqual(self.session.watched_fds(), [])

    def test_pump_reads_from_real_pipe(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            self.session.start("hello")
            process = self.spawner.processes[0]
            run = self.session._runs[0]
            kind_pipe = run.pipes.pop(process.stdout.fd)
            run.pipes[read_fd] = kind_pipe
            run.decoders[read_fd] = run.decoders.pop(process.stdout.fd)

            os.write(write_fd, (rg_record("a.txt") + "\n").encode("utf-8"))
            self.assertTrue(self.session.pump(read_fd))
        finally:
            os.close(read_fd)
            os.close(write_fd)

        self.assertEqual(len(self.store.all_matches), 1)

    def test_failed_exit_reports_stderr(self) -> None:
        seq = self.session.start("(")
        self.session.handle_stderr(seq, "regex parse error:\n    (\n")
        self.session.handle_close(seq, 2)

        self.assertEqual(self.session.status, "regex parse error: (")
        self.assertEqual(self.session.phase, search_mod.PHASE_ERRORED)

    def test_failed_exit_without_stderr_reports_code(self) -> None:
        seq = self.session.start("x")
        self.session.handle_close(seq, 2)
        self.assertEqual(self.session.status, "rg exited with status 2")

    def test_no_matches_exit_code_is_success(self) -> None:
        seq = self.session.start("x")
        self.session.handle_close(seq, 1)
        self.assertEqual(self.session.status, "rg matches: 0")
        self.assertEqual(self.session.phase, search_mod.PHASE_COMPLETED)

    def test_stderr_is_bounded(self) -> None:
        seq = self.session.start("x")
        self.session.handle_stderr(seq, "e" * (search_mod.STDERR_LIMIT + 100))
        self.session.handle_stderr(seq, "more")
        self.session.handle_close(seq, 2)
        self.assertEqual(len(self.session.status), search_mod.STDERR_LIMIT)

    def test_spawn_failure_sets_status_and_allows_retry(self) -> None:
        def broken_spawn(cmd: list[str], cwd: Path) -> FakeProcess:
            raise FileNotFoundError(2, "No such file or directory", "rg")

        session = SearchSession(Path("/project"), self.store, spawn=broken_spawn)
        session.start("x")

        self.assertTrue(session.status.startswith("rg failed: "))
        self.assertEqual(session.phase, search_mod.PHASE_ERRORED)
        self.assertEqual(session.watched_fds(), [])
        self.assertEqual(self.store.all_matches, [])

        session._spawn = self.spawner
        session.start("x")
        self.assertEqual(session.status, "rg searching...")

    def test_shutdown_terminates_and_closes_everything(self) -> None:
        self.session.start("one")
        self.session.start("two")
        self.session.shutdown()

        for process in self.spawner.processes:
            self.assertTrue(process.terminated)
            self.assertTrue(process.stdout.closed)
            self.assertTrue(process.stderr.closed)
        self.assertEqual(self.session.watched_fds(), [])
        self.assertIsNone(self.session.process)


if __name__ == "__main__":
    unittest.main()
