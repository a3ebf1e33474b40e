"""Preview loading, caching, and cursor/selection behavior tests."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from busca.preview import (
    UNREADABLE_PLACEHOLDER,
    FileCache,
    FileLines,
    Position,
    PreviewBuffer,
    load_file_lines,
    split_lines,
)


class RecordingHighlighter:
    def __init__(self, transform=None) -> None:
        self.calls: list[tuple[Path, str]] = []
        self.transform = transform or (lambda source: "\n".join(f"\x1b[33m{line}\x1b[0m" for line in source.split("\n")))

    def highlight(self, path: Path, source: str) -> str | None:
        self.calls.append((path, source))
        return self.transform(source)


def buffer_with(lines: list[str], line: int = 1, col: int = 1) -> PreviewBuffer:
    preview = PreviewBuffer()
    preview.load("sample.txt", FileLines(plain=lines), line, col)
    return preview


class LoadFileLinesTests(unittest.TestCase):
    def test_split_lines_handles_every_line_ending(self) -> None:
        self.assertEqual(split_lines("a\r\nb\rc\nd"), ["a", "b", "c", "d"])
        self.assertEqual(split_lines("a\n"), ["a", ""])
        self.assertEqual(split_lines(""), [""])

    def test_unreadable_file_becomes_placeholder(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            lines = load_file_lines(Path(tmp) / "missing.txt")
        self.assertEqual(lines.plain, [UNREADABLE_PLACEHOLDER])
        self.assertIsNone(lines.color)

    def test_control_characters_are_sanitized(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "a.txt"
            path.write_text("ok\x1b[2Jbad\nnext\n", encoding="utf-8")
            lines = load_file_lines(path)
        self.assertEqual(lines.plain, ["ok?[2Jbad", "next", ""])

    def test_latin1_file_is_still_readable(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "legacy.txt"
            path.write_bytes("caf\xe9".encode("latin-1"))
            lines = load_file_lines(path)
        self.assertEqual(lines.plain, ["café"])

    def test_highlight_is_kept_when_line_counts_match(self) -> None:
        highlighter = RecordingHighlighter()
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "a.py"
            path.write_text("x = 1\r\ny = 2\n", encoding="utf-8")
            lines = load_file_lines(path, highlighter)
        self.assertEqual(highlighter.calls[0][1], "x = 1\ny = 2\n")
        self.assertEqual(lines.plain, ["x = 1", "y = 2", ""])
        self.assertEqual(lines.color, ["\x1b[33mx = 1\x1b[0m", "\x1b[33my = 2\x1b[0m", "\x1b[33m\x1b[0m"])

    def test_highlight_keeps_only_color_sequences(self) -> None:
        # bat reads the file itself, so its output carries the raw bytes.
        highlighter = RecordingHighlighter(
            transform=lambda source: "\x1b[33mok \x1b[2J\x1b[Hgone\x07\x1b[0m\n\x1b[1mnext\x1b[0m\n"
        )
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "a.txt"
            path.write_text("ok \x1b[2J\x1b[Hgone\x07\nnext\n", encoding="utf-8")
            lines = load_file_lines(path, highlighter)
        self.assertEqual(lines.plain, ["ok ?[2J?[Hgone?", "next", ""])
        self.assertEqual(lines.color, ["\x1b[33mok ?[2J?[Hgone?\x1b[0m", "\x1b[1mnext\x1b[0m", ""])

    def test_highlight_with_different_visible_text_is_dropped(self) -> None:
        highlighter = RecordingHighlighter(transform=lambda source: "\x1b[33mx = 2\x1b[0m\ny = 2\n")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "a.py"
            path.write_text("x = 1\ny = 2\n", encoding="utf-8")
            lines = load_file_lines(path, highlighter)
        self.assertEqual(lines.plain, ["x = 1", "y = 2", ""])
        self.assertIsNone(lines.color)

    def test_highlight_with_wrong_line_count_is_dropped(self) -> None:
        highlighter = RecordingHighlighter(transform=lambda source: "only one line")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "a.py"
            path.write_text("x = 1\ny = 2\n", encoding="utf-8")
            lines = load_file_lines(path, highlighter)
        self.assertEqual(lines.plain, ["x = 1", "y = 2", ""])
        self.assertIsNone(lines.color)

    def test_failed_highlight_falls_back_to_plain(self) -> None:
        highlighter = RecordingHighlighter(transform=lambda source: None)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "a.py"
            path.write_text("x = 1\n", encoding="utf-8")
            lines = load_file_lines(path, highlighter)
        self.assertIsNone(lines.color)


class FileCacheTests(unittest.TestCase):
    def test_files_are_loaded_once_until_cleared(self) -> None:
        highlighter = RecordingHighlighter()
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "src").mkdir()
            (root / "src" / "a.py").write_text("print(1)\n", encoding="utf-8")
            cache = FileCache(root, highlighter)

            first = cache.get("src/a.py")
            second = cache.get("src/../src/a.py")
            self.assertIs(first, second)
            self.assertEqual(len(highlighter.calls), 1)
            self.assertEqual(len(cache), 1)

            cache.clear()
            self.assertEqual(len(cache), 0)
            cache.get("src/a.py")
            self.assertEqual(len(highlighter.calls), 2)


class PreviewBufferTests(unittest.TestCase):
    def test_load_places_cursor_from_one_based_position(self) -> None:
        preview = buffer_with(["first", "second line"], line=2, col=3)
        self.assertEqual((preview.cursor_line, preview.cursor_col), (1, 2))
        self.assertEqual(preview.preferred_col, 2)
        self.assertIsNone(preview.anchor)

    def test_load_clamps_out_of_range_position(self) -> None:
        preview = buffer_with(["abc", "de"], line=99, col=99)
        self.assertEqual((preview.cursor_line, preview.cursor_col), (1, 1))

    def test_load_with_no_lines_shows_one_empty_line(self) -> None:
        preview = buffer_with([])
        self.assertEqual(preview.plain_lines, [""])
        self.assertEqual((preview.cursor_line, preview.cursor_col), (0, 0))

    def test_moves_at_origin_are_no_ops(self) -> None:
        preview = buffer_with(["abc", "def"])
        preview.move_horizontal(-1)
        preview.move_vertical(-1)
        self.assertEqual((preview.cursor_line, preview.cursor_col), (0, 0))

    def test_moves_at_end_stay_in_range(self) -> None:
        preview = buffer_with(["abc", "de"], line=2, col=2)
        preview.move_horizontal(1)
        preview.move_vertical(1)
        self.assertEqual((preview.cursor_line, preview.cursor_col), (1, 1))

    def test_vertical_moves_remember_preferred_column(self) -> None:
        preview = buffer_with(["abcdef", "ab", "", "abcdef"], col=5)
        preview.move_vertical(1)
        self.assertEqual(preview.cursor_col, 1)
        preview.move_vertical(1)
        self.assertEqual(preview.cursor_col, 0)
        preview.move_vertical(1)
        self.assertEqual(preview.cursor_col, 4)

    def test_horizontal_move_resets_preferred_column(self) -> None:
        preview = buffer_with(["abcdef", "ab", "abcdef"], col=5)
        preview.move_vertical(1)
        preview.move_horizontal(-1)
        preview.move_vertical(1)
        self.assertEqual(preview.cursor_col, 0)

    def test_toggle_anchor_sets_and_clears(self) -> None:
        preview = buffer_with(["abc"], col=2)
        preview.toggle_anchor()
        self.assertEqual(preview.anchor, Position(0, 1))
        preview.toggle_anchor()
        self.assertIsNone(preview.anchor)

    def test_selection_text_spans_lines_in_order(self) -> None:
        preview = buffer_with(["abc", "defg", "hij"])
        preview.anchor = Position(0, 1)
        preview.cursor_line = 2
        preview.cursor_col = 3
        self.assertEqual(preview.extract_selection_text(), "bc defg hij")

    def test_selection_text_is_same_when_anchor_follows_cursor(self) -> None:
        preview = buffer_with(["abc", "defg", "hij"])
        preview.anchor = Position(2, 1)
        preview.cursor_line = 0
        preview.cursor_col = 1
        self.assertEqual(preview.extract_selection_text(), "bc defg hi")

    def test_selection_text_normalizes_whitespace(self) -> None:
        preview = buffer_with(["  foo   bar  ", "", "\tbaz"])
        preview.anchor = Position(0, 0)
        preview.cursor_line = 2
        preview.cursor_col = 3
        self.assertEqual(preview.extract_selection_text(), "foo bar baz")

    def test_no_anchor_means_no_selection(self) -> None:
        preview = buffer_with(["abc"])
        self.assertEqual(preview.extract_selection_text(), "")
        self.assertIsNone(preview.selection_range())
        self.assertIsNone(preview.selection_span(0))

    def test_selection_span_per_line(self) -> None:
        preview = buffer_with(["abc", "defg", "hij", "klm"])
        preview.anchor = Position(0, 1)
        preview.cursor_line = 2
        preview.cursor_col = 1
        self.assertEqual(preview.selection_span(0), (1, 2))
        self.assertEqual(preview.selection_span(1), (0, 3))
        self.assertEqual(preview.selection_span(2), (0, 1))
        self.assertIsNone(preview.selection_span(3))

    def test_reset_shows_empty_buffer(self) -> None:
        preview = buffer_with(["abc", "def"], line=2)
        preview.top = 1
        preview.toggle_anchor()
        preview.reset()
        self.assertEqual(preview.path, "")
        self.assertEqual(preview.plain_lines, [""])
        self.assertEqual((preview.cursor_line, preview.cursor_col, preview.top), (0, 0, 0))
        self.assertIsNone(preview.anchor)


if __name__ == "__main__":
    unittest.main()
