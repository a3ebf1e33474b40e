"""Search hits, the rg record parser, and the ranked view over them.

``MatchStore.filtered`` always equals ``rank_matches(all_matches, query)``.
It is rebuilt when the query changes and extended by merging in the
newly streamed tail otherwise; nothing else writes to it.
"""

from __future__ import annotations

import json
from bisect import bisect_right
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from .fuzzy import FuzzyResult, fuzzy_score
from .text import clamp, clean_term, sanitize_display


@dataclass(frozen=True)
class Match:
    file: str
    line: int  # 1-based
    col: int  # 1-based
    text: str
    display: str
    target_lower: str

    @classmethod
    def create(cls, file: str, line: int, col: int, text: str) -> "Match":
        display = sanitize_display(f"{file}:{line}:{col}: {text}").replace("\t", " ")
        return cls(
            file=file,
            line=line,
            col=col,
            text=text,
            display=display,
            target_lower=fold_case(display),
        )


def fold_case(text: str) -> str:
    """Lowercase ``text`` one character for one, so match positions index ``text`` too."""
    out: list[str] = []
    for ch in text:
        lowered = ch.lower()
        out.append(lowered if len(lowered) == 1 else ch)
    return "".join(out)


@dataclass(frozen=True)
class RankedMatch:
    match: Match
    fuzzy: FuzzyResult | None  # None means no query is active


def parse_rg_record(raw: str) -> Match | None:
    """Build a ``Match`` from one ``rg --json`` line, or ``None`` if invalid.

    Only ``match`` records with a relative path inside the search root are
    accepted; begin/end/summary records and anything malformed are dropped.
    """
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(payload, dict) or payload.get("type") != "match":
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None

    path_data = data.get("path")
    path_text = path_data.get("text") if isinstance(path_data, dict) else None
    if not isinstance(path_text, str) or not path_text:
        return None
    relative = PurePosixPath(path_text.replace("\\", "/"))
    if relative.is_absolute() or ".." in relative.parts:
        return None
    if path_text.startswith("./"):
        path_text = path_text[2:]

    try:
        line_number = int(data.get("line_number") or 1)
        column = 1
        submatches = data.get("submatches")
        if isinstance(submatches, list) and submatches and isinstance(submatches[0], dict):
            column = int(submatches[0].get("start") or 0) + 1
    except (TypeError, ValueError):
        return None

    lines_data = data.get("lines")
    line_text = lines_data.get("text", "") if isinstance(lines_data, dict) else ""
    if not isinstance(line_text, str):
        line_text = ""
    if line_text.endswith("\n"):
        line_text = line_text[:-1]
    if line_text.endswith("\r"):
        line_text = line_text[:-1]

    return Match.create(path_text, max(line_number, 1), max(column, 1), line_text)


def _score_from(matches: list[Match], query: str, start: int = 0) -> Iterator[tuple[float, int, RankedMatch]]:
    """Yield ``(score, index, ranked)`` for matches at ``start`` and later that pass ``query``."""
    for idx in range(start, len(matches)):
        match = matches[idx]
        if not query:
            yield 0.0, idx, RankedMatch(match, None)
            continue
        result = fuzzy_score(query, match.target_lower)
        if result is not None:
            yield result.score, idx, RankedMatch(match, result)


def _by_rank(item: tuple[float, int, RankedMatch]) -> tuple[float, int]:
    return item[0], item[1]


def rank_matches(matches: list[Match], query: str) -> list[RankedMatch]:
    """Return the fuzzy-filtered, score-ordered view of ``matches``.

    ``query`` must already be normalized and lowercased. Ties keep the
    original order, which is the order rg reported them in.
    """
    return [ranked for _, _, ranked in sorted(_score_from(matches, query), key=_by_rank)]


@dataclass
class MatchStore:
    all_matches: list[Match] = field(default_factory=list)
    filtered: list[RankedMatch] = field(default_factory=list)
    query: str = ""
    selected: int = 0
    list_top: int = 0
    stale: bool = False
    _appended_only: bool = field(default=True, repr=False)
    _keys: list[tuple[float, int]] = field(default_factory=list, repr=False)
    _ranked_upto: int = field(default=0, repr=False)

    def clear(self) -> None:
        self.all_matches = []
        self.stale = True
        self._appended_only = False

    def append(self, match: Match) -> None:
        self.all_matches.append(match)
        self.stale = True

    def set_query(self, raw_query: str) -> None:
        """Re-rank for a new fuzzy query and move the selection to the top."""
        self.query = fold_case(clean_term(raw_query))
        self._rerank()
        self.selected = 0
        self.list_top = 0
        self.stale = False
        self._appended_only = True

    def refresh(self) -> None:
        """Fold changes to ``all_matches`` into the view, keeping the selected row.

        When matches were only appended, just the new tail is scored and
        merged into place; the result equals a full ``rank_matches``.
        """
        if self._appended_only:
            self._merge_tail()
        else:
            self._rerank()
        self._appended_only = True
        self.selected = clamp(self.selected, 0, max(len(self.filtered) - 1, 0))
        if not self.filtered:
            self.list_top = 0
        self.stale = False

    def _rerank(self) -> None:
        scored = sorted(_score_from(self.all_matches, self.query), key=_by_rank)
        self._keys = [_by_rank(item) for item in scored]
        self.filtered = [ranked for _, _, ranked in scored]
        self._ranked_upto = len(self.all_matches)

    def _merge_tail(self) -> None:
        for item in _score_from(self.all_matches, self.query, self._ranked_upto):
            key = _by_rank(item)
            at = bisect_right(self._keys, key)
            self._keys.insert(at, key)
            self.filtered.insert(at, item[2])
        self._ranked_upto = len(self.all_matches)

    def current(self) -> RankedMatch | None:
        if not self.filtered:
            return None
        return self.filtered[clamp(self.selected, 0, len(self.filtered) - 1)]

    def move_selection(self, delta: int) -> bool:
        """Move the selection by ``delta`` rows; return whether it moved."""
        previous = self.selected
        self.selected = clamp(self.selected + delta, 0, max(len(self.filtered) - 1, 0))
        return self.selected != previous
