"""ANSI palette used by the renderer.

Syntax colors in the preview come from the highlighter; this palette only
covers UI chrome and the cursor/selection/match overlays.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UITheme:
    """Semantic ANSI styles used by renderers."""

    reset: str
    dim: str
    cursor: str
    cursor_gutter: str
    selection: str
    list_selected: str
    fuzzy_match: str
    panel_active: str
    panel_inactive: str


DEFAULT_THEME = UITheme(
    reset="\x1b[0m",
    dim="\x1b[2m",
    cursor="\x1b[30;106m",
    cursor_gutter="\x1b[30;47m",
    selection="\x1b[30;43m",
    list_selected="\x1b[30;47m",
    fuzzy_match="\x1b[30;103m",
    panel_active="\x1b[36m",
    panel_inactive="\x1b[90m",
)
