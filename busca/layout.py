"""Row and column budgets for the three stacked panels.

The screen is, top to bottom: the search box, the fuzzy list, and a bottom
row holding the preview beside the path breadcrumb. Only two areas grow with
the terminal: the preview body and the fuzzy list.
"""

from __future__ import annotations

from dataclasses import dataclass

from .text import clamp

MIN_TOTAL_ROWS = 10
BORDER_ROWS = 6
SEARCH_CONTENT_ROWS = 1
FUZZY_STATIC_ROWS = 3
PREVIEW_STATIC_ROWS = 1
DEFAULT_PREVIEW_BODY_ROWS = 6
DEFAULT_FUZZY_LIST_ROWS = 4
PREVIEW_SHARE = 0.65
PREVIEW_WIDTH_SHARE = 0.68
MIN_PANEL_WIDTH = 20
MIN_PREVIEW_WIDTH = 30
MIN_BREADCRUMB_WIDTH = 24


@dataclass(frozen=True)
class Layout:
    preview_body_rows: int
    fuzzy_list_rows: int


def layout_for(rows: int) -> Layout:
    """Split ``rows`` terminal rows between the preview body and fuzzy list.

    Surplus rows go roughly 65/35 to preview/list. When the terminal is too
    short, the preview shrinks to 2 first, then the list to 1, then the
    preview to 1.
    """
    total = max(rows, MIN_TOTAL_ROWS)
    preview_rows = DEFAULT_PREVIEW_BODY_ROWS
    list_rows = DEFAULT_FUZZY_LIST_ROWS

    used = (
        BORDER_ROWS
        + SEARCH_CONTENT_ROWS
        + FUZZY_STATIC_ROWS
        + PREVIEW_STATIC_ROWS
        + preview_rows
        + list_rows
    )
    if used < total:
        extra = total - used
        preview_extra = int(extra * PREVIEW_SHARE)
        preview_rows += preview_extra
        list_rows += extra - preview_extra
    elif used > total:
        reduce = used - total
        while reduce > 0 and preview_rows > 2:
            preview_rows -= 1
            reduce -= 1
        while reduce > 0 and list_rows > 1:
            list_rows -= 1
            reduce -= 1
        while reduce > 0 and preview_rows > 1:
            preview_rows -= 1
            reduce -= 1

    return Layout(preview_body_rows=preview_rows, fuzzy_list_rows=list_rows)


def panel_widths(columns: int) -> tuple[int, int, int]:
    """Return ``(full_width, preview_width, breadcrumb_width)`` for ``columns``.

    When the breadcrumb cannot get ``MIN_PANEL_WIDTH`` columns beside the
    preview, it is hidden (width 0) and the preview takes the whole row.
    """
    full = max(columns, MIN_PANEL_WIDTH)
    preview = clamp(
        int((full - 1) * PREVIEW_WIDTH_SHARE),
        MIN_PREVIEW_WIDTH,
        max(MIN_PREVIEW_WIDTH, full - MIN_BREADCRUMB_WIDTH),
    )
    breadcrumb = full - 1 - preview
    if breadcrumb < MIN_PANEL_WIDTH:
        return full, full, 0
    return full, preview, breadcrumb
