"""Frame composition for the three-panel screen.

``render_frame`` turns the current ``AppState`` into one full-screen string.
Apart from scrolling ``list_top`` and ``preview.top`` just enough to keep the
selected row and the cursor visible, it does not touch state.
"""

from __future__ import annotations

from pathlib import Path

from .ansi import highlight_positions, overlay, pad_to, truncate_visible
from .layout import Layout, layout_for, panel_widths
from .preview import PreviewBuffer
from .state import FOCUS_FUZZY, FOCUS_PREVIEW, FOCUS_SEARCH, AppState
from .text import clamp, clean_term, expand_tabs, expanded_col, expanded_span
from .theme import DEFAULT_THEME, UITheme

SEARCH_LABEL = "rg> "
FUZZY_LABEL = "fuzzy> "
SELECTED_PREFIX = "> "
UNSELECTED_PREFIX = "  "


def render_input(
    label: str,
    text: str,
    cursor: int,
    active: bool,
    width: int,
    theme: UITheme = DEFAULT_THEME,
) -> str:
    """Render a one-line text field that keeps its cursor in view.

    The focused field scrolls so the cursor cell is visible; an unfocused
    field shows the tail of its text.
    """
    available = max(width - len(label), 1)
    start = 0
    if active and cursor >= available:
        start = cursor - available + 1
    elif not active and len(text) > available:
        start = len(text) - available
    visible = text[start : start + available]
    if not active:
        return label + visible

    at = cursor - start
    ch = visible[at] if at < len(visible) else " "
    return label + visible[:at] + theme.cursor + ch + theme.reset + visible[at + 1 :]


def frame_panel(title: str, lines: list[str], width: int, active: bool, theme: UITheme = DEFAULT_THEME) -> list[str]:
    """Draw ``lines`` inside an ASCII box ``width`` columns wide."""
    inner = max(width - 2, 1)
    caption = f" {title} "[:inner]
    border = theme.panel_active if active else theme.panel_inactive
    top = f"{border}+{caption}{'-' * max(inner - len(caption), 0)}+{theme.reset}"
    body = [f"{border}|{theme.reset}{pad_to(line, inner)}{border}|{theme.reset}" for line in lines]
    bottom = f"{border}+{'-' * inner}+{theme.reset}"
    return [top, *body, bottom]


def combine_panels(left: list[str], left_width: int, right: list[str], right_width: int) -> list[str]:
    """Place two panels side by side separated by one blank column."""
    rows = max(len(left), len(right))
    out: list[str] = []
    for idx in range(rows):
        left_line = left[idx] if idx < len(left) else ""
        right_line = right[idx] if idx < len(right) else ""
        out.append(f"{pad_to(left_line, left_width)} {pad_to(right_line, right_width)}")
    return out


def breadcrumb_lines(root: Path, relative_path: str, theme: UITheme = DEFAULT_THEME) -> list[str]:
    """Show ``relative_path`` as a single indented branch under the root name."""
    root_name = root.name or str(root) or "."
    lines = [theme.dim + root_name + theme.reset]
    if not relative_path:
        lines.append("(no file selected)")
        return lines
    parts = [part for part in relative_path.replace("\\", "/").split("/") if part and part != "."]
    indent = ""
    for idx, part in enumerate(parts):
        label = f"{indent}`-- {part}"
        lines.append(theme.list_selected + label + theme.reset if idx == len(parts) - 1 else label)
        indent += "    "
    return lines


def scroll_into_view(state: AppState, layout: Layout) -> None:
    """Scroll the list and preview by the minimum needed to show the focus rows."""
    preview = state.preview
    rows = layout.preview_body_rows
    if preview.cursor_line < preview.top:
        preview.top = preview.cursor_line
    if preview.cursor_line >= preview.top + rows:
        preview.top = preview.cursor_line - rows + 1
    preview.top = max(preview.top, 0)

    store = state.matches
    rows = layout.fuzzy_list_rows
    if store.selected < store.list_top:
        store.list_top = store.selected
    if store.selected >= store.list_top + rows:
        store.list_top = store.selected - rows + 1
    store.list_top = max(store.list_top, 0)


def preview_text(preview: PreviewBuffer, idx: int, width: int, theme: UITheme = DEFAULT_THEME) -> str:
    """Render the text of preview line ``idx`` with cursor and selection painted."""
    raw = preview.plain_lines[idx]
    clipped = expand_tabs(raw)[: max(width, 0)]
    is_cursor_line = idx == preview.cursor_line
    if not clipped:
        return theme.cursor + " " + theme.reset if is_cursor_line else ""

    last = len(clipped) - 1
    cursor_at = clamp(expanded_col(raw, preview.cursor_col), 0, last) if is_cursor_line else None
    selection_start = selection_end = None
    span = preview.selection_span(idx)
    if span is not None:
        first, end = expanded_span(raw, span[0], span[1])
        if first <= last:
            selection_start, selection_end = first, min(end, last)

    base = clipped
    if preview.color_lines is not None and idx < len(preview.color_lines):
        base = truncate_visible(expand_tabs(preview.color_lines[idx]), max(width, 0))
    return overlay(
        base,
        cursor_at,
        selection_start,
        selection_end,
        cursor_style=theme.cursor,
        selection_style=theme.selection,
    )


def _search_panel(state: AppState, width: int, theme: UITheme) -> list[str]:
    active = state.focus == FOCUS_SEARCH
    field = state.search_field
    lines = [render_input(SEARCH_LABEL, field.text, field.cursor, active, width - 2, theme)]
    title = f"RG {'ACTIVE' if active else ''} | Enter run rg -i"
    return frame_panel(title, lines, width, active, theme)


def _fuzzy_panel(state: AppState, layout: Layout, width: int, theme: UITheme) -> list[str]:
    active = state.focus == FOCUS_FUZZY
    inner = width - 2
    store = state.matches
    field = state.fuzzy_field
    lines = [
        theme.dim
        + f"status: {state.session.status} | visible: {len(store.filtered)}/{len(store.all_matches)}"
        + theme.reset,
        render_input(FUZZY_LABEL, field.text, field.cursor, active, inner, theme),
    ]
    current = store.current()
    if current is not None and current.fuzzy is not None:
        fuzzy = current.fuzzy
        why = f"why: subsequence start={fuzzy.start} gaps={fuzzy.gaps} score={fuzzy.score:.3f}"
        lines.append(theme.dim + truncate_visible(why, inner) + theme.reset)
    elif clean_term(field.text):
        lines.append(theme.dim + "why: type to match file:line:text by ordered characters" + theme.reset)
    else:
        lines.append("")

    for row in range(layout.fuzzy_list_rows):
        idx = store.list_top + row
        if idx >= len(store.filtered):
            lines.append(theme.dim + "~" + theme.reset)
            continue
        item = store.filtered[idx]
        selected = idx == store.selected
        prefix = SELECTED_PREFIX if selected else UNSELECTED_PREFIX
        row_style = theme.list_selected if selected else ""
        line = prefix + item.match.display
        if item.fuzzy is not None:
            shifted = [pos + len(prefix) for pos in item.fuzzy.positions]
            line = highlight_positions(line, shifted, theme.fuzzy_match, restore=row_style)
            line += theme.dim + f" [s:{item.fuzzy.start} g:{item.fuzzy.gaps}]" + theme.reset + row_style
        line = truncate_visible(line, inner)
        lines.append(theme.list_selected + line + theme.reset if selected else line)

    title = f"Fuzzy {'ACTIVE' if active else ''} | Up/Down select | Enter preview | matches file:line:text"
    return frame_panel(title, lines, width, active, theme)


def _preview_panel(state: AppState, layout: Layout, width: int, theme: UITheme) -> list[str]:
    active = state.focus == FOCUS_PREVIEW
    preview = state.preview
    inner = max(width - 2, 10)
    lines = [
        theme.dim
        + f"file: {preview.path or '(none)'}  cursor: {preview.cursor_line + 1}:{preview.cursor_col + 1}"
        + theme.reset
    ]
    number_width = len(str(max(len(preview.plain_lines), 1)))
    for row in range(layout.preview_body_rows):
        idx = preview.top + row
        if idx >= len(preview.plain_lines):
            lines.append("~")
            continue
        is_cursor_line = idx == preview.cursor_line
        marker = ">" if is_cursor_line else " "
        gutter = f"{marker} {str(idx + 1).rjust(number_width)} "
        styled_gutter = theme.cursor_gutter + gutter + theme.reset if is_cursor_line else gutter
        text_width = max(inner - len(gutter), 0)
        lines.append(styled_gutter + preview_text(preview, idx, text_width, theme))

    title = f"Preview {'ACTIVE' if active else ''} | hjkl/arrows move | v select | Esc clear | Enter set rg"
    return frame_panel(title, lines, width, active, theme)


def _breadcrumb_panel(state: AppState, layout: Layout, width: int, theme: UITheme) -> list[str]:
    path = state.preview.path
    crumbs = breadcrumb_lines(state.root, path, theme)
    lines = [theme.dim + f"selected: {path or '(none)'}" + theme.reset]
    for row in range(layout.preview_body_rows):
        lines.append(crumbs[row] if row < len(crumbs) else theme.dim + "~" + theme.reset)
    return frame_panel("File Tree", lines, width, False, theme)


def render_frame(state: AppState, rows: int, columns: int, theme: UITheme = DEFAULT_THEME) -> str:
    """Compose a full-screen redraw for a ``rows`` x ``columns`` terminal."""
    layout = layout_for(rows)
    scroll_into_view(state, layout)
    full_width, preview_width, breadcrumb_width = panel_widths(columns)

    screen: list[str] = []
    screen.extend(_search_panel(state, full_width, theme))
    screen.extend(_fuzzy_panel(state, layout, full_width, theme))
    preview_panel = _preview_panel(state, layout, preview_width, theme)
    if breadcrumb_width:
        preview_panel = combine_panels(
            preview_panel,
            preview_width,
            _breadcrumb_panel(state, layout, breadcrumb_width, theme),
            breadcrumb_width,
        )
    screen.extend(preview_panel)
    return "\x1b[?25l\x1b[H\x1b[J" + "\r\n".join(screen[: max(rows, 1)])
