"""Command-line front door for busca.

Parses options, validates the search root and required tools, configures
logging, and then hands over to the interactive runtime.
"""

from __future__ import annotations

import argparse
import logging
import shutil
from dataclasses import replace
from pathlib import Path

from .app import run_app
from .config import CONFIG_PATH, BuscaConfig, load_config
from .highlight import HIGHLIGHTER_CHOICES

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

EPILOG = """\
Behavior:
  - rg search is case-insensitive and runs with --no-ignore.
  - press Enter in the rg field to run the search.
  - the fuzzy field narrows matches by file:line:text.

Panels and keys:
  - Tab: switch active panel
  - Fuzzy list: Up/Down to move the selected match, Enter to focus the preview
  - Preview: arrows/hjkl move the cursor, v toggles selection, Esc clears it
  - Preview + selection + Enter: use the selected text as the next rg term
  - Ctrl-C: quit

Dependencies:
  - required: rg (ripgrep)
  - optional: bat (syntax-highlighted preview; pygments is used otherwise)
"""


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="busca",
        description="Terminal search TUI: rg results, fuzzy narrowing, and a file preview.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Root directory where searches run (default: current directory).",
    )
    parser.add_argument(
        "--max-results",
        type=_positive_int,
        default=None,
        help="Maximum rg matches to keep in memory (default: 50000).",
    )
    parser.add_argument(
        "--max-bat-bytes",
        "--max-highlight-bytes",
        dest="max_highlight_bytes",
        type=_positive_int,
        default=None,
        help="Largest file (bytes) to syntax-highlight (default: 2097152).",
    )
    parser.add_argument(
        "--highlighter",
        choices=HIGHLIGHTER_CHOICES,
        default=None,
        help="Preview highlighter (default: auto = bat if installed, else pygments).",
    )
    parser.add_argument("--style", default=None, help="Pygments style name (for pygments highlighting).")
    parser.add_argument("--no-color", action="store_true", help="Disable syntax highlighting in the preview.")
    parser.add_argument("--log-file", type=Path, default=None, help="Write diagnostic logs to this file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging (needs --log-file).")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Config file to read (default: {CONFIG_PATH}).",
    )
    return parser


def setup_logging(log_file: Path | None, verbose: bool) -> None:
    """Send package logs to ``log_file``; without one, logging stays silent."""
    if log_file is None:
        return
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger = logging.getLogger("busca")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def resolve_root(raw_path: str) -> Path:
    root = Path(raw_path).expanduser().resolve()
    if not root.exists():
        raise SystemExit(f"busca: path does not exist: {raw_path}")
    if not root.is_dir():
        raise SystemExit(f"busca: path is not a directory: {raw_path}")
    return root


def ensure_dependencies(which=shutil.which) -> None:
    missing = [cmd for cmd in ("rg",) if which(cmd) is None]
    if missing:
        raise SystemExit(f"busca: missing required commands: {', '.join(missing)}")


def apply_overrides(config: BuscaConfig, args: argparse.Namespace) -> BuscaConfig:
    """Layer command-line options over file/default configuration."""
    if args.max_results is not None:
        config = replace(config, max_results=args.max_results)
    if args.max_highlight_bytes is not None:
        config = replace(config, max_highlight_bytes=args.max_highlight_bytes)
    if args.highlighter is not None:
        config = replace(config, highlighter=args.highlighter)
    if args.style is not None:
        config = replace(config, style=args.style)
    return config


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, check the environment, and launch the TUI."""
    args = build_parser().parse_args(argv)
    root = resolve_root(args.path)
    ensure_dependencies()
    setup_logging(args.log_file, args.verbose)
    config = apply_overrides(load_config(args.config), args)

    run_app(root, config, no_color=args.no_color)


if __name__ == "__main__":
    main()
