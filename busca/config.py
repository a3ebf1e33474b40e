"""Read-only JSON configuration.

Defaults can be overridden by a JSON object in the per-user config directory
and then by command-line options. Nothing is ever written back: a malformed
file, or a key with the wrong type, just leaves the default in place.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path

from platformdirs import user_config_dir

from .highlight import (
    DEFAULT_HIGHLIGHT_TIMEOUT,
    DEFAULT_MAX_HIGHLIGHT_BYTES,
    DEFAULT_STYLE,
    HIGHLIGHTER_CHOICES,
)
from .search import DEFAULT_MAX_RESULTS

LOGGER = logging.getLogger(__name__)

APP_NAME = "busca"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


@dataclass(frozen=True)
class BuscaConfig:
    max_results: int = DEFAULT_MAX_RESULTS
    max_highlight_bytes: int = DEFAULT_MAX_HIGHLIGHT_BYTES
    highlight_timeout: float = DEFAULT_HIGHLIGHT_TIMEOUT
    highlighter: str = "auto"
    style: str = DEFAULT_STYLE


def load_config_data(path: Path | None = None) -> dict[str, object]:
    """Load the JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    config_path = CONFIG_PATH if path is None else path
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        LOGGER.warning("ignoring config %s: %s", config_path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _positive_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def _positive_float(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    return float(value)


def _nonempty_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def load_config(path: Path | None = None) -> BuscaConfig:
    """Build a ``BuscaConfig`` from defaults and the config file."""
    data = load_config_data(path)
    config = BuscaConfig()
    max_results = _positive_int(data.get("max_results"))
    if max_results is not None:
        config = replace(config, max_results=max_results)
    max_bytes = _positive_int(data.get("max_highlight_bytes"))
    if max_bytes is not None:
        config = replace(config, max_highlight_bytes=max_bytes)
    timeout = _positive_float(data.get("highlight_timeout"))
    if timeout is not None:
        config = replace(config, highlight_timeout=timeout)
    highlighter = _nonempty_str(data.get("highlighter"))
    if highlighter in HIGHLIGHTER_CHOICES:
        config = replace(config, highlighter=highlighter)
    style = _nonempty_str(data.get("style"))
    if style is not None:
        config = replace(config, style=style)
    return config
