"""Configuration: defaults, config file, environment overrides.

Precedence, lowest first: built-in defaults, the JSON config file
($TMUX_EXEC_CONFIG or ~/.config/tmux-exec/config.json), environment
variables, then explicit overrides passed by the caller (CLI flags).
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .logging_config import get_logger

logger = get_logger(__name__)

CONFIG_FILE = Path(os.path.expanduser("~/.config/tmux-exec/config.json"))
STATE_DIR = Path(os.path.expanduser("~/.local/state/tmux-exec"))

# Environment variables
ENV_HOST = "TMUX_REMOTE_HOST"
ENV_SESSION = "TMUX_REMOTE_SESSION"
ENV_CONFIG = "TMUX_EXEC_CONFIG"
ENV_STATE_DIR = "TMUX_EXEC_STATE_DIR"


@dataclass(frozen=True)
class Settings:
    """Tunables for one run. Immutable; derive variants with with_overrides()."""

    timeout: float = 30  # Seconds to watch before giving up (non-fatal)
    truncate: int = 2000  # Total emitted-character budget, 0 disables
    poll_interval: float = 0.5
    flush_delay: float = 0.1  # Grace before the final snapshot once idle
    settle_delay: float = 0.3  # Pause after dispatch before the first poll
    context_lines: int = 5  # Lines re-shown when continuing
    peek_chars: int = 2000
    host: str | None = None
    session: str | None = None
    log_to_file: bool = False
    state_dir: Path = field(default=STATE_DIR)

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        applied = {k: v for k, v in overrides.items() if v is not None and k in known}
        return replace(self, **applied) if applied else self


# Config file cache, re-read when the mtime changes
_file_cache: dict[str, Any] | None = None
_file_cache_path: Path | None = None
_file_cache_mtime: float = 0.0


def config_path() -> Path:
    """Location of the JSON config file."""
    override = os.environ.get(ENV_CONFIG)
    return Path(override).expanduser() if override else CONFIG_FILE


def load_config_file(path: Path | None = None) -> dict[str, Any]:
    """Load the JSON config file with mtime caching. Missing or broken files yield {}."""
    global _file_cache, _file_cache_path, _file_cache_mtime
    path = path or config_path()
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return {}
    if _file_cache is not None and path == _file_cache_path and mtime == _file_cache_mtime:
        return _file_cache

    loaded: dict[str, Any] = {}
    try:
        data = json.loads(path.read_text())
        if isinstance(data, dict):
            loaded = data
        else:
            logger.warning("Ignoring config file %s: top level is not an object", path)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)

    _file_cache = loaded
    _file_cache_path = path
    _file_cache_mtime = mtime
    return loaded


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw config/env value to the type Settings expects."""
    if name == "state_dir":
        return Path(value).expanduser()
    if name in ("truncate", "context_lines", "peek_chars"):
        return int(value)
    if name in ("timeout", "poll_interval", "flush_delay", "settle_delay"):
        return float(value)
    if name == "log_to_file":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    return value


def load_settings(**overrides: Any) -> Settings:
    """Build Settings from defaults, config file, environment and overrides."""
    known = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {}

    for key, value in load_config_file().items():
        if key not in known:
            logger.debug("Unknown config key %r ignored", key)
            continue
        try:
            values[key] = _coerce(key, value)
        except (TypeError, ValueError) as e:
            logger.warning("Bad value for config key %r (%r): %s", key, value, e)

    if os.environ.get(ENV_HOST):
        values["host"] = os.environ[ENV_HOST]
    if os.environ.get(ENV_SESSION):
        values["session"] = os.environ[ENV_SESSION]
    if os.environ.get(ENV_STATE_DIR):
        values["state_dir"] = Path(os.environ[ENV_STATE_DIR]).expanduser()

    return Settings(**values).with_overrides(**overrides)
