"""
Configuration loader for the dashboard.

Settings come from an optional ralph-ui.env file (KEY=value, parsed safely)
and are then overridden by RALPH_UI_* environment variables. Bad values are
logged and replaced by defaults; configuration never stops the dashboard.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from . import envparse
from .constants import (
    DEFAULT_BATCH_LINES,
    DEFAULT_BATCH_MS,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_HANG_THRESHOLD_SECONDS,
    DEFAULT_MAX_LINES,
    DEFAULT_POLL_INTERVAL_MS,
    MAX_DEBOUNCE_MS,
    MIN_DEBOUNCE_MS,
    STATUS_FILE_PREFIX,
    STATUS_FILE_SUFFIX,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "RALPH_UI_"
DEFAULT_ENV_FILE = Path("ralph-ui.env")
VALID_MODES = ("startup", "iteration", "live")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")

# RALPH_UI_<NAME> -> DashboardConfig attribute
PATH_FIELDS = {
    "PRD_PATH": "prd_path",
    "STATUS_DIR": "status_dir",
    "LOG_FILE": "log_file",
}
STR_FIELDS = {
    "STATUS_PREFIX": "status_prefix",
    "STATUS_SUFFIX": "status_suffix",
}
INT_FIELDS = {
    "POLL_INTERVAL_MS": "poll_interval_ms",
    "DEBOUNCE_MS": "debounce_ms",
    "BATCH_LINES": "batch_lines",
    "BATCH_MS": "batch_ms",
    "MAX_LINES": "max_lines",
    "HANG_THRESHOLD_S": "hang_threshold_seconds",
}
FLAG_FIELDS = {
    "WATCH": "use_watch",
    "POLLING": "use_polling",
}


@dataclass
class DashboardConfig:
    """Dashboard settings from ralph-ui.env and RALPH_UI_* variables."""
    prd_path: Path = Path("prd-json")
    mode: str = "live"
    status_dir: Path = Path(tempfile.gettempdir())
    status_prefix: str = STATUS_FILE_PREFIX
    status_suffix: str = STATUS_FILE_SUFFIX
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    batch_lines: int = DEFAULT_BATCH_LINES
    batch_ms: int = DEFAULT_BATCH_MS
    max_lines: int = DEFAULT_MAX_LINES
    use_watch: bool = True
    use_polling: bool = True
    hang_threshold_seconds: int = DEFAULT_HANG_THRESHOLD_SECONDS
    log_file: Optional[Path] = None
    log_level: str = "WARNING"


def _positive_int(key: str, raw: str, default: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {key} '{raw}', using default {default}")
        return default
    if value <= 0:
        logger.warning(f"{key} must be positive, got {value}; using default {default}")
        return default
    return value


def _flag(key: str, raw: str, default: bool) -> bool:
    lowered = raw.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    logger.warning(f"Invalid {key} '{raw}', using default {str(default).lower()}")
    return default


def _choice(key: str, raw: str, choices: tuple, default: str) -> str:
    if raw in choices:
        return raw
    logger.warning(f"Unknown {key} '{raw}', using default '{default}'")
    return default


def _clamp_debounce(value: int) -> int:
    clamped = min(max(value, MIN_DEBOUNCE_MS), MAX_DEBOUNCE_MS)
    if clamped != value:
        logger.warning(
            f"DEBOUNCE_MS {value} outside {MIN_DEBOUNCE_MS}-{MAX_DEBOUNCE_MS}ms, using {clamped}"
        )
    return clamped


def _read_env_file(env_file: Path) -> dict[str, str]:
    try:
        return envparse.load_env(env_file)
    except FileNotFoundError:
        return {}
    except ValueError as e:
        logger.warning(f"Ignoring {env_file}: {e}")
        return {}


def load_dashboard_config(
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DashboardConfig:
    """Load DashboardConfig from an env file plus environment overrides.

    Args:
        env_file: KEY=value file (default: ./ralph-ui.env, or $RALPH_UI_CONFIG)
        environ: Environment mapping (default: os.environ)
    """
    if environ is None:
        environ = os.environ
    if env_file is None:
        env_file = Path(environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_ENV_FILE))

    values = _read_env_file(env_file)
    values.update({k: v for k, v in environ.items() if k.startswith(ENV_PREFIX)})

    def get(name: str) -> Optional[str]:
        raw = values.get(ENV_PREFIX + name)
        if raw is None or raw == "":
            return None
        return raw

    config = DashboardConfig()

    for name, attr in PATH_FIELDS.items():
        raw = get(name)
        if raw is not None:
            setattr(config, attr, Path(raw).expanduser())

    for name, attr in STR_FIELDS.items():
        raw = get(name)
        if raw is not None:
            setattr(config, attr, raw)

    for name, attr in INT_FIELDS.items():
        raw = get(name)
        if raw is not None:
            setattr(config, attr, _positive_int(name, raw, getattr(config, attr)))
    config.debounce_ms = _clamp_debounce(config.debounce_ms)

    for name, attr in FLAG_FIELDS.items():
        raw = get(name)
        if raw is not None:
            setattr(config, attr, _flag(name, raw, getattr(config, attr)))
    if not config.use_watch and not config.use_polling:
        logger.warning("Both WATCH and POLLING disabled; enabling POLLING")
        config.use_polling = True

    mode = get("MODE")
    if mode is not None:
        config.mode = _choice("MODE", mode, VALID_MODES, config.mode)

    log_level = get("LOG_LEVEL")
    if log_level is not None:
        config.log_level = _choice("LOG_LEVEL", log_level.upper(), VALID_LOG_LEVELS, config.log_level)

    return config
