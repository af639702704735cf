"""Environment variable configuration.

Environment variables:
    UBR_LOG_DEBUG: Log debugging
        - true/1/yes = on (DEBUG log written to a temp file)
        - false/0/no = off (default, INFO log to stderr)

    UBR_POLL_INTERVAL: Console redraw tick in seconds
        - default 0.1, clamped to 0.01-2.0

    UBR_TERM_TIMEOUT: Seconds to wait after SIGTERM when cancelling a run
        - default 2.0, clamped to 0.1-30.0

    UBR_KILL_TIMEOUT: Seconds to wait after SIGKILL when cancelling a run
        - default 1.0, clamped to 0.1-30.0

    UBR_REVEAL: Reveal the package output directory after a successful package run
        - true/1/yes = on (default)
        - false/0/no = off
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_seconds(
    value: str | None,
    default: float,
    lower: float,
    upper: float,
) -> float:
    """Parse a duration, clamped to [lower, upper]; invalid values use default."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return max(lower, min(seconds, upper))


@dataclass
class Config:
    """Runner configuration.

    Attributes:
        log_debug: Log debugging (DEBUG level to a temp file)
        log_file: Log file path (set when log_debug=True)
        poll_interval: Console redraw tick (seconds)
        term_timeout: Grace period after SIGTERM (seconds)
        kill_timeout: Grace period after SIGKILL (seconds)
        reveal: Reveal the package output directory on success
    """

    log_debug: bool = False
    log_file: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    reveal: bool = True

    def __repr__(self) -> str:
        return (
            f"Config(log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"poll_interval={self.poll_interval}, "
            f"term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"reveal={self.reveal})"
        )


def _generate_log_file_path() -> str:
    """Timestamped log file under the system temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "ue-build-runner"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"ubr_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("UBR_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        log_debug=log_debug,
        log_file=log_file,
        poll_interval=_parse_seconds(
            os.environ.get("UBR_POLL_INTERVAL"), DEFAULT_POLL_INTERVAL, 0.01, 2.0
        ),
        term_timeout=_parse_seconds(
            os.environ.get("UBR_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT, 0.1, 30.0
        ),
        kill_timeout=_parse_seconds(
            os.environ.get("UBR_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT, 0.1, 30.0
        ),
        reveal=_parse_bool(os.environ.get("UBR_REVEAL"), default=True),
    )


# Global config instance (lazy)
_config: Config | None = None


def get_config() -> Config:
    """Return the global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
