"""Fire-and-forget reveal of a directory in the platform file browser."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path

__all__ = ["reveal_command", "reveal_in_file_browser"]

logger = logging.getLogger(__name__)


def reveal_command(path: Path, platform: str | None = None) -> list[str]:
    """Command that opens `path` in the file browser of `platform`."""
    platform = platform or sys.platform
    if platform == "win32":
        return ["explorer", str(path)]
    if platform == "darwin":
        return ["open", str(path)]
    return ["xdg-open", str(path)]


def reveal_in_file_browser(path: Path) -> bool:
    """Open `path` without waiting for the browser.

    Failures are logged and reported through the return value only.
    """
    path = Path(path)
    if not path.is_dir():
        logger.warning(f"Not revealing missing directory: {path}")
        return False

    cmd = reveal_command(path)
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=sys.platform != "win32",
        )
    except OSError as e:
        logger.warning(f"Failed to reveal {path}: {e}")
        return False

    logger.info(f"Revealed {path}")
    return True
