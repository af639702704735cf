"""Command builders for the engine's build and package scripts.

Resolves the platform script (Build.bat / Build.sh, RunUAT.bat / RunUAT.sh)
and the argument vectors of the two actions, and pairs each CommandSpec with
the recognizer profile that understands its output.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .parsers import BUILD_PROFILE, PACKAGE_PROFILE, RecognizerProfile
from .runtime import CommandSpec, ShellWrap

__all__ = [
    "BuildMode",
    "Platform",
    "PreparedCommand",
    "build_command",
    "package_command",
    "build_script_path",
    "uat_script_path",
]

logger = logging.getLogger(__name__)

BATCH_FILES_DIR = Path("Engine") / "Build" / "BatchFiles"
STAGING_DIR_NAME = "Builds"


class Platform(str, Enum):
    """Target platforms accepted by UnrealBuildTool and UAT."""

    WIN64 = "Win64"
    LINUX = "Linux"
    MAC = "Mac"
    ANDROID = "Android"
    IOS = "iOS"
    PS4 = "PS4"
    PS5 = "PS5"
    XBOX_ONE = "XBoxOne"
    XBOX_SERIES = "XBoxSeries"
    SWITCH = "Switch"


class BuildMode(str, Enum):
    """Build configuration."""

    DEBUG = "Debug"
    DEVELOPMENT = "Development"
    SHIPPING = "Shipping"


@dataclass(frozen=True)
class PreparedCommand:
    """A CommandSpec together with the profile for its output."""

    spec: CommandSpec
    profile: RecognizerProfile


def build_script_path(engine_root: Path, host: str | None = None) -> Path:
    """Build script of the engine for the host platform."""
    host = host or sys.platform
    batch_dir = Path(engine_root) / BATCH_FILES_DIR
    if host == "win32":
        return batch_dir / "Build.bat"
    if host == "darwin":
        return batch_dir / "Mac" / "Build.sh"
    return batch_dir / "Linux" / "Build.sh"


def uat_script_path(engine_root: Path, host: str | None = None) -> Path:
    """AutomationTool launcher script for the host platform."""
    host = host or sys.platform
    script = "RunUAT.bat" if host == "win32" else "RunUAT.sh"
    return Path(engine_root) / BATCH_FILES_DIR / script


def _shell_for(host: str | None) -> ShellWrap:
    host = host or sys.platform
    return ShellWrap.CMD if host == "win32" else ShellWrap.SH


def _validate_inputs(engine_root: Path, uproject: Path) -> None:
    """Check the engine and project locations.

    Raises:
        ValueError: Engine root missing or the project is not a .uproject file
    """
    if not Path(engine_root).is_dir():
        raise ValueError(f"engine root does not exist: {engine_root}")
    if Path(uproject).suffix.lower() != ".uproject":
        raise ValueError(f"not a .uproject file: {uproject}")


def build_command(
    engine_root: Path,
    uproject: Path,
    platform: Platform = Platform.WIN64,
    mode: BuildMode = BuildMode.DEVELOPMENT,
    *,
    host: str | None = None,
) -> PreparedCommand:
    """Compile the project's game target with UnrealBuildTool.

    Args:
        engine_root: Directory containing `Engine/`
        uproject: Path to the project's .uproject file
        platform: Target platform
        mode: Build configuration
        host: Override of sys.platform (tests)
    """
    engine_root = Path(engine_root)
    uproject = Path(uproject).resolve()
    _validate_inputs(engine_root, uproject)
    platform = Platform(platform)
    mode = BuildMode(mode)

    spec = CommandSpec(
        program=str(build_script_path(engine_root, host)),
        args=(
            uproject.stem,
            platform.value,
            mode.value,
            str(uproject),
            "-waitmutex",
        ),
        cwd=uproject.parent,
        shell=_shell_for(host),
    )
    logger.debug(f"Build command: {spec.display()}")
    return PreparedCommand(spec=spec, profile=BUILD_PROFILE)


def package_command(
    engine_root: Path,
    uproject: Path,
    platform: Platform = Platform.WIN64,
    mode: BuildMode = BuildMode.DEVELOPMENT,
    *,
    host: str | None = None,
) -> PreparedCommand:
    """Build, cook, stage and package the project with UAT BuildCookRun.

    The staged output lands in `<project dir>/Builds`, which is also the
    directory revealed after a successful run.
    """
    engine_root = Path(engine_root)
    uproject = Path(uproject).resolve()
    _validate_inputs(engine_root, uproject)
    platform = Platform(platform)
    mode = BuildMode(mode)
    staging_dir = uproject.parent / STAGING_DIR_NAME

    spec = CommandSpec(
        program=str(uat_script_path(engine_root, host)),
        args=(
            "BuildCookRun",
            f"-project={uproject}",
            "-noP4",
            f"-platform={platform.value}",
            f"-clientconfig={mode.value}",
            f"-serverconfig={mode.value}",
            "-nocompileeditor",
            "-cook",
            "-allmaps",
            "-build",
            "-CookCultures=en",
            "-unversionedcookedcontent",
            "-stage",
            "-package",
            f"-stagingdirectory={staging_dir}",
        ),
        cwd=uproject.parent,
        shell=_shell_for(host),
        reveal_dir=staging_dir,
    )
    logger.debug(f"Package command: {spec.display()}")
    return PreparedCommand(spec=spec, profile=PACKAGE_PROFILE)
