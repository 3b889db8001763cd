"""
Operating System Conventions for Console Tools

The Infomap console application is shipped as ``Infomap`` on POSIX systems and
``Infomap.exe`` on Windows. This module detects the operating system once and
resolves the executable accordingly; path separators are handled by pathlib.

Supported platforms: linux, osx, windows. Anything else is refused with
UnsupportedPlatformError.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import logging
import platform
import shutil
import sys

logger = logging.getLogger(__name__)


class UnsupportedPlatformError(NotImplementedError):
    """The console backend has no conventions for this operating system."""
    pass


def detect_os() -> str:
    """
    Identify the operating system.

    Returns
    -------
    str
        "linux", "windows", "osx", or the lowercase system name otherwise
    """
    system = platform.system()
    if not system:
        # Fall back to the interpreter's platform tag
        if sys.platform.startswith("darwin"):
            return "osx"
        if sys.platform.startswith("linux"):
            return "linux"
        if sys.platform.startswith(("win32", "cygwin")):
            return "windows"
        return sys.platform.lower()

    if system == "Darwin":
        return "osx"
    return system.lower()


@dataclass(frozen=True)
class ConsolePlatform:
    """Executable naming for one operating system."""
    name: str
    infomap_executable: str

    def resolve_executable(self, executable_dir: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """
        Locate the Infomap executable.

        Looks in ``executable_dir`` when given, otherwise on the system PATH.
        Returns None if the executable cannot be found.
        """
        if executable_dir is not None:
            candidate = Path(executable_dir) / self.infomap_executable
            return candidate if candidate.is_file() else None

        found = shutil.which(self.infomap_executable)
        return Path(found) if found else None


PLATFORMS = {
    "linux": ConsolePlatform("linux", "Infomap"),
    "osx": ConsolePlatform("osx", "Infomap"),
    "windows": ConsolePlatform("windows", "Infomap.exe"),
}


def get_console_platform(os_name: Optional[str] = None) -> ConsolePlatform:
    """
    Return the console conventions for ``os_name`` (default: detected OS).

    Raises
    ------
    UnsupportedPlatformError
        If the operating system is not supported
    """
    if os_name is None:
        os_name = detect_os()
    os_name = os_name.lower()

    try:
        console_platform = PLATFORMS[os_name]
    except KeyError:
        raise UnsupportedPlatformError(
            f"Infomap console backend not implemented for operating system '{os_name}'"
        ) from None

    logger.debug(f"Console platform: {console_platform.name} "
                 f"(executable {console_platform.infomap_executable})")
    return console_platform
