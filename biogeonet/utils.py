"""
Helper Functions and Utilities

This module provides common utility functions used throughout the biogeonet
package: logging configuration, external tool discovery and general helpers.

Key Utilities:
1. Logging Configuration
   - Centralized logging setup for the package logger
   - Optional log file next to the results

2. External Tool Management
   - Check for the Infomap console application and Rscript
   - Helpful error messages with installation instructions

3. General Helpers
   - Output directory creation
   - Dataset names derived from input filenames
   - Human-readable elapsed time

Example Usage:
    >>> from biogeonet.utils import check_external_tool, extract_dataset_name
    >>> if check_external_tool("Infomap"):
    ...     print("Infomap is available")
    >>> extract_dataset_name("bivalves_occurrences.csv")
    'bivalves'
"""

from typing import Optional, Union
from pathlib import Path
import logging
import re
import sys
import shutil

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# Logging Configuration
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for biogeonet.

    Sets up the package logger with console and optional file output.

    Parameters
    ----------
    log_level : str, optional
        Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)
    log_file : str, optional
        Path to log file. If None, logs only to console (default: None)
    format_string : str, optional
        Custom format string for log messages. If None, uses default format

    Returns
    -------
    logging.Logger
        Configured logger instance

    Notes
    -----
    The default format includes timestamp, level, and message:
    [2025-11-03 10:30:45] INFO: Projecting bipartite graph
    """
    package_logger = logging.getLogger("biogeonet")
    package_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    package_logger.handlers.clear()

    if format_string is None:
        format_string = "[%(asctime)s] %(levelname)s: %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

        package_logger.info(f"Logging to file: {log_file}")

    return package_logger


# ============================================================================
# External Tool Management
# ============================================================================

class ExternalToolError(RuntimeError):
    """An external executable was missing, failed, timed out, or wrote no result."""
    pass


def check_external_tool(tool_name: str, search_dir: Optional[Union[str, Path]] = None) -> bool:
    """
    Check if an external tool is available.

    Parameters
    ----------
    tool_name : str
        Executable name (e.g., 'Infomap', 'Rscript')
    search_dir : str or Path, optional
        Directory to look in instead of the system PATH

    Returns
    -------
    bool
        True if the tool was found, False otherwise (with a warning)
    """
    if search_dir is not None:
        tool_path = shutil.which(tool_name, path=str(search_dir))
    else:
        tool_path = shutil.which(tool_name)

    if tool_path is None:
        where = search_dir if search_dir is not None else "PATH"
        logger.warning(f"Tool '{tool_name}' not found in {where}")
        logger.info(get_tool_installation_instructions(tool_name))
        return False

    logger.debug(f"Found {tool_name} at: {tool_path}")
    return True


def get_tool_installation_instructions(tool_name: str) -> str:
    """
    Get installation instructions for missing external tools.

    Examples
    --------
    >>> print(get_tool_installation_instructions("Infomap"))
    """
    instructions = {
        "infomap": """
Infomap Installation:
  Via pip:   pip install infomap   (provides the 'infomap' command)
  Binaries:  https://www.mapequation.org/infomap/#Install
  Place the executable in a directory on PATH, or point
  infomap_console.executable_dir at its directory.
""",
        "rscript": """
Rscript / rnetcarto Installation:
  Via conda: conda install -c conda-forge r-base
  Via apt:   sudo apt-get install r-base
  Then, in R: install.packages("rnetcarto")
""",
    }

    key = tool_name.lower()
    if key.endswith(".exe"):
        key = key[:-4]

    return instructions.get(
        key,
        f"Please install {tool_name} and ensure it is in your system PATH"
    )


# ============================================================================
# File and Path Handling
# ============================================================================

def create_output_directory(output_dir: Union[str, Path]) -> Path:
    """
    Create output directory if it doesn't exist.

    Raises
    ------
    OSError
        If directory cannot be created due to permissions or other issues
    """
    path = Path(output_dir)

    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created/verified output directory: {path}")
        return path
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        raise


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for cross-platform compatibility.

    Examples
    --------
    >>> sanitize_filename("Baltic benthos (2019)")
    'Baltic_benthos_2019'
    """
    safe = filename.replace(' ', '_')
    safe = re.sub(r'[^\w\-.]', '_', safe)
    safe = re.sub(r'_+', '_', safe)
    return safe.strip('_')


def extract_dataset_name(file_path: Union[str, Path]) -> str:
    """
    Derive a dataset name from an occurrence matrix filename.

    Removes common suffixes such as _occurrences, _matrix or _contingency.

    Examples
    --------
    >>> extract_dataset_name("data/bivalves_occurrences.csv")
    'bivalves'
    >>> extract_dataset_name("Late Triassic reefs.tsv")
    'Late_Triassic_reefs'
    """
    basename = Path(file_path).stem

    suffixes_to_remove = [
        '_occurrences', '_occurrence', '_occ',
        '_matrix', '_contingency', '_incidence',
    ]

    cleaned = basename
    for suffix in suffixes_to_remove:
        if cleaned.lower().endswith(suffix):
            cleaned = cleaned[:-len(suffix)]

    cleaned = sanitize_filename(cleaned)

    # If we ended up with something too short, use original
    if len(cleaned) < 3:
        cleaned = sanitize_filename(basename)

    return cleaned


# ============================================================================
# Time and Formatting Utilities
# ============================================================================

def format_elapsed_time(seconds: float) -> str:
    """
    Format elapsed time in human-readable format.

    Examples
    --------
    >>> format_elapsed_time(45)
    '45s'
    >>> format_elapsed_time(3720)
    '1h 2m'
    """
    if seconds < 60:
        return f"{seconds:.0f}s"

    minutes = seconds / 60
    if minutes < 60:
        return f"{minutes:.1f}m"

    hours = minutes / 60
    minutes_remainder = minutes % 60

    if hours < 24:
        return f"{int(hours)}h {int(minutes_remainder)}m"

    days = hours / 24
    hours_remainder = hours % 24
    return f"{int(days)}d {int(hours_remainder)}h"
