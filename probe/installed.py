"""
==================================================
Executable presence checks for PostgreSQL binaries.
==================================================

Reports which of the required PostgreSQL executables are missing from the
search path. Absence is reported through the result, never raised, so a
test suite can decide to skip rather than fail.

Example:
    >>> from probe.installed import check_installed
    >>>
    >>> installed = check_installed()
    >>> if not installed.all_present:
    ...     print(f"Missing: {', '.join(installed.missing)}")
"""

import logging
import shutil
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from core.config import config
from core.exceptions import BinaryNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class InstalledSet:
    """Result of an executable presence check.

    Attributes:
        missing: Executables not found on PATH, in the order they were checked
    """

    missing: List[str] = field(default_factory=list)

    @property
    def all_present(self) -> bool:
        """True iff no executable is missing."""
        return not self.missing


def find_executable(name: str) -> Optional[str]:
    """Return the absolute path of an executable on PATH, or None."""
    return shutil.which(name)


def check_installed(executables: Optional[Iterable[str]] = None) -> InstalledSet:
    """Check which required executables are missing from PATH.

    Args:
        executables: Names to look up (defaults to config.binaries.required)

    Returns:
        InstalledSet listing the missing names
    """
    if executables is None:
        executables = config.binaries.required

    missing = [name for name in executables if find_executable(name) is None]

    if missing:
        logger.debug(f"Missing executables: {', '.join(missing)}")

    return InstalledSet(missing=missing)


def require_executable(name: str, step: Optional[str] = None) -> str:
    """Resolve an executable on PATH or fail.

    Args:
        name: Executable name
        step: Step name recorded on the error

    Returns:
        Absolute path of the executable

    Raises:
        BinaryNotFoundError: If the executable is not on PATH
    """
    path = find_executable(name)
    if path is None:
        logger.error(f"Executable '{name}' not found on PATH")
        raise BinaryNotFoundError(name, step=step)
    return path
