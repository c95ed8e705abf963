"""
==================================================
Data directory initialization.
==================================================

Runs the PostgreSQL initializer (initdb) against a directory so that a
server can be started on it. The directory itself must exist or be creatable
by initdb; it is not created here.

Example:
    >>> from lifecycle.data_directory import initialize_data_directory
    >>>
    >>> initialize_data_directory('/tmp/x/db1')
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Union

from core.config import config
from core.exceptions import InitFailedError
from probe.installed import require_executable

logger = logging.getLogger(__name__)

STEP = 'initialize_data_directory'


def initialize_data_directory(
    data_directory: Union[str, Path],
    initdb: Optional[str] = None
) -> None:
    """Initialize a PostgreSQL data directory.

    Args:
        data_directory: Directory to initialize
        initdb: Initializer executable name (defaults to config)

    Raises:
        BinaryNotFoundError: If the initializer is not on PATH
        InitFailedError: If the initializer cannot run or exits non-zero
    """
    path = require_executable(initdb or config.binaries.initdb, step=STEP)
    command = [path, str(data_directory)]

    logger.info(f"Initializing data directory {data_directory}")

    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as e:
        logger.error(f"Could not run initializer: {e}")
        raise InitFailedError(
            f"Could not run initializer for {data_directory}: {e}",
            command=command,
            cause=e
        ) from e

    if result.returncode != 0:
        logger.error(f"Initializer output: {result.stdout!r} {result.stderr!r}")
        raise InitFailedError(
            f"Initializer exited with status {result.returncode} for {data_directory}: "
            f"{(result.stderr or '').strip()}",
            command=command,
            cause=result.stderr
        )

    logger.debug(f"Data directory {data_directory} initialized")
