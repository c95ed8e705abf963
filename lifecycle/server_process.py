"""
==================================================
Server process launch and termination.
==================================================

Starts the PostgreSQL server daemon against an initialized data directory
and stops it again by pid.

Launching is fire-and-forget: start_server() returns as soon as the process
is spawned, without waiting for the server to accept connections, and the
process is detached into its own session. Nothing stops it automatically;
whoever holds the returned ServerProcess must call stop_server().

Stopping is forceful (SIGKILL, no checkpoint or graceful shutdown) and
blocks until the process is gone, so that a new server can reuse the same
directory or port straight away.

Example:
    >>> from lifecycle.server_process import start_server, stop_server
    >>>
    >>> server = start_server('/tmp/x/db1', 54321)
    >>> print(f"postgres running as pid {server.pid}")
    >>> stop_server(server.pid)
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import psutil

from core.config import config
from core.exceptions import KillFailedError, LaunchFailedError, ProcessLookupFailedError
from probe.installed import require_executable

logger = logging.getLogger(__name__)

SERVER_LOG_NAME = 'server.log'


@dataclass
class ServerProcess:
    """A launched server process.

    Attributes:
        pid: Operating system process id
        data_directory: Data directory the server was started on
        port: TCP port the server was told to listen on
        log_file: File receiving server output, if any
    """

    pid: int
    data_directory: Path
    port: int
    log_file: Optional[Path] = None


def start_server(
    data_directory: Union[str, Path],
    port: int,
    server_binary: Optional[str] = None,
    log_output: Optional[bool] = None
) -> ServerProcess:
    """Launch the server daemon without waiting for it to become ready.

    Args:
        data_directory: Initialized data directory
        port: TCP port to listen on
        server_binary: Server executable name (defaults to config)
        log_output: Write server output to <data_directory>/server.log
            (defaults to config.provision.server_log); discarded otherwise

    Returns:
        ServerProcess describing the launched process

    Raises:
        BinaryNotFoundError: If the server executable is not on PATH
        LaunchFailedError: If the process cannot be spawned
    """
    data_directory = Path(data_directory)
    path = require_executable(server_binary or config.server_binary, step='start_server')
    command = [path, '-D', str(data_directory), '-p', str(port)]

    if log_output is None:
        log_output = config.provision.server_log
    log_file = data_directory / SERVER_LOG_NAME if log_output else None

    logger.info(f"Starting server on port {port} with data directory {data_directory}")

    try:
        if log_file is not None:
            with open(log_file, 'ab') as output:
                process = subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                    start_new_session=True
                )
        else:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True
            )
    except OSError as e:
        logger.error(f"Could not launch server: {e}")
        raise LaunchFailedError(
            f"Could not launch server on port {port}: {e}",
            command=command,
            cause=e,
            port=port
        ) from e

    logger.info(f"Server launched with pid {process.pid}")
    return ServerProcess(
        pid=process.pid,
        data_directory=data_directory,
        port=port,
        log_file=log_file
    )


def stop_server(pid: int, timeout: Optional[float] = None) -> None:
    """Kill a server process and wait until it has exited.

    Args:
        pid: Process id returned by start_server()
        timeout: Seconds to wait for the process to exit (defaults to config)

    Raises:
        ProcessLookupFailedError: If the pid does not resolve to a process
        KillFailedError: If the process cannot be killed or does not exit in time
    """
    if timeout is None:
        timeout = config.stop_timeout

    try:
        process = psutil.Process(pid)
    except psutil.NoSuchProcess as e:
        logger.error(f"No process with pid {pid}")
        raise ProcessLookupFailedError(
            f"No process with pid {pid}", cause=e, pid=pid
        ) from e

    logger.info(f"Stopping server pid {pid}")

    try:
        process.kill()
    except psutil.NoSuchProcess:
        logger.debug(f"Process {pid} exited before it could be killed")
    except psutil.Error as e:
        logger.error(f"Kill error for pid {pid}: {e}")
        raise KillFailedError(f"Could not kill process {pid}: {e}", cause=e, pid=pid) from e

    try:
        # Reaps the process when it is our child
        process.wait(timeout=timeout)
    except psutil.TimeoutExpired as e:
        raise KillFailedError(
            f"Process {pid} did not exit within {timeout}s of being killed",
            cause=e,
            pid=pid
        ) from e

    logger.info(f"Server pid {pid} stopped")
