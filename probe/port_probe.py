"""
==================================================
Platform-specific detection of listening server ports.
==================================================

Answers "is a server process listening on this TCP port?" by shelling out to
the socket inspection tool of the host OS and parsing its text output:

    - darwin: lsof, scanning open TCP file handles of the server command
    - linux:  netstat, scanning the kernel listening-socket table for entries
              owned by the server program and bound to a wildcard address
    - other:  no strategy; probing raises UnsupportedPlatformError

The strategy is picked once with get_port_probe() and used through the common
PortProbe interface.

Example:
    >>> from probe.port_probe import get_port_probe
    >>>
    >>> probe = get_port_probe()
    >>> if probe.is_listening(5432):
    ...     print("A postgres server owns port 5432")
"""

import logging
import subprocess
import sys
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from core.config import config
from core.exceptions import ProbeCommandFailedError, UnsupportedPlatformError

logger = logging.getLogger(__name__)


def _parse_port(token: str) -> Optional[int]:
    """Extract the trailing port component of an 'address:port' token."""
    _, sep, port = token.rpartition(':')
    if not sep or not port.isdigit():
        return None
    return int(port)


class PortProbe(ABC):
    """Base class for listening-port inspection strategies.

    Attributes:
        server_binary: Process name the listening socket must belong to
        command: Inspection command line run by listening_ports()
    """

    command: Sequence[str] = ()

    def __init__(self, server_binary: Optional[str] = None):
        self.server_binary = server_binary or config.server_binary

    def _accepts_exit(self, returncode: int, stdout: str) -> bool:
        return returncode == 0

    def _run(self) -> str:
        """Run the inspection command and return its standard output.

        Raises:
            ProbeCommandFailedError: If the command cannot be executed or
                exits with an unexpected status
        """
        logger.debug(f"Running port probe: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                list(self.command),
                capture_output=True,
                text=True,
                check=False
            )
        except OSError as e:
            raise ProbeCommandFailedError(
                f"Could not execute port inspection command: {e}",
                command=self.command,
                cause=e
            ) from e

        if not self._accepts_exit(result.returncode, result.stdout):
            raise ProbeCommandFailedError(
                f"Port inspection command exited with status {result.returncode}: "
                f"{(result.stderr or '').strip()}",
                command=self.command,
                cause=result.stderr
            )

        return result.stdout

    @abstractmethod
    def parse(self, output: str) -> List[int]:
        """Extract the ports owned by the server binary from command output."""

    def listening_ports(self) -> List[int]:
        """Get every port the server binary is listening on."""
        return self.parse(self._run())

    def is_listening(self, port: int) -> bool:
        """Check whether the server binary listens on the given port."""
        ports = self.listening_ports()
        listening = port in ports
        logger.debug(f"Port {port} {'is' if listening else 'is not'} served by {self.server_binary}")
        return listening


class LsofPortProbe(PortProbe):
    """Port probe reading open TCP file handles via lsof (macOS).

    lsof prints the command name truncated to 9 characters and exits with
    status 1 when nothing matches, which is treated as an empty listing.
    """

    command = ('lsof', '-nP', '-iTCP', '-sTCP:LISTEN')
    protocol_marker = 'TCP'
    command_width = 9

    def _accepts_exit(self, returncode: int, stdout: str) -> bool:
        return returncode == 0 or (returncode == 1 and not stdout.strip())

    def parse(self, output: str) -> List[int]:
        expected = self.server_binary[:self.command_width]
        ports = []
        for line in output.splitlines():
            fields = line.split()
            if not fields or fields[0] != expected:
                continue
            if self.protocol_marker not in fields:
                continue
            marker_index = fields.index(self.protocol_marker)
            if marker_index + 1 >= len(fields):
                continue
            address = fields[marker_index + 1].split('->', 1)[0]
            port = _parse_port(address)
            if port is not None:
                ports.append(port)
        return ports


class NetstatPortProbe(PortProbe):
    """Port probe reading the listening-socket table via netstat (Linux).

    Only sockets bound to one of the accepted addresses (wildcard and
    loopback by default) and owned by the server program are reported.
    """

    command = ('netstat', '-tlnp')

    def __init__(
        self,
        server_binary: Optional[str] = None,
        bind_addresses: Optional[Iterable[str]] = None
    ):
        super().__init__(server_binary)
        if bind_addresses is None:
            bind_addresses = config.provision.bind_addresses
        self.bind_addresses = tuple(bind_addresses)

    def parse(self, output: str) -> List[int]:
        ports = []
        for line in output.splitlines():
            fields = line.split()
            if len(fields) < 7 or not fields[0].startswith('tcp'):
                continue
            _, _, program = fields[-1].partition('/')
            if program != self.server_binary:
                continue
            host, _, _ = fields[3].rpartition(':')
            if host not in self.bind_addresses:
                continue
            port = _parse_port(fields[3])
            if port is not None:
                ports.append(port)
        return ports


class UnsupportedPortProbe(PortProbe):
    """Fallback for platforms without an inspection strategy; always raises."""

    def __init__(self, platform: str, server_binary: Optional[str] = None):
        super().__init__(server_binary)
        self.platform = platform

    def _run(self) -> str:
        raise UnsupportedPlatformError(self.platform)

    def parse(self, output: str) -> List[int]:
        raise UnsupportedPlatformError(self.platform)


def get_port_probe(
    platform: Optional[str] = None,
    server_binary: Optional[str] = None
) -> PortProbe:
    """Select the port probe for a platform.

    Args:
        platform: sys.platform-style name (defaults to the running platform)
        server_binary: Server process name (defaults to config)

    Returns:
        LsofPortProbe on darwin, NetstatPortProbe on linux,
        UnsupportedPortProbe anywhere else
    """
    platform = platform or sys.platform

    if platform == 'darwin':
        return LsofPortProbe(server_binary)
    if platform.startswith('linux'):
        return NetstatPortProbe(server_binary)
    return UnsupportedPortProbe(platform, server_binary)
