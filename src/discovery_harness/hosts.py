"""
Host resolution patching.

When the harness runs inside a container, peer containers started by the
orchestrated environment are only reachable by IP. The subject process
however is configured with logical names, so each (hostname, IP) pair is
appended to the system name resolution table.

Entries are append-only and never rewritten. Applying the same mapping
twice produces two lines; callers apply each mapping once per process.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .containment import ContainmentProbe, is_containerized
from .errors import HostPatchError

logger = logging.getLogger(__name__)

DEFAULT_HOSTS_FILE = "/etc/hosts"


@dataclass(frozen=True)
class HostMapping:
    """A hostname made resolvable to a fixed address."""

    hostname: str
    ip_address: str

    def to_line(self) -> str:
        return f"{self.ip_address}\t{self.hostname}\n"


class NameResolutionWriter(ABC):
    """Append-only sink for name resolution records."""

    @abstractmethod
    def append(self, line: str) -> None:
        """Append one complete line to the resolution table."""


class HostsFileWriter(NameResolutionWriter):
    """Writer backed by the system hosts file."""

    def __init__(self, path: str = DEFAULT_HOSTS_FILE):
        self.path = Path(path)

    def append(self, line: str) -> None:
        # Closed on every path, including a failed write.
        with open(self.path, "a", encoding="utf-8") as handle:
            handle.write(line)

    def __repr__(self) -> str:
        return f"HostsFileWriter({self.path})"


class InMemoryResolutionWriter(NameResolutionWriter):
    """Writer keeping records in memory."""

    def __init__(self):
        self.lines: List[str] = []

    def append(self, line: str) -> None:
        self.lines.append(line)

    def getvalue(self) -> str:
        return "".join(self.lines)


class HostResolutionPatcher:
    """Reconciles container addresses into resolvable hostnames."""

    def __init__(self, probe: ContainmentProbe, writer: NameResolutionWriter):
        self.probe = probe
        self.writer = writer

    def extend(self, hostname: str, ip_address: str) -> Optional[HostMapping]:
        """
        Make hostname resolve to ip_address if running inside a container.

        Args:
            hostname: Logical name of the peer container
            ip_address: Address assigned to the peer container

        Returns:
            The applied mapping, or None when running on the host

        Raises:
            ValueError: If hostname or ip_address is empty
            HostPatchError: If the resolution table cannot be written
            MalformedEnvironmentError: If containment cannot be determined
        """
        if not hostname:
            raise ValueError("Hostname cannot be empty")
        if not ip_address:
            raise ValueError("IP address cannot be empty")

        try:
            containerized = is_containerized(self.probe)
        except OSError as e:
            raise HostPatchError(f"Cannot inspect containment state: {e}") from e

        if not containerized:
            logger.debug(f"Not containerized, skipping host mapping for {hostname}")
            return None

        mapping = HostMapping(hostname, ip_address)
        try:
            self.writer.append(mapping.to_line())
        except OSError as e:
            raise HostPatchError(
                f"Cannot add {hostname} -> {ip_address} using {self.writer!r}: {e}"
            ) from e

        logger.info(f"Mapped {hostname} to {ip_address}")
        return mapping
