"""
Containment Detection

Determines whether the harness itself runs inside a container. Only then
do peer containers need to be reconciled into the local name resolution
table, because a harness running directly on the host reaches published
ports instead.

Detection inspects the control-group descriptor of PID 1: one record per
line, and a record whose path ends in "/" denotes the root scope. Any
record with a narrower scope means we are containerized.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from .errors import MalformedEnvironmentError

logger = logging.getLogger(__name__)

DEFAULT_CGROUP_FILE = "/proc/1/cgroup"


class ContainmentState(Enum):
    """Where the current process executes."""

    HOST = "host"
    CONTAINER = "container"
    INDETERMINATE = "indeterminate"


class ContainmentProbe(ABC):
    """Capability query answering "am I containerized?"."""

    @abstractmethod
    def state(self) -> ContainmentState:
        """Return the containment state of the current process."""


class StaticContainmentProbe(ContainmentProbe):
    """Probe with a fixed answer, used to force a mode or in tests."""

    def __init__(self, state: ContainmentState):
        self._state = state

    def state(self) -> ContainmentState:
        return self._state

    def __repr__(self) -> str:
        return f"StaticContainmentProbe({self._state.value})"


class CgroupContainmentProbe(ContainmentProbe):
    """
    Probe backed by the process control-group descriptor file.

    - file absent: HOST (not an error)
    - file empty, or an empty record before any narrower-scope record:
      INDETERMINATE, since it cannot be told apart from a truncated read
    - any record not ending in "/": CONTAINER
    - every record root-scoped: HOST

    A file that exists but cannot be read raises OSError.
    """

    def __init__(self, path: str = DEFAULT_CGROUP_FILE):
        self.path = Path(path)

    def state(self) -> ContainmentState:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"{self.path} not found, assuming host execution")
            return ContainmentState.HOST

        if not content:
            logger.warning(f"Control-group descriptor {self.path} is empty")
            return ContainmentState.INDETERMINATE

        for number, line in enumerate(content.splitlines(), start=1):
            if not line:
                logger.warning(f"Empty record on line {number} of {self.path}")
                return ContainmentState.INDETERMINATE
            if not line.endswith("/"):
                logger.debug(f"Narrow control-group scope found: {line}")
                return ContainmentState.CONTAINER

        return ContainmentState.HOST

    def __repr__(self) -> str:
        return f"CgroupContainmentProbe({self.path})"


def probe_from_mode(mode: str, cgroup_file: str = DEFAULT_CGROUP_FILE) -> ContainmentProbe:
    """
    Build a probe from a configured mode.

    Args:
        mode: "auto" inspects cgroup_file, "host" or "container" force a state

    Raises:
        ValueError: If mode is not recognized
    """
    mode = mode.lower()
    if mode == "auto":
        return CgroupContainmentProbe(cgroup_file)
    if mode == "host":
        return StaticContainmentProbe(ContainmentState.HOST)
    if mode == "container":
        return StaticContainmentProbe(ContainmentState.CONTAINER)
    raise ValueError(f"Unknown containment mode: {mode}")


def is_containerized(probe: ContainmentProbe) -> bool:
    """
    Answer the containment question, treating INDETERMINATE as fatal.

    Raises:
        MalformedEnvironmentError: If the probe cannot decide
        OSError: If the descriptor exists but cannot be read
    """
    state = probe.state()
    if state is ContainmentState.INDETERMINATE:
        raise MalformedEnvironmentError(f"Cannot determine containment state using {probe!r}")
    return state is ContainmentState.CONTAINER
