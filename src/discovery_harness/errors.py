"""
Harness error taxonomy.

Setup failures abort the whole suite, timeouts fail a single test case,
and malformed environments are fatal but kept distinct from a host that
simply is not containerized.
"""

from typing import Any, Optional


class HarnessError(Exception):
    """Base class for all harness failures."""

    pass


class SetupError(HarnessError):
    """Raised when suite setup cannot complete; no tests may run."""

    pass


class MalformedEnvironmentError(SetupError):
    """Raised when the control-group descriptor cannot be interpreted."""

    pass


class HostPatchError(SetupError):
    """Raised when the name resolution table cannot be extended."""

    pass


class UnknownContainerError(SetupError):
    """Raised when a container name is not declared by the environment."""

    pass


class ContainerAddressError(SetupError):
    """Raised when a declared container has no network address."""

    pass


class LifecycleError(HarnessError):
    """Raised when suite phases are entered out of order."""

    pass


class PollTimeoutError(HarnessError):
    """
    Raised when a bounded wait expires before its predicate holds.

    The outcome of the final attempt is kept so callers can report the
    last observed status or transport error.
    """

    def __init__(self, message: str, outcome: Optional[Any] = None):
        super().__init__(message)
        self.outcome = outcome

    @property
    def last_result(self) -> Any:
        return getattr(self.outcome, "last_result", None)

    @property
    def last_error(self) -> Optional[BaseException]:
        return getattr(self.outcome, "last_error", None)


class DeploymentSubmissionError(HarnessError):
    """Raised when the discovery backend rejects a workload submission."""

    pass


class WorkloadValidationError(HarnessError):
    """Raised when a workload definition does not form a valid payload."""

    pass
