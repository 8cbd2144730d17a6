"""
Discovery Harness - integration harness for service-discovery driven proxies

Brings up an orchestrated container environment, reconciles container
addresses into the harness's name resolution, runs the proxy under test
and drives the discovery backend, asserting end-to-end HTTP behavior with
bounded-time polling.
"""

__version__ = "0.1.0"

from .config import HarnessConfig
from .containment import (
    CgroupContainmentProbe,
    ContainmentProbe,
    ContainmentState,
    StaticContainmentProbe,
)
from .deployment import (
    LABEL_FRONTEND_RULE,
    DeploymentDriver,
    MarathonClient,
    WorkloadDefinition,
)
from .environment import ContainerHandle, OrchestratedEnvironment
from .errors import (
    ContainerAddressError,
    DeploymentSubmissionError,
    HarnessError,
    HostPatchError,
    LifecycleError,
    MalformedEnvironmentError,
    PollTimeoutError,
    SetupError,
    UnknownContainerError,
    WorkloadValidationError,
)
from .hosts import (
    HostMapping,
    HostResolutionPatcher,
    HostsFileWriter,
    InMemoryResolutionWriter,
    NameResolutionWriter,
)
from .lifecycle import DiscoverySuite, SuitePhase
from .polling import PollOutcome, PollStatus, get_request, poll_until, wait_until
from .process import SubjectProcess

__all__ = [
    "HarnessConfig",
    "ContainmentProbe",
    "ContainmentState",
    "CgroupContainmentProbe",
    "StaticContainmentProbe",
    "HostMapping",
    "NameResolutionWriter",
    "HostsFileWriter",
    "InMemoryResolutionWriter",
    "HostResolutionPatcher",
    "ContainerHandle",
    "OrchestratedEnvironment",
    "SubjectProcess",
    "WorkloadDefinition",
    "MarathonClient",
    "DeploymentDriver",
    "LABEL_FRONTEND_RULE",
    "DiscoverySuite",
    "SuitePhase",
    "PollOutcome",
    "PollStatus",
    "poll_until",
    "wait_until",
    "get_request",
    "HarnessError",
    "SetupError",
    "MalformedEnvironmentError",
    "HostPatchError",
    "UnknownContainerError",
    "ContainerAddressError",
    "LifecycleError",
    "PollTimeoutError",
    "DeploymentSubmissionError",
    "WorkloadValidationError",
    "__version__",
]
