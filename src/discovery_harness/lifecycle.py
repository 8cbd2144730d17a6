"""
Suite lifecycle.

Composes environment bring-up, host reconciliation, subject process control
and deployment into an ordered state machine:

    UNINITIALIZED -> ENVIRONMENT_STARTING -> ENVIRONMENT_READY
        -> (per test case: PROCESS_STARTING -> PROCESS_READY -> ASSERTING
            -> PROCESS_TORN_DOWN)
        -> ENVIRONMENT_TORN_DOWN

Test cases run one at a time. Each owns the proxy's listening port and the
workload names it claims until it ends.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Sequence, Set

import requests

from .config import HarnessConfig
from .containment import probe_from_mode
from .deployment import DeploymentDriver, MarathonClient
from .environment import OrchestratedEnvironment
from .errors import LifecycleError
from .hosts import HostResolutionPatcher, HostsFileWriter
from .polling import get_request, status_code_is
from .process import SubjectProcess, running

logger = logging.getLogger(__name__)


class SuitePhase(Enum):
    UNINITIALIZED = "uninitialized"
    ENVIRONMENT_STARTING = "environment_starting"
    ENVIRONMENT_READY = "environment_ready"
    PROCESS_STARTING = "process_starting"
    PROCESS_READY = "process_ready"
    ASSERTING = "asserting"
    PROCESS_TORN_DOWN = "process_torn_down"
    ENVIRONMENT_TORN_DOWN = "environment_torn_down"


_TEST_CASE_ENTRY = (SuitePhase.ENVIRONMENT_READY, SuitePhase.PROCESS_TORN_DOWN)
_TEST_CASE_ACTIVE = (SuitePhase.PROCESS_STARTING, SuitePhase.PROCESS_READY, SuitePhase.ASSERTING)


class DiscoverySuite:
    """Owns one orchestrated environment for the duration of a suite run."""

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        environment: Optional[OrchestratedEnvironment] = None,
        patcher: Optional[HostResolutionPatcher] = None,
    ):
        self.config = config or HarnessConfig.from_environment()
        self.environment = environment or OrchestratedEnvironment(
            self.config.compose_project,
            self.config.compose_dir,
            pull=self.config.compose_pull,
        )
        self.patcher = patcher or HostResolutionPatcher(
            probe_from_mode(self.config.containment, self.config.cgroup_file),
            HostsFileWriter(self.config.hosts_file),
        )
        self.phase = SuitePhase.UNINITIALIZED
        self.subject: Optional[SubjectProcess] = None
        self._claimed_workloads: Set[str] = set()

    def _require(self, *phases: SuitePhase) -> None:
        if self.phase not in phases:
            expected = ", ".join(p.value for p in phases)
            raise LifecycleError(f"Suite is {self.phase.value}, expected one of: {expected}")

    def setup(self) -> None:
        """
        Start the environment and reconcile peer hostnames.

        Any failure stops the partially started environment and propagates
        the original error; no test case may run afterwards.
        """
        self._require(SuitePhase.UNINITIALIZED)
        self.phase = SuitePhase.ENVIRONMENT_STARTING
        try:
            self.environment.start()
            for hostname in self.config.patched_hosts:
                ip_address = self.environment.container_ip(hostname)
                self.patcher.extend(hostname, ip_address)
        except BaseException:
            self._abort_setup()
            raise
        self.phase = SuitePhase.ENVIRONMENT_READY
        logger.info(f"Suite environment {self.environment.name} ready")

    def _abort_setup(self) -> None:
        try:
            self.environment.stop()
        except Exception as e:
            logger.warning(f"Teardown after failed setup also failed: {e}")
        self.phase = SuitePhase.ENVIRONMENT_TORN_DOWN

    def teardown(self) -> None:
        """Stop the environment unconditionally. Safe to call repeatedly."""
        if self.phase is SuitePhase.ENVIRONMENT_TORN_DOWN:
            return
        if self.subject is not None:
            self.subject.close()
            self.subject = None
        try:
            self.environment.stop()
        finally:
            self.phase = SuitePhase.ENVIRONMENT_TORN_DOWN
            self._claimed_workloads.clear()

    @contextmanager
    def run(self) -> Iterator["DiscoverySuite"]:
        """Set up, yield, and always tear down."""
        self.setup()
        try:
            yield self
        finally:
            self.teardown()

    def peer_address(self, name: str) -> str:
        self._require(SuitePhase.ENVIRONMENT_READY, *_TEST_CASE_ACTIVE, SuitePhase.PROCESS_TORN_DOWN)
        return self.environment.container_ip(name)

    def backend_url(self) -> str:
        return self.config.backend_url(self.peer_address(self.config.backend_container))

    def deployment_driver(self, session: Optional[requests.Session] = None) -> DeploymentDriver:
        return DeploymentDriver(
            MarathonClient(self.backend_url(), session=session),
            live_timeout=self.config.live_timeout,
            deployment_timeout=self.config.deployment_timeout,
            interval=max(self.config.poll_interval, 0.5),
        )

    @contextmanager
    def test_case(
        self,
        config_file: str | Path,
        extra_args: Optional[Sequence[str]] = None,
        ready_timeout: Optional[float] = None,
    ) -> Iterator[SubjectProcess]:
        """
        Run one test case against a freshly started subject process.

        With ready_timeout, the block is entered only once the proxy answers
        any HTTP request. The process is killed when the block exits,
        whatever the outcome; on failure its output is logged first.
        """
        self._require(*_TEST_CASE_ENTRY)
        self.phase = SuitePhase.PROCESS_STARTING
        try:
            with running(self.config.proxy_binary, config_file, extra_args) as subject:
                self.subject = subject
                if ready_timeout is not None:
                    get_request(
                        f"{self.config.proxy_url}/",
                        ready_timeout,
                        interval=self.config.poll_interval,
                    )
                self.phase = SuitePhase.PROCESS_READY
                logger.debug(f"Subject process {subject.pid} ready, running assertions")
                self.phase = SuitePhase.ASSERTING
                yield subject
        finally:
            self.subject = None
            self._claimed_workloads.clear()
            if self.phase is not SuitePhase.ENVIRONMENT_TORN_DOWN:
                self.phase = SuitePhase.PROCESS_TORN_DOWN

    def claim_workload(self, name: str) -> str:
        """
        Reserve a workload name for the active test case.

        Raises:
            LifecycleError: If no test case is active or the name is taken
        """
        self._require(*_TEST_CASE_ACTIVE)
        if name in self._claimed_workloads:
            raise LifecycleError(f"Workload {name} is already in use in this test case")
        self._claimed_workloads.add(name)
        return name

    def wait_for_route(
        self,
        path: str,
        status_code: int,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """Poll the proxy until path answers with status_code."""
        url = f"{self.config.proxy_url}/{path.lstrip('/')}"
        return get_request(
            url,
            self.config.route_timeout if timeout is None else timeout,
            status_code_is(status_code),
            interval=self.config.poll_interval,
        )
