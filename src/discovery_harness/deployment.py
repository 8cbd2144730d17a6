"""
Deployment driver for the Marathon service-discovery backend.

Publishes a workload definition and blocks until Marathon reports the
resulting deployment finished. Convergence on the backend does not prove
the proxy already routes to the workload; callers still poll the routed
endpoint afterwards.

Flow:
1. await_backend_live: poll GET /ping until 200 (long timeout), otherwise
   the first submission may fail with "no backend members available"
2. submit: a single PUT /v2/apps/<id>, never retried
3. wait_on_deployment: poll GET /v2/deployments until the id disappears
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jsonschema
import requests

from .errors import DeploymentSubmissionError, WorkloadValidationError
from .polling import wait_until

logger = logging.getLogger(__name__)

LABEL_FRONTEND_RULE = "traefik.frontend.rule"
DEFAULT_REQUEST_TIMEOUT = 10

WORKLOAD_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "pattern": "^/[a-z0-9]([a-z0-9.-]*[a-z0-9])?(/[a-z0-9]([a-z0-9.-]*[a-z0-9])?)*$"},
        "cpus": {"type": "number", "exclusiveMinimum": 0},
        "mem": {"type": "number", "exclusiveMinimum": 0},
        "instances": {"type": "integer", "minimum": 0},
        "labels": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "container": {
            "type": "object",
            "properties": {
                "type": {"const": "DOCKER"},
                "docker": {
                    "type": "object",
                    "properties": {
                        "image": {"type": "string", "minLength": 1},
                        "network": {"enum": ["BRIDGE", "HOST"]},
                        "portMappings": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "containerPort": {"type": "integer", "minimum": 0, "maximum": 65535},
                                    "hostPort": {"type": "integer", "minimum": 0, "maximum": 65535},
                                    "protocol": {"enum": ["tcp", "udp"]},
                                },
                                "required": ["containerPort"],
                            },
                        },
                    },
                    "required": ["image", "network"],
                },
            },
            "required": ["type", "docker"],
        },
    },
    "required": ["id", "cpus", "mem", "instances", "container"],
}


@dataclass
class WorkloadDefinition:
    """Declarative deployment request for a Docker-based Marathon app."""

    name: str
    image: str
    cpus: float = 0.1
    mem: float = 32
    instances: int = 1
    exposed_ports: List[int] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)

    def add_label(self, key: str, value: str) -> "WorkloadDefinition":
        self.labels[key] = value
        return self

    def expose(self, *ports: int) -> "WorkloadDefinition":
        self.exposed_ports.extend(ports)
        return self

    @property
    def app_id(self) -> str:
        return self.name if self.name.startswith("/") else f"/{self.name}"

    def to_payload(self) -> Dict[str, Any]:
        """Build the Marathon application JSON (bridged Docker networking)."""
        return {
            "id": self.app_id,
            "cpus": self.cpus,
            "mem": self.mem,
            "instances": self.instances,
            "labels": dict(self.labels),
            "container": {
                "type": "DOCKER",
                "docker": {
                    "image": self.image,
                    "network": "BRIDGE",
                    "portMappings": [
                        {"containerPort": port, "hostPort": 0, "protocol": "tcp"}
                        for port in self.exposed_ports
                    ],
                },
            },
        }

    def validate(self) -> Dict[str, Any]:
        """
        Return the payload after checking it against the workload schema.

        Raises:
            WorkloadValidationError: If the payload is invalid
        """
        payload = self.to_payload()
        try:
            jsonschema.validate(payload, WORKLOAD_SCHEMA)
        except jsonschema.ValidationError as e:
            raise WorkloadValidationError(f"Invalid workload {self.name}: {e.message}") from e
        return payload


class MarathonClient:
    """Minimal Marathon REST client."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.request_timeout = request_timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def ping(self) -> bool:
        """Liveness check; request errors propagate so pollers can retry."""
        response = self.session.get(self._url("/ping"), timeout=self.request_timeout)
        return response.status_code == 200

    def update_application(self, workload: WorkloadDefinition, force: bool = False) -> str:
        """
        Create or update an application.

        Returns:
            The deployment identifier reported by Marathon

        Raises:
            WorkloadValidationError: If the workload is invalid
            DeploymentSubmissionError: If Marathon rejects the request
        """
        payload = workload.validate()
        url = self._url(f"/v2/apps/{workload.app_id.lstrip('/')}")
        try:
            response = self.session.put(
                url,
                json=payload,
                params={"force": str(force).lower()},
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            raise DeploymentSubmissionError(f"Cannot submit {workload.app_id}: {e}") from e

        if response.status_code not in (200, 201):
            raise DeploymentSubmissionError(
                f"Marathon rejected {workload.app_id} with {response.status_code}: {response.text}"
            )

        try:
            deployment_id = response.json()["deploymentId"]
        except (ValueError, KeyError, TypeError) as e:
            raise DeploymentSubmissionError(
                f"Marathon response for {workload.app_id} lacks a deployment id: {response.text}"
            ) from e
        return deployment_id

    def deployments(self) -> List[Dict[str, Any]]:
        response = self.session.get(self._url("/v2/deployments"), timeout=self.request_timeout)
        response.raise_for_status()
        return response.json()

    def has_deployment(self, deployment_id: str) -> bool:
        return any(d.get("id") == deployment_id for d in self.deployments())


class DeploymentDriver:
    """Publishes workloads and waits for Marathon to converge on them."""

    def __init__(
        self,
        client: MarathonClient,
        live_timeout: float = 60,
        deployment_timeout: float = 120,
        interval: float = 0.5,
    ):
        self.client = client
        self.live_timeout = live_timeout
        self.deployment_timeout = deployment_timeout
        self.interval = interval
        self.backend_live = False

    def await_backend_live(self) -> None:
        """
        Block until the backend answers its liveness check.

        Raises:
            PollTimeoutError: If the backend is not live within live_timeout
        """
        logger.info("Waiting for Marathon to become ready")
        wait_until(
            self.client.ping,
            bool,
            self.live_timeout,
            self.interval,
            description=f"Marathon at {self.client.base_url} to become live",
        )
        self.backend_live = True

    def submit(self, workload: WorkloadDefinition) -> str:
        logger.info(f"Deploying test application {workload.app_id}")
        deployment_id = self.client.update_application(workload, force=False)
        logger.debug(f"Deployment {deployment_id} created for {workload.app_id}")
        return deployment_id

    def wait_on_deployment(self, deployment_id: str) -> None:
        """
        Block until the deployment no longer appears as in progress.

        Raises:
            PollTimeoutError: If it does not converge within deployment_timeout
        """
        logger.info(f"Waiting for deployment {deployment_id} to complete")
        wait_until(
            lambda: self.client.has_deployment(deployment_id),
            lambda in_progress: not in_progress,
            self.deployment_timeout,
            self.interval,
            description=f"deployment {deployment_id} to converge",
        )

    def deploy(self, workload: WorkloadDefinition) -> str:
        """Liveness check (once), submission, then convergence wait."""
        if not self.backend_live:
            self.await_backend_live()
        deployment_id = self.submit(workload)
        self.wait_on_deployment(deployment_id)
        logger.info(f"Deployment {deployment_id} of {workload.app_id} converged")
        return deployment_id
