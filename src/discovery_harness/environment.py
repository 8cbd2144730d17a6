"""
Orchestrated environment and container registry access.

An environment is a docker compose project declared by a fixture file. It
is started once per suite through testcontainers, and its containers'
network addresses are looked up through the Docker SDK.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from testcontainers.compose import DockerCompose

import docker

from .errors import ContainerAddressError, SetupError, UnknownContainerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContainerHandle:
    """A running container of the environment, identified by service name."""

    name: str
    container_id: str
    ip_address: str


def _network_address(attrs: Dict[str, Any]) -> str:
    """Extract the container address from docker inspect attributes."""
    settings = attrs.get("NetworkSettings") or {}
    address = settings.get("IPAddress") or ""
    if address:
        return address
    # Compose v2 attaches containers to a project network only.
    for network in (settings.get("Networks") or {}).values():
        if network and network.get("IPAddress"):
            return network["IPAddress"]
    return ""


class OrchestratedEnvironment:
    """
    A named compose project owned by a single suite.

    The compose file at <compose_dir>/<name>.yml declares the services; only
    declared services can be looked up. Handles are resolved lazily and
    become invalid once the environment is stopped.
    """

    def __init__(
        self,
        name: str,
        compose_dir: str,
        pull: bool = False,
        docker_client: Optional[Any] = None,
    ):
        self.name = name
        self.compose_dir = Path(compose_dir)
        self.compose_file = self.compose_dir / f"{name}.yml"
        self.pull = pull
        self._docker_client = docker_client
        self._compose: Optional[DockerCompose] = None
        self._handles: Dict[str, ContainerHandle] = {}
        self._declaration: Optional[Dict[str, Any]] = None
        self.started = False

    def _load_declaration(self) -> Dict[str, Any]:
        if self._declaration is None:
            try:
                with open(self.compose_file, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise SetupError(f"Cannot load compose file {self.compose_file}: {e}") from e

            if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
                raise SetupError(f"Compose file {self.compose_file} declares no services")
            self._declaration = data
        return self._declaration

    @property
    def version(self) -> str:
        return str(self._load_declaration().get("version", "unversioned"))

    def declared_services(self) -> List[str]:
        return sorted(self._load_declaration()["services"])

    @property
    def docker_client(self) -> Any:
        if self._docker_client is None:
            self._docker_client = docker.from_env()
        return self._docker_client

    def start(self) -> None:
        """
        Bring the compose project up.

        Raises:
            SetupError: If the project cannot be started
        """
        services = self.declared_services()
        logger.info(
            f"Starting environment {self.name} (compose {self.version}): {', '.join(services)}"
        )
        self._compose = DockerCompose(
            str(self.compose_dir),
            compose_file_name=self.compose_file.name,
            pull=self.pull,
        )
        try:
            self._compose.start()
        except Exception as e:
            raise SetupError(f"Cannot start environment {self.name}: {e}") from e
        self.started = True
        logger.info(f"Environment {self.name} started")

    def stop(self) -> None:
        """
        Tear the compose project down.

        Safe to call more than once. When the environment never finished
        starting, teardown errors are logged instead of raised so they do
        not mask the original setup failure.
        """
        compose = self._compose
        self._compose = None
        self._handles.clear()
        if compose is None:
            return

        was_started = self.started
        self.started = False
        try:
            compose.stop()
        except Exception as e:
            if was_started:
                raise
            logger.warning(f"Ignoring teardown error for partially started {self.name}: {e}")
            return
        logger.info(f"Environment {self.name} stopped")

    def container(self, name: str) -> ContainerHandle:
        """
        Resolve a declared container to its current network address.

        Raises:
            UnknownContainerError: If name is not declared by the compose file
            ContainerAddressError: If the container has no address
            SetupError: If the environment is not running
        """
        if name not in self._load_declaration()["services"]:
            raise UnknownContainerError(f"Container {name} is not declared by {self.compose_file}")
        if name in self._handles:
            return self._handles[name]
        if self._compose is None or not self.started:
            raise SetupError(f"Environment {self.name} is not running")

        try:
            compose_container = self._compose.get_container(name)
            attrs = self.docker_client.containers.get(compose_container.ID).attrs
        except Exception as e:
            raise ContainerAddressError(f"Cannot inspect container {name}: {e}") from e

        ip_address = _network_address(attrs)
        if not ip_address:
            raise ContainerAddressError(f"Container {name} has no network address")

        handle = ContainerHandle(name, compose_container.ID, ip_address)
        self._handles[name] = handle
        logger.debug(f"Resolved container {name} to {ip_address}")
        return handle

    def container_ip(self, name: str) -> str:
        return self.container(name).ip_address

    def __enter__(self) -> "OrchestratedEnvironment":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
