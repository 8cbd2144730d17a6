"""Configuration management for the discovery harness."""

import os
from pathlib import Path
from typing import Any, Dict, List

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")
_CONTAINMENT_MODES = ("auto", "host", "container")


def _env_float(name: str, default: str) -> float:
    value = os.environ.get(name, default)
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {value}") from None


def _env_int(name: str, default: str) -> int:
    value = os.environ.get(name, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {value}") from None


def _env_bool(name: str, default: str) -> bool:
    value = os.environ.get(name, default).lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value}")


def _env_list(name: str, default: str) -> List[str]:
    value = os.environ.get(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


class HarnessConfig:
    """Immutable harness configuration read from the environment."""

    def __init__(self, base_dir: str | None = None):
        """
        Initialize configuration.

        Args:
            base_dir: Directory relative paths are resolved against
                (defaults to the current working directory)
        """
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

        self._defaults = {
            # Orchestrated environment
            "compose_dir": str(
                self.base_dir
                / os.environ.get("HARNESS_COMPOSE_DIR", "tests/integration/resources/compose")
            ),
            "compose_project": os.environ.get("HARNESS_COMPOSE_PROJECT", "marathon"),
            "fixtures_dir": str(
                self.base_dir
                / os.environ.get("HARNESS_FIXTURES_DIR", "tests/integration/fixtures")
            ),
            "compose_pull": _env_bool("HARNESS_COMPOSE_PULL", "false"),

            # Host reconciliation
            "hosts_file": os.environ.get("HARNESS_HOSTS_FILE", "/etc/hosts"),
            "cgroup_file": os.environ.get("HARNESS_CGROUP_FILE", "/proc/1/cgroup"),
            "containment": os.environ.get("HARNESS_CONTAINMENT", "auto").lower(),
            "patched_hosts": _env_list("HARNESS_PATCHED_HOSTS", "mesos-slave"),

            # Subject process
            "proxy_binary": os.environ.get("PROXY_BINARY", "traefik"),
            "proxy_url": os.environ.get("PROXY_URL", "http://127.0.0.1:8000").rstrip("/"),

            # Discovery backend
            "backend_container": os.environ.get("HARNESS_BACKEND_CONTAINER", "marathon"),
            "backend_port": _env_int("HARNESS_BACKEND_PORT", "8080"),

            # Polling (seconds)
            "poll_interval": _env_float("HARNESS_POLL_INTERVAL", "0.1"),
            "live_timeout": _env_float("HARNESS_LIVE_TIMEOUT", "60"),
            "deployment_timeout": _env_float("HARNESS_DEPLOYMENT_TIMEOUT", "120"),
            "route_timeout": _env_float("HARNESS_ROUTE_TIMEOUT", "60"),
            "proxy_start_timeout": _env_float("HARNESS_PROXY_START_TIMEOUT", "0.5"),

            "log_level": os.environ.get("LOG_LEVEL", "INFO").upper(),
        }

    def __getattr__(self, name: str) -> Any:
        """Get configuration value."""
        defaults = self.__dict__.get("_defaults", {})
        if name in defaults:
            return defaults[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification of configuration after initialization."""
        defaults = self.__dict__.get("_defaults")
        if defaults is not None and name in defaults:
            raise AttributeError(f"Configuration is immutable: cannot set '{name}'")
        super().__setattr__(name, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with optional default."""
        return self._defaults.get(key, default)

    def backend_url(self, ip_address: str) -> str:
        """Build the discovery backend URL for a resolved container address."""
        return f"http://{ip_address}:{self.backend_port}"

    def compose_file(self) -> Path:
        return Path(self.compose_dir) / f"{self.compose_project}.yml"

    def fixture(self, *parts: str) -> Path:
        return Path(self.fixtures_dir).joinpath(*parts)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of validation error messages. Empty list means valid.
        """
        errors = []

        if self.containment not in _CONTAINMENT_MODES:
            errors.append(
                f"HARNESS_CONTAINMENT must be one of {', '.join(_CONTAINMENT_MODES)}: "
                f"{self.containment}"
            )

        if not self.compose_file().exists():
            errors.append(f"Compose file not found: {self.compose_file()}")

        if not (self.proxy_url.startswith("http://") or self.proxy_url.startswith("https://")):
            errors.append("PROXY_URL must start with http:// or https://")

        if self.poll_interval <= 0:
            errors.append("HARNESS_POLL_INTERVAL must be positive")

        for key in ("live_timeout", "deployment_timeout", "route_timeout", "proxy_start_timeout"):
            if self._defaults[key] < 0:
                errors.append(f"{key} must not be negative")

        if not 0 < self.backend_port < 65536:
            errors.append(f"Invalid backend port: {self.backend_port}")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self._defaults.copy()

    def __repr__(self) -> str:
        return f"HarnessConfig(base_dir={self.base_dir}, compose_project={self.compose_project})"

    def get_startup_summary(self) -> Dict[str, Any]:
        """Get configuration summary for logging."""
        return {
            "compose_file": str(self.compose_file()),
            "containment": self.containment,
            "patched_hosts": list(self.patched_hosts),
            "proxy_binary": self.proxy_binary,
            "proxy_url": self.proxy_url,
            "backend_container": self.backend_container,
            "backend_port": self.backend_port,
            "timeouts": {
                "live": self.live_timeout,
                "deployment": self.deployment_timeout,
                "route": self.route_timeout,
                "proxy_start": self.proxy_start_timeout,
            },
            "log_level": self.log_level,
        }

    @classmethod
    def from_environment(cls, base_dir: str | None = None) -> "HarnessConfig":
        return cls(base_dir)
