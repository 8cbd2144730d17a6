"""
Unit tests for the harness configuration module.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from discovery_harness.config import HarnessConfig


class TestHarnessConfig:
    """Test the configuration management."""

    @patch.dict(os.environ, {}, clear=True)
    def test_config_defaults(self, tmp_path):
        """Test configuration with default values."""
        config = HarnessConfig(str(tmp_path))

        assert config.compose_project == "marathon"
        assert config.compose_file() == tmp_path / "tests/integration/resources/compose/marathon.yml"
        assert config.hosts_file == "/etc/hosts"
        assert config.cgroup_file == "/proc/1/cgroup"
        assert config.containment == "auto"
        assert config.patched_hosts == ["mesos-slave"]
        assert config.proxy_binary == "traefik"
        assert config.proxy_url == "http://127.0.0.1:8000"
        assert config.backend_container == "marathon"
        assert config.backend_port == 8080
        assert config.poll_interval == 0.1
        assert config.live_timeout == 60
        assert config.deployment_timeout == 120
        assert config.route_timeout == 60
        assert config.proxy_start_timeout == 0.5
        assert config.compose_pull is False
        assert config.log_level == "INFO"

    @patch.dict(
        os.environ,
        {
            "HARNESS_COMPOSE_PROJECT": "marathon15",
            "HARNESS_CONTAINMENT": "Container",
            "HARNESS_PATCHED_HOSTS": "mesos-slave, mesos-agent ,",
            "PROXY_BINARY": "/usr/local/bin/traefik",
            "PROXY_URL": "http://127.0.0.1:9000/",
            "HARNESS_BACKEND_PORT": "18080",
            "HARNESS_LIVE_TIMEOUT": "90",
            "HARNESS_COMPOSE_PULL": "yes",
            "LOG_LEVEL": "debug",
        },
        clear=True,
    )
    def test_config_from_environment(self):
        """Test configuration from environment variables."""
        config = HarnessConfig()

        assert config.compose_project == "marathon15"
        assert config.containment == "container"
        assert config.patched_hosts == ["mesos-slave", "mesos-agent"]
        assert config.proxy_binary == "/usr/local/bin/traefik"
        assert config.proxy_url == "http://127.0.0.1:9000"
        assert config.backend_port == 18080
        assert config.live_timeout == 90.0
        assert config.compose_pull is True
        assert config.log_level == "DEBUG"

    @patch.dict(os.environ, {"HARNESS_BACKEND_PORT": "eighty"})
    def test_invalid_integer(self):
        with pytest.raises(ValueError, match="HARNESS_BACKEND_PORT"):
            HarnessConfig()

    @patch.dict(os.environ, {"HARNESS_COMPOSE_PULL": "maybe"})
    def test_invalid_boolean(self):
        with pytest.raises(ValueError, match="Invalid boolean"):
            HarnessConfig()

    def test_config_immutable(self):
        config = HarnessConfig()
        with pytest.raises(AttributeError, match="immutable"):
            config.proxy_url = "http://elsewhere"

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            HarnessConfig().not_a_setting

    def test_get_with_default(self):
        config = HarnessConfig()
        assert config.get("proxy_binary") == config.proxy_binary
        assert config.get("missing", "fallback") == "fallback"

    def test_backend_url(self):
        assert HarnessConfig().backend_url("172.17.0.6") == "http://172.17.0.6:8080"

    def test_fixture_path(self, mock_config):
        config = HarnessConfig()
        assert config.fixture("marathon", "simple.toml") == Path(
            mock_config["HARNESS_FIXTURES_DIR"]
        ) / "marathon" / "simple.toml"

    def test_validate_shipped_configuration(self, mock_config):
        """Test the shipped compose fixture validates cleanly."""
        assert HarnessConfig().validate() == []

    @patch.dict(
        os.environ,
        {
            "HARNESS_CONTAINMENT": "vm",
            "PROXY_URL": "127.0.0.1:8000",
            "HARNESS_POLL_INTERVAL": "0",
            "HARNESS_ROUTE_TIMEOUT": "-1",
            "HARNESS_BACKEND_PORT": "0",
        },
    )
    def test_validate_errors(self, tmp_path):
        errors = HarnessConfig(str(tmp_path)).validate()

        assert any("HARNESS_CONTAINMENT" in e for e in errors)
        assert any("Compose file not found" in e for e in errors)
        assert any("PROXY_URL" in e for e in errors)
        assert any("HARNESS_POLL_INTERVAL" in e for e in errors)
        assert any("route_timeout" in e for e in errors)
        assert any("backend port" in e for e in errors)

    def test_startup_summary(self):
        summary = HarnessConfig().get_startup_summary()
        assert "proxy_binary" in summary
        assert set(summary["timeouts"]) == {"live", "deployment", "route", "proxy_start"}

    def test_to_dict_is_a_copy(self):
        config = HarnessConfig()
        data = config.to_dict()
        data["proxy_url"] = "changed"
        assert config.proxy_url != "changed"
