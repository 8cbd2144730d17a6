"""
Integration test configuration and fixtures.

Scenarios here bring up the Marathon compose fixture and run the real
proxy binary. They are skipped when Docker or the binary is unavailable.
"""

import shutil

import pytest

import docker

from discovery_harness.config import HarnessConfig
from discovery_harness.lifecycle import DiscoverySuite
from discovery_harness.templates import rendered_config


def pytest_configure(config):
    """Configure integration test markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "docker: mark test as requiring Docker")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.docker)


def _docker_available() -> bool:
    try:
        docker.from_env().ping()
        return True
    except Exception:
        return False


def pytest_runtest_setup(item):
    """Skip Docker scenarios when their external collaborators are missing."""
    if item.get_closest_marker("docker"):
        if not _docker_available():
            pytest.skip("Docker not available")
        if shutil.which(HarnessConfig().proxy_binary) is None:
            pytest.skip("Proxy binary not available")


@pytest.fixture(scope="session")
def harness_config():
    return HarnessConfig()


@pytest.fixture(scope="session")
def marathon_suite(harness_config):
    """Run the Marathon environment for the whole session."""
    suite = DiscoverySuite(harness_config)
    with suite.run():
        yield suite


@pytest.fixture
def marathon_url(marathon_suite):
    url = marathon_suite.backend_url()
    print(f"Using Marathon URL {url}")
    return url


@pytest.fixture
def proxy_config(harness_config, marathon_url):
    """The simple proxy configuration pointed at the running backend."""
    with rendered_config(
        harness_config.fixture("marathon", "simple.toml"), marathon_url=marathon_url
    ) as path:
        yield path
