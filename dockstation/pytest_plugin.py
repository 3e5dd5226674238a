# -----------------------------------------------------------------------------
# PYTEST PLUGIN
# -----------------------------------------------------------------------------
# Fixtures for integration suites. Enable with, in conftest.py:
#
#   pytest_plugins = ["dockstation.pytest_plugin"]
#
# - docker_endpoint (session): resolved once, never re-resolved
# - docker_engine (session): async engine client for that endpoint
# - container_factory (function): lifecycle manager; leftovers disposed at teardown
# -----------------------------------------------------------------------------

import asyncio
from collections.abc import Iterator

import pytest

from dockstation.core.containers import ContainerLifecycleManager
from dockstation.core.resolver import EndpointResolver
from dockstation.domain.models import Endpoint
from dockstation.infra.docker_client import AsyncEngineClient


@pytest.fixture(scope="session")
def docker_endpoint() -> Endpoint:
    """The engine endpoint for this test session."""
    return EndpointResolver().resolve()


@pytest.fixture(scope="session")
def docker_engine(docker_endpoint: Endpoint) -> Iterator[AsyncEngineClient]:
    """Connected engine client, closed at the end of the session."""
    client = AsyncEngineClient.from_endpoint(docker_endpoint)
    yield client
    client.close()


@pytest.fixture
def container_factory(
    docker_engine: AsyncEngineClient, docker_endpoint: Endpoint
) -> Iterator[ContainerLifecycleManager]:
    """Per-test lifecycle manager; any handle a test forgot is disposed afterwards."""
    manager = ContainerLifecycleManager(docker_engine, docker_endpoint.host)
    yield manager
    if manager.active_handles:
        asyncio.run(manager.dispose_all())
