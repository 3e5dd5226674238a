# -----------------------------------------------------------------------------
# DOCKER PROVIDER
# -----------------------------------------------------------------------------
# Responsibility: Turn a resolved Endpoint into a live Docker SDK connection
# and expose the engine operations the lifecycle manager needs as awaitables.
#
# This is part of the Infrastructure layer - the core never touches the SDK
# directly, only the AsyncEngineClient surface below. Each SDK call is
# blocking, so it runs in a worker thread via asyncio.to_thread.
# -----------------------------------------------------------------------------

import asyncio
from typing import Any, Protocol

import docker
from docker import APIClient, DockerClient
from docker.errors import APIError, DockerException, NotFound
from docker.tls import TLSConfig
from rich.console import Console
from rich.markup import escape

from dockstation.core.errors import EngineUnavailable
from dockstation.domain.models import Endpoint

console = Console()

STOP_TIMEOUT_SECONDS = 10

# HTTP 409 on DELETE /containers/{id}: "removal of container ... is already in progress"
REMOVAL_IN_PROGRESS_STATUS = 409


class EngineClient(Protocol):
    """The engine operations the lifecycle manager relies on."""

    async def list_images(self) -> list[dict[str, Any]]: ...

    async def pull_image(self, repository: str, tag: str = "latest") -> None: ...

    async def list_containers(self) -> list[dict[str, Any]]: ...

    async def create_container(
        self,
        image: str,
        name: str,
        command: list[str],
        port_bindings: dict[int, tuple[str, int]],
        publish_all_ports: bool = True,
        auto_remove: bool = True,
    ) -> str: ...

    async def start_container(self, container_id: str) -> None: ...

    async def stop_container(self, container_id: str) -> None: ...

    async def remove_container(self, container_id: str) -> None: ...

    async def inspect_container(self, container_id: str) -> dict[str, Any]: ...


def is_ignorable_removal_error(error: Exception) -> bool:
    """
    True when a failed removal means the container is already going away.

    That is the case when the engine no longer knows the container (404) or
    its auto-remove is already deleting it (409). Anything else is a real
    failure.
    """
    if isinstance(error, NotFound):
        return True
    return isinstance(error, APIError) and error.status_code == REMOVAL_IN_PROGRESS_STATUS


def build_tls_config(endpoint: Endpoint) -> TLSConfig | None:
    """
    SDK TLS settings for an endpoint, or None for plain connections.

    When the endpoint opts out of server verification (docker-machine VMs
    use a self-signed server certificate) only the client certificate is
    presented.
    """
    bundle = endpoint.tls
    if bundle is None:
        return None

    client_cert = (str(bundle.certificate), str(bundle.private_key))
    if not endpoint.verify_server:
        return TLSConfig(client_cert=client_cert, verify=False)

    ca_cert = str(bundle.ca_certificate) if bundle.ca_certificate else None
    return TLSConfig(client_cert=client_cert, ca_cert=ca_cert, verify=True)


def connect(endpoint: Endpoint) -> DockerClient:
    """
    Open and ping a DockerClient for the endpoint.

    Raises:
        EngineUnavailable: The engine did not answer.
    """
    params: dict[str, Any] = {"base_url": endpoint.address}
    tls_config = build_tls_config(endpoint)
    if tls_config is not None:
        params["tls"] = tls_config

    try:
        client = docker.DockerClient(**params)
        client.ping()
    except DockerException as e:
        console.print(f"[red][ENGINE] Cannot reach {endpoint.address}: {escape(str(e))}[/red]")
        raise EngineUnavailable(
            f"Docker Engine at {endpoint.address} is not available: {e}", endpoint.address
        ) from e

    console.print(f"[green][ENGINE] Connected to Docker Engine at {endpoint.address}[/green]")
    return client


class AsyncEngineClient:
    """
    Awaitable facade over the low-level Docker API client.

    Args:
        api: A connected docker.APIClient.
    """

    def __init__(self, api: APIClient) -> None:
        self._api = api

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint) -> "AsyncEngineClient":
        """Connect to the endpoint and wrap its low-level API client."""
        return cls(connect(endpoint).api)

    async def list_images(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._api.images, all=True)

    async def pull_image(self, repository: str, tag: str = "latest") -> None:
        """Pull an image and wait for completion. Progress events are dropped."""

        def _pull() -> None:
            for event in self._api.pull(repository, tag=tag, stream=True, decode=True):
                if isinstance(event, dict) and event.get("error"):
                    raise DockerException(f"Pull of {repository}:{tag} failed: {event['error']}")

        await asyncio.to_thread(_pull)

    async def list_containers(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._api.containers, all=True)

    async def create_container(
        self,
        image: str,
        name: str,
        command: list[str],
        port_bindings: dict[int, tuple[str, int]],
        publish_all_ports: bool = True,
        auto_remove: bool = True,
    ) -> str:
        """Create (but do not start) a container and return its id."""

        def _create() -> str:
            host_config = self._api.create_host_config(
                port_bindings=port_bindings,
                publish_all_ports=publish_all_ports,
                auto_remove=auto_remove,
            )
            response = self._api.create_container(
                image=image,
                name=name,
                command=command or None,
                ports=list(port_bindings),
                host_config=host_config,
            )
            return response["Id"]

        return await asyncio.to_thread(_create)

    async def start_container(self, container_id: str) -> None:
        await asyncio.to_thread(self._api.start, container_id)

    async def stop_container(self, container_id: str) -> None:
        await asyncio.to_thread(self._api.stop, container_id, timeout=STOP_TIMEOUT_SECONDS)

    async def remove_container(self, container_id: str) -> None:
        await asyncio.to_thread(self._api.remove_container, container_id)

    async def inspect_container(self, container_id: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._api.inspect_container, container_id)

    def close(self) -> None:
        self._api.close()
