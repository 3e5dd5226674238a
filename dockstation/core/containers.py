# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# CONTAINER LIFECYCLE MANAGER
# -----------------------------------------------------------------------------
# Responsibility: Create named containers with fixed port publication on a
# resolved engine, and tear them down again.
#
# Guarantees:
# - One container per name: an existing container with the requested name is
#   stopped and removed before the new one is created.
# - Host port == container port for every requested port, bound on 0.0.0.0.
# - Handles dispose once; disposal never raises.
#
# Every engine call in a creation flow is awaited in order; each step needs
# the previous step's result.
# -----------------------------------------------------------------------------

import asyncio
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import requests
from docker.errors import DockerException, NotFound
from rich.console import Console
from rich.markup import escape

from dockstation.core.errors import ContainerStartFailure
from dockstation.domain.models import ContainerHandle
from dockstation.infra.docker_client import EngineClient, is_ignorable_removal_error

console = Console()

ALL_INTERFACES = "0.0.0.0"
DEFAULT_TAG = "latest"
DIGEST_SEPARATOR = "@"

# How long to wait for auto-remove to finish before reusing a name
REMOVAL_WAIT_SECONDS = 10.0
REMOVAL_POLL_SECONDS = 0.2


def split_image_reference(image: str) -> tuple[str, str]:
    """
    Split `repo[:tag]` or `repo@digest` into (repo, tag-or-digest).

    The tag defaults to latest. A colon inside a registry host
    (`localhost:5000/app`) is not a tag.
    """
    repository, sep, digest = image.partition(DIGEST_SEPARATOR)
    if sep and repository and digest:
        return repository, digest

    repository, sep, tag = image.rpartition(":")
    if sep and repository and "/" not in tag:
        return repository, tag
    return image, DEFAULT_TAG


def is_digest(tag: str) -> bool:
    """Digests (`sha256:...`) carry a colon; tags never do."""
    return ":" in tag


def join_image_reference(repository: str, tag: str) -> str:
    separator = DIGEST_SEPARATOR if is_digest(tag) else ":"
    return f"{repository}{separator}{tag}"


def _container_names(summary: dict[str, Any]) -> list[str]:
    return [name.lstrip("/") for name in summary.get("Names") or []]


class ContainerLifecycleManager:
    """
    Creates, reuses and disposes named containers on one engine.

    Args:
        client: Async engine client for the resolved endpoint.
        host: Hostname where published ports are reachable (Endpoint.host).
    """

    def __init__(self, client: EngineClient, host: str) -> None:
        self._client = client
        self._host = host
        self._active: dict[str, ContainerHandle] = {}

    @property
    def host(self) -> str:
        return self._host

    @property
    def active_handles(self) -> list[ContainerHandle]:
        return list(self._active.values())

    async def create_container(
        self, name: str, ports: Sequence[int] | int, image: str, *args: str
    ) -> ContainerHandle:
        """
        Start `image` as container `name`, publishing each port on the same host port.

        Args:
            name: Container name; an existing container with it is replaced.
            ports: Container ports to publish, in the order the handle reports them.
            image: Image reference; pulled if not present.
            *args: Command arguments passed to the image entrypoint.

        Returns:
            ContainerHandle for the running container.

        Raises:
            ValueError: No ports requested.
            ContainerStartFailure: The engine refused to start the container.
        """
        requested = [ports] if isinstance(ports, int) else list(ports)
        if not requested:
            raise ValueError("At least one container port must be requested")

        await self._ensure_image(image)
        await self._remove_named(name)

        port_bindings = {port: (ALL_INTERFACES, port) for port in requested}
        console.print(
            f"[cyan][CONTAINERS] Creating {name} from {image} "
            f"(ports: {', '.join(str(p) for p in requested)})[/cyan]"
        )
        container_id = await self._client.create_container(
            image=image,
            name=name,
            command=list(args),
            port_bindings=port_bindings,
            publish_all_ports=True,
            auto_remove=True,
        )

        try:
            await self._client.start_container(container_id)
        except (DockerException, requests.RequestException) as e:
            console.print(f"[red][CONTAINERS] Start failed for {name}: {escape(str(e))}[/red]")
            # auto-remove only applies to containers that ran
            await self._stop_and_remove(container_id, name)
            raise ContainerStartFailure(
                "The requested container could not be started. Check the container "
                f"documentation for missing arguments or environment variables: {e}",
                name=name,
                container_id=container_id,
            ) from e

        try:
            details = await self._client.inspect_container(container_id)
        except NotFound as e:
            raise ContainerStartFailure(
                f"Container {name} exited and was removed right after starting",
                name=name,
                container_id=container_id,
            ) from e

        try:
            exposed_ports = self._read_host_ports(name, container_id, details, requested)
        except ContainerStartFailure:
            await self._stop_and_remove(container_id, name)
            raise

        handle = ContainerHandle.create(
            container_id=details.get("Id") or container_id,
            name=name,
            host=self._host,
            exposed_ports=exposed_ports,
            owner=self,
        )
        self._active[name] = handle
        console.print(
            f"[green][CONTAINERS] {name} running ({handle.id[:12]}) on "
            f"{self._host}:{', '.join(str(p) for p in exposed_ports)}[/green]"
        )
        return handle

    async def dispose(self, handle: ContainerHandle) -> None:
        """
        Stop and remove a container. Best-effort: errors are logged, never raised.

        A handle is disposed at most once; later calls return immediately.
        """
        if handle.disposed:
            return
        handle.disposed = True
        if self._active.get(handle.name) is handle:
            del self._active[handle.name]

        await self._stop_and_remove(handle.id, handle.name)
        console.print(f"[cyan][CONTAINERS] Disposed {handle.name}[/cyan]")

    async def dispose_all(self) -> None:
        """Dispose every handle this manager still considers active."""
        for handle in list(self._active.values()):
            await self.dispose(handle)

    async def remove_named(self, name: str) -> bool:
        """
        Stop and remove the container called `name`, if there is one.

        Returns:
            True if a container was found.
        """
        return await self._remove_named(name)

    @asynccontextmanager
    async def container(
        self, name: str, ports: Sequence[int] | int, image: str, *args: str
    ) -> AsyncIterator[ContainerHandle]:
        """Scoped create_container: the handle is disposed on every exit path."""
        handle = await self.create_container(name, ports, image, *args)
        try:
            yield handle
        finally:
            await handle.dispose()

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _ensure_image(self, image: str) -> None:
        repository, tag = split_image_reference(image)
        reference = join_image_reference(repository, tag)
        # Digests are listed under RepoDigests, never RepoTags
        field = "RepoDigests" if is_digest(tag) else "RepoTags"
        wanted = {image, reference}

        images = await self._client.list_images()
        if any(ref in wanted for summary in images for ref in summary.get(field) or []):
            console.print(f"[cyan][CONTAINERS] Image ready: {image}[/cyan]")
            return

        console.print(f"[yellow][CONTAINERS] Pulling: {reference}...[/yellow]")
        await self._client.pull_image(repository, tag)
        console.print(f"[green][CONTAINERS] Pulled: {reference}[/green]")

    async def _stop_and_remove(self, container_id: str, name: str) -> None:
        """Best-effort stop then remove. Errors are logged, never raised."""
        try:
            await self._client.stop_container(container_id)
        except NotFound:
            pass
        except (DockerException, requests.RequestException) as e:
            console.print(f"[yellow][CONTAINERS] Stop of {name} failed: {escape(str(e))}[/yellow]")

        try:
            await self._client.remove_container(container_id)
        except (DockerException, requests.RequestException) as e:
            if not is_ignorable_removal_error(e):
                console.print(
                    f"[yellow][CONTAINERS] Removal of {name} failed: {escape(str(e))}[/yellow]"
                )

    async def _remove_named(self, name: str) -> bool:
        containers = await self._client.list_containers()
        existing = next((c for c in containers if name in _container_names(c)), None)

        stale = self._active.pop(name, None)
        if stale is not None:
            stale.disposed = True

        if existing is None:
            return False

        container_id = existing["Id"]
        console.print(f"[yellow][CONTAINERS] Replacing existing container: {name}[/yellow]")
        try:
            await self._client.stop_container(container_id)
        except NotFound:
            return True

        try:
            await self._client.remove_container(container_id)
        except DockerException as e:
            if not is_ignorable_removal_error(e):
                raise

        await self._wait_until_gone(container_id)
        return True

    async def _wait_until_gone(self, container_id: str) -> None:
        """Wait for auto-remove to release the container name."""
        deadline = time.monotonic() + REMOVAL_WAIT_SECONDS
        while time.monotonic() < deadline:
            try:
                await self._client.inspect_container(container_id)
            except NotFound:
                return
            await asyncio.sleep(REMOVAL_POLL_SECONDS)
        console.print(
            f"[yellow][CONTAINERS] Container {container_id[:12]} still present "
            f"after {REMOVAL_WAIT_SECONDS}s[/yellow]"
        )

    @staticmethod
    def _read_host_ports(
        name: str, container_id: str, details: dict[str, Any], requested: list[int]
    ) -> list[int]:
        published = (details.get("NetworkSettings") or {}).get("Ports") or {}
        host_ports: list[int] = []
        for port in requested:
            bindings = published.get(f"{port}/tcp") or []
            if not bindings:
                raise ContainerStartFailure(
                    f"Container {name} did not publish port {port}",
                    name=name,
                    container_id=container_id,
                )
            host_ports.append(int(bindings[0]["HostPort"]))
        return host_ports
