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
# DOMAIN MODELS - ENDPOINTS, MACHINES, CREDENTIALS, CONTAINERS
# -----------------------------------------------------------------------------
# These models are the values that flow between the resolver (which finds an
# engine) and the lifecycle manager (which runs containers on it).
#
# Endpoint, MachineDescriptor and CredentialBundle are immutable pydantic
# models. ContainerHandle is a plain dataclass because it carries a live
# back-reference to the manager that created it.
# -----------------------------------------------------------------------------

import weakref
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from dockstation.core.containers import ContainerLifecycleManager


class Transport(str, Enum):
    """How the engine is reached."""

    LOCAL_SOCKET = "local-socket"
    TCP = "tcp"
    NAMED_PIPE = "named-pipe"


class MachineState(str, Enum):
    """
    Coarse state of a docker-machine VM.

    The tool reports many states (Running, Stopped, Saved, Paused, Error...).
    Only three matter here: can we use it, must we start it, or is the
    driver unable to tell us.
    """

    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"

    @classmethod
    def from_tool(cls, raw: str) -> "MachineState":
        """Map a raw `{{.State}}` column to a MachineState."""
        value = raw.strip().lower()
        if value == "running":
            return cls.RUNNING
        # docker-machine's hyperv driver has shipped "Uknown" as a state string
        if value in ("", "unknown", "uknown", "error"):
            return cls.UNKNOWN
        return cls.STOPPED


class CredentialBundle(BaseModel):
    """
    Mutual-TLS material for one engine connection.

    Fields:
    - certificate: PEM client certificate the bundle was built from
    - private_key: PEM private key the bundle was built from
    - bundle_handle: the persisted PKCS#12 bundle (cert + key in one file)
    - ca_certificate: CA used to verify the server, when one was provided
    """

    model_config = ConfigDict(frozen=True)

    certificate: Path
    private_key: Path
    bundle_handle: Path
    ca_certificate: Path | None = None


class Endpoint(BaseModel):
    """
    A resolved engine connection descriptor.

    Produced exactly once by the EndpointResolver and never mutated. TLS is
    only meaningful over tcp; socket and pipe transports are local and
    unauthenticated.
    """

    model_config = ConfigDict(frozen=True)

    transport: Transport
    address: str = Field(..., min_length=1, description="Engine URL, e.g. unix:///var/run/docker.sock")
    tls: CredentialBundle | None = None
    verify_server: bool = Field(
        True, description="Verify the engine's server certificate (tcp + TLS only)"
    )

    @model_validator(mode="after")
    def _tls_only_over_tcp(self) -> "Endpoint":
        if self.tls is not None and self.transport != Transport.TCP:
            raise ValueError(f"TLS credentials are not valid for {self.transport.value} endpoints")
        return self

    @property
    def uses_tls(self) -> bool:
        return self.tls is not None

    @property
    def host(self) -> str:
        """Hostname where published container ports can be reached."""
        if self.transport != Transport.TCP:
            return "localhost"
        return urlparse(self.address).hostname or "localhost"


class MachineDescriptor(BaseModel):
    """One row of `docker-machine ls`. Rebuilt on every query."""

    model_config = ConfigDict(frozen=True)

    name: str
    driver_kind: str
    state: MachineState
    url: str = ""

    @property
    def is_running(self) -> bool:
        return self.state == MachineState.RUNNING


@dataclass(eq=False)
class ContainerHandle:
    """
    Caller-visible token for a started container and its published ports.

    `exposed_ports` follows the order of the ports requested at creation.
    The handle only holds a weak reference to its manager, so it never keeps
    the engine connection alive on its own.

    Usage:
        async with await manager.create_container(...) as handle:
            url = f"http://{handle.host}:{handle.exposed_ports[0]}"
    """

    id: str
    name: str
    host: str
    exposed_ports: list[int]
    owner: weakref.ReferenceType = field(repr=False, compare=False)
    disposed: bool = False

    @classmethod
    def create(
        cls,
        container_id: str,
        name: str,
        host: str,
        exposed_ports: list[int],
        owner: "ContainerLifecycleManager",
    ) -> "ContainerHandle":
        return cls(
            id=container_id,
            name=name,
            host=host,
            exposed_ports=list(exposed_ports),
            owner=weakref.ref(owner),
        )

    async def dispose(self) -> None:
        """Stop and remove the container. Safe to call more than once."""
        manager = self.owner()
        if manager is None:
            self.disposed = True
            return
        await manager.dispose(self)

    async def __aenter__(self) -> "ContainerHandle":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()
