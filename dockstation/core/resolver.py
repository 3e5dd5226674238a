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
# ENDPOINT RESOLVER - FINDING AN ENGINE
# -----------------------------------------------------------------------------
# Responsibility: Produce one Endpoint for the lifetime of a test fixture,
# without the operator having configured anything.
#
# Strategy (first match wins):
# 1. DOCKER_HOST is set         -> use it as-is
# 2. A native engine is local   -> named pipe (Windows) / unix socket
# 3. Otherwise                  -> provision a docker-machine VM and use it
#
# States move forward only:
#
#   UNRESOLVED -> NATIVE_LOOKUP -> MACHINE_PROVISIONING -> RESOLVED
#        |              |                                     ^
#        +--------------+-------------------------------------+
#
# Any failure lands in FATAL. Nothing is re-resolved once RESOLVED, even if
# the engine later becomes unreachable.
# -----------------------------------------------------------------------------

from collections.abc import Callable
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from rich.console import Console
from rich.markup import escape

from dockstation.core.command_locator import CommandLocator
from dockstation.core.config import DEFAULT_HYPERV_SWITCH_NAME, HostSettings, load_settings
from dockstation.core.credentials import CredentialBundler
from dockstation.core.errors import MachineMisconfigured
from dockstation.core.machine_env import MachineEnvironment
from dockstation.domain.models import Endpoint, MachineState, Transport
from dockstation.infra.host_environment import (
    DARWIN,
    LINUX,
    WINDOWS,
    HostEnvironment,
    SystemHostEnvironment,
)
from dockstation.infra.machine_tool import MachineTool

console = Console()

WINDOWS_PIPE_PATH = r"\\.\pipe\docker_engine"
WINDOWS_PIPE_URL = "npipe:////./pipe/docker_engine"
UNIX_SOCKET_PATH = "/var/run/docker.sock"
UNIX_SOCKET_URL = f"unix://{UNIX_SOCKET_PATH}"

HYPERV_DRIVER = "hyperv"
VIRTUALBOX_DRIVER = "virtualbox"
HYPERV_SWITCH_OPTION = "--hyperv-virtual-switch"


class ResolutionState(str, Enum):
    UNRESOLVED = "unresolved"
    NATIVE_LOOKUP = "native-lookup"
    MACHINE_PROVISIONING = "machine-provisioning"
    RESOLVED = "resolved"
    FATAL = "fatal"


ALLOWED_TRANSITIONS: dict[ResolutionState, frozenset[ResolutionState]] = {
    ResolutionState.UNRESOLVED: frozenset(
        {ResolutionState.NATIVE_LOOKUP, ResolutionState.RESOLVED, ResolutionState.FATAL}
    ),
    ResolutionState.NATIVE_LOOKUP: frozenset(
        {ResolutionState.MACHINE_PROVISIONING, ResolutionState.RESOLVED, ResolutionState.FATAL}
    ),
    ResolutionState.MACHINE_PROVISIONING: frozenset(
        {ResolutionState.RESOLVED, ResolutionState.FATAL}
    ),
    ResolutionState.RESOLVED: frozenset(),
    ResolutionState.FATAL: frozenset(),
}

TERMINAL_STATES = frozenset({ResolutionState.RESOLVED, ResolutionState.FATAL})

# A step returns the next state, plus the Endpoint when that state is RESOLVED
StepResult = tuple[ResolutionState, Endpoint | None]


def transport_for(address: str) -> Transport:
    """Classify an engine URL by scheme."""
    scheme = urlparse(address).scheme.lower()
    if scheme == "unix":
        return Transport.LOCAL_SOCKET
    if scheme == "npipe":
        return Transport.NAMED_PIPE
    return Transport.TCP


class EndpointResolver:
    """
    One-shot engine discovery.

    Args:
        settings: Environment-derived knobs; loaded from env/.env if omitted.
        host: Host facts used for native probing and driver defaults.
        locator: Finds or downloads docker-machine.
        bundler: Builds mutual-TLS credentials.
        tool_factory: Builds a MachineTool from the located command.
    """

    def __init__(
        self,
        settings: HostSettings | None = None,
        host: HostEnvironment | None = None,
        locator: CommandLocator | None = None,
        bundler: CredentialBundler | None = None,
        tool_factory: Callable[[str], MachineTool] = MachineTool,
    ) -> None:
        self._settings = settings if settings is not None else load_settings()
        self._host = host or SystemHostEnvironment()
        self._locator = locator or CommandLocator(host=self._host)
        self._bundler = bundler or CredentialBundler()
        self._tool_factory = tool_factory

        self._state = ResolutionState.UNRESOLVED
        self._endpoint: Endpoint | None = None
        self._error: Exception | None = None

        self._steps: dict[ResolutionState, Callable[[], StepResult]] = {
            ResolutionState.UNRESOLVED: self._use_explicit_host,
            ResolutionState.NATIVE_LOOKUP: self._find_native,
            ResolutionState.MACHINE_PROVISIONING: self._provision_machine,
        }

    @property
    def state(self) -> ResolutionState:
        return self._state

    def resolve(self) -> Endpoint:
        """
        Resolve the engine endpoint, once.

        Later calls return the same Endpoint, or re-raise the original error
        if resolution failed.

        Raises:
            UnsupportedPlatform, ToolUnavailable, MachineToolExecutionFailure,
            MachineMisconfigured, MalformedEnvironment, CredentialBuildFailure
        """
        if self._error is not None:
            raise self._error
        if self._endpoint is not None:
            return self._endpoint

        try:
            while self._state not in TERMINAL_STATES:
                next_state, endpoint = self._steps[self._state]()
                self._advance(next_state, endpoint)
        except Exception as e:
            self._error = e
            self._advance(ResolutionState.FATAL)
            console.print(f"[red][RESOLVER] Resolution failed: {escape(str(e))}[/red]")
            raise

        return self._endpoint

    def _advance(self, target: ResolutionState, endpoint: Endpoint | None = None) -> None:
        if target not in ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal resolver transition {self._state.value} -> {target.value}")
        if target == ResolutionState.RESOLVED:
            if endpoint is None:
                raise RuntimeError("Resolver reached RESOLVED without an endpoint")
            self._endpoint = endpoint
            console.print(
                f"[green][RESOLVER] Resolved {endpoint.transport.value} endpoint: "
                f"{endpoint.address}{' (TLS)' if endpoint.uses_tls else ''}[/green]"
            )
        self._state = target

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _use_explicit_host(self) -> StepResult:
        address = self._settings.docker_host
        if not address:
            return ResolutionState.NATIVE_LOOKUP, None

        console.print(f"[cyan][RESOLVER] Using DOCKER_HOST: {address}[/cyan]")
        transport = transport_for(address)

        if not self._settings.tls_verify:
            return ResolutionState.RESOLVED, Endpoint(transport=transport, address=address)

        if transport != Transport.TCP:
            console.print(
                "[yellow][RESOLVER] DOCKER_TLS_VERIFY ignored for "
                f"{transport.value} endpoint[/yellow]"
            )
            return ResolutionState.RESOLVED, Endpoint(transport=transport, address=address)

        cert_path = self._settings.cert_path or Path.home() / ".docker"
        bundle = self._bundler.build(cert_path)
        return ResolutionState.RESOLVED, Endpoint(
            transport=transport, address=address, tls=bundle, verify_server=True
        )

    def _find_native(self) -> StepResult:
        os_name = self._host.os_name

        if os_name == WINDOWS and self._host.path_exists(WINDOWS_PIPE_PATH):
            return ResolutionState.RESOLVED, Endpoint(
                transport=Transport.NAMED_PIPE, address=WINDOWS_PIPE_URL
            )

        if os_name in (LINUX, DARWIN) and self._host.path_exists(UNIX_SOCKET_PATH):
            return ResolutionState.RESOLVED, Endpoint(
                transport=Transport.LOCAL_SOCKET, address=UNIX_SOCKET_URL
            )

        console.print(
            "[yellow][RESOLVER] No native engine found, falling back to docker-machine[/yellow]"
        )
        return ResolutionState.MACHINE_PROVISIONING, None

    def _provision_machine(self) -> StepResult:
        name = self._settings.machine_name
        tool = self._tool_factory(self._locator.locate())

        machine = tool.find_machine(name)
        if machine is None:
            driver = self._driver_name()
            tool.create(name, driver, self._driver_options(driver))
        elif machine.state == MachineState.UNKNOWN:
            raise MachineMisconfigured(
                f"Docker Machine '{name}' ({machine.driver_kind}) reports an unknown state. "
                "Drivers such as hyperv need administrator privileges to report state.",
                machine_name=name,
                driver=machine.driver_kind,
            )
        elif not machine.is_running:
            tool.start(name)
        else:
            console.print(f"[green][RESOLVER] Docker Machine '{name}' already running[/green]")

        environment = MachineEnvironment.from_output(tool.env(name))
        if not environment.tls_verify:
            return ResolutionState.RESOLVED, Endpoint(
                transport=transport_for(environment.host), address=environment.host
            )

        bundle = self._bundler.build(environment.cert_path)
        # docker-machine VMs serve a self-signed certificate
        return ResolutionState.RESOLVED, Endpoint(
            transport=Transport.TCP,
            address=environment.host,
            tls=bundle,
            verify_server=False,
        )

    # -------------------------------------------------------------------------
    # Driver selection
    # -------------------------------------------------------------------------

    def _driver_name(self) -> str:
        if self._settings.machine_driver:
            driver = self._settings.machine_driver
            console.print(f"[cyan][RESOLVER] Using DOCKER_MACHINE_DRIVER: {driver}[/cyan]")
            return driver

        if self._host.os_name == WINDOWS:
            console.print(
                "[yellow][RESOLVER] Windows detected, assuming Hyper-V is available. "
                f"Set DOCKER_MACHINE_DRIVER={VIRTUALBOX_DRIVER} to use VirtualBox instead[/yellow]"
            )
            return HYPERV_DRIVER

        return VIRTUALBOX_DRIVER

    def _driver_options(self, driver: str) -> dict[str, str]:
        if driver != HYPERV_DRIVER:
            return {}

        switch_name = self._settings.hyperv_switch_name
        if switch_name:
            console.print(f"[cyan][RESOLVER] Using Hyper-V switch: {switch_name}[/cyan]")
        else:
            console.print(
                "[yellow][RESOLVER] Assuming default Hyper-V switch "
                f"'{DEFAULT_HYPERV_SWITCH_NAME}'. Set HYPERV_SWITCH_NAME to override it[/yellow]"
            )
            switch_name = DEFAULT_HYPERV_SWITCH_NAME
        return {HYPERV_SWITCH_OPTION: switch_name}


def resolve_endpoint(settings: HostSettings | None = None) -> Endpoint:
    """Resolve an endpoint with the default collaborators."""
    return EndpointResolver(settings=settings).resolve()
