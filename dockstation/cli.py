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
# DOCKSTATION CLI
# -----------------------------------------------------------------------------
# Responsibility: Operator entry points for the same flows the test fixtures
# use. Handy for checking what a CI box will resolve to before running a
# suite.
#
# Commands:
# - resolve: Show the endpoint discovery settles on
# - up: Create (or replace) a named container with fixed port publication
# - down: Stop and remove a named container
# - machine-env: Show the parsed `docker-machine env` output for a machine
# -----------------------------------------------------------------------------

import asyncio
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dockstation import __version__
from dockstation.core.command_locator import CommandLocator
from dockstation.core.config import load_settings
from dockstation.core.containers import ContainerLifecycleManager
from dockstation.core.errors import DockStationError
from dockstation.core.machine_env import parse_machine_env
from dockstation.core.resolver import EndpointResolver
from dockstation.domain.models import Endpoint
from dockstation.infra.docker_client import AsyncEngineClient
from dockstation.infra.machine_tool import MachineTool

app = typer.Typer(
    name="dockstation",
    help="DockStation - a Docker endpoint and container lifecycle for integration tests",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"dockstation version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """DockStation - a Docker endpoint and container lifecycle for integration tests."""
    pass


def _fail(error: DockStationError) -> NoReturn:
    console.print(
        Panel(
            f"[bold red]{escape(str(error))}[/bold red]",
            title=type(error).__name__,
            border_style="red",
        )
    )
    raise typer.Exit(code=1)


def _resolve() -> Endpoint:
    try:
        return EndpointResolver(settings=load_settings()).resolve()
    except DockStationError as e:
        _fail(e)


@app.command()
def resolve() -> None:
    """Resolve the Docker endpoint and print it."""
    endpoint = _resolve()

    table = Table(show_header=False, box=None)
    table.add_row("Transport", endpoint.transport.value)
    table.add_row("Address", endpoint.address)
    table.add_row("Published ports on", endpoint.host)
    if endpoint.tls is not None:
        table.add_row("TLS bundle", str(endpoint.tls.bundle_handle))
        table.add_row("Verify server", "yes" if endpoint.verify_server else "no (self-signed)")
    else:
        table.add_row("TLS", "off")
    console.print(Panel(table, title="Docker Endpoint", border_style="cyan"))


@app.command()
def up(
    name: str = typer.Argument(..., help="Container name (an existing one is replaced)"),
    image: str = typer.Argument(..., help="Image reference, pulled if missing"),
    args: list[str] = typer.Argument(None, help="Arguments for the image entrypoint"),
    port: list[int] = typer.Option(
        ..., "--port", "-p", help="Container port to publish (repeatable)"
    ),
) -> None:
    """Create a named container publishing each port on the same host port."""
    endpoint = _resolve()

    async def _up() -> None:
        engine = AsyncEngineClient.from_endpoint(endpoint)
        try:
            manager = ContainerLifecycleManager(engine, endpoint.host)
            handle = await manager.create_container(name, port, image, *(args or []))
        finally:
            engine.close()

        table = Table(title=f"Container {name}")
        table.add_column("Container port", justify="right")
        table.add_column("URL")
        for requested, published in zip(port, handle.exposed_ports):
            table.add_row(str(requested), f"http://{handle.host}:{published}")
        console.print(table)
        console.print(f"[dim]id: {handle.id}[/dim]")

    try:
        asyncio.run(_up())
    except DockStationError as e:
        _fail(e)


@app.command()
def down(name: str = typer.Argument(..., help="Container name")) -> None:
    """Stop and remove a named container."""
    endpoint = _resolve()

    async def _down() -> bool:
        engine = AsyncEngineClient.from_endpoint(endpoint)
        try:
            return await ContainerLifecycleManager(engine, endpoint.host).remove_named(name)
        finally:
            engine.close()

    try:
        removed = asyncio.run(_down())
    except DockStationError as e:
        _fail(e)

    if removed:
        console.print(f"[green]Removed {name}[/green]")
    else:
        console.print(f"[yellow]No container named {name}[/yellow]")


@app.command("machine-env")
def machine_env(
    machine: str = typer.Argument(None, help="Machine name (default: DOCKSTATION_MACHINE_NAME)"),
) -> None:
    """Show the parsed `docker-machine env` output for a machine."""
    settings = load_settings()
    name = machine or settings.machine_name
    try:
        tool = MachineTool(CommandLocator().locate())
        values = parse_machine_env(tool.env(name))
    except DockStationError as e:
        _fail(e)

    table = Table(title=f"docker-machine env {name}")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in sorted(values.items()):
        table.add_row(key, value)
    console.print(table)
