# -----------------------------------------------------------------------------
# MACHINE TOOL - docker-machine SUBPROCESS WRAPPER
# -----------------------------------------------------------------------------
# Responsibility: Run docker-machine subcommands and turn their output into
# values. Uses subprocess directly; each call blocks until the tool exits
# and buffers its whole output.
#
# Subcommands used:
# - ls --format "{{.Name}};{{.DriverName}};{{.State}};{{.URL}}"
# - create --driver <driver> [<opts>...] <name>
# - start <name>
# - env <name>
#
# Any nonzero exit raises MachineToolExecutionFailure with the exit code and
# captured output. Nothing here retries.
# -----------------------------------------------------------------------------

import subprocess
from dataclasses import dataclass

from rich.console import Console

from dockstation.core.errors import (
    MachineToolExecutionFailure,
    MalformedEnvironment,
    ToolUnavailable,
)
from dockstation.domain.models import MachineDescriptor, MachineState

console = Console()

LS_FORMAT = "{{.Name}};{{.DriverName}};{{.State}};{{.URL}}"
LS_COLUMNS = 4


@dataclass
class MachineResult:
    """Captured result of one docker-machine invocation."""

    exit_code: int
    stdout: str
    stderr: str = ""

    @property
    def output(self) -> str:
        """stdout, followed by stderr when the tool wrote any."""
        if self.stderr.strip():
            return f"{self.stdout}{self.stderr}"
        return self.stdout


def parse_machine_list(output: str) -> list[MachineDescriptor]:
    """
    Parse `ls --format` output into descriptors.

    Raises:
        MalformedEnvironment: A line does not have the four expected columns.
    """
    machines: list[MachineDescriptor] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        columns = line.strip().split(";")
        if len(columns) < LS_COLUMNS:
            raise MalformedEnvironment(
                f"Unexpected docker-machine ls line (want name;driver;state;url): {line!r}"
            )
        name, driver, state = columns[0], columns[1], columns[2]
        # URLs never contain ';' but keep anything after the third separator intact
        url = ";".join(columns[3:])
        machines.append(
            MachineDescriptor(
                name=name.strip(),
                driver_kind=driver.strip(),
                state=MachineState.from_tool(state),
                url=url.strip(),
            )
        )
    return machines


class MachineTool:
    """
    docker-machine wrapper bound to one executable path.

    Args:
        command: Executable name or path, as returned by CommandLocator.locate().
    """

    def __init__(self, command: str) -> None:
        self._command = command

    @property
    def command(self) -> str:
        return self._command

    def run(self, *args: str) -> MachineResult:
        """
        Run docker-machine with `args` and capture its output.

        Raises:
            ToolUnavailable: The executable could not be started.
        """
        try:
            completed = subprocess.run(
                [self._command, *args],
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise ToolUnavailable(f"Could not execute '{self._command}': {e}") from e

        return MachineResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def run_checked(self, failure_message: str, *args: str) -> str:
        """
        Run docker-machine and return stdout, raising on a nonzero exit.

        Raises:
            MachineToolExecutionFailure: Exit code was not 0.
        """
        result = self.run(*args)
        if result.exit_code != 0:
            console.print(
                f"[red][MACHINE] {failure_message} (exit code {result.exit_code})[/red]"
            )
            raise MachineToolExecutionFailure(
                failure_message, list(args), result.exit_code, result.output
            )
        return result.stdout

    def list_machines(self) -> list[MachineDescriptor]:
        """Return every machine docker-machine knows about."""
        output = self.run_checked("Could not list Docker Machines", "ls", "--format", LS_FORMAT)
        return parse_machine_list(output)

    def find_machine(self, name: str) -> MachineDescriptor | None:
        """Return the machine called `name`, if it exists."""
        for machine in self.list_machines():
            if machine.name == name:
                return machine
        return None

    def create(self, name: str, driver: str, options: dict[str, str] | None = None) -> None:
        """Create (and boot) a machine."""
        args = ["create", "--driver", driver]
        for option, value in (options or {}).items():
            args.extend([option, value])
        args.append(name)

        console.print(f"[cyan][MACHINE] Running docker-machine {' '.join(args)}[/cyan]")
        self.run_checked("Could not create a Docker Machine", *args)
        console.print(f"[green][MACHINE] Created: {name}[/green]")

    def start(self, name: str) -> None:
        """Boot a stopped machine."""
        console.print(f"[cyan][MACHINE] Starting: {name}[/cyan]")
        self.run_checked(f"Could not start Docker Machine {name}", "start", name)
        console.print(f"[green][MACHINE] Running: {name}[/green]")

    def env(self, name: str) -> str:
        """Return the raw `env` output for a machine."""
        return self.run_checked("Could not read machine environment", "env", name)
