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
# ERRORS
# -----------------------------------------------------------------------------
# Every failure the core can surface. None of them are retried internally;
# each carries enough context (exit code + output, wrapped cause, missing
# key) to diagnose without re-running with extra logging.
# -----------------------------------------------------------------------------


class DockStationError(Exception):
    """Base class for all DockStation errors."""

    pass


class UnsupportedPlatform(DockStationError):
    """Raised when the host OS or architecture has no docker-machine build."""

    def __init__(self, message: str, os_name: str = "", arch: str = "") -> None:
        super().__init__(message)
        self.os_name = os_name
        self.arch = arch


class ToolUnavailable(DockStationError):
    """
    Raised when the docker-machine executable cannot be fetched or run.

    Safe to retry the whole resolution later: a partial download never
    leaves a file behind.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class MachineToolExecutionFailure(DockStationError):
    """Raised when docker-machine exits with a nonzero code."""

    def __init__(self, message: str, args: list[str], exit_code: int, output: str) -> None:
        super().__init__(message)
        self.args_used = list(args)
        self.exit_code = exit_code
        self.output = output

    def __str__(self) -> str:
        return (
            f"{self.args[0]}\n"
            f"docker-machine {' '.join(self.args_used)}\n"
            f"docker-machine exit code: {self.exit_code}\n"
            f"docker-machine output:\n{self.output}"
        )


class MachineMisconfigured(DockStationError):
    """
    Raised when a machine's driver cannot report its state.

    Most commonly Hyper-V without administrator privileges.
    """

    def __init__(self, message: str, machine_name: str, driver: str) -> None:
        super().__init__(message)
        self.machine_name = machine_name
        self.driver = driver


class MalformedEnvironment(DockStationError):
    """Raised when docker-machine output is missing a value we depend on."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class CredentialBuildFailure(DockStationError):
    """Raised when PEM material cannot be turned into a credential bundle."""

    def __init__(self, message: str, cert_dir: str | None = None) -> None:
        super().__init__(message)
        self.cert_dir = cert_dir


class EngineUnavailable(DockStationError):
    """Raised when a resolved endpoint does not answer a ping."""

    def __init__(self, message: str, address: str) -> None:
        super().__init__(message)
        self.address = address


class ContainerStartFailure(DockStationError):
    """Raised when the engine refuses to start a container."""

    def __init__(self, message: str, name: str, container_id: str | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.container_id = container_id
