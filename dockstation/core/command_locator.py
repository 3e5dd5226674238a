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
# COMMAND LOCATOR - DOCKER-MACHINE EXECUTABLE
# -----------------------------------------------------------------------------
# Responsibility: Produce a runnable path to docker-machine.
#
# Lookup order:
# 1. `docker-machine` on PATH -> the bare command name
# 2. ./docker-machine[.exe] from an earlier run -> its absolute path
# 3. Download the pinned release for this OS/arch -> its absolute path
#
# The local file is the on-disk cache. It is never re-downloaded while it
# exists.
# -----------------------------------------------------------------------------

import os
import stat
from pathlib import Path

import requests
from rich.console import Console
from rich.markup import escape

from dockstation.core.errors import ToolUnavailable, UnsupportedPlatform
from dockstation.infra.downloader import DownloadClient, RequestsDownloadClient
from dockstation.infra.host_environment import (
    DARWIN,
    LINUX,
    WINDOWS,
    HostEnvironment,
    SystemHostEnvironment,
)

console = Console()

MACHINE_COMMAND = "docker-machine"
MACHINE_VERSION = "v0.16.1"
MACHINE_DOWNLOAD_BASE = (
    f"https://github.com/docker/machine/releases/download/{MACHINE_VERSION}/{MACHINE_COMMAND}-"
)

OS_TOKENS: dict[str, str] = {
    WINDOWS: "Windows",
    LINUX: "Linux",
    DARWIN: "Darwin",
}

# platform.machine() spellings -> release asset architecture tokens
ARCH_TOKENS: dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "i386": "i386",
    "i686": "i386",
    "x86": "i386",
    "armv6l": "armhf",
    "armv7l": "armhf",
    "arm": "armhf",
    "armhf": "armhf",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


class CommandLocator:
    """
    Finds, or fetches, the docker-machine executable.

    Args:
        host: Host facts (OS, arch, PATH, filesystem).
        downloader: Byte-transfer collaborator used on a cache miss.
        work_dir: Directory holding the cached executable (default: cwd).
    """

    def __init__(
        self,
        host: HostEnvironment | None = None,
        downloader: DownloadClient | None = None,
        work_dir: Path | None = None,
    ) -> None:
        self._host = host or SystemHostEnvironment()
        self._downloader = downloader or RequestsDownloadClient()
        self._work_dir = work_dir

    @property
    def local_filename(self) -> str:
        """Deterministic cache filename, `.exe`-suffixed on Windows."""
        return MACHINE_COMMAND + self._executable_suffix()

    def _executable_suffix(self) -> str:
        return ".exe" if self._host.os_name == WINDOWS else ""

    def _local_path(self) -> Path:
        base = self._work_dir if self._work_dir is not None else Path.cwd()
        return (base / self.local_filename).absolute()

    def os_token(self) -> str:
        """Release token for the host OS."""
        os_name = self._host.os_name
        token = OS_TOKENS.get(os_name)
        if token is None:
            raise UnsupportedPlatform(
                f"The current operating system is not supported by docker-machine: {os_name}",
                os_name=os_name,
            )
        return token

    def arch_token(self) -> str:
        """Release token for the host CPU architecture."""
        machine = self._host.machine
        token = ARCH_TOKENS.get(machine.lower())
        if token is None:
            raise UnsupportedPlatform(
                f"The current OS architecture is not supported by docker-machine: {machine}",
                os_name=self._host.os_name,
                arch=machine,
            )
        return token

    def download_url(self) -> str:
        """
        Pinned-version URL of the release asset for this host.

        Raises:
            UnsupportedPlatform: If OS or architecture has no release asset.
        """
        return (
            MACHINE_DOWNLOAD_BASE
            + f"{self.os_token()}-{self.arch_token()}"
            + self._executable_suffix()
        )

    def locate(self) -> str:
        """
        Return a path that can be passed to subprocess to run docker-machine.

        Returns:
            "docker-machine" if on PATH, otherwise an absolute file path.

        Raises:
            UnsupportedPlatform: No release for this OS/arch (nothing fetched).
            ToolUnavailable: The download failed.
        """
        if self._host.which(MACHINE_COMMAND):
            console.print(f"[green][LOCATOR] Using {MACHINE_COMMAND} from PATH[/green]")
            return MACHINE_COMMAND

        local_path = self._local_path()
        if self._host.path_exists(str(local_path)):
            console.print(f"[green][LOCATOR] Reusing cached executable: {local_path}[/green]")
            return str(local_path)

        # Resolve the URL before touching the network
        url = self.download_url()
        console.print(
            f"[yellow][LOCATOR] {MACHINE_COMMAND} not found, downloading {MACHINE_VERSION}...[/yellow]"
        )
        try:
            self._downloader.download(url, str(local_path))
        except (requests.RequestException, OSError) as e:
            console.print(f"[red][LOCATOR] Download failed: {escape(str(e))}[/red]")
            raise ToolUnavailable(
                f"Error downloading the docker-machine command from '{url}': {e}", url=url
            ) from e

        if self._host.os_name != WINDOWS:
            _mark_executable(local_path)

        return str(local_path)


def _mark_executable(path: Path) -> None:
    """chmod u+x,g+x,o+x on a freshly downloaded file."""
    if not path.exists():
        return
    mode = os.stat(path).st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
