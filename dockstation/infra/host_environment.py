# -----------------------------------------------------------------------------
# HOST ENVIRONMENT
# -----------------------------------------------------------------------------
# Responsibility: Answer the questions discovery asks about the machine we
# run on (which OS, which CPU, is a tool on PATH, does a file exist).
#
# Kept behind a small Protocol so the locator and resolver can be tested
# against any platform from any platform.
# -----------------------------------------------------------------------------

import os
import platform
import shutil
from typing import Protocol

WINDOWS = "Windows"
LINUX = "Linux"
DARWIN = "Darwin"


class HostEnvironment(Protocol):
    """Facts about the current host."""

    @property
    def os_name(self) -> str: ...

    @property
    def machine(self) -> str: ...

    def which(self, command: str) -> str | None: ...

    def path_exists(self, path: str) -> bool: ...


class SystemHostEnvironment:
    """HostEnvironment backed by the running interpreter."""

    @property
    def os_name(self) -> str:
        return platform.system()

    @property
    def machine(self) -> str:
        return platform.machine()

    @property
    def is_windows(self) -> bool:
        return self.os_name == WINDOWS

    def which(self, command: str) -> str | None:
        return shutil.which(command)

    def path_exists(self, path: str) -> bool:
        # Named pipes (\\.\pipe\...) answer os.path.exists on Windows
        return os.path.exists(path)
