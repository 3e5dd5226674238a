# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The logic of DockStation:
# - CommandLocator: finds or downloads docker-machine
# - parse_machine_env: reads `docker-machine env` output
# - CredentialBundler: PEM -> PKCS#12 for mutual TLS
# - EndpointResolver: one-shot engine discovery
# - ContainerLifecycleManager: named containers with fixed port publication
# -----------------------------------------------------------------------------

from .command_locator import CommandLocator
from .config import HostSettings, load_settings
from .containers import ContainerLifecycleManager
from .credentials import CredentialBundler
from .errors import (
    ContainerStartFailure,
    CredentialBuildFailure,
    DockStationError,
    EngineUnavailable,
    MachineMisconfigured,
    MachineToolExecutionFailure,
    MalformedEnvironment,
    ToolUnavailable,
    UnsupportedPlatform,
)
from .machine_env import MachineEnvironment, parse_machine_env
from .resolver import EndpointResolver, ResolutionState, resolve_endpoint

__all__ = [
    "CommandLocator",
    "HostSettings", "load_settings",
    "ContainerLifecycleManager",
    "CredentialBundler",
    "MachineEnvironment", "parse_machine_env",
    "EndpointResolver", "ResolutionState", "resolve_endpoint",
    "DockStationError", "UnsupportedPlatform", "ToolUnavailable",
    "MachineToolExecutionFailure", "MachineMisconfigured", "MalformedEnvironment",
    "CredentialBuildFailure", "EngineUnavailable", "ContainerStartFailure",
]
