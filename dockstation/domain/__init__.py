# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Value types shared by the resolver (finds an engine) and the lifecycle
# manager (runs containers on it).
# -----------------------------------------------------------------------------

from .models import (
    ContainerHandle,
    CredentialBundle,
    Endpoint,
    MachineDescriptor,
    MachineState,
    Transport,
)

__all__ = [
    "ContainerHandle",
    "CredentialBundle",
    "Endpoint",
    "MachineDescriptor",
    "MachineState",
    "Transport",
]
