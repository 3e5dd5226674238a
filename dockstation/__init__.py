# -----------------------------------------------------------------------------
# DOCKSTATION
# -----------------------------------------------------------------------------
# A working Docker endpoint and managed container lifecycle for integration
# test suites, with no runtime pre-configuration required.
#
#   endpoint = resolve_endpoint()
#   engine = AsyncEngineClient.from_endpoint(endpoint)
#   manager = ContainerLifecycleManager(engine, endpoint.host)
#   async with manager.container("httpEcho", [5678], "hashicorp/http-echo", "-text=Hello") as c:
#       ...
# -----------------------------------------------------------------------------

from dockstation.core import (
    ContainerLifecycleManager,
    EndpointResolver,
    resolve_endpoint,
)
from dockstation.domain import ContainerHandle, Endpoint, Transport
from dockstation.infra import AsyncEngineClient

__version__ = "0.3.0"

__all__ = [
    "AsyncEngineClient",
    "ContainerHandle",
    "ContainerLifecycleManager",
    "Endpoint",
    "EndpointResolver",
    "Transport",
    "resolve_endpoint",
    "__version__",
]
