# -----------------------------------------------------------------------------
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Contains low-level infrastructure wrappers:
# - AsyncEngineClient: Docker SDK behind awaitable engine operations
# - MachineTool: docker-machine subprocess wrapper
# - RequestsDownloadClient: HTTP download to file
# - SystemHostEnvironment: OS / arch / filesystem facts
# -----------------------------------------------------------------------------

from .docker_client import AsyncEngineClient, connect
from .downloader import RequestsDownloadClient
from .host_environment import SystemHostEnvironment
from .machine_tool import MachineTool

__all__ = [
    "AsyncEngineClient",
    "connect",
    "MachineTool",
    "RequestsDownloadClient",
    "SystemHostEnvironment",
]
