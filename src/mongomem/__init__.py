"""Ephemeral mongod instances for tests.

Usage:
    from mongomem import MongoMemoryServer

    server = await MongoMemoryServer.create()
    uri = server.get_uri()
    await server.stop()
"""

from mongomem.errors import (
    BinaryNotFoundError,
    EnsureFailedError,
    ErrorCode,
    FatalStartupError,
    InstanceNotRunningError,
    MongoMemoryError,
    PortConflictError,
    StartupError,
    StopTimeoutError,
)
from mongomem.lifecycle.server import MongoMemoryServer
from mongomem.models import (
    BinaryOptions,
    ControllerState,
    InstanceData,
    InstanceOptions,
    ServerOptions,
)
from mongomem.uri import ConnectionOptions, build_uri

__all__ = [
    "BinaryNotFoundError",
    "BinaryOptions",
    "ConnectionOptions",
    "ControllerState",
    "EnsureFailedError",
    "ErrorCode",
    "FatalStartupError",
    "InstanceData",
    "InstanceNotRunningError",
    "InstanceOptions",
    "MongoMemoryError",
    "MongoMemoryServer",
    "PortConflictError",
    "ServerOptions",
    "StartupError",
    "StopTimeoutError",
    "build_uri",
]
