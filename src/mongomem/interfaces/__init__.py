"""Collaborator interfaces consumed by the lifecycle controller.

Implementations live in mongomem.infra; tests pass fakes to the
MongoMemoryServer constructor.
"""

from mongomem.interfaces.binary import BinaryResolver
from mongomem.interfaces.ports import PortAllocator
from mongomem.interfaces.process import LaunchSpec, ProcessHandle, ProcessLauncher
from mongomem.interfaces.storage import StorageProvisioner

__all__ = [
    "BinaryResolver",
    "LaunchSpec",
    "PortAllocator",
    "ProcessHandle",
    "ProcessLauncher",
    "StorageProvisioner",
]
