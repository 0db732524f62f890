"""Default collaborator implementations."""

from mongomem.infra.binary import SystemBinaryResolver, current_platform
from mongomem.infra.ports import SocketPortAllocator
from mongomem.infra.process import MongodProcess, SubprocessLauncher
from mongomem.infra.storage import TempDirProvisioner

__all__ = [
    "MongodProcess",
    "SocketPortAllocator",
    "SubprocessLauncher",
    "SystemBinaryResolver",
    "TempDirProvisioner",
    "current_platform",
]
