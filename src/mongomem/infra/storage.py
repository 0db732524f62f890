"""Temporary dbpath provisioning."""

import logging
import shutil
import tempfile
import weakref

from mongomem.interfaces.storage import StorageProvisioner
from mongomem.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class TempDirProvisioner(StorageProvisioner):
    """Creates dbpaths with tempfile.mkdtemp.

    Each directory gets a weakref.finalize that removes it when cleaned up
    explicitly, when the provisioner is garbage collected, or at interpreter
    exit, whichever comes first. Finalizers share the weakref module's single
    exit hook and do not keep the provisioner alive.
    """

    def __init__(self, prefix: str = "mongo-mem-", base_dir: str | None = None) -> None:
        self._prefix = prefix
        self._base_dir = base_dir
        self._finalizers: dict[str, weakref.finalize] = {}

    def provision_temp_dir(self) -> str:
        path = tempfile.mkdtemp(prefix=self._prefix, dir=self._base_dir)
        self._finalizers[path] = weakref.finalize(self, shutil.rmtree, path, True)
        logger.debug(
            "Provisioned dbpath",
            extra={"event": LogEvent.STORAGE_PROVISIONED, "db_path": path},
        )
        return path

    def cleanup(self, path: str) -> None:
        finalizer = self._finalizers.pop(path, None)
        if finalizer is None:
            return
        finalizer()
        logger.debug(
            "Removed dbpath",
            extra={"event": LogEvent.STORAGE_REMOVED, "db_path": path},
        )

    def cleanup_all(self) -> None:
        for path in list(self._finalizers):
            self.cleanup(path)
