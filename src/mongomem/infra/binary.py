"""Lookup of a preinstalled mongod binary."""

import asyncio
import logging
import os
import platform
import re
import shutil
import sys

from mongomem.config import BinaryConfig
from mongomem.errors import BinaryNotFoundError
from mongomem.interfaces.binary import BinaryResolver
from mongomem.logging_schema import LogEvent

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"db version v?(\d+\.\d+\.\d+)")


def current_platform() -> str:
    """Platform identifier, e.g. "linux-x86_64"."""
    return f"{sys.platform}-{platform.machine().lower()}"


class SystemBinaryResolver(BinaryResolver):
    """Resolves mongod from an explicit path or PATH.

    Lookup order: the path given to the constructor, MONGOMS_SYSTEM_BINARY,
    then `binary_name` on PATH. Downloading is not supported.
    """

    def __init__(self, config: BinaryConfig, system_binary: str | None = None) -> None:
        self._config = config
        self._system_binary = system_binary

    def _candidate(self) -> str | None:
        explicit = self._system_binary or self._config.system_binary
        if explicit:
            return explicit
        return shutil.which(self._config.binary_name)

    async def resolve(self, version: str | None, platform: str) -> str:
        path = self._candidate()
        if path is None:
            raise BinaryNotFoundError(
                f"No {self._config.binary_name} binary found on PATH for {platform}; "
                "set MONGOMS_SYSTEM_BINARY"
            )
        if not (os.path.isfile(path) and os.access(path, os.X_OK)):
            raise BinaryNotFoundError(f"{path} is not an executable file")

        if version and self._config.check_version:
            await self._check_version(path, version)

        logger.debug(
            "Resolved mongod binary",
            extra={"event": LogEvent.BINARY_RESOLVED, "path": path, "platform": platform},
        )
        return path

    async def _check_version(self, path: str, version: str) -> None:
        proc = await asyncio.create_subprocess_exec(
            path,
            "--version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        stdout, _ = await proc.communicate()
        match = _VERSION_RE.search(stdout.decode(errors="replace"))
        found = match.group(1) if match else None
        if found != version:
            logger.warning(
                "System binary version differs from the requested version",
                extra={
                    "event": LogEvent.BINARY_VERSION_MISMATCH,
                    "path": path,
                    "requested": version,
                    "found": found,
                },
            )
