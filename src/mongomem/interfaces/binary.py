"""Binary resolver interface."""

from abc import ABC, abstractmethod


class BinaryResolver(ABC):
    """Interface for locating a mongod executable.

    Implementations: SystemBinaryResolver, download-and-cache (future)
    """

    @abstractmethod
    async def resolve(self, version: str | None, platform: str) -> str:
        """Return the path of a mongod executable.

        Args:
            version: Requested mongod version (None for any)
            platform: Target platform, e.g. "linux-x86_64"

        Returns:
            Absolute path of the executable

        Raises:
            BinaryNotFoundError: No matching build is available
        """
        ...
