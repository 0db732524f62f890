"""Storage provisioner interface."""

from abc import ABC, abstractmethod


class StorageProvisioner(ABC):
    """Interface for temporary dbpath directories."""

    @abstractmethod
    def provision_temp_dir(self) -> str:
        """Create an empty directory and register it for cleanup.

        Returns:
            Absolute path of the directory
        """
        ...

    @abstractmethod
    def cleanup(self, path: str) -> None:
        """Remove a directory returned by provision_temp_dir.

        Args:
            path: Directory to remove; unknown paths are ignored
        """
        ...
