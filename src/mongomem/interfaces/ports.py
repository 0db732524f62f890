"""Ephemeral port allocator interface."""

from abc import ABC, abstractmethod


class PortAllocator(ABC):
    """Interface for picking a free TCP port."""

    @abstractmethod
    async def get_free_port(self) -> int:
        """Return a port number that is currently free.

        The port is not reserved; another process may take it before mongod
        binds it, which surfaces as a port conflict.
        """
        ...
