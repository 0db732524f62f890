"""Ephemeral port allocation."""

import socket
from collections import deque

from mongomem.interfaces.ports import PortAllocator

# Ports handed out recently are skipped so two launches started back to back
# in the same interpreter do not race for the same number.
_RECENT_PORTS = 64
_MAX_ATTEMPTS = 10


class SocketPortAllocator(PortAllocator):
    """Asks the OS for a free port by binding port 0."""

    def __init__(self, host: str = "127.0.0.1") -> None:
        self._host = host
        self._recent: deque[int] = deque(maxlen=_RECENT_PORTS)

    def _bind_free_port(self) -> int:
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        with socket.socket(family, socket.SOCK_STREAM) as sock:
            sock.bind((self._host, 0))
            return sock.getsockname()[1]

    async def get_free_port(self) -> int:
        port = self._bind_free_port()
        for _ in range(_MAX_ATTEMPTS):
            if port not in self._recent:
                break
            port = self._bind_free_port()
        self._recent.append(port)
        return port
