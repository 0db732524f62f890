"""Process launcher interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from mongomem.lifecycle.readiness import ReadinessDetector, ReadinessSignal


class LaunchSpec(BaseModel):
    """Resolved arguments of one mongod launch."""

    binary: str
    port: int
    db_path: str
    ip: str
    storage_engine: str
    replica_set: str | None = None
    auth: bool = False
    args: tuple[str, ...] = ()

    model_config = {"frozen": True}

    def argv(self) -> list[str]:
        """Command line for the child process."""
        argv = [
            self.binary,
            "--port", str(self.port),
            "--dbpath", self.db_path,
            "--bind_ip", self.ip,
            "--storageEngine", self.storage_engine,
        ]
        if self.replica_set:
            argv += ["--replSet", self.replica_set]
        if self.auth:
            argv.append("--auth")
        argv.extend(self.args)
        return argv


class ProcessHandle(ABC):
    """A spawned mongod child process."""

    @property
    @abstractmethod
    def pid(self) -> int | None: ...

    @property
    @abstractmethod
    def returncode(self) -> int | None:
        """Exit status, None while the process is alive."""
        ...

    @property
    @abstractmethod
    def output(self) -> str:
        """Everything the process wrote so far (stdout and stderr merged)."""
        ...

    @abstractmethod
    async def wait_for_signal(
        self, detector: ReadinessDetector, timeout: float
    ) -> ReadinessSignal:
        """Read output until the detector reports a terminal signal.

        Raises:
            asyncio.TimeoutError: No signal within timeout
        """
        ...

    @abstractmethod
    def terminate(self) -> None:
        """Send SIGTERM (no-op if already exited)."""
        ...

    @abstractmethod
    def kill(self) -> None:
        """Send SIGKILL (no-op if already exited)."""
        ...

    @abstractmethod
    async def wait(self) -> int:
        """Wait for exit and return the exit status."""
        ...


class ProcessLauncher(ABC):
    """Interface for spawning mongod."""

    @abstractmethod
    async def launch(self, spec: LaunchSpec) -> ProcessHandle:
        """Spawn the process described by spec.

        Raises:
            FatalStartupError: The binary could not be executed at all
        """
        ...
