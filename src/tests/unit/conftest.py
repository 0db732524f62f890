"""Fixtures for unit tests.

The controller is exercised with fake collaborators passed to its
constructor; no real mongod process is spawned here.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mongomem.config import LifecycleConfig, MongoMemoryConfig
from mongomem.infra import TempDirProvisioner
from mongomem.interfaces import (
    BinaryResolver,
    LaunchSpec,
    PortAllocator,
    ProcessHandle,
    ProcessLauncher,
)
from mongomem.lifecycle.readiness import ReadinessDetector, ReadinessSignal, SignalKind
from mongomem.lifecycle.server import MongoMemoryServer

FAKE_BINARY = "/opt/mongodb/bin/mongod"


@dataclass(frozen=True)
class OutputError:
    """Script item: the process spawns but reading its output raises exc."""

    exc: Exception


class FakeProcess(ProcessHandle):
    """Scripted stand-in for a mongod child process.

    signal=None makes wait_for_signal time out; an OutputError makes it
    raise the wrapped exception.
    """

    def __init__(self, signal: ReadinessSignal | OutputError | None, pid: int) -> None:
        self.signal = signal
        self._pid = pid
        self._returncode: int | None = None
        self._exited = asyncio.Event()
        self.ignore_sigterm = False
        self.ignore_sigkill = False
        self.terminate_calls = 0
        self.kill_calls = 0

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def returncode(self) -> int | None:
        return self._returncode

    @property
    def output(self) -> str:
        return f"fake mongod {self._pid} output"

    async def wait_for_signal(
        self, detector: ReadinessDetector, timeout: float
    ) -> ReadinessSignal:
        await asyncio.sleep(0)
        if self.signal is None:
            raise asyncio.TimeoutError()
        if isinstance(self.signal, OutputError):
            raise self.signal.exc
        return self.signal

    def terminate(self) -> None:
        self.terminate_calls += 1
        if not self.ignore_sigterm:
            self._exit(0)

    def kill(self) -> None:
        self.kill_calls += 1
        if not self.ignore_sigkill:
            self._exit(-9)

    def _exit(self, returncode: int) -> None:
        if self._returncode is None:
            self._returncode = returncode
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self._returncode is not None
        return self._returncode


class FakeLauncher(ProcessLauncher):
    """Launcher that replays a script of outcomes, one per launch.

    Script items: a SignalKind, a full ReadinessSignal, None (timeout), an
    OutputError (reading output fails) or an exception to raise from launch(). Once the script is used up every
    launch becomes ready.
    """

    def __init__(self) -> None:
        self._script: list[Any] = []
        self.specs: list[LaunchSpec] = []
        self.processes: list[FakeProcess] = []

    def script(self, *items: Any) -> "FakeLauncher":
        self._script.extend(items)
        return self

    def script_output_error(self, exc: Exception) -> "FakeLauncher":
        """Queue a launch that spawns, then fails reading its output with exc."""
        self._script.append(OutputError(exc))
        return self

    @property
    def launch_count(self) -> int:
        return len(self.specs)

    async def launch(self, spec: LaunchSpec) -> FakeProcess:
        self.specs.append(spec)
        item = self._script.pop(0) if self._script else SignalKind.READY
        await asyncio.sleep(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, SignalKind):
            item = ReadinessSignal(item, f"fake {item.value}", line=f"fake {item.value} line")
        process = FakeProcess(item, pid=1000 + len(self.specs))
        self.processes.append(process)
        return process


class SequentialPorts(PortAllocator):
    """Hands out 40001, 40002, ..."""

    def __init__(self, first: int = 40001) -> None:
        self._next = first
        self.calls = 0

    async def get_free_port(self) -> int:
        self.calls += 1
        port = self._next
        self._next += 1
        return port


@pytest.fixture
def test_config() -> MongoMemoryConfig:
    """Config with short timeouts."""
    return MongoMemoryConfig(
        lifecycle=LifecycleConfig(
            launch_timeout=1.0,
            stop_timeout=0.05,
            kill_timeout=0.05,
            max_port_retries=1,
        )
    )


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def ports() -> SequentialPorts:
    return SequentialPorts()


@pytest.fixture
def binary_resolver() -> AsyncMock:
    """Mock BinaryResolver that always finds FAKE_BINARY."""
    resolver = AsyncMock(spec=BinaryResolver)
    resolver.resolve = AsyncMock(return_value=FAKE_BINARY)
    return resolver


@pytest.fixture
def storage(tmp_path: Path) -> TempDirProvisioner:
    """Provisioner creating dbpaths under tmp_path."""
    return TempDirProvisioner(prefix="mongo-mem-test-", base_dir=str(tmp_path))


@pytest.fixture
def make_server(
    test_config: MongoMemoryConfig,
    launcher: FakeLauncher,
    ports: SequentialPorts,
    binary_resolver: AsyncMock,
    storage: TempDirProvisioner,
) -> Callable[..., MongoMemoryServer]:
    """Factory for servers wired to the fakes above."""

    def _make(options: Any = None) -> MongoMemoryServer:
        return MongoMemoryServer(
            options,
            config=test_config,
            launcher=launcher,
            binary_resolver=binary_resolver,
            storage=storage,
            ports=ports,
        )

    return _make
