"""Integration test fixtures.

Tests here spawn real child processes through SubprocessLauncher. A small
/bin/sh script stands in for mongod: it parses --port and --dbpath like
mongod does and prints whatever log lines the test asks for.
"""

import stat
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from mongomem.config import LifecycleConfig, MongoMemoryConfig
from mongomem.infra import SocketPortAllocator, TempDirProvisioner
from mongomem.lifecycle.server import MongoMemoryServer

from mongod_scripts import SCRIPT_HEADER

if sys.platform == "win32":
    collect_ignore_glob = ["test_*.py"]


@pytest.fixture
def fake_mongod(tmp_path: Path) -> Callable[[str], str]:
    """Factory writing an executable fake mongod with the given body."""
    counter = 0

    def _write(body: str) -> str:
        nonlocal counter
        counter += 1
        path = tmp_path / f"mongod-{counter}"
        path.write_text(SCRIPT_HEADER + body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    return _write


@pytest.fixture
def integration_config() -> MongoMemoryConfig:
    return MongoMemoryConfig(
        lifecycle=LifecycleConfig(
            launch_timeout=5.0,
            stop_timeout=2.0,
            kill_timeout=2.0,
            max_port_retries=1,
        )
    )


@pytest.fixture
def storage(tmp_path: Path) -> TempDirProvisioner:
    base = tmp_path / "dbpaths"
    base.mkdir()
    return TempDirProvisioner(base_dir=str(base))


@pytest_asyncio.fixture
async def make_server(
    integration_config: MongoMemoryConfig,
    storage: TempDirProvisioner,
) -> AsyncIterator[Callable[..., MongoMemoryServer]]:
    """Build a server with the real launcher and the given binary path."""
    servers: list[MongoMemoryServer] = []

    def _make(
        binary: str, options: dict[str, Any] | None = None, **kwargs: Any
    ) -> MongoMemoryServer:
        options = dict(options or {})
        options.setdefault("binary", {"system_binary": binary})
        kwargs.setdefault("config", integration_config)
        kwargs.setdefault("storage", storage)
        kwargs.setdefault("ports", SocketPortAllocator())
        server = MongoMemoryServer(options, **kwargs)
        servers.append(server)
        return server

    yield _make

    for server in servers:
        await server.stop()
    storage.cleanup_all()
