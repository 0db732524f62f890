"""Tests for SystemBinaryResolver."""

import logging
import os
import stat
import sys

import pytest

from mongomem.config import BinaryConfig
from mongomem.errors import BinaryNotFoundError
from mongomem.infra.binary import SystemBinaryResolver, current_platform
from mongomem.logging_schema import LogEvent


def _write_script(path, body: str, executable: bool = True) -> str:
    path.write_text(f"#!/bin/sh\n{body}\n")
    if executable:
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


@pytest.fixture
def fake_mongod(tmp_path):
    return _write_script(tmp_path / "mongod", 'echo "db version v6.0.1"')


class TestCurrentPlatform:
    def test_format(self):
        os_name, _, machine = current_platform().partition("-")
        assert os_name == sys.platform
        assert machine == machine.lower()


@pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")
class TestSystemBinaryResolver:
    """Tests for SystemBinaryResolver."""

    async def test_explicit_path(self, fake_mongod):
        resolver = SystemBinaryResolver(BinaryConfig(), system_binary=fake_mongod)

        assert await resolver.resolve(None, current_platform()) == fake_mongod

    async def test_config_path(self, fake_mongod):
        resolver = SystemBinaryResolver(BinaryConfig(system_binary=fake_mongod))

        assert await resolver.resolve(None, current_platform()) == fake_mongod

    async def test_path_lookup(self, tmp_path, fake_mongod, monkeypatch):
        """Without an explicit path the binary is looked up on PATH."""
        monkeypatch.setenv("PATH", str(tmp_path))
        resolver = SystemBinaryResolver(BinaryConfig(system_binary=None))

        assert await resolver.resolve(None, current_platform()) == fake_mongod

    async def test_not_on_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PATH", str(tmp_path))
        resolver = SystemBinaryResolver(BinaryConfig(system_binary=None))

        with pytest.raises(BinaryNotFoundError) as exc_info:
            await resolver.resolve("7.0.4", "linux-x86_64")

        assert "linux-x86_64" in exc_info.value.message

    async def test_missing_file(self, tmp_path):
        resolver = SystemBinaryResolver(
            BinaryConfig(), system_binary=str(tmp_path / "nope")
        )

        with pytest.raises(BinaryNotFoundError):
            await resolver.resolve(None, current_platform())

    async def test_not_executable(self, tmp_path):
        path = _write_script(tmp_path / "mongod", "exit 0", executable=False)
        os.chmod(path, 0o644)
        resolver = SystemBinaryResolver(BinaryConfig(), system_binary=path)

        with pytest.raises(BinaryNotFoundError) as exc_info:
            await resolver.resolve(None, current_platform())

        assert "not an executable" in exc_info.value.message

    async def test_version_mismatch_warns(self, fake_mongod, caplog):
        """A version mismatch is logged but the binary is still used."""
        resolver = SystemBinaryResolver(
            BinaryConfig(check_version=True), system_binary=fake_mongod
        )

        with caplog.at_level(logging.WARNING, logger="mongomem.infra.binary"):
            path = await resolver.resolve("7.0.4", current_platform())

        assert path == fake_mongod
        records = [
            r
            for r in caplog.records
            if getattr(r, "event", None) == LogEvent.BINARY_VERSION_MISMATCH
        ]
        assert len(records) == 1
        assert records[0].found == "6.0.1"
        assert records[0].requested == "7.0.4"

    async def test_version_match_is_silent(self, fake_mongod, caplog):
        resolver = SystemBinaryResolver(
            BinaryConfig(check_version=True), system_binary=fake_mongod
        )

        with caplog.at_level(logging.WARNING, logger="mongomem.infra.binary"):
            await resolver.resolve("6.0.1", current_platform())

        assert not caplog.records
