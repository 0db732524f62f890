"""asyncio subprocess launcher for mongod.

stdout and stderr are merged into one pipe. Until readiness the pipe is
read by wait_for_signal(); afterwards a background task keeps draining it
so mongod never blocks on a full pipe buffer.
"""

import asyncio
import contextlib
import logging
from collections import deque

from mongomem.errors import FatalStartupError
from mongomem.interfaces.process import LaunchSpec, ProcessHandle, ProcessLauncher
from mongomem.lifecycle.readiness import ReadinessDetector, ReadinessSignal, SignalKind
from mongomem.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# mongod JSON log lines can be long (startup options, build info)
_STREAM_LIMIT = 1024 * 1024
_MAX_OUTPUT_LINES = 500


class MongodProcess(ProcessHandle):
    """Handle of a running mongod child."""

    def __init__(self, proc: asyncio.subprocess.Process, spec: LaunchSpec) -> None:
        self._proc = proc
        self._spec = spec
        self._lines: deque[str] = deque(maxlen=_MAX_OUTPUT_LINES)
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def output(self) -> str:
        return "\n".join(self._lines)

    async def wait_for_signal(
        self, detector: ReadinessDetector, timeout: float
    ) -> ReadinessSignal:
        return await asyncio.wait_for(self._read_until_signal(detector), timeout)

    async def _read_until_signal(self, detector: ReadinessDetector) -> ReadinessSignal:
        stream = self._proc.stdout
        if stream is None:
            raise RuntimeError("mongod was spawned without an output pipe")

        while True:
            raw = await stream.readline()
            if not raw:
                returncode = await self._proc.wait()
                logger.info(
                    "mongod exited before becoming ready",
                    extra={
                        "event": LogEvent.PROCESS_EXITED,
                        "pid": self.pid,
                        "returncode": returncode,
                    },
                )
                return detector.on_exit(returncode, self.output)

            line = self._record(raw)
            signal = detector.feed(line)
            if signal is None:
                continue

            if signal.kind is SignalKind.READY:
                self._drain_task = asyncio.create_task(self._drain(stream))
            return signal

    async def _drain(self, stream: asyncio.StreamReader) -> None:
        while True:
            raw = await stream.readline()
            if not raw:
                return
            self._record(raw)

    def _record(self, raw: bytes) -> str:
        line = raw.decode(errors="replace").rstrip("\r\n")
        self._lines.append(line)
        logger.debug(
            line,
            extra={"event": LogEvent.PROCESS_OUTPUT, "pid": self.pid},
        )
        return line

    def terminate(self) -> None:
        if self._proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._proc.terminate()

    def kill(self) -> None:
        if self._proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._proc.kill()
        logger.warning(
            "Sent SIGKILL to mongod",
            extra={"event": LogEvent.PROCESS_KILLED, "pid": self.pid},
        )

    async def wait(self) -> int:
        returncode = await self._proc.wait()
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task
        return returncode


class SubprocessLauncher(ProcessLauncher):
    """Spawns mongod with asyncio.create_subprocess_exec."""

    async def launch(self, spec: LaunchSpec) -> MongodProcess:
        argv = spec.argv()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            raise FatalStartupError(
                f"Cannot execute {spec.binary}: {exc.strerror or exc}"
            ) from exc

        logger.info(
            "Spawned mongod",
            extra={
                "event": LogEvent.PROCESS_SPAWNED,
                "pid": proc.pid,
                "port": spec.port,
                "db_path": spec.db_path,
            },
        )
        return MongodProcess(proc, spec)
