"""Lifecycle controller of one ephemeral mongod instance.

State machine:
    IDLE -> STARTING -> RUNNING -> STOPPING -> IDLE

Instance data exists only in RUNNING. start() and stop() each run as a
single asyncio task; concurrent callers await the task already in flight
instead of spawning or killing a second time.

Usage:
    server = await MongoMemoryServer.create({"instance": {"db_name": "app"}})
    uri = server.get_uri()
    ...
    await server.stop()

    async with MongoMemoryServer() as server:
        client = AsyncIOMotorClient(server.get_uri())
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, NoReturn

from mongomem.config import MongoMemoryConfig, get_config
from mongomem.errors import (
    EnsureFailedError,
    FatalStartupError,
    InstanceNotRunningError,
    PortConflictError,
    StartupError,
    StopTimeoutError,
)
from mongomem.infra import (
    SocketPortAllocator,
    SubprocessLauncher,
    SystemBinaryResolver,
    TempDirProvisioner,
    current_platform,
)
from mongomem.interfaces import (
    BinaryResolver,
    LaunchSpec,
    PortAllocator,
    ProcessHandle,
    ProcessLauncher,
    StorageProvisioner,
)
from mongomem.lifecycle.policy import PortRetryPolicy
from mongomem.lifecycle.readiness import ReadinessDetector, SignalKind
from mongomem.lifecycle.result import FatalFailure, LaunchOutcome, Ready, RetryableFailure
from mongomem.logging_schema import LogEvent
from mongomem.metrics import (
    MONGOMS_INSTANCES_RUNNING,
    MONGOMS_LAUNCH_ATTEMPTS,
    MONGOMS_STARTUP_DURATION,
    MONGOMS_STOP_ESCALATIONS,
)
from mongomem.models import ControllerState, InstanceData, ServerOptions
from mongomem.uri import ConnectionOptions, build_uri, generate_db_name

logger = logging.getLogger(__name__)


def _as_startup_error(exc: Exception) -> FatalStartupError:
    """Wrap a collaborator failure so start() only raises StartupError."""
    error = FatalStartupError(f"{type(exc).__name__}: {exc}")
    error.__cause__ = exc
    return error


class MongoMemoryServer:
    """Starts, supervises and stops one mongod process.

    Constructing a server has no side effects. Every collaborator can be
    replaced through the constructor; unset ones get the defaults from
    mongomem.infra.

    Args:
        options: ServerOptions or an equivalent dict, e.g.
            {"instance": {"port": 27017, "db_path": "/tmp/db"}}
        config: Settings (default: get_config())
        launcher: Spawns mongod
        detector: Classifies mongod output
        policy: Decides on relaunches after a failed attempt
        binary_resolver: Locates the mongod executable
        storage: Provisions a dbpath when options give none
        ports: Allocates ephemeral ports
    """

    def __init__(
        self,
        options: ServerOptions | dict[str, Any] | None = None,
        *,
        config: MongoMemoryConfig | None = None,
        launcher: ProcessLauncher | None = None,
        detector: ReadinessDetector | None = None,
        policy: PortRetryPolicy | None = None,
        binary_resolver: BinaryResolver | None = None,
        storage: StorageProvisioner | None = None,
        ports: PortAllocator | None = None,
    ) -> None:
        if options is None:
            options = ServerOptions()
        elif isinstance(options, dict):
            options = ServerOptions.model_validate(options)
        self._options = options
        self._config = config or get_config()

        instance = options.instance
        self._ip = instance.ip or self._config.instance.ip
        self._db_name = instance.db_name or generate_db_name()
        self._storage_engine = instance.storage_engine or self._config.instance.storage_engine

        self._launcher = launcher or SubprocessLauncher()
        self._detector = detector or ReadinessDetector()
        self._policy = policy or PortRetryPolicy(self._config.lifecycle.max_port_retries)
        self._binary_resolver = binary_resolver or SystemBinaryResolver(
            self._config.binary, options.binary.system_binary
        )
        self._storage = storage or TempDirProvisioner(self._config.instance.tmp_prefix)
        self._ports = ports or SocketPortAllocator(self._ip)

        self._state = ControllerState.IDLE
        self._instance: InstanceData | None = None
        self._process: ProcessHandle | None = None
        self._start_task: asyncio.Task[bool] | None = None
        self._stop_task: asyncio.Task[bool] | None = None

    @classmethod
    async def create(
        cls,
        options: ServerOptions | dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> MongoMemoryServer:
        """Construct a server and start it."""
        server = cls(options, **kwargs)
        await server.start()
        return server

    async def __aenter__(self) -> MongoMemoryServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def options(self) -> ServerOptions:
        return self._options

    @property
    def state(self) -> ControllerState:
        return self._state

    def get_instance_info(self) -> InstanceData | None:
        """Instance data, None unless RUNNING."""
        return self._instance

    def get_port(self) -> int | None:
        return self._instance.port if self._instance else None

    def get_db_path(self) -> str | None:
        return self._instance.db_path if self._instance else None

    def get_uri(self, other_db: str | bool | None = None) -> str:
        """Connection string of the running instance.

        Args:
            other_db: True for a random database name, a string for that
                name, None for the configured database name

        Raises:
            InstanceNotRunningError: No instance is running
        """
        instance = self._instance
        if instance is None:
            raise InstanceNotRunningError("Cannot build a URI without a running instance")
        return build_uri(
            instance.ip,
            instance.port,
            other_db,
            ConnectionOptions(db_name=instance.db_name, replica_set=instance.replica_set),
        )

    # =========================================================================
    # Start
    # =========================================================================

    async def start(self) -> bool:
        """Start mongod unless it is already running.

        Returns:
            True once the instance accepts connections

        Raises:
            StartupError: The instance could not be started; state is IDLE
        """
        while self._stop_task is not None:
            await asyncio.shield(self._stop_task)

        if self._state is ControllerState.RUNNING:
            logger.debug("mongod already running", extra={"port": self.get_port()})
            return True

        if self._start_task is None:
            self._set_state(ControllerState.STARTING)
            self._start_task = asyncio.create_task(self._run_start())
        return await asyncio.shield(self._start_task)

    async def ensure_instance(self) -> InstanceData:
        """Return instance data, starting mongod first if needed.

        Raises:
            StartupError: start() failed
            EnsureFailedError: start() succeeded but left no instance data
        """
        if self._state is ControllerState.RUNNING and self._instance is not None:
            return self._instance

        await self.start()

        instance = self._instance
        if instance is None:
            raise EnsureFailedError()
        return instance

    async def _run_start(self) -> bool:
        started = time.monotonic()
        db_path, tmp_dir = "", False
        try:
            db_path, tmp_dir = self._prepare_storage()
            binary = await self._binary_resolver.resolve(
                self._options.binary.version or self._config.binary.version,
                current_platform(),
            )
            instance, process = await self._launch_with_retries(binary, db_path, tmp_dir)

            # Published together: readers see either nothing or complete data
            self._process = process
            self._instance = instance
            self._set_state(ControllerState.RUNNING)
        except BaseException as exc:
            self._set_state(ControllerState.IDLE)
            if tmp_dir:
                self._storage.cleanup(db_path)
            if not isinstance(exc, Exception):
                raise
            error = exc if isinstance(exc, StartupError) else _as_startup_error(exc)
            logger.error(
                "mongod failed to start: %s",
                error,
                extra={"event": LogEvent.LAUNCH_FAILED, "error_code": error.code},
            )
            if error is exc:
                raise
            raise error from exc
        finally:
            self._start_task = None

        MONGOMS_STARTUP_DURATION.observe(time.monotonic() - started)
        MONGOMS_INSTANCES_RUNNING.inc()
        logger.info(
            "mongod ready",
            extra={
                "event": LogEvent.INSTANCE_READY,
                "pid": instance.pid,
                "port": instance.port,
                "db_path": instance.db_path,
            },
        )
        return True

    def _prepare_storage(self) -> tuple[str, bool]:
        """Return (db_path, provisioned_by_us)."""
        if self._options.instance.db_path:
            return self._options.instance.db_path, False
        return self._storage.provision_temp_dir(), True

    async def _pick_port(self, fresh_port: bool) -> int:
        # The caller's options are never rewritten; a conflict only
        # switches this start() to allocated ports.
        port = self._options.instance.port
        if port and not fresh_port:
            return port
        try:
            return await self._ports.get_free_port()
        except Exception as exc:
            raise FatalStartupError(f"Cannot allocate a port on {self._ip}: {exc}") from exc

    async def _launch_with_retries(
        self, binary: str, db_path: str, tmp_dir: bool
    ) -> tuple[InstanceData, ProcessHandle]:
        attempt = 1
        fresh_port = False
        while True:
            spec = LaunchSpec(
                binary=binary,
                port=await self._pick_port(fresh_port),
                db_path=db_path,
                ip=self._ip,
                storage_engine=self._storage_engine,
                replica_set=self._options.instance.replica_set,
                auth=self._options.instance.auth,
                args=self._options.instance.args,
            )
            outcome, process = await self._launch_once(spec, tmp_dir)

            if isinstance(outcome, Ready) and process is not None:
                MONGOMS_LAUNCH_ATTEMPTS.labels(outcome="ready").inc()
                return outcome.instance, process

            decision = self._policy.decide(attempt, outcome)
            if isinstance(outcome, RetryableFailure):
                MONGOMS_LAUNCH_ATTEMPTS.labels(outcome="port_conflict").inc()
            else:
                MONGOMS_LAUNCH_ATTEMPTS.labels(outcome="fatal").inc()

            if not decision.retry:
                self._raise_outcome(outcome, attempt)

            logger.warning(
                "mongod could not bind port %d, relaunching on a fresh port",
                spec.port,
                extra={"event": LogEvent.LAUNCH_RETRY, "attempt": attempt, "port": spec.port},
            )
            attempt += 1
            fresh_port = decision.fresh_port

    @staticmethod
    def _raise_outcome(outcome: LaunchOutcome, attempts: int) -> NoReturn:
        if isinstance(outcome, RetryableFailure):
            error = outcome.error
            raise FatalStartupError(error.message, output=error.output, attempts=attempts) from error
        if isinstance(outcome, FatalFailure):
            if isinstance(outcome.error, FatalStartupError):
                outcome.error.attempts = attempts
            raise outcome.error
        raise RuntimeError(f"Unexpected launch outcome: {outcome!r}")

    async def _launch_once(
        self, spec: LaunchSpec, tmp_dir: bool
    ) -> tuple[LaunchOutcome, ProcessHandle | None]:
        try:
            process = await self._launcher.launch(spec)
        except StartupError as exc:
            return FatalFailure(exc), None
        except Exception as exc:
            return FatalFailure(_as_startup_error(exc)), None

        timeout = self._options.instance.launch_timeout or self._config.lifecycle.launch_timeout
        try:
            signal = await process.wait_for_signal(self._detector, timeout)
        except asyncio.TimeoutError:
            await self._reap(process)
            error = FatalStartupError(
                f"mongod did not accept connections within {timeout:.1f}s",
                output=process.output,
            )
            return FatalFailure(error), None
        except asyncio.CancelledError:
            process.kill()
            raise
        except Exception as exc:
            await self._reap(process)
            error = FatalStartupError(
                f"Failed reading mongod output: {exc}",
                output=process.output,
            )
            error.__cause__ = exc
            return FatalFailure(error), None

        if signal.kind is SignalKind.READY:
            instance = InstanceData(
                port=signal.port or spec.port,
                pid=process.pid,
                db_path=spec.db_path,
                db_name=self._db_name,
                ip=spec.ip,
                storage_engine=spec.storage_engine,
                replica_set=spec.replica_set,
                started_at=datetime.now(timezone.utc),
                tmp_dir=tmp_dir,
            )
            return Ready(instance), process

        await self._reap(process)
        if signal.kind is SignalKind.PORT_CONFLICT:
            return RetryableFailure(PortConflictError(spec.port, output=process.output)), None

        message = f"{signal.reason}: {signal.line}" if signal.line else signal.reason
        return FatalFailure(FatalStartupError(message, output=process.output)), None

    async def _reap(self, process: ProcessHandle) -> None:
        """Make sure a failed launch leaves no process behind."""
        process.kill()
        try:
            await asyncio.wait_for(process.wait(), self._config.lifecycle.kill_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Failed mongod launch did not exit after SIGKILL",
                extra={"event": LogEvent.PROCESS_KILLED, "pid": process.pid},
            )

    # =========================================================================
    # Stop
    # =========================================================================

    async def stop(self) -> bool:
        """Stop mongod; a no-op when nothing is running.

        A start() in flight is awaited first and its instance (if any) torn
        down right after. Provisioned dbpaths are removed, explicit ones kept.

        Returns:
            True once no process is left

        Raises:
            StopTimeoutError: mongod survived SIGKILL
        """
        if self._stop_task is None:
            if self._state is ControllerState.IDLE and self._start_task is None:
                logger.debug("mongod not running, nothing to stop")
                return True
            self._stop_task = asyncio.create_task(self._run_stop())
        return await asyncio.shield(self._stop_task)

    async def _run_stop(self) -> bool:
        try:
            if self._start_task is not None:
                try:
                    await asyncio.shield(self._start_task)
                except StartupError:
                    logger.debug("Pending start failed, nothing to stop")

            instance = self._instance
            process = self._process
            if self._state is not ControllerState.RUNNING or instance is None or process is None:
                return True

            self._instance = None
            self._set_state(ControllerState.STOPPING)
            try:
                await self._terminate(process)
            finally:
                self._process = None
                self._set_state(ControllerState.IDLE)
                MONGOMS_INSTANCES_RUNNING.dec()
                if instance.tmp_dir:
                    self._storage.cleanup(instance.db_path)

            logger.info(
                "mongod stopped",
                extra={
                    "event": LogEvent.INSTANCE_STOPPED,
                    "pid": instance.pid,
                    "port": instance.port,
                },
            )
            return True
        finally:
            self._stop_task = None

    async def _terminate(self, process: ProcessHandle) -> None:
        lifecycle = self._config.lifecycle

        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), lifecycle.stop_timeout)
            return
        except asyncio.TimeoutError:
            MONGOMS_STOP_ESCALATIONS.inc()
            logger.warning(
                "mongod did not exit within %.1fs, sending SIGKILL",
                lifecycle.stop_timeout,
                extra={"event": LogEvent.STOP_ESCALATED, "pid": process.pid},
            )

        process.kill()
        try:
            await asyncio.wait_for(process.wait(), lifecycle.kill_timeout)
        except asyncio.TimeoutError as exc:
            raise StopTimeoutError(
                process.pid, lifecycle.stop_timeout + lifecycle.kill_timeout
            ) from exc

    def _set_state(self, state: ControllerState) -> None:
        if state is self._state:
            return
        logger.debug(
            "State %s -> %s",
            self._state.value,
            state.value,
            extra={"event": LogEvent.STATE_CHANGED},
        )
        self._state = state
