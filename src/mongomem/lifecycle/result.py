"""Launch outcome types for the lifecycle controller."""

from dataclasses import dataclass

from mongomem.errors import PortConflictError, StartupError
from mongomem.models import InstanceData


@dataclass(frozen=True)
class Ready:
    """The process is accepting connections."""

    instance: InstanceData


@dataclass(frozen=True)
class RetryableFailure:
    """The launch failed in a way a relaunch on another port may fix."""

    error: PortConflictError

    @property
    def reason(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class FatalFailure:
    """The launch failed and relaunching would fail the same way."""

    error: StartupError

    @property
    def reason(self) -> str:
        return self.error.message


LaunchOutcome = Ready | RetryableFailure | FatalFailure
