"""Options and instance metadata models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ControllerState(str, Enum):
    """Lifecycle states of a MongoMemoryServer."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class InstanceOptions(BaseModel):
    """Desired configuration of the mongod instance.

    Unset values fall back to InstanceDefaults; an unset port means an
    ephemeral one is allocated per launch.
    """

    port: int | None = Field(default=None, ge=0, le=65535)
    ip: str | None = None
    db_name: str | None = None
    db_path: str | None = None
    storage_engine: str | None = None
    replica_set: str | None = None
    auth: bool = False
    args: tuple[str, ...] = ()
    launch_timeout: float | None = Field(default=None, gt=0)

    model_config = {"frozen": True}


class BinaryOptions(BaseModel):
    """Which mongod binary to run."""

    version: str | None = None
    system_binary: str | None = None

    model_config = {"frozen": True}


class ServerOptions(BaseModel):
    """Everything a MongoMemoryServer is constructed with."""

    instance: InstanceOptions = InstanceOptions()
    binary: BinaryOptions = BinaryOptions()

    model_config = {"frozen": True}


class InstanceData(BaseModel):
    """Live metadata of a started mongod.

    Created once the process reported readiness; replaced, never mutated.
    """

    port: int
    pid: int | None
    db_path: str
    db_name: str
    ip: str
    storage_engine: str
    replica_set: str | None = None
    started_at: datetime
    tmp_dir: bool = False

    model_config = {"frozen": True}
