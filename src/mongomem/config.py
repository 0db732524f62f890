"""Configuration using pydantic-settings.

Configuration hierarchy:
- BinaryConfig: Where to find the mongod binary
- InstanceDefaults: Defaults applied to every launched instance
- LifecycleConfig: Timeouts and retry bounds
- LoggingConfig: Logging behavior
- MongoMemoryConfig: Main config aggregating all sub-configs

Environment variable prefix: MONGOMS_
Example: MONGOMS_SYSTEM_BINARY=/usr/bin/mongod
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BinaryConfig(BaseSettings):
    """mongod binary lookup.

    Uses the bare MONGOMS_ prefix so the variable names match the ones
    users already export for the node package (MONGOMS_SYSTEM_BINARY,
    MONGOMS_VERSION).
    """

    model_config = SettingsConfigDict(env_prefix="MONGOMS_")

    system_binary: str | None = Field(
        default=None,
        description="Absolute path of a preinstalled mongod binary",
    )
    version: str | None = Field(default=None, description="Requested mongod version")
    binary_name: str = Field(default="mongod", description="Executable looked up on PATH")
    check_version: bool = Field(
        default=False,
        description="Compare `mongod --version` with the requested version",
    )


class InstanceDefaults(BaseSettings):
    """Defaults for values an InstanceOptions leaves unset."""

    model_config = SettingsConfigDict(env_prefix="MONGOMS_INSTANCE_")

    ip: str = Field(default="127.0.0.1", description="Address passed to --bind_ip")
    storage_engine: str = Field(default="wiredTiger", description="--storageEngine value")
    tmp_prefix: str = Field(default="mongo-mem-", description="Prefix for provisioned dbpaths")


class LifecycleConfig(BaseSettings):
    """Start/stop timing.

    launch_timeout bounds the wait for the first readiness-or-error line.
    stop_timeout bounds the wait after SIGTERM, kill_timeout after SIGKILL.
    """

    model_config = SettingsConfigDict(env_prefix="MONGOMS_LIFECYCLE_")

    launch_timeout: float = Field(default=10.0, description="Readiness wait (seconds)")
    stop_timeout: float = Field(default=10.0, description="Graceful exit wait (seconds)")
    kill_timeout: float = Field(default=5.0, description="Forced exit wait (seconds)")
    max_port_retries: int = Field(
        default=1,
        description="Relaunches allowed after a port conflict",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Supports both text and JSON formats:
    - text: Human-readable for local development
    - json: Structured logging for CI log collection
    """

    model_config = SettingsConfigDict(env_prefix="MONGOMS_LOGGING_")

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="text", description="Log format (text, json)")
    service_name: str = Field(default="mongomem", description="Service identifier in logs")


class MongoMemoryConfig(BaseSettings):
    """Main configuration aggregating all sub-configs.

    Sub-configs use their own prefixes (MONGOMS_INSTANCE_, MONGOMS_LIFECYCLE_, etc.)
    """

    model_config = SettingsConfigDict(
        env_prefix="MONGOMS_",
        env_nested_delimiter="__",
    )

    binary: BinaryConfig = Field(default_factory=BinaryConfig)
    instance: InstanceDefaults = Field(default_factory=InstanceDefaults)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_config() -> MongoMemoryConfig:
    """Get cached configuration singleton."""
    return MongoMemoryConfig()
