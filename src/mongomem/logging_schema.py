"""Log event types for structured logging."""

from enum import StrEnum


class LogEvent(StrEnum):
    """Log event types.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.INSTANCE_READY, ...})
    """

    # Binary / storage collaborators
    BINARY_RESOLVED = "binary_resolved"
    BINARY_VERSION_MISMATCH = "binary_version_mismatch"
    STORAGE_PROVISIONED = "storage_provisioned"
    STORAGE_REMOVED = "storage_removed"

    # Process events
    PROCESS_SPAWNED = "process_spawned"
    PROCESS_OUTPUT = "process_output"
    PROCESS_EXITED = "process_exited"
    PROCESS_KILLED = "process_killed"

    # Lifecycle events
    STATE_CHANGED = "state_changed"
    LAUNCH_RETRY = "launch_retry"
    LAUNCH_FAILED = "launch_failed"
    INSTANCE_READY = "instance_ready"
    INSTANCE_STOPPED = "instance_stopped"
    STOP_ESCALATED = "stop_escalated"
