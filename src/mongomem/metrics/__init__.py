"""Prometheus metrics for mongomem."""

from mongomem.metrics.collector import (
    MONGOMS_INSTANCES_RUNNING,
    MONGOMS_LAUNCH_ATTEMPTS,
    MONGOMS_STARTUP_DURATION,
    MONGOMS_STOP_ESCALATIONS,
)

__all__ = [
    "MONGOMS_INSTANCES_RUNNING",
    "MONGOMS_LAUNCH_ATTEMPTS",
    "MONGOMS_STARTUP_DURATION",
    "MONGOMS_STOP_ESCALATIONS",
]
