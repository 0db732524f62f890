"""Prometheus metrics definitions for mongomem.

Tracks the lifecycle of managed mongod processes:
- Launch attempts and how they ended
- Time from start() to readiness
- Stops that had to escalate to SIGKILL
"""

from prometheus_client import Counter, Gauge, Histogram

# mongod usually comes up in 0.2s ~ 5s; slow CI machines stretch that
_BUCKETS_STARTUP = (
    0.1, 0.25, 0.5, 1, 2,
    4, 8, 15, 30, 60,
)

MONGOMS_LAUNCH_ATTEMPTS = Counter(
    "mongomem_launch_attempts_total",
    "Total mongod launch attempts",
    ["outcome"],  # ready, port_conflict, fatal
)

MONGOMS_STARTUP_DURATION = Histogram(
    "mongomem_startup_duration_seconds",
    "Duration of start() until the instance is ready",
    buckets=_BUCKETS_STARTUP,
)

MONGOMS_STOP_ESCALATIONS = Counter(
    "mongomem_stop_escalations_total",
    "Stops that exceeded the graceful timeout and sent SIGKILL",
)

MONGOMS_INSTANCES_RUNNING = Gauge(
    "mongomem_instances_running",
    "Number of mongod processes currently managed by this interpreter",
)
