"""Retry policy for failed launch attempts.

A port conflict is retried on a freshly allocated port; the retry never
reuses a fixed port. Anything else (broken binary, bad arguments, corrupt
data) is surfaced immediately.
"""

import logging
from dataclasses import dataclass

from mongomem.errors import classify_error
from mongomem.lifecycle.result import LaunchOutcome, Ready

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    """What to do after a failed attempt."""

    retry: bool
    fresh_port: bool = False


RETRY_ON_FRESH_PORT = RetryDecision(retry=True, fresh_port=True)
GIVE_UP = RetryDecision(retry=False)


class PortRetryPolicy:
    """Retry port conflicts up to max_retries times, nothing else.

    Args:
        max_retries: Relaunches allowed after the first attempt (default: 1)
    """

    def __init__(self, max_retries: int = 1) -> None:
        self.max_retries = max_retries

    def decide(self, attempt: int, outcome: LaunchOutcome) -> RetryDecision:
        """Decide whether attempt number `attempt` (1-based) is retried."""
        if isinstance(outcome, Ready):
            return GIVE_UP
        if classify_error(outcome.error) == "permanent":
            return GIVE_UP

        if attempt > self.max_retries:
            logger.debug(
                "Port conflict retries exhausted",
                extra={"attempt": attempt, "max_retries": self.max_retries},
            )
            return GIVE_UP

        return RETRY_ON_FRESH_PORT
