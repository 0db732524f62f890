"""Classification of mongod output into readiness signals.

mongod has no start-up protocol: it only logs. Readiness and failure are
recognized by matching each output line against an ordered rule table.
The first matching rule wins. Both the legacy text log format and the
JSON log format of mongod 4.4+ are covered.

Usage:
    detector = ReadinessDetector()
    signal = detector.feed('{"msg":"Waiting for connections","attr":{"port":27017}}')
    assert signal.kind is SignalKind.READY and signal.port == 27017

Extra rules (evaluated before the defaults):
    detector = ReadinessDetector(extra_rules=[OutputRule.of(r"my pattern", SignalKind.FATAL, "...")])
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

# mongod's EXIT_NET_ERROR, used when the listener cannot bind
EXIT_NET_ERROR = 48

_PORT_PATTERNS = (
    re.compile(r"on port (\d+)", re.IGNORECASE),
    re.compile(r'"port"\s*:\s*(\d+)'),
)


class SignalKind(str, Enum):
    """Terminal signals of a launch attempt."""

    READY = "ready"
    PORT_CONFLICT = "port_conflict"
    FATAL = "fatal"


@dataclass(frozen=True)
class ReadinessSignal:
    """Result of classifying process output.

    port is only set for READY and only when the line names it.
    """

    kind: SignalKind
    reason: str
    line: str = ""
    port: int | None = None
    returncode: int | None = None


@dataclass(frozen=True)
class OutputRule:
    """One (pattern, signal) entry of the rule table."""

    pattern: re.Pattern[str]
    kind: SignalKind
    reason: str

    @classmethod
    def of(cls, pattern: str, kind: SignalKind, reason: str) -> "OutputRule":
        return cls(re.compile(pattern, re.IGNORECASE), kind, reason)


DEFAULT_RULES: tuple[OutputRule, ...] = (
    # Port conflicts first: mongod logs the bind error and then shuts down
    OutputRule.of(r"addr(?:ess)? already in use", SignalKind.PORT_CONFLICT, "Port already in use"),
    OutputRule.of(r"EADDRINUSE", SignalKind.PORT_CONFLICT, "Port already in use"),
    OutputRule.of(r"shutting down with code:?\s*48\b", SignalKind.PORT_CONFLICT, "Port already in use"),
    OutputRule.of(r'"exitCode"\s*:\s*48\b', SignalKind.PORT_CONFLICT, "Port already in use"),
    OutputRule.of(r"mongod instance already running", SignalKind.FATAL, "Mongod already running"),
    OutputRule.of(r"permission denied", SignalKind.FATAL, "Mongod permission denied"),
    OutputRule.of(r"data directory .*? not found", SignalKind.FATAL, "Data directory not found"),
    OutputRule.of(
        r"CURL_OPENSSL_[34].*not found",
        SignalKind.FATAL,
        "libcurl is not available on this system",
    ),
    OutputRule.of(r"exception in initAndListen", SignalKind.FATAL, "Mongod failed to initialize"),
    OutputRule.of(r"unrecogni[sz]ed option", SignalKind.FATAL, "Invalid mongod argument"),
    OutputRule.of(
        r"unknown storage engine|unsupported storage engine|storage engine .*not (?:supported|available)",
        SignalKind.FATAL,
        "Unsupported storage engine",
    ),
    OutputRule.of(r"corrupt", SignalKind.FATAL, "Data files are corrupt"),
    OutputRule.of(r"\*\*\*aborting after", SignalKind.FATAL, "Mongod internal error"),
    OutputRule.of(r"shutting down with code", SignalKind.FATAL, "Mongod shutting down"),
    OutputRule.of(r'"exitCode"\s*:\s*\d+', SignalKind.FATAL, "Mongod shutting down"),
    OutputRule.of(r"waiting for connections", SignalKind.READY, "Waiting for connections"),
)


def _extract_port(line: str) -> int | None:
    for pattern in _PORT_PATTERNS:
        match = pattern.search(line)
        if match:
            return int(match.group(1))
    return None


def _last_line(output: str) -> str:
    for line in reversed(output.splitlines()):
        if line.strip():
            return line.strip()
    return ""


class ReadinessDetector:
    """Turns output lines into ReadinessSignals.

    Stateless: the same detector can classify any number of launches.
    """

    def __init__(
        self,
        rules: Iterable[OutputRule] = DEFAULT_RULES,
        extra_rules: Iterable[OutputRule] = (),
    ) -> None:
        self._rules = (*extra_rules, *rules)

    @property
    def rules(self) -> tuple[OutputRule, ...]:
        return self._rules

    def feed(self, line: str) -> ReadinessSignal | None:
        """Classify one output line.

        Returns:
            A terminal signal, or None if the line is not one
        """
        for rule in self._rules:
            if rule.pattern.search(line):
                port = _extract_port(line) if rule.kind is SignalKind.READY else None
                return ReadinessSignal(rule.kind, rule.reason, line=line.strip(), port=port)
        return None

    def on_exit(self, returncode: int | None, output: str) -> ReadinessSignal:
        """Classify a process that exited before any terminal line."""
        last = _last_line(output)
        if returncode == EXIT_NET_ERROR:
            return ReadinessSignal(
                SignalKind.PORT_CONFLICT,
                "Port already in use",
                line=last,
                returncode=returncode,
            )
        return ReadinessSignal(
            SignalKind.FATAL,
            f"Mongod exited with code {returncode} before accepting connections",
            line=last,
            returncode=returncode,
        )
