"""Exception hierarchy shared across the client, planner and server."""

from __future__ import annotations

from pathlib import Path


class FlockError(Exception):
    """Base class for recoverable flock errors."""


class InvariantViolation(RuntimeError):
    """A programming-contract violation. Never caught at runtime."""


class ConfigError(FlockError):
    """Malformed or incomplete client/server configuration."""

    def __init__(self, kind: str, message: str, path: Path | None = None):
        self.kind = kind
        self.path = path
        where = f"{path}: " if path else ""
        super().__init__(f"{where}{message}")


class DeclarationParseError(FlockError):
    """A per-file declaration record could not be parsed."""

    def __init__(
        self,
        kind: str,
        section: str | None = None,
        path: Path | str | None = None,
        detail: str = "",
    ):
        self.kind = kind
        self.section = section
        self.path = path
        self.detail = detail
        super().__init__(self._format(detail))

    def with_path(self, path: Path | str) -> "DeclarationParseError":
        return DeclarationParseError(self.kind, self.section, path, self.detail)

    def _format(self, detail: str) -> str:
        parts = [self.kind.replace("_", " ")]
        if self.section:
            parts.append(f"in section '{self.section}'")
        if self.path:
            parts.append(f"of '{self.path}'")
        msg = " ".join(parts)
        return f"{msg}: {detail}" if detail else msg


class PlanningError(FlockError):
    """Raised when a plan was produced with error diagnostics and cannot run."""


class DispatchError(FlockError):
    """A remote compilation request failed."""

    def __init__(self, message: str, server: str | None = None):
        self.server = server
        super().__init__(f"{server}: {message}" if server else message)


class ConnectionFailed(DispatchError):
    pass


class TimeoutExceeded(DispatchError):
    pass


class RemoteCompilationFailed(DispatchError):
    """The server answered with a failure descriptor."""

    def __init__(self, reason: str, message: str, server: str | None = None):
        self.reason = reason
        self.diagnostics = message
        super().__init__(f"{reason}: {message}", server=server)
