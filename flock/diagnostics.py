"""Collected planning diagnostics."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class Severity(enum.Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Diagnostic:
    severity: Severity
    code: str
    message: str
    path: Path | None = None

    def __str__(self) -> str:
        where = f"{self.path}: " if self.path else ""
        return f"{where}{self.severity.value}: {self.message}"


@dataclass
class Diagnostics:
    """Collects per-file diagnostics so one bad input doesn't stop classification."""
    entries: list[Diagnostic] = field(default_factory=list)

    def error(self, code: str, message: str, path: Path | None = None) -> None:
        self._emit(Diagnostic(Severity.ERROR, code, message, path))

    def warning(self, code: str, message: str, path: Path | None = None) -> None:
        self._emit(Diagnostic(Severity.WARNING, code, message, path))

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.entries)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.entries if d.severity is Severity.ERROR]

    def codes(self) -> list[str]:
        return [d.code for d in self.entries]

    def _emit(self, diagnostic: Diagnostic) -> None:
        self.entries.append(diagnostic)
        level = logging.ERROR if diagnostic.severity is Severity.ERROR else logging.WARNING
        logger.log(level, "%s", diagnostic)
