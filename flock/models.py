"""Core data models shared by the planner, the executor and the wire protocol."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


class FileType(enum.Enum):
    """File kinds the driver knows about; values match output-file-map keys."""
    SWIFT = "swift"
    OBJECT = "object"
    AUTOLINK = "autolink"
    SWIFT_MODULE = "swiftmodule"
    SWIFT_DOCUMENTATION = "swiftdoc"
    SWIFT_DEPS = "swift-dependencies"
    IMAGE = "image"
    DSYM = "dSYM"

    @classmethod
    def from_path(cls, path: Path) -> FileType | None:
        return _SUFFIXES.get(Path(path).suffix)

    @property
    def suffix(self) -> str:
        return _SUFFIX_OF.get(self, "")


_SUFFIXES: dict[str, FileType] = {
    ".swift": FileType.SWIFT,
    ".o": FileType.OBJECT,
    ".autolink": FileType.AUTOLINK,
    ".swiftmodule": FileType.SWIFT_MODULE,
    ".swiftdoc": FileType.SWIFT_DOCUMENTATION,
    ".swiftdeps": FileType.SWIFT_DEPS,
    ".dSYM": FileType.DSYM,
}
_SUFFIX_OF: dict[FileType, str] = {t: s for s, t in _SUFFIXES.items()}


class OutputKind(enum.Enum):
    """Artifacts a remote compilation produces per primary file."""
    OBJECT = "object"
    MODULE = "module"
    DOCUMENTATION = "documentation"

    @property
    def file_type(self) -> FileType:
        return {
            OutputKind.OBJECT: FileType.OBJECT,
            OutputKind.MODULE: FileType.SWIFT_MODULE,
            OutputKind.DOCUMENTATION: FileType.SWIFT_DOCUMENTATION,
        }[self]


class CompilerMode(enum.Enum):
    STANDARD_COMPILE = "standard"
    BATCH_COMPILE = "batch"
    SINGLE_COMPILE = "single"
    IMMEDIATE = "immediate"
    REPL = "repl"

    @property
    def uses_primary_file_inputs(self) -> bool:
        return self in (CompilerMode.STANDARD_COMPILE, CompilerMode.BATCH_COMPILE)


@dataclass(frozen=True)
class TypedPath:
    path: Path
    type: FileType


@dataclass(frozen=True)
class InputFile:
    """One file named on the driver command line."""
    path: Path
    type: FileType | None

    @classmethod
    def from_path(cls, path: Path | str) -> InputFile:
        p = Path(path)
        return cls(path=p, type=FileType.from_path(p))


class JobKind(enum.Enum):
    EMIT_DEPENDENCIES = "emit-dependencies"
    MERGE_MODULE = "merge-module"
    AUTOLINK_EXTRACT = "autolink-extract"
    LINK = "link"
    GENERATE_DSYM = "generate-dsym"
    VERIFY_DEBUG_INFO = "verify-debug-info"


@dataclass(frozen=True)
class Job:
    """A local tool invocation."""
    kind: JobKind
    tool: str
    arguments: tuple[str, ...] = ()
    inputs: tuple[Path, ...] = ()
    outputs: tuple[TypedPath, ...] = ()

    @property
    def command_line(self) -> list[str]:
        return [self.tool, *self.arguments]

    def outputs_of_type(self, file_type: FileType) -> list[Path]:
        return [o.path for o in self.outputs if o.type is file_type]


@dataclass
class Artifacts:
    """What a remote executor wrote locally, keyed by relative source path."""
    written: dict[str, dict[OutputKind, Path]] = field(default_factory=dict)

    def paths(self) -> list[Path]:
        return [p for by_kind in self.written.values() for p in by_kind.values()]
