"""Data models for the cross-file dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

# Position of a source file in a build plan's sorted source file list.
SourceFileIndex = int


@dataclass(frozen=True)
class TopLevel:
    name: str


@dataclass(frozen=True)
class Nominal:
    name: str


@dataclass(frozen=True)
class Member:
    owner: str
    member: str


@dataclass(frozen=True)
class DynamicLookup:
    name: str


DependencyItem = TopLevel | Nominal | Member | DynamicLookup


@dataclass(frozen=True)
class DependsEntry:
    """One ``depends-*`` entry read from a declaration record."""
    dependant_index: SourceFileIndex
    item: DependencyItem
    is_cascading: bool


@dataclass(frozen=True)
class DependencyMap:
    """Result of the closure pass over one compilation unit.

    ``internal_dependencies[i]`` holds the indices of every other file that
    must be passed as a secondary file when ``i`` is compiled as a primary.
    If any path in ``external_dependencies`` changes, the whole map is stale.
    """
    internal_dependencies: tuple[frozenset[SourceFileIndex], ...] = ()
    external_dependencies: frozenset[Path] = field(default_factory=frozenset)

    def dependencies_of(self, index: SourceFileIndex) -> frozenset[SourceFileIndex]:
        return self.internal_dependencies[index]


@dataclass
class DependencyStats:
    total_files: int
    per_file: list[tuple[str, int, int]] = field(default_factory=list)  # (path, count, percent)
    average_percent: int = 0
