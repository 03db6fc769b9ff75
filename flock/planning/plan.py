"""The immutable result of planning one distributed build."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from flock.models import Job, OutputKind
from flock.protocol import RemoteCompilationInfo


@dataclass(frozen=True)
class BuildPlan:
    """Snapshot of all local and remote work for one build invocation.

    ``source_files`` are paths relative to ``base_dir``, sorted; a file's
    position in that tuple is its SourceFileIndex. ``swift_deps_map`` and
    ``output_paths`` are keyed by the same relative paths and are read-only
    views over copies of what the planner passed in.
    """
    base_dir: Path
    remote_compilation_info: RemoteCompilationInfo
    source_files: tuple[str, ...] = ()
    pre_compilation_jobs: tuple[Job, ...] = ()
    post_compilation_jobs: tuple[Job, ...] = ()
    swift_deps_map: Mapping[str, Path] = field(default_factory=dict)
    output_paths: Mapping[str, Mapping[OutputKind, Path]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "swift_deps_map", MappingProxyType(dict(self.swift_deps_map)))
        object.__setattr__(self, "output_paths", MappingProxyType({
            source: MappingProxyType(dict(outputs)) for source, outputs in self.output_paths.items()
        }))

    def index_of(self, source_file: str) -> int:
        return self.source_files.index(source_file)

    def swift_deps_in_order(self) -> list[Path]:
        return [self.swift_deps_map[f] for f in self.source_files]
