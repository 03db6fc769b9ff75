"""Dependency graph builder: links declaration records across files and computes closures."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Sequence

from flock.deps.models import (
    DependencyItem,
    DependencyMap,
    DependencyStats,
    DependsEntry,
    SourceFileIndex,
)
from flock.deps.parser import parse_declaration_record
from flock.errors import DeclarationParseError, InvariantViolation

logger = logging.getLogger(__name__)


class DependencyGraphBuilder:
    """Accumulate declaration records for one compilation unit.

    Every file must be loaded exactly once, in any order, before
    :meth:`compute_dependency_map` is called.
    """

    def __init__(self, source_files_count: int):
        self.source_files_count = source_files_count
        self.providers: dict[DependencyItem, list[SourceFileIndex]] = {}
        self.depends_entries: list[DependsEntry] = []
        self.external_dependencies: set[str] = set()
        self._loaded = [False] * source_files_count

    @property
    def is_complete(self) -> bool:
        return all(self._loaded)

    def load_file(self, path: Path, index: SourceFileIndex) -> None:
        try:
            contents = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DeclarationParseError("could_not_decode", path=path, detail=str(e)) from e
        try:
            self.load(contents, index)
        except DeclarationParseError as e:
            raise e.with_path(path) from e

    def load(self, contents: str, index: SourceFileIndex) -> None:
        if not 0 <= index < self.source_files_count:
            raise InvariantViolation(
                f"source file index {index} out of range 0..{self.source_files_count - 1}"
            )
        if self._loaded[index]:
            raise InvariantViolation(f"declaration record for file {index} loaded twice")

        record = parse_declaration_record(contents)

        for item in record.provides:
            self.providers.setdefault(item, []).append(index)
        for item, is_cascading in record.depends:
            self.depends_entries.append(
                DependsEntry(dependant_index=index, item=item, is_cascading=is_cascading)
            )
        self.external_dependencies.update(record.external)
        self._loaded[index] = True

        logger.debug(
            "loaded record %d: %d provides, %d depends, %d external",
            index, len(record.provides), len(record.depends), len(record.external),
        )

    def compute_dependency_map(self) -> DependencyMap:
        if not self.is_complete:
            missing = [i for i, done in enumerate(self._loaded) if not done]
            raise InvariantViolation(f"declaration records not loaded for files {missing}")

        n = self.source_files_count
        non_cascading: list[set[int]] = [set() for _ in range(n)]
        cascading: list[set[int]] = [set() for _ in range(n)]

        # Step 1: Resolve depends entries against providers
        for entry in self.depends_entries:
            for provider in self.providers.get(entry.item, []):
                if provider == entry.dependant_index:
                    continue
                target = cascading if entry.is_cascading else non_cascading
                target[entry.dependant_index].add(provider)

        # Step 2: Direct deps plus the cascading closure of each of them
        closures: dict[int, set[int]] = {}
        result: list[frozenset[int]] = []
        for i in range(n):
            direct = non_cascading[i] | cascading[i]
            deps = set(direct)
            for d in direct:
                if d not in closures:
                    closures[d] = self.cascading_closure(d, cascading)
                deps |= closures[d]
            deps.discard(i)
            result.append(frozenset(deps))

        return DependencyMap(
            internal_dependencies=tuple(result),
            external_dependencies=frozenset(Path(p) for p in self.external_dependencies),
        )

    @staticmethod
    def cascading_closure(root: int, cascading: Sequence[set[int]]) -> set[int]:
        """BFS over cascading edges; every node reachable from root, excluding root."""
        visited = {root}
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for neighbor in cascading[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        visited.discard(root)
        return visited


def build_dependency_map(records: Sequence[Path]) -> DependencyMap:
    """Load one declaration record per source file (by index) and close over them."""
    builder = DependencyGraphBuilder(len(records))
    for index, path in enumerate(records):
        builder.load_file(path, index)
    return builder.compute_dependency_map()


def dependency_stats(source_files: Sequence[str], dependency_map: DependencyMap) -> DependencyStats:
    """Per-file dependency counts as a share of the whole unit."""
    total = len(source_files)
    stats = DependencyStats(total_files=total)
    if total == 0:
        return stats

    total_deps = 0
    for i, source_file in enumerate(source_files):
        count = len(dependency_map.internal_dependencies[i])
        stats.per_file.append((source_file, count, (count * 100) // total))
        total_deps += count
    stats.average_percent = (total_deps * 100) // (total * total)
    return stats
