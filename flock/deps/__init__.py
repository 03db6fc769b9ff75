"""Dependency-graph engine: declaration records in, per-file secondary sets out."""

from __future__ import annotations

from flock.deps.graph import DependencyGraphBuilder, build_dependency_map, dependency_stats
from flock.deps.models import (
    DependencyItem,
    DependencyMap,
    DependencyStats,
    DependsEntry,
    DynamicLookup,
    Member,
    Nominal,
    SourceFileIndex,
    TopLevel,
)
from flock.deps.parser import DeclarationRecord, parse_declaration_record

__all__ = [
    "DeclarationRecord",
    "DependencyGraphBuilder",
    "DependencyItem",
    "DependencyMap",
    "DependencyStats",
    "DependsEntry",
    "DynamicLookup",
    "Member",
    "Nominal",
    "SourceFileIndex",
    "TopLevel",
    "build_dependency_map",
    "dependency_stats",
    "parse_declaration_record",
]
