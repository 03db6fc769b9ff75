"""Planning options, output-file maps and driver-flag handling."""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from flock.config import DEFAULT_CLIENT_CONFIG
from flock.diagnostics import Diagnostics
from flock.errors import ConfigError
from flock.models import CompilerMode, FileType
from flock.protocol import RemoteCompilationInfo


class OutputFileMap:
    """Per-input output locations, as in the driver's ``-output-file-map`` JSON.

    The ``""`` key holds module-level entries.
    """

    def __init__(self, entries: dict[Path, dict[FileType, Path]] | None = None):
        self.entries = entries or {}

    @classmethod
    def from_file(cls, path: Path) -> "OutputFileMap":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError("output_file_map_invalid", str(e), Path(path)) from e
        return cls.from_dict(raw, path=Path(path))

    @classmethod
    def from_dict(cls, raw: dict, path: Path | None = None) -> "OutputFileMap":
        if not isinstance(raw, dict):
            raise ConfigError("output_file_map_invalid", "top level must be an object", path)
        entries: dict[Path, dict[FileType, Path]] = {}
        for input_path, outputs in raw.items():
            if not isinstance(outputs, dict):
                raise ConfigError(
                    "output_file_map_invalid", f"entry for {input_path!r} must be an object", path
                )
            by_type: dict[FileType, Path] = {}
            for type_name, output in outputs.items():
                try:
                    file_type = FileType(type_name)
                except ValueError:
                    # diagnostics, dependencies, etc. are not used here
                    continue
                by_type[file_type] = Path(output)
            entries[Path(input_path)] = by_type
        return cls(entries)

    def existing_output(self, input_path: Path, file_type: FileType) -> Path | None:
        return self.entries.get(Path(input_path), {}).get(file_type)

    def get_output(
        self,
        input_path: Path,
        file_type: FileType,
        fallback_dir: Path,
        relative_path: str | None = None,
    ) -> Path:
        """Mapped output for an input, or a derived path under ``fallback_dir``.

        The derived path mirrors ``relative_path`` when given, so inputs that
        share a file name in different directories get distinct outputs.
        """
        mapped = self.existing_output(input_path, file_type)
        if mapped is not None:
            return mapped
        name = Path(relative_path) if relative_path else Path(Path(input_path).name)
        return fallback_dir / name.with_suffix(file_type.suffix)


@dataclass
class PlanningOptions:
    """Everything the build-plan constructor reads from the parsed driver command line."""
    base_dir: Path
    remote_info: RemoteCompilationInfo
    output_file_map: OutputFileMap = field(default_factory=OutputFileMap)
    compiler_mode: CompilerMode = CompilerMode.STANDARD_COMPILE
    emit_module_single_invocation: bool = False
    compiler_output_type: FileType | None = FileType.OBJECT
    module_name: str = "main"
    module_output_path: Path | None = None
    link_output_path: Path | None = None
    debug_info: bool = False
    verify_debug_info: bool = False
    autolink_extract: bool = False
    batch_partitions: list[list[Path]] | None = None
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.mkdtemp(prefix="flock-")))

    @property
    def emits_module(self) -> bool:
        return self.module_output_path is not None


@dataclass(frozen=True)
class DistributedBuildInfo:
    base_dir: Path
    client_config_path: Path


def resolve_distributed_build(
    enabled: bool,
    compiler_mode: CompilerMode,
    output_file_map: OutputFileMap | None,
    diagnostics: Diagnostics,
    base_dir: Path | None = None,
    client_config_path: Path | None = None,
    cwd: Path | None = None,
) -> DistributedBuildInfo | None:
    """Interpret the distributed-build flags; ``None`` means build locally."""
    if not enabled:
        return None
    if not compiler_mode.uses_primary_file_inputs:
        diagnostics.warning(
            "distributed_build_disabled",
            f"distributed build disabled: compiler mode '{compiler_mode.value}' "
            "does not use primary file inputs",
        )
        return None
    if output_file_map is None:
        diagnostics.warning(
            "distributed_build_disabled",
            "distributed build disabled: no output file map",
        )
        return None

    cwd = cwd or Path.cwd()
    return DistributedBuildInfo(
        base_dir=(cwd / base_dir) if base_dir else cwd,
        client_config_path=(cwd / client_config_path) if client_config_path else cwd / DEFAULT_CLIENT_CONFIG,
    )
