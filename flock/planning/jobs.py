"""Job emission for the local side of a distributed build."""

from __future__ import annotations

import abc
import shlex
from pathlib import Path

from flock.models import FileType, Job, JobKind, TypedPath


class JobEmitter(abc.ABC):
    """Builds the local tool invocations a plan needs."""

    @abc.abstractmethod
    def emit_dependencies_job(
        self,
        primaries: list[Path],
        sources: list[Path],
        swift_deps: dict[Path, Path],
        module_name: str,
        frontend_options: str,
    ) -> Job:
        """Type-check ``primaries`` and write one declaration record per primary."""

    @abc.abstractmethod
    def merge_module_job(
        self, inputs: list[Path], module_path: Path, doc_path: Path, module_name: str
    ) -> Job:
        """Merge per-file partial modules into the final module."""

    @abc.abstractmethod
    def autolink_extract_job(self, objects: list[Path], output: Path) -> Job:
        """Pull autolink entries out of object files."""

    @abc.abstractmethod
    def link_job(self, inputs: list[Path], output: Path) -> Job:
        """Link objects into an image."""

    @abc.abstractmethod
    def generate_dsym_job(self, image: Path, output: Path) -> Job:
        """Produce a debug symbol bundle for a linked image."""

    @abc.abstractmethod
    def verify_debug_info_job(self, dsym: Path) -> Job:
        """Check the debug symbol bundle."""


class FrontendJobEmitter(JobEmitter):
    """Emits jobs for a local ``swift -frontend`` toolchain."""

    def __init__(
        self,
        frontend: str = "swift",
        linker: str = "clang",
        autolink_extract: str = "swift-autolink-extract",
        dsymutil: str = "dsymutil",
        dwarfdump: str = "dwarfdump",
    ):
        self.frontend = frontend
        self.linker = linker
        self.autolink_extract = autolink_extract
        self.dsymutil = dsymutil
        self.dwarfdump = dwarfdump

    def emit_dependencies_job(self, primaries, sources, swift_deps, module_name, frontend_options):
        primary_set = set(primaries)
        args: list[str] = ["-frontend", "-typecheck"]
        for source in sources:
            if source in primary_set:
                args.append("-primary-file")
            args.append(str(source))
        for primary in primaries:
            args += ["-emit-reference-dependencies-path", str(swift_deps[primary])]
        args += ["-module-name", module_name]
        args += shlex.split(frontend_options)
        return Job(
            kind=JobKind.EMIT_DEPENDENCIES,
            tool=self.frontend,
            arguments=tuple(args),
            inputs=tuple(sources),
            outputs=tuple(TypedPath(swift_deps[p], FileType.SWIFT_DEPS) for p in primaries),
        )

    def merge_module_job(self, inputs, module_path, doc_path, module_name):
        args = [
            "-frontend", "-merge-modules", "-emit-module",
            *(str(p) for p in inputs),
            "-module-name", module_name,
            "-o", str(module_path),
            "-emit-module-doc-path", str(doc_path),
        ]
        return Job(
            kind=JobKind.MERGE_MODULE,
            tool=self.frontend,
            arguments=tuple(args),
            inputs=tuple(inputs),
            outputs=(
                TypedPath(module_path, FileType.SWIFT_MODULE),
                TypedPath(doc_path, FileType.SWIFT_DOCUMENTATION),
            ),
        )

    def autolink_extract_job(self, objects, output):
        return Job(
            kind=JobKind.AUTOLINK_EXTRACT,
            tool=self.autolink_extract,
            arguments=(*(str(p) for p in objects), "-o", str(output)),
            inputs=tuple(objects),
            outputs=(TypedPath(output, FileType.AUTOLINK),),
        )

    def link_job(self, inputs, output):
        args: list[str] = []
        for p in inputs:
            # autolink files carry linker flags, one per line
            args.append(f"@{p}" if FileType.from_path(p) is FileType.AUTOLINK else str(p))
        args += ["-o", str(output)]
        return Job(
            kind=JobKind.LINK,
            tool=self.linker,
            arguments=tuple(args),
            inputs=tuple(inputs),
            outputs=(TypedPath(output, FileType.IMAGE),),
        )

    def generate_dsym_job(self, image, output):
        return Job(
            kind=JobKind.GENERATE_DSYM,
            tool=self.dsymutil,
            arguments=(str(image), "-o", str(output)),
            inputs=(image,),
            outputs=(TypedPath(output, FileType.DSYM),),
        )

    def verify_debug_info_job(self, dsym):
        return Job(
            kind=JobKind.VERIFY_DEBUG_INFO,
            tool=self.dwarfdump,
            arguments=("--verify", "--debug-info", "--eh-frame", "--quiet", str(dsym)),
            inputs=(dsym,),
        )
