"""Build plan constructor: classify inputs, emit dependency jobs, record expected outputs."""

from __future__ import annotations

import logging
from pathlib import Path

from flock.diagnostics import Diagnostics
from flock.errors import InvariantViolation
from flock.models import FileType, InputFile, Job, OutputKind
from flock.planning.jobs import FrontendJobEmitter, JobEmitter
from flock.planning.options import PlanningOptions
from flock.planning.plan import BuildPlan

logger = logging.getLogger(__name__)

_LINKER_INPUT_TYPES = (FileType.OBJECT, FileType.AUTOLINK)


def remote_relative_path(path: Path, base_dir: Path) -> str | None:
    """Path of ``path`` relative to ``base_dir`` in POSIX form, or None if outside it."""
    resolved = Path(path).resolve()
    base = Path(base_dir).resolve()
    if not resolved.is_relative_to(base) or resolved == base:
        return None
    return resolved.relative_to(base).as_posix()


def plan_distributed_build(
    inputs: list[InputFile],
    options: PlanningOptions,
    emitter: JobEmitter | None = None,
    diagnostics: Diagnostics | None = None,
) -> BuildPlan:
    """Turn the driver's inputs into a :class:`BuildPlan`.

    Per-file problems are reported to ``diagnostics`` and the file is left out;
    callers must check ``diagnostics.has_errors`` before executing the plan.

    Raises:
        InvariantViolation: if the compiler mode cannot be distributed.
    """
    if not options.compiler_mode.uses_primary_file_inputs:
        raise InvariantViolation(
            f"distributed build requires primary-file inputs, mode is '{options.compiler_mode.value}'"
        )
    if options.emit_module_single_invocation:
        raise InvariantViolation("distributed build cannot emit the module in a single invocation")

    emitter = emitter or FrontendJobEmitter()
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    ofm = options.output_file_map
    temp_dir = options.temp_dir

    # Step 1: Classify inputs
    compilable: dict[Path, str] = {}  # local path -> remote-relative path
    seen_relative: dict[str, Path] = {}
    linker_inputs: list[Path] = []
    module_inputs: list[Path] = []
    for input_file in inputs:
        if input_file.type is FileType.SWIFT:
            relative = remote_relative_path(input_file.path, options.base_dir)
            if relative is None:
                diagnostics.error(
                    "source_file_outside_base_directory",
                    f"source file is not under the distributed build base directory {options.base_dir}",
                    input_file.path,
                )
                continue
            if relative in seen_relative:
                diagnostics.error(
                    "duplicate_input_file",
                    f"source file is the same as {seen_relative[relative]}",
                    input_file.path,
                )
                continue
            seen_relative[relative] = input_file.path
            compilable[input_file.path] = relative
        elif input_file.type in _LINKER_INPUT_TYPES:
            linker_inputs.append(input_file.path)
        elif input_file.type is FileType.SWIFT_MODULE:
            module_inputs.append(input_file.path)
        else:
            diagnostics.error("unexpected_input_file", "unexpected input file", input_file.path)

    sources = list(compilable)

    # Step 2: Group primaries and emit one declaration job per group
    group_of: dict[Path, int] = {}
    for gid, partition in enumerate(options.batch_partitions or []):
        for p in partition:
            group_of.setdefault(Path(p), gid)

    requested = _requested_outputs(options)
    pre_jobs: list[Job] = []
    swift_deps_map: dict[str, Path] = {}
    output_paths: dict[str, dict[OutputKind, Path]] = {}
    object_outputs: list[Path] = []
    covered: set[object] = set()

    for source in sources:
        key = ("batch", group_of[source]) if source in group_of else ("file", source)
        if key in covered:
            continue
        covered.add(key)

        if source in group_of:
            gid = group_of[source]
            primaries = [s for s in sources if group_of.get(s) == gid]
        else:
            primaries = [source]

        swift_deps = {
            p: ofm.get_output(p, FileType.SWIFT_DEPS, temp_dir, compilable[p]) for p in primaries
        }
        pre_jobs.append(emitter.emit_dependencies_job(
            primaries, sources, swift_deps, options.module_name,
            options.remote_info.frontend_options,
        ))

        for primary in primaries:
            relative = compilable[primary]
            swift_deps_map[relative] = swift_deps[primary]
            outputs = {
                kind: ofm.get_output(primary, kind.file_type, temp_dir, relative) for kind in requested
            }
            output_paths[relative] = outputs
            if OutputKind.OBJECT in outputs:
                object_outputs.append(outputs[OutputKind.OBJECT])
            if OutputKind.MODULE in outputs:
                module_inputs.append(outputs[OutputKind.MODULE])

    objects = object_outputs + [p for p in linker_inputs if FileType.from_path(p) is FileType.OBJECT]
    linker_inputs = object_outputs + linker_inputs

    # Step 3: Post-compilation jobs
    post_jobs: list[Job] = []
    if module_inputs and options.module_output_path is not None:
        doc_path = options.module_output_path.with_suffix(FileType.SWIFT_DOCUMENTATION.suffix)
        post_jobs.append(emitter.merge_module_job(
            module_inputs, options.module_output_path, doc_path, options.module_name
        ))

    if options.autolink_extract and objects:
        autolink_out = (
            ofm.existing_output(Path(""), FileType.AUTOLINK)
            or temp_dir / f"{options.module_name}{FileType.AUTOLINK.suffix}"
        )
        post_jobs.append(emitter.autolink_extract_job(objects, autolink_out))
        linker_inputs.append(autolink_out)

    link_job = None
    if options.link_output_path is not None and linker_inputs:
        link_job = emitter.link_job(linker_inputs, options.link_output_path)
        post_jobs.append(link_job)

    dsym_job = None
    if options.debug_info and link_job is not None:
        dsym_path = options.link_output_path.parent / f"{options.link_output_path.name}{FileType.DSYM.suffix}"
        dsym_job = emitter.generate_dsym_job(options.link_output_path, dsym_path)
        post_jobs.append(dsym_job)

    if options.verify_debug_info and dsym_job is not None:
        post_jobs.append(emitter.verify_debug_info_job(dsym_job.outputs_of_type(FileType.DSYM)[0]))

    plan = BuildPlan(
        base_dir=options.base_dir,
        remote_compilation_info=options.remote_info,
        source_files=tuple(sorted(compilable.values())),
        pre_compilation_jobs=tuple(pre_jobs),
        post_compilation_jobs=tuple(post_jobs),
        swift_deps_map=swift_deps_map,
        output_paths=output_paths,
    )
    logger.info(
        "planned %d source file(s): %d pre-compilation job(s), %d post-compilation job(s)",
        len(plan.source_files), len(plan.pre_compilation_jobs), len(plan.post_compilation_jobs),
    )
    return plan


def _requested_outputs(options: PlanningOptions) -> list[OutputKind]:
    kinds: list[OutputKind] = []
    if options.compiler_output_type is FileType.OBJECT:
        kinds.append(OutputKind.OBJECT)
    if options.emits_module:
        kinds += [OutputKind.MODULE, OutputKind.DOCUMENTATION]
    return kinds
