"""Click CLI with build, deps, and serve subcommands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from flock import __version__
from flock.config import DEFAULT_SERVER_CONFIG, ServerConfiguration
from flock.deps import build_dependency_map, dependency_stats
from flock.diagnostics import Diagnostics
from flock.errors import FlockError
from flock.execution import execute_distributed_build, make_executor
from flock.models import CompilerMode, FileType, InputFile
from flock.planning import (
    FrontendJobEmitter,
    OutputFileMap,
    PlanningOptions,
    plan_distributed_build,
    resolve_distributed_build,
)
from flock.protocol import RemoteCompilationInfo
from flock.server.registry import query_version

_MODE_CHOICES = [m.value for m in CompilerMode]


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(verbose: bool):
    """flock: distributed compilation for Swift modules."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("inputs", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option("--distributed", is_flag=True, help="Enable distributed building")
@click.option("--distributed-build-base-dir", "base_dir", type=click.Path(file_okay=False, path_type=Path),
              help="Base directory for all source files (default: current dir)")
@click.option("--distributed-build-client-config", "client_config", type=click.Path(dir_okay=False, path_type=Path),
              help="Client configuration file (default: ./flock_client_config.yaml)")
@click.option("--output-file-map", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mode", type=click.Choice(_MODE_CHOICES), default=CompilerMode.STANDARD_COMPILE.value)
@click.option("--emit-module-single-invocation", "single_invocation_module", is_flag=True,
              help="Emit the module in a single frontend invocation")
@click.option("--batch-size", type=int, default=0, help="Primaries per declaration job in batch mode")
@click.option("--module-name", default="main")
@click.option("--emit-module-path", type=click.Path(path_type=Path))
@click.option("-o", "--output", "link_output", type=click.Path(path_type=Path), help="Linked image")
@click.option("-g", "debug_info", is_flag=True, help="Generate debug symbols")
@click.option("--verify-debug-info", is_flag=True)
@click.option("--autolink-extract", is_flag=True, help="Extract autolink entries (ELF targets)")
@click.option("--frontend", default="swift", help="Local compiler frontend")
@click.option("--compiler-version", help="Remote compiler version (default: local frontend --version)")
@click.option("--sdk", required=True, help="SDK identifier, e.g. MacOSX10.15")
@click.option("--frontend-options", default="", help="Options passed to the remote frontend")
@click.option("--executor", type=click.Choice(["remote", "mock"]), default="remote")
def build(
    inputs: tuple[Path, ...],
    distributed: bool,
    base_dir: Path | None,
    client_config: Path | None,
    output_file_map: Path | None,
    mode: str,
    single_invocation_module: bool,
    batch_size: int,
    module_name: str,
    emit_module_path: Path | None,
    link_output: Path | None,
    debug_info: bool,
    verify_debug_info: bool,
    autolink_extract: bool,
    frontend: str,
    compiler_version: str | None,
    sdk: str,
    frontend_options: str,
    executor: str,
):
    """Plan a build and compile its sources on a flock server."""
    diagnostics = Diagnostics()
    compiler_mode = CompilerMode(mode)
    try:
        ofm = OutputFileMap.from_file(output_file_map) if output_file_map else None
        info = resolve_distributed_build(
            distributed, compiler_mode, ofm, diagnostics,
            base_dir=base_dir, client_config_path=client_config,
        )
        if info is None:
            if diagnostics.entries:
                raise click.ClickException("; ".join(d.message for d in diagnostics.entries))
            raise click.ClickException("only distributed builds are supported; pass --distributed")

        if single_invocation_module:
            raise click.ClickException("single-invocation module emission cannot be distributed")

        input_files = [InputFile.from_path(p) for p in inputs]
        swift_inputs = [f.path for f in input_files if f.type is FileType.SWIFT]
        partitions = None
        if compiler_mode is CompilerMode.BATCH_COMPILE and batch_size > 0:
            partitions = [swift_inputs[i:i + batch_size] for i in range(0, len(swift_inputs), batch_size)]

        options = PlanningOptions(
            base_dir=info.base_dir,
            remote_info=RemoteCompilationInfo(
                compiler_version=compiler_version or query_version(Path(frontend)),
                sdk_platform_and_version=sdk,
                frontend_options=frontend_options,
            ),
            output_file_map=ofm,
            compiler_mode=compiler_mode,
            emit_module_single_invocation=single_invocation_module,
            module_name=module_name,
            module_output_path=emit_module_path,
            link_output_path=link_output,
            debug_info=debug_info,
            verify_debug_info=verify_debug_info,
            autolink_extract=autolink_extract,
            batch_partitions=partitions,
        )

        plan = plan_distributed_build(
            input_files, options, emitter=FrontendJobEmitter(frontend=frontend), diagnostics=diagnostics
        )
        if diagnostics.has_errors:
            for d in diagnostics.errors:
                click.echo(str(d), err=True)
            raise click.ClickException(f"{len(diagnostics.errors)} planning error(s)")

        remote = make_executor(executor, info.client_config_path)
        artifacts = execute_distributed_build(plan, remote, diagnostics=diagnostics)
    except FlockError as e:
        raise click.ClickException(str(e))

    click.echo(f"Compiled {len(plan.source_files)} file(s), wrote {len(artifacts.paths())} artifact(s)")


@cli.command()
@click.argument("records", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the dependency map as JSON")
def deps(records: tuple[Path, ...], as_json: bool):
    """Compute the dependency map for a set of declaration records (one per source file)."""
    try:
        dependency_map = build_dependency_map(list(records))
    except FlockError as e:
        raise click.ClickException(str(e))

    names = [str(r) for r in records]
    if as_json:
        click.echo(json.dumps({
            "internal_dependencies": {
                names[i]: sorted(names[j] for j in deps_of)
                for i, deps_of in enumerate(dependency_map.internal_dependencies)
            },
            "external_dependencies": sorted(str(p) for p in dependency_map.external_dependencies),
        }, indent=2))
        return

    stats = dependency_stats(names, dependency_map)
    click.echo(f"Total number of files: {stats.total_files}")
    click.echo("Number of dependencies of:")
    for source, count, percent in stats.per_file:
        click.echo(f"    {click.style(source, fg='cyan')}: {count} ({percent} %)")
    click.echo(f"Average: {stats.average_percent} %")


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_SERVER_CONFIG, help="Server configuration file")
@click.option("--host", default="0.0.0.0", help="Host address")
def serve(config_path: Path, host: str):
    """Start the compilation server."""
    try:
        import uvicorn
        from flock.server.app import create_app
    except ImportError:
        raise click.ClickException(
            "uvicorn and fastapi are required for the server. "
            "Install with: pip install 'flock-build[server]'"
        )

    try:
        config = ServerConfiguration.from_file(config_path)
        app = create_app(config)
    except FlockError as e:
        raise click.ClickException(str(e))

    click.echo(f"Starting flock server on {host}:{config.port}")
    uvicorn.run(app, host=host, port=config.port, log_level="info")


if __name__ == "__main__":
    cli()
