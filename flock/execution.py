"""Executing a build plan: local jobs, dependency closure, remote dispatch."""

from __future__ import annotations

import abc
import asyncio
import logging
import subprocess
from pathlib import Path
from typing import Callable, Sequence

import httpx

from flock.client import DistributedBuildClient, select_server
from flock.config import ClientConfiguration
from flock.deps import DependencyMap, build_dependency_map, dependency_stats
from flock.diagnostics import Diagnostics
from flock.errors import FlockError, PlanningError
from flock.models import Artifacts, Job
from flock.planning import BuildPlan
from flock.protocol import RemoteCompilationInputs

logger = logging.getLogger(__name__)


class JobFailed(FlockError):
    def __init__(self, job: Job, returncode: int, output: str = ""):
        self.job = job
        self.returncode = returncode
        self.output = output
        super().__init__(f"{job.kind.value} job failed with exit code {returncode}: {job.tool}")


JobRunner = Callable[[Job], None]


def run_job(job: Job) -> None:
    """Run one local job, raising :class:`JobFailed` on non-zero exit."""
    logger.debug("running: %s", " ".join(job.command_line))
    try:
        proc = subprocess.run(job.command_line, capture_output=True, text=True)
    except OSError as e:
        raise JobFailed(job, -1, str(e)) from e
    if proc.returncode != 0:
        raise JobFailed(job, proc.returncode, proc.stderr or proc.stdout)


def run_jobs(jobs: Sequence[Job], runner: JobRunner = run_job) -> None:
    for job in jobs:
        for output in job.outputs:
            output.path.parent.mkdir(parents=True, exist_ok=True)
        runner(job)


def build_remote_inputs(plan: BuildPlan, dependency_map: DependencyMap) -> RemoteCompilationInputs:
    """Every file is a primary; its secondaries are its internal dependencies."""
    count = len(plan.source_files)
    return RemoteCompilationInputs(
        base_dir=str(plan.base_dir),
        source_files=list(plan.source_files),
        primary_source_file_indices=list(range(count)),
        secondary_source_file_indices=[
            sorted(dependency_map.internal_dependencies[i]) for i in range(count)
        ],
    )


class RemoteExecutor(abc.ABC):
    """Runs the remote compilation step of a plan."""

    # whether outputs exist locally afterwards, so post-compilation jobs can run
    produces_artifacts = True

    @abc.abstractmethod
    def dispatch(self, plan: BuildPlan, dependency_map: DependencyMap) -> Artifacts:
        """Compile every source file of ``plan`` and place outputs locally."""


class MockExecutor(RemoteExecutor):
    """No network; records requests and reports dependency statistics."""

    produces_artifacts = False

    def __init__(self, echo: Callable[[str], None] | None = None):
        self.requests: list[RemoteCompilationInputs] = []
        self._echo = echo or (lambda line: logger.info("%s", line))

    def dispatch(self, plan: BuildPlan, dependency_map: DependencyMap) -> Artifacts:
        self.requests.append(build_remote_inputs(plan, dependency_map))
        stats = dependency_stats(plan.source_files, dependency_map)
        self._echo(f"Total number of files: {stats.total_files}")
        self._echo("Number of dependencies of:")
        for source, count, percent in stats.per_file:
            self._echo(f"    {source}: {count} ({percent} %)")
        self._echo(f"Average: {stats.average_percent} %")
        return Artifacts()


class NetworkExecutor(RemoteExecutor):
    """Sends the whole build to the first configured server in one request."""

    def __init__(
        self,
        config: ClientConfiguration,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport

    def dispatch(self, plan: BuildPlan, dependency_map: DependencyMap) -> Artifacts:
        client = DistributedBuildClient(
            inputs=build_remote_inputs(plan, dependency_map),
            output_paths=plan.output_paths,
            compilation_info=plan.remote_compilation_info,
            server=select_server(self.config),
            transport=self._transport,
        )
        return asyncio.run(client.compile())


def compute_dependency_map(plan: BuildPlan) -> DependencyMap:
    return build_dependency_map(plan.swift_deps_in_order())


def execute_distributed_build(
    plan: BuildPlan,
    executor: RemoteExecutor,
    runner: JobRunner = run_job,
    diagnostics: Diagnostics | None = None,
) -> Artifacts:
    """Pre-compilation jobs, dependency closure, remote compile, post-compilation jobs."""
    if diagnostics is not None and diagnostics.has_errors:
        raise PlanningError(
            f"build plan has {len(diagnostics.errors)} error(s); not executing"
        )
    run_jobs(plan.pre_compilation_jobs, runner)

    dependency_map = compute_dependency_map(plan)
    if dependency_map.external_dependencies:
        logger.debug("%d external dependencies", len(dependency_map.external_dependencies))

    artifacts = executor.dispatch(plan, dependency_map)
    if executor.produces_artifacts:
        run_jobs(plan.post_compilation_jobs, runner)
    return artifacts


def make_executor(kind: str, client_config_path: Path | None = None) -> RemoteExecutor:
    if kind == "mock":
        return MockExecutor()
    if kind == "remote":
        return NetworkExecutor(ClientConfiguration.from_file(client_config_path))
    raise ValueError(f"unknown executor: {kind!r}")
