"""Build planning for distributed compilation."""

from __future__ import annotations

from flock.planning.jobs import FrontendJobEmitter, JobEmitter
from flock.planning.options import (
    DistributedBuildInfo,
    OutputFileMap,
    PlanningOptions,
    resolve_distributed_build,
)
from flock.planning.plan import BuildPlan
from flock.planning.planner import plan_distributed_build, remote_relative_path

__all__ = [
    "BuildPlan",
    "DistributedBuildInfo",
    "FrontendJobEmitter",
    "JobEmitter",
    "OutputFileMap",
    "PlanningOptions",
    "plan_distributed_build",
    "remote_relative_path",
    "resolve_distributed_build",
]
