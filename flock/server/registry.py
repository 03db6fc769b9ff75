"""Registry of locally installed compiler frontends, keyed by version string."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, Iterable

from flock.errors import ConfigError

logger = logging.getLogger(__name__)

VersionQuery = Callable[[Path], str]


def query_version(frontend: Path) -> str:
    """Output of ``<frontend> --version``; raises ConfigError if it fails."""
    try:
        proc = subprocess.run(
            [str(frontend), "--version"], capture_output=True, text=True, timeout=30
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ConfigError("frontend_version_query_failed", str(e), frontend) from e
    if proc.returncode != 0:
        raise ConfigError(
            "frontend_version_query_failed",
            f"'--version' exited with {proc.returncode}: {proc.stderr.strip()}",
            frontend,
        )
    return proc.stdout


class FrontendRegistry:
    """Maps the exact ``--version`` output of each frontend to its path.

    Read-only once built.
    """

    def __init__(self, paths_by_version: dict[str, Path] | None = None):
        self._paths = dict(paths_by_version or {})

    @classmethod
    def from_paths(
        cls,
        frontends: Iterable[Path],
        version_query: VersionQuery = query_version,
    ) -> "FrontendRegistry":
        paths: dict[str, Path] = {}
        for frontend in frontends:
            version = version_query(Path(frontend))
            if version in paths:
                logger.warning(
                    "%s reports the same version as %s; keeping the first", frontend, paths[version]
                )
                continue
            paths[version] = Path(frontend)
            logger.info("registered frontend %s", frontend)
        return cls(paths)

    def lookup(self, version: str) -> Path | None:
        return self._paths.get(version)

    @property
    def versions(self) -> list[str]:
        return list(self._paths)

    def __len__(self) -> int:
        return len(self._paths)
