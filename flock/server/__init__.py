"""flock compilation server."""

from __future__ import annotations

from flock.server.admission import AdmissionController
from flock.server.registry import FrontendRegistry, query_version

__all__ = ["AdmissionController", "FrontendRegistry", "query_version"]
