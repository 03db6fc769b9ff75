"""Wire models for client-server compilation requests (JSON over HTTP)."""

from __future__ import annotations

import base64
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from flock.models import OutputKind

COMPILE_ENDPOINT = "/api/compile"
STATUS_ENDPOINT = "/api/status"


class RemoteCompilationInputs(BaseModel):
    """Which files to compile and what to pass alongside each one.

    ``secondary_source_file_indices[i]`` lists the files passed as secondary
    inputs when ``source_files[i]`` is compiled as a primary.
    """
    base_dir: str
    source_files: list[str]
    primary_source_file_indices: list[int]
    secondary_source_file_indices: list[list[int]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_indices(self) -> "RemoteCompilationInputs":
        count = len(self.source_files)
        for i in self.primary_source_file_indices:
            if not 0 <= i < count:
                raise ValueError(f"primary source file index {i} out of range (count={count})")
        if self.secondary_source_file_indices and len(self.secondary_source_file_indices) != count:
            raise ValueError("secondary_source_file_indices must have one entry per source file")
        for i, secondaries in enumerate(self.secondary_source_file_indices):
            for j in secondaries:
                if not 0 <= j < count:
                    raise ValueError(f"secondary source file index {j} out of range (count={count})")
            if i in secondaries:
                raise ValueError(f"source file {i} lists itself as a secondary")
        return self

    def secondaries_of(self, index: int) -> list[int]:
        if not self.secondary_source_file_indices:
            return []
        return self.secondary_source_file_indices[index]


class RemoteCompilationInfo(BaseModel):
    """Compiler version, SDK and options; version and SDK must match the server exactly."""
    compiler_version: str
    sdk_platform_and_version: str
    frontend_options: str = ""


class CompilationRequest(BaseModel):
    inputs: RemoteCompilationInputs
    info: RemoteCompilationInfo


class CompilationResponse(BaseModel):
    status: Literal["completed", "failed"]
    reason: str | None = None
    message: str = ""
    # primary index -> output kind value -> base64 artifact bytes
    artifacts: dict[int, dict[OutputKind, str]] = Field(default_factory=dict)

    @classmethod
    def completed(cls, artifacts: dict[int, dict[OutputKind, bytes]]) -> "CompilationResponse":
        return cls(
            status="completed",
            artifacts={
                index: {kind: base64.b64encode(data).decode("ascii") for kind, data in outputs.items()}
                for index, outputs in artifacts.items()
            },
        )

    @classmethod
    def failed(cls, reason: str, message: str) -> "CompilationResponse":
        return cls(status="failed", reason=reason, message=message)

    def decoded_artifacts(self) -> dict[int, dict[OutputKind, bytes]]:
        return {
            index: {kind: base64.b64decode(data) for kind, data in outputs.items()}
            for index, outputs in self.artifacts.items()
        }
