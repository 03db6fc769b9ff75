"""Runs the local compiler frontend for one remote compilation request."""

from __future__ import annotations

import asyncio
import logging
import shlex
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from flock.models import OutputKind
from flock.protocol import RemoteCompilationInputs

logger = logging.getLogger(__name__)

DEFAULT_COMPILE_TIMEOUT_SECONDS = 600.0

_OUTPUT_FILES: dict[OutputKind, tuple[str, str]] = {
    # kind -> (frontend flag, file suffix)
    OutputKind.OBJECT: ("-o", ".o"),
    OutputKind.MODULE: ("-emit-module-path", ".swiftmodule"),
    OutputKind.DOCUMENTATION: ("-emit-module-doc-path", ".swiftdoc"),
}


@dataclass
class CompileOutcome:
    ok: bool
    reason: str | None = None
    message: str = ""
    artifacts: dict[int, dict[OutputKind, bytes]] = field(default_factory=dict)


class RemoteCompiler:
    """Compiles every primary of a request with one frontend invocation each."""

    def __init__(
        self,
        frontend: Path,
        sdk: Path,
        timeout_seconds: float = DEFAULT_COMPILE_TIMEOUT_SECONDS,
    ):
        self.frontend = frontend
        self.sdk = sdk
        self.timeout_seconds = timeout_seconds

    def command_for(
        self,
        inputs: RemoteCompilationInputs,
        primary: int,
        frontend_options: str,
        out_dir: Path,
    ) -> tuple[list[str], dict[OutputKind, Path]]:
        base = Path(inputs.base_dir)
        outputs = {
            kind: out_dir / f"{primary}{suffix}" for kind, (_, suffix) in _OUTPUT_FILES.items()
        }
        args = [str(self.frontend), "-frontend", "-c"]
        args += ["-primary-file", str(base / inputs.source_files[primary])]
        args += [str(base / inputs.source_files[j]) for j in inputs.secondaries_of(primary)]
        args += shlex.split(frontend_options)
        args += ["-sdk", str(self.sdk)]
        for kind, (flag, _) in _OUTPUT_FILES.items():
            args += [flag, str(outputs[kind])]
        return args, outputs

    async def compile(self, inputs: RemoteCompilationInputs, frontend_options: str) -> CompileOutcome:
        outcome = CompileOutcome(ok=True)
        with tempfile.TemporaryDirectory(prefix="flock-") as tmp:
            for primary in inputs.primary_source_file_indices:
                out_dir = Path(tmp) / str(primary)
                out_dir.mkdir()
                args, outputs = self.command_for(inputs, primary, frontend_options, out_dir)
                failure = await self._run(args, inputs.source_files[primary])
                if failure is not None:
                    return failure
                outcome.artifacts[primary] = {
                    kind: path.read_bytes() for kind, path in outputs.items() if path.exists()
                }
        return outcome

    async def _run(self, args: list[str], source: str) -> CompileOutcome | None:
        logger.debug("frontend: %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            return CompileOutcome(ok=False, reason="compilation_failed", message=str(e))

        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return CompileOutcome(
                ok=False,
                reason="compilation_timed_out",
                message=f"{source}: compilation exceeded {self.timeout_seconds}s",
            )

        if proc.returncode != 0:
            return CompileOutcome(
                ok=False,
                reason="compilation_failed",
                message=output.decode("utf-8", errors="replace"),
            )
        return None
