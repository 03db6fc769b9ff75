"""Remote compilation client: async httpx client for one flock server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

import httpx
from pydantic import ValidationError

from flock.config import ClientConfiguration, ServerDescriptor
from flock.errors import (
    ConnectionFailed,
    DispatchError,
    RemoteCompilationFailed,
    TimeoutExceeded,
)
from flock.models import Artifacts, OutputKind
from flock.protocol import (
    COMPILE_ENDPOINT,
    CompilationRequest,
    CompilationResponse,
    RemoteCompilationInfo,
    RemoteCompilationInputs,
)

logger = logging.getLogger(__name__)


def select_server(config: ClientConfiguration) -> ServerDescriptor:
    """First configured server; there is no balancing across servers."""
    if not config.servers:
        raise DispatchError("no servers configured")
    return config.servers[0]


class DistributedBuildClient:
    """Sends one compilation request and writes the returned artifacts locally.

    Args:
        inputs: Files and primary/secondary assignment for the request.
        output_paths: Relative source path -> output kind -> local destination.
        compilation_info: Compiler version, SDK and frontend options.
        server: Endpoint to talk to.
        transport: Optional httpx transport (tests route this into an ASGI app).
    """

    def __init__(
        self,
        inputs: RemoteCompilationInputs,
        output_paths: Mapping[str, Mapping[OutputKind, Path]],
        compilation_info: RemoteCompilationInfo,
        server: ServerDescriptor,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.inputs = inputs
        self.output_paths = output_paths
        self.compilation_info = compilation_info
        self.server = server
        self._transport = transport

    @property
    def _server_name(self) -> str:
        return f"{self.server.host}:{self.server.port}"

    async def compile(self) -> Artifacts:
        request = CompilationRequest(inputs=self.inputs, info=self.compilation_info)
        response = await self._send(request)
        if response.status != "completed":
            raise RemoteCompilationFailed(
                response.reason or "unknown", response.message, server=self._server_name
            )
        return self._write_artifacts(response)

    async def _send(self, request: CompilationRequest) -> CompilationResponse:
        logger.info(
            "sending %d primary file(s) to %s",
            len(request.inputs.primary_source_file_indices), self._server_name,
        )
        async with httpx.AsyncClient(
            base_url=self.server.base_url,
            timeout=self.server.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                res = await client.post(COMPILE_ENDPOINT, json=request.model_dump(mode="json"))
            except httpx.TimeoutException as e:
                raise TimeoutExceeded(
                    f"no response within {self.server.timeout_seconds}s", server=self._server_name
                ) from e
            except httpx.TransportError as e:
                raise ConnectionFailed(str(e) or type(e).__name__, server=self._server_name) from e

        try:
            return CompilationResponse.model_validate(res.json())
        except (ValueError, ValidationError) as e:
            raise DispatchError(
                f"unexpected response (HTTP {res.status_code}): {res.text[:200]}",
                server=self._server_name,
            ) from e

    def _write_artifacts(self, response: CompilationResponse) -> Artifacts:
        artifacts = Artifacts()
        decoded = response.decoded_artifacts()
        for index in self.inputs.primary_source_file_indices:
            source = self.inputs.source_files[index]
            wanted = self.output_paths.get(source, {})
            received = decoded.get(index, {})
            for kind, dest in wanted.items():
                if kind not in received:
                    raise DispatchError(
                        f"server returned no {kind.value} output for {source}",
                        server=self._server_name,
                    )
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(received[kind])
                artifacts.written.setdefault(source, {})[kind] = dest
        logger.info("wrote %d artifact(s)", len(artifacts.paths()))
        return artifacts
