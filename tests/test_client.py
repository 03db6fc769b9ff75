"""Tests for the remote compilation client."""

import asyncio
import base64

import httpx
import pytest

from flock.client import DistributedBuildClient, select_server
from flock.config import ClientConfiguration, ServerConfiguration, ServerDescriptor
from flock.errors import (
    ConnectionFailed,
    DispatchError,
    RemoteCompilationFailed,
    TimeoutExceeded,
)
from flock.models import OutputKind
from flock.protocol import RemoteCompilationInfo, RemoteCompilationInputs

try:
    from flock.server.app import create_app
    HAS_WEB = True
except ImportError:
    HAS_WEB = False

SERVER = ServerDescriptor("compile-host", 8000, 5)
INFO = RemoteCompilationInfo(
    compiler_version="fake-swift version 5.1 (flock-test)\n",
    sdk_platform_and_version="MacOSX10.15",
)


def _inputs(base, names=("a.swift",)):
    return RemoteCompilationInputs(
        base_dir=str(base),
        source_files=list(names),
        primary_source_file_indices=list(range(len(names))),
        secondary_source_file_indices=[[] for _ in names],
    )


def _client(base, output_paths, transport, names=("a.swift",)):
    return DistributedBuildClient(
        inputs=_inputs(base, names),
        output_paths=output_paths,
        compilation_info=INFO,
        server=SERVER,
        transport=transport,
    )


def _mock(handler):
    return httpx.MockTransport(handler)


def _completed(artifacts):
    return {
        "status": "completed",
        "artifacts": {
            str(index): {kind: base64.b64encode(data).decode() for kind, data in outputs.items()}
            for index, outputs in artifacts.items()
        },
    }


class TestSelectServer:
    def test_first_server(self):
        config = ClientConfiguration(servers=(SERVER, ServerDescriptor("other", 1, 5)))
        assert select_server(config) is SERVER

    def test_no_servers(self):
        with pytest.raises(DispatchError):
            select_server(ClientConfiguration())


class TestClientWithMockTransport:
    def test_writes_wanted_outputs(self, tmp_path):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json=_completed({0: {"object": b"OBJ", "module": b"MOD"}}))

        dest = tmp_path / "out" / "a.o"
        client = _client(tmp_path, {"a.swift": {OutputKind.OBJECT: dest}}, _mock(handler))
        artifacts = asyncio.run(client.compile())

        assert seen["url"] == "http://compile-host:8000/api/compile"
        assert dest.read_bytes() == b"OBJ"
        assert artifacts.written == {"a.swift": {OutputKind.OBJECT: dest}}
        assert artifacts.paths() == [dest]

    def test_missing_output_kind(self, tmp_path):
        def handler(request):
            return httpx.Response(200, json=_completed({0: {"object": b"OBJ"}}))

        wanted = {OutputKind.OBJECT: tmp_path / "a.o", OutputKind.MODULE: tmp_path / "a.swiftmodule"}
        client = _client(tmp_path, {"a.swift": wanted}, _mock(handler))
        with pytest.raises(DispatchError, match="module"):
            asyncio.run(client.compile())

    def test_remote_failure(self, tmp_path):
        def handler(request):
            return httpx.Response(422, json={
                "status": "failed",
                "reason": "compilation_failed",
                "message": "a.swift:1:1: error: nope",
            })

        client = _client(tmp_path, {}, _mock(handler))
        with pytest.raises(RemoteCompilationFailed) as exc:
            asyncio.run(client.compile())
        assert exc.value.reason == "compilation_failed"
        assert "error: nope" in exc.value.diagnostics
        assert exc.value.server == "compile-host:8000"

    def test_timeout(self, tmp_path):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(tmp_path, {}, _mock(handler))
        with pytest.raises(TimeoutExceeded):
            asyncio.run(client.compile())

    def test_connection_refused(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(tmp_path, {}, _mock(handler))
        with pytest.raises(ConnectionFailed, match="refused"):
            asyncio.run(client.compile())

    def test_malformed_response(self, tmp_path):
        def handler(request):
            return httpx.Response(500, text="Internal Server Error")

        client = _client(tmp_path, {}, _mock(handler))
        with pytest.raises(DispatchError, match="HTTP 500"):
            asyncio.run(client.compile())


@pytest.mark.skipif(not HAS_WEB, reason="server dependencies not installed")
class TestClientAgainstServer:
    def _transport(self, fake_frontend, tmp_path):
        sdk = tmp_path / "MacOSX10.15.sdk"
        sdk.mkdir()
        config = ServerConfiguration(
            port=8000,
            swift_compiler_frontends=(fake_frontend,),
            sdks={"MacOSX10.15": sdk},
        )
        return httpx.ASGITransport(app=create_app(config))

    def test_round_trip(self, fake_frontend, tmp_path):
        base = tmp_path / "project"
        base.mkdir()
        (base / "a.swift").write_text("let a = 1\n")
        (base / "b.swift").write_text("let b = 2\n")
        output_paths = {
            name: {
                OutputKind.OBJECT: tmp_path / "build" / f"{name}.o",
                OutputKind.MODULE: tmp_path / "build" / f"{name}.swiftmodule",
            }
            for name in ("a.swift", "b.swift")
        }
        client = _client(
            base, output_paths, self._transport(fake_frontend, tmp_path), names=("a.swift", "b.swift")
        )
        artifacts = asyncio.run(client.compile())

        assert len(artifacts.paths()) == 4
        obj = (tmp_path / "build" / "b.swift.o").read_text()
        assert obj.startswith("-o\n")
        assert str(base / "b.swift") in obj
        assert (tmp_path / "build" / "a.swift.swiftmodule").read_text().startswith("-emit-module-path")
        assert not (tmp_path / "build" / "a.swift.swiftdoc").exists()

    def test_server_reports_failure(self, fake_frontend, tmp_path):
        base = tmp_path / "project"
        base.mkdir()
        (base / "a.swift").write_text("#error\n")
        client = _client(base, {}, self._transport(fake_frontend, tmp_path))
        with pytest.raises(RemoteCompilationFailed) as exc:
            asyncio.run(client.compile())
        assert exc.value.reason == "compilation_failed"
