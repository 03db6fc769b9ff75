"""Tests for the compilation server: registry, admission, and the HTTP API."""

import asyncio
import base64
from pathlib import Path

import pytest

from flock.config import ServerConfiguration
from flock.errors import ConfigError
from flock.server import AdmissionController, FrontendRegistry, query_version

try:
    from fastapi.testclient import TestClient
    from flock.server.app import create_app
    HAS_WEB = True
except ImportError:
    HAS_WEB = False

web = pytest.mark.skipif(not HAS_WEB, reason="server dependencies not installed")

VERSION = "fake-swift version 5.1 (flock-test)\n"
SDK = "MacOSX10.15"


def _project(tmp_path, files):
    base = tmp_path / "project"
    for name, text in files.items():
        path = base / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return base


def _request(base, files, compiler_version=VERSION, sdk=SDK, secondaries=None):
    names = sorted(files)
    return {
        "inputs": {
            "base_dir": str(base),
            "source_files": names,
            "primary_source_file_indices": list(range(len(names))),
            "secondary_source_file_indices": secondaries or [[] for _ in names],
        },
        "info": {
            "compiler_version": compiler_version,
            "sdk_platform_and_version": sdk,
            "frontend_options": "-g -Onone",
        },
    }


# ── Frontend registry ─────────────────────────────────────────

class TestFrontendRegistry:
    def test_first_frontend_wins(self):
        versions = {"/a/swift": "5.1", "/b/swift": "5.1", "/c/swift": "5.2"}
        registry = FrontendRegistry.from_paths(
            [Path(p) for p in versions], version_query=lambda p: versions[str(p)]
        )
        assert len(registry) == 2
        assert registry.lookup("5.1") == Path("/a/swift")
        assert registry.lookup("5.2") == Path("/c/swift")
        assert registry.lookup("5.3") is None
        assert registry.versions == ["5.1", "5.2"]

    def test_exact_version_match(self):
        registry = FrontendRegistry({"5.1\n": Path("/a/swift")})
        assert registry.lookup("5.1") is None

    def test_query_version(self, fake_frontend):
        assert query_version(fake_frontend) == VERSION

    def test_query_version_missing_binary(self, tmp_path):
        with pytest.raises(ConfigError) as exc:
            query_version(tmp_path / "no-such-swift")
        assert exc.value.kind == "frontend_version_query_failed"


# ── Admission ─────────────────────────────────────────────────

class TestAdmissionController:
    def test_rejects_zero_limit(self):
        with pytest.raises(ValueError):
            AdmissionController(0)

    def test_limit_is_respected(self):
        async def scenario():
            controller = AdmissionController(2)
            peak = 0

            async def job():
                nonlocal peak
                async with controller.slot():
                    peak = max(peak, controller.active)
                    await asyncio.sleep(0.01)

            await asyncio.gather(*(job() for _ in range(6)))
            return controller, peak

        controller, peak = asyncio.run(scenario())
        assert peak == 2
        assert controller.active == 0
        assert controller.waiting == 0

    def test_waiting_is_counted(self):
        async def scenario():
            controller = AdmissionController(1)
            await controller.acquire()
            blocked = asyncio.create_task(controller.acquire())
            await asyncio.sleep(0.01)
            waiting = controller.waiting
            await controller.release()
            await blocked
            return controller, waiting

        controller, waiting = asyncio.run(scenario())
        assert waiting == 1
        assert controller.active == 1

    def test_unbounded(self):
        async def scenario():
            controller = AdmissionController()
            for _ in range(10):
                await controller.acquire()
            return controller.active

        assert asyncio.run(scenario()) == 10


# ── HTTP API ──────────────────────────────────────────────────

@pytest.fixture
def server_config(fake_frontend, tmp_path):
    sdk = tmp_path / "MacOSX10.15.sdk"
    sdk.mkdir()
    return ServerConfiguration(
        port=8000,
        swift_compiler_frontends=(fake_frontend,),
        sdks={SDK: sdk},
        number_of_parallel_compilations=1,
    )


@pytest.fixture
def client(server_config):
    return TestClient(create_app(server_config))


@web
class TestStatus:
    def test_status(self, client):
        res = client.get("/api/status")
        assert res.status_code == 200
        data = res.json()
        assert data["compiler_versions"] == [VERSION]
        assert data["sdks"] == [SDK]
        assert data["active_compilations"] == 0
        assert data["max_parallel_compilations"] == 1


@web
class TestCompile:
    def test_compile_success(self, client, tmp_path):
        files = {"a.swift": "let a = 1\n", "b.swift": "let b = a\n"}
        base = _project(tmp_path, files)
        res = client.post("/api/compile", json=_request(base, files, secondaries=[[], [0]]))
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "completed"
        assert set(data["artifacts"]) == {"0", "1"}
        assert set(data["artifacts"]["1"]) == {"object", "module", "documentation"}

    def test_secondaries_passed_to_frontend(self, client, tmp_path):
        files = {"a.swift": "let a = 1\n", "b.swift": "let b = a\n"}
        base = _project(tmp_path, files)
        res = client.post("/api/compile", json=_request(base, files, secondaries=[[], [0]]))
        obj = base64.b64decode(res.json()["artifacts"]["1"]["object"]).decode()
        assert f"-primary-file {base / 'b.swift'} {base / 'a.swift'}" in obj
        assert "-g -Onone" in obj
        assert "-sdk" in obj

    def test_unknown_compiler_version(self, client, tmp_path):
        files = {"a.swift": ""}
        base = _project(tmp_path, files)
        res = client.post("/api/compile", json=_request(base, files, compiler_version="5.0"))
        assert res.status_code == 409
        assert res.json()["reason"] == "no_matching_compiler_version"

    def test_unknown_sdk(self, client, tmp_path):
        files = {"a.swift": ""}
        base = _project(tmp_path, files)
        res = client.post("/api/compile", json=_request(base, files, sdk="iPhoneOS13.0"))
        assert res.status_code == 409
        assert res.json()["reason"] == "sdk_not_found"

    def test_compilation_failure_carries_diagnostics(self, client, tmp_path):
        files = {"a.swift": "#error\n"}
        base = _project(tmp_path, files)
        res = client.post("/api/compile", json=_request(base, files))
        assert res.status_code == 422
        data = res.json()
        assert data["status"] == "failed"
        assert data["reason"] == "compilation_failed"
        assert "error: forced failure" in data["message"]

    def test_compilation_timeout(self, server_config, tmp_path):
        client = TestClient(create_app(server_config, compile_timeout_seconds=0.5))
        files = {"a.swift": "#hang\n"}
        base = _project(tmp_path, files)
        res = client.post("/api/compile", json=_request(base, files))
        assert res.status_code == 422
        assert res.json()["reason"] == "compilation_timed_out"

    def test_index_out_of_range_rejected(self, client, tmp_path):
        files = {"a.swift": ""}
        base = _project(tmp_path, files)
        body = _request(base, files)
        body["inputs"]["primary_source_file_indices"] = [1]
        res = client.post("/api/compile", json=body)
        assert res.status_code == 422
        assert res.json()["reason"] == "invalid_request"

    def test_admission_released_after_failure(self, client, tmp_path):
        files = {"a.swift": "#error\n"}
        base = _project(tmp_path, files)
        client.post("/api/compile", json=_request(base, files))
        assert client.get("/api/status").json()["active_compilations"] == 0
