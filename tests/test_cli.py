"""Tests for the flock command line."""

import json

from click.testing import CliRunner

from flock.cli import cli

CHAIN = [
    "provides-top-level: [a]\ndepends-top-level: [b]\n",
    "provides-top-level: [b]\ndepends-top-level: [c]\n",
    "provides-top-level: [c]\n",
]


def _records(tmp_path):
    paths = []
    for name, text in zip("abc", CHAIN):
        path = tmp_path / f"{name}.swiftdeps"
        path.write_text(text)
        paths.append(str(path))
    return paths


class TestDepsCommand:
    def test_stats(self, tmp_path):
        result = CliRunner().invoke(cli, ["deps", *_records(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "Total number of files: 3" in result.output
        assert "Average: 33 %" in result.output

    def test_json(self, tmp_path):
        records = _records(tmp_path)
        result = CliRunner().invoke(cli, ["deps", "--json", *records])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["internal_dependencies"][records[0]] == sorted(records[1:])
        assert data["internal_dependencies"][records[2]] == []

    def test_parse_error(self, tmp_path):
        bad = tmp_path / "bad.swiftdeps"
        bad.write_text("provides-member: [x]\n")
        result = CliRunner().invoke(cli, ["deps", str(bad)])
        assert result.exit_code != 0
        assert "member entry not string pair" in result.output


class TestBuildCommand:
    def _project(self, tmp_path):
        base = tmp_path / "project"
        base.mkdir()
        for name in ("a.swift", "b.swift"):
            (base / name).write_text("let x = 1\n")
        ofm = tmp_path / "output-file-map.json"
        ofm.write_text(json.dumps({
            str(base / "a.swift"): {"object": str(tmp_path / "build" / "a.o")},
        }))
        return base, ofm

    def test_mock_build(self, fake_frontend, tmp_path):
        base, ofm = self._project(tmp_path)
        result = CliRunner().invoke(cli, [
            "build", str(base / "a.swift"), str(base / "b.swift"),
            "--distributed",
            "--distributed-build-base-dir", str(base),
            "--output-file-map", str(ofm),
            "--frontend", str(fake_frontend),
            "--compiler-version", "5.1",
            "--sdk", "MacOSX10.15",
            "--executor", "mock",
        ])
        assert result.exit_code == 0, result.output
        assert "Compiled 2 file(s), wrote 0 artifact(s)" in result.output

    def test_requires_distributed(self, tmp_path):
        base, ofm = self._project(tmp_path)
        result = CliRunner().invoke(cli, [
            "build", str(base / "a.swift"), "--output-file-map", str(ofm),
            "--compiler-version", "5.1", "--sdk", "MacOSX10.15",
        ])
        assert result.exit_code != 0
        assert "--distributed" in result.output

    def test_distributed_without_output_file_map(self, tmp_path):
        base, _ = self._project(tmp_path)
        result = CliRunner().invoke(cli, [
            "build", str(base / "a.swift"), "--distributed",
            "--compiler-version", "5.1", "--sdk", "MacOSX10.15",
        ])
        assert result.exit_code != 0
        assert "no output file map" in result.output

    def test_distributed_with_single_compile_mode(self, tmp_path):
        base, ofm = self._project(tmp_path)
        result = CliRunner().invoke(cli, [
            "build", str(base / "a.swift"), "--distributed", "--mode", "single",
            "--output-file-map", str(ofm), "--compiler-version", "5.1", "--sdk", "MacOSX10.15",
        ])
        assert result.exit_code != 0
        assert "does not use primary file inputs" in result.output

    def test_source_outside_base_dir(self, fake_frontend, tmp_path):
        base, ofm = self._project(tmp_path)
        stray = tmp_path / "stray.swift"
        stray.write_text("")
        result = CliRunner().invoke(cli, [
            "build", str(base / "a.swift"), str(stray),
            "--distributed",
            "--distributed-build-base-dir", str(base),
            "--output-file-map", str(ofm),
            "--frontend", str(fake_frontend),
            "--compiler-version", "5.1",
            "--sdk", "MacOSX10.15",
            "--executor", "mock",
        ])
        assert result.exit_code != 0
        assert "1 planning error(s)" in result.output

    def test_remote_without_server(self, fake_frontend, tmp_path):
        base, ofm = self._project(tmp_path)
        config = tmp_path / "client.yaml"
        config.write_text("servers: []\n")
        result = CliRunner().invoke(cli, [
            "build", str(base / "a.swift"),
            "--distributed",
            "--distributed-build-base-dir", str(base),
            "--distributed-build-client-config", str(config),
            "--output-file-map", str(ofm),
            "--frontend", str(fake_frontend),
            "--compiler-version", "5.1",
            "--sdk", "MacOSX10.15",
        ])
        assert result.exit_code != 0
        assert "no servers configured" in result.output
