"""Client and server configuration files (YAML).

Client example::

    servers:
      - { host: "127.0.0.1", port: 8000 }
      - host: "localhost"
        port: 8003
        timeout_seconds: 25
    default_timeout_seconds: 60

Server example::

    swift_compiler_frontends:
      - /usr/bin/swift
    sdks:
      "MacOSX10.15": "/Library/Developer/SDKs/MacOSX10.15.sdk"
    port: 8000
    number_of_parallel_compilations: 1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from flock.errors import ConfigError

DEFAULT_CLIENT_CONFIG = "flock_client_config.yaml"
DEFAULT_SERVER_CONFIG = "flock_server_config.yaml"
DEFAULT_TIMEOUT_SECONDS = 5


@dataclass(frozen=True)
class ServerDescriptor:
    host: str
    port: int
    timeout_seconds: float

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"


@dataclass(frozen=True)
class ClientConfiguration:
    servers: tuple[ServerDescriptor, ...] = ()
    default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_file(cls, path: Path) -> "ClientConfiguration":
        return cls.from_contents(_read(path), path=path)

    @classmethod
    def from_contents(cls, text: str, path: Path | None = None) -> "ClientConfiguration":
        data = _load_mapping(text, path)
        _reject_unknown(data, {"servers", "default_timeout_seconds"}, "", path)

        default_timeout = DEFAULT_TIMEOUT_SECONDS
        if "default_timeout_seconds" in data:
            default_timeout = _positive_number(
                data["default_timeout_seconds"], "default_timeout_seconds", path
            )

        raw_servers = data.get("servers") or []
        if not isinstance(raw_servers, list):
            raise ConfigError("servers_not_list", "'servers' must be a list", path)

        servers: list[ServerDescriptor] = []
        for i, entry in enumerate(raw_servers):
            where = f"servers[{i}]"
            if not isinstance(entry, dict):
                raise ConfigError("server_not_mapping", f"{where} must be a mapping", path)
            _reject_unknown(entry, {"host", "port", "timeout_seconds"}, f"{where}.", path)
            if "host" not in entry:
                raise ConfigError("server_host_missing", f"{where} has no 'host'", path)
            if "port" not in entry:
                raise ConfigError("server_port_missing", f"{where} has no 'port'", path)
            host = entry["host"]
            if not isinstance(host, str) or not host:
                raise ConfigError("server_host_invalid", f"{where}.host must be a string", path)
            timeout = default_timeout
            if "timeout_seconds" in entry:
                timeout = _positive_number(entry["timeout_seconds"], f"{where}.timeout_seconds", path)
            servers.append(ServerDescriptor(
                host=host,
                port=_port(entry["port"], f"{where}.port", path),
                timeout_seconds=timeout,
            ))

        return cls(servers=tuple(servers), default_timeout_seconds=default_timeout)


@dataclass(frozen=True)
class ServerConfiguration:
    port: int
    swift_compiler_frontends: tuple[Path, ...] = ()
    sdks: dict[str, Path] = field(default_factory=dict)
    number_of_parallel_compilations: int | None = None

    @classmethod
    def from_file(cls, path: Path) -> "ServerConfiguration":
        return cls.from_contents(_read(path), path=path)

    @classmethod
    def from_contents(cls, text: str, path: Path | None = None) -> "ServerConfiguration":
        data = _load_mapping(text, path)
        _reject_unknown(
            data,
            {"swift_compiler_frontends", "sdks", "port", "number_of_parallel_compilations"},
            "",
            path,
        )

        frontends = data.get("swift_compiler_frontends") or []
        if not isinstance(frontends, list):
            raise ConfigError(
                "frontends_not_list", "'swift_compiler_frontends' must be a list", path
            )
        frontend_paths = tuple(
            _absolute_path(p, "swift_compiler_frontends", path) for p in frontends
        )

        raw_sdks = data.get("sdks") or {}
        if not isinstance(raw_sdks, dict):
            raise ConfigError("sdks_not_mapping", "'sdks' must be a mapping", path)
        sdks: dict[str, Path] = {}
        for name, sdk_path in raw_sdks.items():
            if not isinstance(name, str):
                raise ConfigError("sdk_name_not_string", f"SDK name {name!r} is not a string", path)
            sdks[name] = _absolute_path(sdk_path, f"sdks.{name}", path)

        if "port" not in data:
            raise ConfigError("port_missing", "'port' is required", path)
        port = _port(data["port"], "port", path)

        parallel = data.get("number_of_parallel_compilations")
        if parallel is not None:
            if isinstance(parallel, bool) or not isinstance(parallel, int) or parallel < 1:
                raise ConfigError(
                    "parallel_compilations_invalid",
                    "'number_of_parallel_compilations' must be a positive integer",
                    path,
                )

        return cls(
            port=port,
            swift_compiler_frontends=frontend_paths,
            sdks=sdks,
            number_of_parallel_compilations=parallel,
        )


# ── Helpers ──────────────────────────────────────────────────

def _read(path: Path) -> str:
    path = Path(path)
    if not path.is_file():
        raise ConfigError("config_file_not_found", "configuration file not found", path)
    return path.read_text(encoding="utf-8")


def _load_mapping(text: str, path: Path | None) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError("could_not_decode", f"invalid YAML: {e}", path) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("could_not_decode", "top level must be a mapping", path)
    for key in data:
        if not isinstance(key, str):
            raise ConfigError("key_not_string", f"key {key!r} is not a string", path)
    return data


def _reject_unknown(data: dict, known: set[str], prefix: str, path: Path | None) -> None:
    for key in data:
        if key not in known:
            raise ConfigError("unknown_key", f"unknown configuration key '{prefix}{key}'", path)


def _port(value: Any, name: str, path: Path | None) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        raise ConfigError("port_invalid", f"'{name}' must be an integer in 1..65535", path)
    return value


def _positive_number(value: Any, name: str, path: Path | None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError("timeout_invalid", f"'{name}' must be a positive number", path)
    return value


def _absolute_path(value: Any, name: str, path: Path | None) -> Path:
    if not isinstance(value, str) or not PurePosixPath(value).is_absolute():
        raise ConfigError("path_not_absolute", f"'{name}' entry {value!r} is not an absolute path", path)
    return Path(value)
