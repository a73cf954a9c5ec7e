"""XDG config loading."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from anyshell.artifacts.checksums import (
    DEFAULT_TTYD_CHECKSUMS,
    SUPPORTED_ARCHITECTURES,
    TTYD_VERSION,
    ArchitectureChecksum,
    ChecksumTable,
    is_valid_digest,
    is_valid_version,
)
from anyshell.artifacts.fetcher import DEFAULT_RELEASE_HOST
from anyshell.errors import AnyshellError, ExitCode
from anyshell.session import DEFAULT_SESSION_NAME, is_valid_session_name

DEFAULT_CONFIG_PATH = Path("~/.config/anyshell/config.toml").expanduser()
BIN_DIR_ENV = "ANYSHELL_BIN_DIR"

_PATH_FIELDS = ("bin_dir", "data_dir", "config_dir")
_BOOL_FIELDS = ("install_service", "configure_tailscale")
_INT_RANGES = {
    "web_port": (1024, 65535),
    "web_max_clients": (1, 16),
    "download_timeout_seconds": (1, 600),
    "download_attempts": (1, 10),
}


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    ttyd_version: str = TTYD_VERSION
    ttyd_release_host: str = DEFAULT_RELEASE_HOST
    ttyd_checksums: dict[str, str] = Field(default_factory=dict)
    bin_dir: str = "~/.local/bin"
    data_dir: str = "~/.local/share/anyshell"
    config_dir: str = "~/.config/anyshell"
    default_session: str = DEFAULT_SESSION_NAME
    web_port: int = Field(default=7681, ge=1024, le=65535)
    web_username: str = "anyshell"
    web_max_clients: int = Field(default=2, ge=1, le=16)
    download_timeout_seconds: int = Field(default=30, ge=1, le=600)
    download_attempts: int = Field(default=3, ge=1, le=10)
    install_service: bool = True
    configure_tailscale: bool = True

    @field_validator("ttyd_version")
    @classmethod
    def _validate_version(cls, value: str) -> str:
        if not is_valid_version(value):
            raise ValueError(f"Invalid ttyd version: {value!r}")
        return value

    @field_validator("ttyd_checksums")
    @classmethod
    def _validate_checksums(cls, value: dict[str, str]) -> dict[str, str]:
        for architecture, digest in value.items():
            if architecture not in SUPPORTED_ARCHITECTURES:
                raise ValueError(f"Unknown architecture in ttyd_checksums: {architecture}")
            if not is_valid_digest(digest):
                raise ValueError(f"Digest for {architecture} must be 64 lowercase hex characters")
        return value

    @field_validator("default_session")
    @classmethod
    def _validate_session(cls, value: str) -> str:
        if not is_valid_session_name(value):
            raise ValueError(f"Invalid default session name: {value!r}")
        return value

    @property
    def bin_path(self) -> Path:
        return Path(self.bin_dir).expanduser()

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir).expanduser()

    def checksum_table(self) -> ChecksumTable:
        extra = [
            ArchitectureChecksum(architecture=arch, version=self.ttyd_version, digest=digest)
            for arch, digest in sorted(self.ttyd_checksums.items())
        ]
        try:
            return DEFAULT_TTYD_CHECKSUMS.merged(extra)
        except ValueError as exc:
            raise AnyshellError(
                "Configured ttyd_checksums conflict with the built-in pinned digests.",
                code=ExitCode.CONFIG_ERROR,
                hint=str(exc),
            ) from exc


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _sanitize_checksums(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    normalized: dict[str, str] = {}
    for architecture, digest in value.items():
        if not isinstance(architecture, str) or not isinstance(digest, str):
            continue
        if architecture in SUPPORTED_ARCHITECTURES and is_valid_digest(digest):
            normalized[architecture] = digest
    return normalized


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    ttyd_version = raw.get("ttyd_version")
    if isinstance(ttyd_version, str) and is_valid_version(ttyd_version):
        cfg.ttyd_version = ttyd_version

    release_host = raw.get("ttyd_release_host")
    if isinstance(release_host, str) and release_host.startswith("https://"):
        cfg.ttyd_release_host = release_host

    cfg.ttyd_checksums = _sanitize_checksums(raw.get("ttyd_checksums", {}))

    for name in _PATH_FIELDS:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            setattr(cfg, name, value.strip())

    default_session = raw.get("default_session")
    if isinstance(default_session, str) and is_valid_session_name(default_session):
        cfg.default_session = default_session

    web_username = raw.get("web_username")
    if isinstance(web_username, str) and is_valid_session_name(web_username):
        cfg.web_username = web_username

    for name, (low, high) in _INT_RANGES.items():
        value = raw.get(name)
        # bool is an int subclass; TOML true must not become 1.
        if isinstance(value, int) and not isinstance(value, bool) and low <= value <= high:
            setattr(cfg, name, value)

    for name in _BOOL_FIELDS:
        value = raw.get(name)
        if isinstance(value, bool):
            setattr(cfg, name, value)

    env_bin_dir = os.getenv(BIN_DIR_ENV, "").strip()
    if env_bin_dir:
        cfg.bin_dir = env_bin_dir

    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)
