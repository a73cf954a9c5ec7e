from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from anyshell.config import AppConfig, load_config
from anyshell.errors import AnyshellError, ExitCode


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml")

    assert cfg.ttyd_version == "1.7.7"
    assert cfg.bin_dir == "~/.local/bin"
    assert cfg.default_session == "main"
    assert cfg.web_port == 7681
    assert cfg.web_max_clients == 2
    assert cfg.download_attempts == 3
    assert cfg.install_service is True


def test_load_valid_values(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "config.toml",
        """
ttyd_version = "1.7.8"
bin_dir = "/opt/anyshell/bin"
default_session = "work"
web_port = 8443
web_max_clients = 4
download_timeout_seconds = 60
download_attempts = 5
configure_tailscale = false

[ttyd_checksums]
x86_64 = "1111111111111111111111111111111111111111111111111111111111111111"
""",
    )

    cfg = load_config(path)

    assert cfg.ttyd_version == "1.7.8"
    assert cfg.bin_path == Path("/opt/anyshell/bin")
    assert cfg.default_session == "work"
    assert cfg.web_port == 8443
    assert cfg.web_max_clients == 4
    assert cfg.download_timeout_seconds == 60
    assert cfg.download_attempts == 5
    assert cfg.configure_tailscale is False
    assert cfg.checksum_table().resolve("x86_64", "1.7.8").digest == "1" * 64


def test_invalid_entries_fall_back_to_defaults(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "config.toml",
        """
ttyd_version = "latest/../x"
ttyd_release_host = "http://insecure.example"
default_session = "bad name; rm -rf"
web_port = 80
web_max_clients = true
download_attempts = 0
install_service = "yes"

[ttyd_checksums]
x86_64 = "NOT-A-DIGEST"
armv7l = "2222222222222222222222222222222222222222222222222222222222222222"
""",
    )

    cfg = load_config(path)

    assert cfg.ttyd_version == "1.7.7"
    assert cfg.ttyd_release_host.startswith("https://")
    assert cfg.default_session == "main"
    assert cfg.web_port == 7681
    assert cfg.web_max_clients == 2
    assert cfg.download_attempts == 3
    assert cfg.install_service is True
    assert cfg.ttyd_checksums == {}


def test_malformed_toml_returns_defaults(tmp_path: Path) -> None:
    path = _write(tmp_path / "config.toml", "web_port = = 1\n")

    assert load_config(path) == AppConfig()


def test_bin_dir_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANYSHELL_BIN_DIR", str(tmp_path / "bin"))

    cfg = load_config(tmp_path / "missing.toml")

    assert cfg.bin_path == tmp_path / "bin"


def test_assignment_is_validated() -> None:
    cfg = AppConfig()

    with pytest.raises(ValidationError):
        cfg.default_session = "$(whoami)"
    with pytest.raises(ValidationError):
        cfg.web_port = 22


def test_default_checksum_table_contains_pinned_version() -> None:
    table = AppConfig().checksum_table()

    assert ("x86_64", "1.7.7") in table
    assert ("aarch64", "1.7.7") in table


def test_conflicting_configured_digest_is_config_error() -> None:
    cfg = AppConfig(ttyd_checksums={"x86_64": "3" * 64})

    with pytest.raises(AnyshellError) as exc:
        cfg.checksum_table()

    assert exc.value.code == ExitCode.CONFIG_ERROR
