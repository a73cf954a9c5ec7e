from __future__ import annotations

import stat
from pathlib import Path

import pytest

from anyshell.credentials import ensure_web_credentials, load_web_credentials
from anyshell.errors import AnyshellError, ExitCode


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def test_new_credentials_are_private(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"

    creds = ensure_web_credentials(config_dir, "anyshell")

    assert creds.created is True
    assert len(creds.password) == 32
    int(creds.password, 16)
    assert _mode(config_dir) == 0o700
    assert _mode(creds.path) == 0o600
    assert creds.path.read_text(encoding="utf-8") == creds.password + "\n"


def test_existing_credentials_are_reused(tmp_path: Path) -> None:
    first = ensure_web_credentials(tmp_path, "anyshell")

    second = ensure_web_credentials(tmp_path, "anyshell")

    assert second.created is False
    assert second.password == first.password


def test_password_is_not_in_repr(tmp_path: Path) -> None:
    creds = ensure_web_credentials(tmp_path, "anyshell")

    assert creds.password not in repr(creds)


def test_ttyd_credential_format(tmp_path: Path) -> None:
    creds = ensure_web_credentials(tmp_path, "anyshell")

    assert creds.as_ttyd_credential() == f"anyshell:{creds.password}"


def test_empty_credentials_file_is_config_error(tmp_path: Path) -> None:
    (tmp_path / "web-credentials").write_text("\n", encoding="utf-8")

    with pytest.raises(AnyshellError) as exc:
        ensure_web_credentials(tmp_path, "anyshell")

    assert exc.value.code == ExitCode.CONFIG_ERROR


def test_load_without_file_is_config_error(tmp_path: Path) -> None:
    with pytest.raises(AnyshellError):
        load_web_credentials(tmp_path, "anyshell")
