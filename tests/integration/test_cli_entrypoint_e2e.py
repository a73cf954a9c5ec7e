from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path


def _env(tmp_path: Path) -> dict[str, str]:
    env = dict(os.environ)
    existing = env.get("PYTHONPATH", "")
    src_path = str(Path("src").resolve())
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    env["HOME"] = str(tmp_path)
    env["ANYSHELL_BIN_DIR"] = str(tmp_path / "bin")
    env.pop("TMUX", None)
    return env


def _run(tmp_path: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [
            sys.executable,
            "-m",
            "anyshell",
            "--config",
            str(tmp_path / "config.toml"),
            "--log-file",
            str(tmp_path / "anyshell.log"),
            *args,
        ],
        capture_output=True,
        text=True,
        check=False,
        env=_env(tmp_path),
    )


def test_cli_module_rejects_injected_session_name(tmp_path: Path) -> None:
    completed = _run(tmp_path, "session", "x;touch pwned")

    assert completed.returncode == 7
    assert "Invalid session name" in completed.stderr
    assert not Path("pwned").exists()


def test_cli_module_refuses_unpinned_architecture(tmp_path: Path) -> None:
    completed = _run(tmp_path, "fetch-ttyd", "--arch", "armv7l")

    assert completed.returncode == 8
    assert not (tmp_path / "bin" / "ttyd").exists()


def test_cli_module_without_command_shows_usage(tmp_path: Path) -> None:
    completed = _run(tmp_path)

    assert completed.returncode == 2
    assert "usage: anyshell" in completed.stderr
