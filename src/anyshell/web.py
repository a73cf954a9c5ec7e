"""ttyd command line for the browser terminal."""

from __future__ import annotations

import logging as py_logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from anyshell.credentials import WebCredentials
from anyshell.errors import AnyshellError, ExitCode
from anyshell.session import build_attach_or_create_command, require_session_name

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]

LOOPBACK = "127.0.0.1"
_FALLBACK_TTYD_PATHS = (Path("/opt/homebrew/bin/ttyd"), Path("/usr/local/bin/ttyd"))


def resolve_ttyd(
    bin_dir: Path,
    *,
    which: Callable[[str], str | None] = shutil.which,
    fallbacks: tuple[Path, ...] = _FALLBACK_TTYD_PATHS,
) -> Path:
    local = bin_dir / "ttyd"
    if local.is_file():
        return local
    on_path = which("ttyd")
    if on_path:
        return Path(on_path)
    for candidate in fallbacks:
        if candidate.is_file():
            return candidate
    raise AnyshellError(
        "ttyd binary not found.",
        code=ExitCode.INSTALL_ERROR,
        hint="Run 'anyshell fetch-ttyd' or 'anyshell install'.",
    )


def build_ttyd_command(
    ttyd: Path,
    credentials: WebCredentials,
    *,
    port: int,
    max_clients: int,
    session: str,
) -> list[str]:
    """ttyd bound to loopback only; Tailscale Serve provides the remote HTTPS edge."""
    require_session_name(session)
    return [
        str(ttyd),
        "-i",
        LOOPBACK,
        "-p",
        str(port),
        "-m",
        str(max_clients),
        "-c",
        credentials.as_ttyd_credential(),
        "-W",
        *build_attach_or_create_command(session),
    ]


def run_web_terminal(
    ttyd: Path,
    credentials: WebCredentials,
    *,
    port: int,
    max_clients: int,
    session: str,
    runner: SubprocessRunner = subprocess.run,
) -> int:
    command = build_ttyd_command(ttyd, credentials, port=port, max_clients=max_clients, session=session)
    logger.info(
        "Starting ttyd=%s on %s:%s session=%s max_clients=%s",
        ttyd,
        LOOPBACK,
        port,
        session,
        max_clients,
    )
    result = runner(command, check=False)
    return int(result.returncode)
