"""Web terminal credential generation and storage."""

from __future__ import annotations

import logging as py_logging
import os
import secrets
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path

from anyshell.errors import AnyshellError, ExitCode

logger = py_logging.getLogger(__name__)

CREDENTIALS_FILENAME = "web-credentials"
_PASSWORD_BYTES = 16


@dataclass(frozen=True)
class WebCredentials:
    username: str
    password: str = field(repr=False)
    path: Path
    created: bool = False

    def as_ttyd_credential(self) -> str:
        return f"{self.username}:{self.password}"


def credentials_path(config_dir: str | Path) -> Path:
    return Path(config_dir).expanduser() / CREDENTIALS_FILENAME


def ensure_private_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    with suppress(OSError):
        path.chmod(0o700)
    return path


def load_web_credentials(config_dir: str | Path, username: str) -> WebCredentials:
    path = credentials_path(config_dir)
    try:
        first_line = path.read_text(encoding="utf-8").splitlines()[0].strip() if path.exists() else ""
    except (OSError, IndexError):
        first_line = ""
    if not first_line:
        raise AnyshellError(
            f"No web terminal password found in {path}.",
            code=ExitCode.CONFIG_ERROR,
            hint="Run 'anyshell install' or delete the empty file and re-run.",
        )
    return WebCredentials(username=username, password=first_line, path=path)


def ensure_web_credentials(config_dir: str | Path, username: str) -> WebCredentials:
    """Reuse the stored password or create a new 128-bit one.

    New files are created with O_EXCL and mode 0600 so the password is never
    readable by other users, even briefly.
    """
    directory = ensure_private_dir(Path(config_dir).expanduser())
    path = directory / CREDENTIALS_FILENAME
    if path.exists():
        logger.info("Existing web credentials found at %s", path)
        return load_web_credentials(directory, username)

    password = secrets.token_hex(_PASSWORD_BYTES)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        return load_web_credentials(directory, username)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(password + "\n")
    logger.info("Generated new web credentials at %s", path)
    return WebCredentials(username=username, password=password, path=path, created=True)
