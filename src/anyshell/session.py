"""Session-name validation and tmux session commands."""

from __future__ import annotations

import logging as py_logging
import os
import re
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from anyshell.errors import AnyshellError, ExitCode, ValidationRejected

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]

MAX_SESSION_NAME_LENGTH = 64
DEFAULT_SESSION_NAME = "main"
_SESSION_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")
_LIST_FORMAT = "#{session_name}\t#{session_windows}\t#{session_attached}"


def is_valid_session_name(name: object) -> bool:
    """Return True when ``name`` is a safe tmux session identifier.

    Accepted names are 1-64 characters drawn only from ASCII letters, digits,
    ``_`` and ``-``. The whole string must match; nothing is rewritten.
    """
    if not isinstance(name, str):
        return False
    return _SESSION_NAME_PATTERN.fullmatch(name) is not None


def require_session_name(name: str) -> str:
    if not is_valid_session_name(name):
        raise ValidationRejected(
            f"Invalid session name: {name!r}",
            hint=(
                f"Use 1-{MAX_SESSION_NAME_LENGTH} characters from A-Z, a-z, 0-9, '_' and '-'."
            ),
        )
    return name


def _exact_target(name: str) -> str:
    # tmux treats a bare -t value as a prefix/pattern; '=' forces an exact match.
    return f"={require_session_name(name)}"


def build_has_session_command(name: str) -> list[str]:
    return ["tmux", "has-session", "-t", _exact_target(name)]


def build_attach_or_create_command(name: str) -> list[str]:
    return ["tmux", "new-session", "-A", "-s", require_session_name(name)]


def build_switch_commands(name: str, *, exists: bool) -> list[list[str]]:
    commands: list[list[str]] = []
    if not exists:
        commands.append(["tmux", "new-session", "-d", "-s", require_session_name(name)])
    commands.append(["tmux", "switch-client", "-t", _exact_target(name)])
    return commands


def build_kill_session_command(name: str) -> list[str]:
    return ["tmux", "kill-session", "-t", _exact_target(name)]


def build_list_sessions_command() -> list[str]:
    return ["tmux", "list-sessions", "-F", _LIST_FORMAT]


@dataclass(frozen=True)
class SessionInfo:
    name: str
    windows: int
    attached: bool


@dataclass
class SessionOpenResult:
    name: str
    created: bool
    commands: list[list[str]]


def session_exists(name: str, *, runner: SubprocessRunner = subprocess.run) -> bool:
    result = runner(build_has_session_command(name), capture_output=True, text=True, check=False)
    return result.returncode == 0


def open_session(
    name: str,
    *,
    runner: SubprocessRunner = subprocess.run,
    env: Mapping[str, str] | None = None,
) -> SessionOpenResult:
    """Attach to ``name``, creating it first when it does not exist.

    Inside an existing tmux client the session is created detached and the
    client is switched to it, since tmux refuses to nest.
    """
    require_session_name(name)
    environment = os.environ if env is None else env
    exists = session_exists(name, runner=runner)
    logger.debug("Opening session name=%s exists=%s", name, exists)

    if environment.get("TMUX"):
        commands = build_switch_commands(name, exists=exists)
    else:
        commands = [build_attach_or_create_command(name)]

    for command in commands:
        result = runner(command, check=False)
        if result.returncode != 0:
            logger.error("tmux command failed code=%s command=%s", result.returncode, command)
            raise AnyshellError(
                f"tmux could not open session {name}.",
                code=ExitCode.TMUX_ERROR,
                hint="Check that tmux is installed and the server is reachable.",
            )
    return SessionOpenResult(name=name, created=not exists, commands=commands)


def _parse_sessions(raw: str) -> list[SessionInfo]:
    sessions: list[SessionInfo] = []
    for line in raw.splitlines():
        parts = line.strip().split("\t")
        if len(parts) != 3 or not parts[0]:
            continue
        name, windows, attached = parts
        try:
            window_count = int(windows)
        except ValueError:
            window_count = 0
        sessions.append(SessionInfo(name=name, windows=window_count, attached=attached not in ("", "0")))
    return sessions


def list_sessions(*, runner: SubprocessRunner = subprocess.run) -> list[SessionInfo]:
    result = runner(build_list_sessions_command(), capture_output=True, text=True, check=False)
    if result.returncode != 0:
        # tmux exits non-zero when no server is running, which just means no sessions.
        logger.debug("list-sessions returned %s stderr=%s", result.returncode, (result.stderr or "").strip())
        return []
    return _parse_sessions(result.stdout or "")


def kill_session(name: str, *, runner: SubprocessRunner = subprocess.run) -> None:
    command = build_kill_session_command(name)
    result = runner(command, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise AnyshellError(
            f"Could not kill session {name}.",
            code=ExitCode.TMUX_ERROR,
            hint=(result.stderr or "Session may not exist; run 'anyshell session --list'.").strip(),
        )
    logger.info("Killed tmux session name=%s", name)
