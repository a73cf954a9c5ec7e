"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from anyshell.retry import FatalError, RecoverableError


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    INSTALL_ERROR = 5
    TMUX_ERROR = 6
    VALIDATION_ERROR = 7
    UNSUPPORTED_PLATFORM = 8
    DOWNLOAD_ERROR = 9
    INTEGRITY_ERROR = 10


@dataclass
class AnyshellError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class ValidationRejected(AnyshellError):
    code: ExitCode = ExitCode.VALIDATION_ERROR


@dataclass
class UnsupportedArchitecture(AnyshellError):
    code: ExitCode = ExitCode.UNSUPPORTED_PLATFORM
    architecture: str = ""


@dataclass
class NoChecksumAvailable(AnyshellError):
    code: ExitCode = ExitCode.UNSUPPORTED_PLATFORM
    architecture: str = ""
    version: str = ""


@dataclass
class DownloadFailed(AnyshellError, RecoverableError):
    """Transport failure; the only fetch error that may be retried."""

    code: ExitCode = ExitCode.DOWNLOAD_ERROR
    url: str = ""


@dataclass
class IntegrityMismatch(AnyshellError, FatalError):
    """Downloaded bytes do not hash to the pinned digest. Never retried."""

    code: ExitCode = ExitCode.INTEGRITY_ERROR
    expected: str = ""
    actual: str = ""


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
