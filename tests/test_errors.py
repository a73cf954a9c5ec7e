"""Error model and exit code contract."""

from __future__ import annotations

from anyshell.errors import (
    AnyshellError,
    DownloadFailed,
    ExitCode,
    IntegrityMismatch,
    NoChecksumAvailable,
    UnsupportedArchitecture,
    ValidationRejected,
    user_facing_error,
)
from anyshell.retry import FatalError, RecoverableError


def test_user_facing_error_without_hint() -> None:
    result = user_facing_error("something went wrong")
    assert result == "Error: something went wrong."


def test_user_facing_error_with_hint() -> None:
    result = user_facing_error("something went wrong", hint="try again")
    assert result == "Error: something went wrong. Next step: try again"


def test_exit_code_values() -> None:
    assert int(ExitCode.SUCCESS) == 0
    assert int(ExitCode.INVALID_ARGS) == 2
    assert int(ExitCode.CONFIG_ERROR) == 3
    assert int(ExitCode.RUNTIME_ERROR) == 4
    assert int(ExitCode.INSTALL_ERROR) == 5
    assert int(ExitCode.TMUX_ERROR) == 6
    assert int(ExitCode.VALIDATION_ERROR) == 7
    assert int(ExitCode.UNSUPPORTED_PLATFORM) == 8
    assert int(ExitCode.DOWNLOAD_ERROR) == 9
    assert int(ExitCode.INTEGRITY_ERROR) == 10


def test_error_str_with_and_without_hint() -> None:
    assert str(AnyshellError("msg", hint="hint")) == "msg Hint: hint"
    assert str(AnyshellError("msg")) == "msg"


def test_taxonomy_default_codes() -> None:
    assert ValidationRejected("x").code == ExitCode.VALIDATION_ERROR
    assert UnsupportedArchitecture("x").code == ExitCode.UNSUPPORTED_PLATFORM
    assert NoChecksumAvailable("x").code == ExitCode.UNSUPPORTED_PLATFORM
    assert DownloadFailed("x").code == ExitCode.DOWNLOAD_ERROR
    assert IntegrityMismatch("x").code == ExitCode.INTEGRITY_ERROR


def test_only_download_failures_are_recoverable() -> None:
    assert isinstance(DownloadFailed("x"), RecoverableError)
    assert not isinstance(IntegrityMismatch("x"), RecoverableError)
    assert not isinstance(NoChecksumAvailable("x"), RecoverableError)
    assert isinstance(IntegrityMismatch("x"), AnyshellError)


def test_integrity_mismatch_carries_both_digests() -> None:
    error = IntegrityMismatch("failed", expected="a" * 64, actual="b" * 64)
    assert error.expected == "a" * 64
    assert error.actual == "b" * 64


def test_integrity_mismatch_stops_retries() -> None:
    error = IntegrityMismatch("bad digest", expected="a" * 64, actual="b" * 64)
    assert isinstance(error, FatalError)
    assert not isinstance(error, RecoverableError)
