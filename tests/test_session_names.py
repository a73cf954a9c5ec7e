from __future__ import annotations

import pytest

from anyshell.errors import ExitCode, ValidationRejected
from anyshell.session import is_valid_session_name, require_session_name


@pytest.mark.parametrize(
    "name",
    ["a", "main", "my-session_1", "-leading-dash", "_leading_underscore", "A" * 64, "0123456789"],
)
def test_accepts_safe_names(name: str) -> None:
    assert is_valid_session_name(name) is True


@pytest.mark.parametrize(
    "name",
    [
        "",
        "a" * 65,
        "my session",
        "tab\tname",
        "line\nbreak",
        "main\n",
        "cr\r",
        "test;rm -rf /",
        "$(whoami)",
        "${HOME}",
        "`id`",
        "a|b",
        "a&b",
        "a'b",
        'a"b',
        "a<b>",
        "glob*",
        "what?",
        "[x]",
        "{x}",
        "#hash",
        "100%",
        "user@host",
        "host:0",
        "../etc/passwd",
        "/etc/passwd",
        "dir/name",
        "back\\slash",
        "mаin",  # Cyrillic a
        "café",
        "١٢",  # Arabic-Indic digits
        "nul\x00byte",
    ],
)
def test_rejects_unsafe_names(name: str) -> None:
    assert is_valid_session_name(name) is False


def test_length_boundaries() -> None:
    assert is_valid_session_name("a" * 64)
    assert not is_valid_session_name("a" * 65)


def test_non_string_input_is_rejected() -> None:
    assert is_valid_session_name(None) is False
    assert is_valid_session_name(b"main") is False


def test_validator_does_not_rewrite_input() -> None:
    assert require_session_name("work-1") == "work-1"


def test_require_session_name_raises_validation_error() -> None:
    with pytest.raises(ValidationRejected) as exc:
        require_session_name("bad name")
    assert exc.value.code == ExitCode.VALIDATION_ERROR
    assert "Invalid session name" in exc.value.message
