"""System package installation for mosh, tmux and ttyd."""

from __future__ import annotations

import logging as py_logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

from anyshell.errors import AnyshellError, ExitCode
from anyshell.runtime.host import HostPlatform

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]

HOMEBREW_INSTALL_HINT = (
    '/bin/bash -c "$(curl -fsSL https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"'
)


@dataclass
class PackageInstallResult:
    commands: list[list[str]]
    ttyd_from_release: bool


def package_install_commands(host: HostPlatform) -> list[list[str]]:
    if host.os_family == "macos":
        return [["brew", "install", "mosh", "tmux", "ttyd"]]
    if host.os_family == "debian":
        return [
            ["sudo", "apt", "update"],
            ["sudo", "apt", "install", "-y", "mosh", "tmux"],
        ]
    if host.os_family == "redhat":
        return [["sudo", "dnf", "install", "-y", "mosh", "tmux"]]
    raise AnyshellError(
        "Unsupported operating system.",
        code=ExitCode.UNSUPPORTED_PLATFORM,
        hint="Supported: macOS (Homebrew), Debian/Ubuntu (apt), Fedora/RHEL (dnf).",
    )


def install_packages(
    host: HostPlatform,
    *,
    runner: SubprocessRunner = subprocess.run,
    which: Callable[[str], str | None] = shutil.which,
) -> PackageInstallResult:
    """Install mosh and tmux (and ttyd where a package exists).

    Linux package repositories do not reliably ship ttyd, so on Linux the
    result tells the caller to fetch the pinned release binary instead.
    """
    commands = package_install_commands(host)
    if host.is_macos and which("brew") is None:
        raise AnyshellError(
            "Homebrew not found.",
            code=ExitCode.INSTALL_ERROR,
            hint=f"Install it first: {HOMEBREW_INSTALL_HINT}",
        )

    logger.info("Installing packages via %s", host.package_manager)
    for command in commands:
        logger.debug("Running package command: %s", command)
        result = runner(command, check=False)
        if result.returncode != 0:
            logger.error("Package command failed code=%s command=%s", result.returncode, command)
            raise AnyshellError(
                f"Package installation failed: {' '.join(command)}",
                code=ExitCode.INSTALL_ERROR,
                hint="Fix the package manager error above and re-run the installer.",
            )
    return PackageInstallResult(commands=commands, ttyd_from_release=not host.is_macos)
