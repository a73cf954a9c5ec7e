"""Host operating system and CPU architecture detection."""

from __future__ import annotations

import logging as py_logging
import os
import platform
from collections.abc import Callable
from dataclasses import dataclass

logger = py_logging.getLogger(__name__)


@dataclass(frozen=True)
class HostPlatform:
    os_family: str
    package_manager: str

    @property
    def supported(self) -> bool:
        return self.os_family != "unknown"

    @property
    def is_macos(self) -> bool:
        return self.os_family == "macos"


def detect_host(
    system: str | None = None,
    *,
    path_exists: Callable[[str], bool] = os.path.exists,
) -> HostPlatform:
    system_name = platform.system() if system is None else system
    if system_name == "Darwin":
        host = HostPlatform(os_family="macos", package_manager="brew")
    elif path_exists("/etc/debian_version"):
        host = HostPlatform(os_family="debian", package_manager="apt")
    elif path_exists("/etc/redhat-release"):
        host = HostPlatform(os_family="redhat", package_manager="dnf")
    else:
        host = HostPlatform(os_family="unknown", package_manager="unknown")
    logger.debug("Detected OS: %s (package manager: %s)", host.os_family, host.package_manager)
    return host


def detect_architecture(machine: str | None = None) -> str:
    """Return the raw machine name; tag normalisation happens at checksum lookup."""
    value = platform.machine() if machine is None else machine
    return value.strip()
