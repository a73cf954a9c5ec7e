"""Pinned SHA-256 digests for downloadable release binaries."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from anyshell.errors import NoChecksumAvailable, UnsupportedArchitecture

TTYD_VERSION = "1.7.7"

SUPPORTED_ARCHITECTURES = ("x86_64", "aarch64")
# Recognised hosts that are refused on purpose: no verified digest is published for them.
EXCLUDED_ARCHITECTURES = frozenset({"armv7l", "armhf"})
_ARCHITECTURE_ALIASES = {"arm64": "aarch64"}

_DIGEST_PATTERN = re.compile(r"[a-f0-9]{64}")
_VERSION_PATTERN = re.compile(r"[0-9A-Za-z._-]+")


def is_valid_digest(value: str) -> bool:
    return isinstance(value, str) and _DIGEST_PATTERN.fullmatch(value) is not None


def is_valid_version(value: str) -> bool:
    return isinstance(value, str) and _VERSION_PATTERN.fullmatch(value) is not None


def normalize_architecture(machine: str) -> str:
    """Map a ``uname -m`` value to an architecture tag.

    Only the macOS ``arm64`` spelling is aliased; everything else passes
    through unchanged so lookups stay exact.
    """
    value = machine.strip()
    return _ARCHITECTURE_ALIASES.get(value, value)


@dataclass(frozen=True)
class ArchitectureChecksum:
    architecture: str
    version: str
    digest: str

    def __post_init__(self) -> None:
        if self.architecture not in SUPPORTED_ARCHITECTURES:
            raise ValueError(f"Unknown architecture tag: {self.architecture}")
        if not is_valid_version(self.version):
            raise ValueError(f"Invalid version string: {self.version!r}")
        if not is_valid_digest(self.digest):
            raise ValueError(
                f"Digest for {self.architecture} {self.version} must be 64 lowercase hex characters"
            )


class ChecksumTable:
    """Read-only mapping of ``(architecture, version)`` to a pinned digest."""

    def __init__(self, entries: Iterable[ArchitectureChecksum]) -> None:
        table: dict[tuple[str, str], ArchitectureChecksum] = {}
        for entry in entries:
            key = (entry.architecture, entry.version)
            if key in table and table[key].digest != entry.digest:
                raise ValueError(f"Conflicting digests for {entry.architecture} {entry.version}")
            for other in table.values():
                if other.digest == entry.digest and other.architecture != entry.architecture:
                    raise ValueError(
                        f"Architectures {other.architecture} and {entry.architecture} share a digest"
                    )
            table[key] = entry
        self._entries: Mapping[tuple[str, str], ArchitectureChecksum] = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def entries(self) -> list[ArchitectureChecksum]:
        return sorted(self._entries.values(), key=lambda item: (item.version, item.architecture))

    def merged(self, extra: Iterable[ArchitectureChecksum]) -> ChecksumTable:
        return ChecksumTable([*self._entries.values(), *extra])

    def resolve(self, architecture: str, version: str) -> ArchitectureChecksum:
        """Return the pinned entry or raise before any network I/O happens."""
        tag = normalize_architecture(architecture)
        if tag in EXCLUDED_ARCHITECTURES:
            raise NoChecksumAvailable(
                f"{tag} architecture is not supported. No verified checksum available for this platform",
                hint="Install ttyd from your distribution's package manager instead.",
                architecture=tag,
                version=version,
            )
        if tag not in SUPPORTED_ARCHITECTURES:
            raise UnsupportedArchitecture(
                f"Unsupported architecture: {architecture}",
                hint=f"Supported architectures: {', '.join(SUPPORTED_ARCHITECTURES)}.",
                architecture=architecture,
            )
        entry = self._entries.get((tag, version))
        if entry is None:
            raise NoChecksumAvailable(
                f"No verified checksum available for this platform ({tag}, ttyd {version})",
                hint="Pin a digest under ttyd_checksums in config.toml or use a pinned version.",
                architecture=tag,
                version=version,
            )
        return entry


DEFAULT_TTYD_CHECKSUMS = ChecksumTable(
    [
        ArchitectureChecksum(
            architecture="x86_64",
            version=TTYD_VERSION,
            digest="a68fca635dbc2b8d2d7c6a4442f0d59246c909c07051aba02834d84e81396fe9",
        ),
        ArchitectureChecksum(
            architecture="aarch64",
            version=TTYD_VERSION,
            digest="7e71bae2c0b96e8d66ad4611e075c2c22561fac55ccd7df085d86f5d4bf3cb26",
        ),
    ]
)
