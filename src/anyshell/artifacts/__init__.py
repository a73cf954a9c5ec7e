"""Pinned, checksum-verified release artifacts."""

from .checksums import (
    DEFAULT_TTYD_CHECKSUMS,
    TTYD_VERSION,
    ArchitectureChecksum,
    ChecksumTable,
    normalize_architecture,
)
from .fetcher import FetchResult, FetchStatus, acquire_verified_binary, build_download_url

__all__ = [
    "acquire_verified_binary",
    "ArchitectureChecksum",
    "build_download_url",
    "ChecksumTable",
    "DEFAULT_TTYD_CHECKSUMS",
    "FetchResult",
    "FetchStatus",
    "normalize_architecture",
    "TTYD_VERSION",
]
