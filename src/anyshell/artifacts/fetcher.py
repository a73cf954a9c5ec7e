"""Download a pinned release binary and install it only after SHA-256 verification."""

from __future__ import annotations

import hashlib
import http.client
import logging as py_logging
import os
import shutil
import stat
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from anyshell.artifacts.checksums import ChecksumTable, is_valid_version, normalize_architecture
from anyshell.errors import AnyshellError, DownloadFailed, ExitCode, IntegrityMismatch
from anyshell.retry import DOWNLOAD_RETRY_POLICY, RetryPolicy, run_with_retry

logger = py_logging.getLogger(__name__)

DEFAULT_RELEASE_HOST = "https://github.com/tsl0922/ttyd/releases/download"
DEFAULT_TIMEOUT_SECONDS = 30.0
_CHUNK_SIZE = 64 * 1024
_EXECUTABLE_MODE = stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH


class Downloader(Protocol):
    def __call__(self, url: str, destination: BinaryIO, timeout: float) -> None: ...


class FetchStatus(str, Enum):
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already-installed"


@dataclass(frozen=True)
class FetchResult:
    path: Path
    architecture: str
    version: str
    status: FetchStatus
    digest: str | None = None

    @property
    def downloaded(self) -> bool:
        return self.status == FetchStatus.INSTALLED


def build_download_url(release_host: str, version: str, artifact_name: str, architecture: str) -> str:
    parsed = urlparse(release_host)
    if parsed.scheme != "https" or not parsed.netloc:
        raise AnyshellError(
            f"Release host must be an https URL: {release_host}",
            code=ExitCode.CONFIG_ERROR,
            hint="Fix ttyd_release_host in config.toml.",
        )
    if not is_valid_version(version):
        raise AnyshellError(
            f"Invalid release version: {version!r}",
            code=ExitCode.CONFIG_ERROR,
            hint="Use a concrete pinned version such as 1.7.7.",
        )
    return f"{release_host.rstrip('/')}/{version}/{artifact_name}.{architecture}"


def urllib_downloader(url: str, destination: BinaryIO, timeout: float) -> None:
    request = Request(url, headers={"User-Agent": "anyshell"}, method="GET")
    try:
        with urlopen(request, timeout=timeout) as response:  # nosec B310
            shutil.copyfileobj(response, destination, _CHUNK_SIZE)
    except HTTPError as exc:
        raise DownloadFailed(
            f"Download failed with HTTP {exc.code}: {url}",
            hint="Check the pinned version exists upstream.",
            url=url,
        ) from exc
    except URLError as exc:
        raise DownloadFailed(
            f"Download failed: {url}",
            hint=str(exc.reason) or "Check your network connection.",
            url=url,
        ) from exc
    except http.client.HTTPException as exc:
        raise DownloadFailed(
            f"Download interrupted: {url}",
            hint=f"{type(exc).__name__}: {exc}",
            url=url,
        ) from exc
    except (TimeoutError, OSError) as exc:
        raise DownloadFailed(
            f"Download failed: {url}",
            hint=str(exc) or "Connection timed out.",
            url=url,
        ) from exc


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def acquire_verified_binary(
    architecture: str,
    version: str,
    *,
    table: ChecksumTable,
    install_dir: str | Path,
    artifact_name: str = "ttyd",
    release_host: str = DEFAULT_RELEASE_HOST,
    downloader: Downloader | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    policy: RetryPolicy = DOWNLOAD_RETRY_POLICY,
    sleep: Callable[[float], None] = time.sleep,
) -> FetchResult:
    """Install ``artifact_name`` for ``architecture`` into ``install_dir``.

    The expected digest is resolved before anything touches the network, so
    unsupported or policy-excluded architectures fail without I/O. An
    executable already present at the final path short-circuits the call.

    Each download attempt writes to a fresh, unpredictably named file inside
    ``install_dir`` (same filesystem as the final path). The file is removed
    on every failure path; on success it is made executable and renamed into
    place, so the final path never holds unverified bytes.
    """
    tag = normalize_architecture(architecture)
    expected = table.resolve(tag, version).digest
    target_dir = Path(install_dir).expanduser()
    final_path = target_dir / artifact_name

    if is_executable(final_path):
        logger.info("%s already installed at %s; skipping download", artifact_name, final_path)
        return FetchResult(
            path=final_path,
            architecture=tag,
            version=version,
            status=FetchStatus.ALREADY_INSTALLED,
        )

    url = build_download_url(release_host, version, artifact_name, tag)
    do_download = downloader or urllib_downloader
    target_dir.mkdir(parents=True, exist_ok=True)

    def attempt() -> Path:
        handle = tempfile.NamedTemporaryFile(
            prefix=f".{artifact_name}-",
            suffix=".part",
            dir=target_dir,
            delete=False,
        )
        temp_path = Path(handle.name)
        try:
            with handle:
                do_download(url, handle, timeout)
            actual = sha256_file(temp_path)
            if actual != expected:
                logger.error(
                    "Checksum verification failed for %s %s (%s): expected=%s actual=%s",
                    artifact_name,
                    version,
                    tag,
                    expected,
                    actual,
                )
                raise IntegrityMismatch(
                    f"Integrity verification failed for {artifact_name} {version} ({tag}), possible tampering. "
                    f"Expected {expected}, got {actual}",
                    hint="Do not use this binary. Re-run later or report the mismatch upstream.",
                    expected=expected,
                    actual=actual,
                )
            return temp_path
        except BaseException:
            _discard(temp_path)
            raise

    logger.info("Downloading %s %s for %s from %s", artifact_name, version, tag, url)
    # IntegrityMismatch is a FatalError: the retry loop re-raises it at once.
    temp_path = run_with_retry(attempt, policy=policy, sleep=sleep)

    try:
        temp_path.chmod(_EXECUTABLE_MODE)
        os.replace(temp_path, final_path)
    finally:
        _discard(temp_path)

    logger.info("%s installed to %s (checksum verified %s)", artifact_name, final_path, expected)
    return FetchResult(
        path=final_path,
        architecture=tag,
        version=version,
        status=FetchStatus.INSTALLED,
        digest=expected,
    )
