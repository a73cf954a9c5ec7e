"""End-to-end installation flow."""

from __future__ import annotations

import getpass
import logging as py_logging
import os
import shutil
import socket
import subprocess
import sys
import time
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path

from anyshell.artifacts.fetcher import Downloader, FetchResult, acquire_verified_binary
from anyshell.config import AppConfig
from anyshell.credentials import WebCredentials, ensure_private_dir, ensure_web_credentials
from anyshell.errors import AnyshellError, ExitCode
from anyshell.retry import RetryPolicy
from anyshell.runtime.host import HostPlatform, detect_architecture, detect_host
from anyshell.runtime.packages import install_packages
from anyshell.services import install_service, service_ttyd_path
from anyshell.tailscale import TAILSCALE_SCRIPT_URL, TailscaleResult, setup_tailscale, web_url
from anyshell.tmux_config import install_tmux_config

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]

LOG_FILES = ("ttyd.log", "ttyd.error.log")


@dataclass(frozen=True)
class InstallEvent:
    step: str
    state: str
    message: str


class InstallReport:
    """Step-by-step progress, kept as events and echoed to the terminal."""

    _MARKS = {"success": "✓", "info": "ℹ", "warning": "⚠", "error": "✗"}

    def __init__(self, *, echo: Callable[[str], None] = print) -> None:
        self.events: list[InstallEvent] = []
        self.echo = echo

    def _record(self, step: str, state: str, message: str) -> None:
        self.events.append(InstallEvent(step=step, state=state, message=message))
        if state == "started":
            self.echo(f"\n▶ {message or step}")
        else:
            self.echo(f"  {self._MARKS[state]} {message}")

    def record_started(self, step: str, message: str = "") -> None:
        self._record(step, "started", message)

    def record_success(self, step: str, message: str) -> None:
        self._record(step, "success", message)

    def record_info(self, step: str, message: str) -> None:
        self._record(step, "info", message)

    def record_warning(self, step: str, message: str) -> None:
        self._record(step, "warning", message)

    def record_error(self, step: str, message: str) -> None:
        self._record(step, "error", message)

    def states(self, step: str) -> list[str]:
        return [event.state for event in self.events if event.step == step]


@dataclass
class InstallResult:
    host: HostPlatform
    credentials: WebCredentials | None = None
    ttyd_path: Path | None = None
    fetch: FetchResult | None = None
    tmux_backup: Path | None = None
    service_unit: Path | None = None
    tailscale: TailscaleResult | None = None
    warnings: list[str] = field(default_factory=list)


def _prepare_data_dir(data_dir: Path) -> None:
    ensure_private_dir(data_dir)
    for name in LOG_FILES:
        log_path = data_dir / name
        log_path.touch(exist_ok=True)
        with suppress(OSError):
            log_path.chmod(0o600)


def _bin_dir_on_path(bin_dir: Path, path_env: str) -> bool:
    entries = {Path(item).expanduser() for item in path_env.split(os.pathsep) if item}
    return bin_dir in entries


def _acquire_ttyd(
    config: AppConfig,
    report: InstallReport,
    *,
    architecture: str,
    which: Callable[[str], str | None],
    downloader: Downloader | None,
    sleep: Callable[[float], None],
) -> tuple[Path, FetchResult | None]:
    existing = which("ttyd")
    if existing:
        report.record_success("ttyd", "ttyd already installed")
        return Path(existing), None

    report.record_info("ttyd", f"Installing ttyd {config.ttyd_version} from GitHub releases...")
    result = acquire_verified_binary(
        architecture,
        config.ttyd_version,
        table=config.checksum_table(),
        install_dir=config.bin_path,
        release_host=config.ttyd_release_host,
        downloader=downloader,
        timeout=float(config.download_timeout_seconds),
        policy=RetryPolicy(
            max_attempts=config.download_attempts,
            initial_backoff_seconds=1.0,
            multiplier=2.0,
        ),
        sleep=sleep,
    )
    if result.downloaded:
        report.record_success("ttyd", f"ttyd installed to {result.path} (checksum verified)")
    else:
        report.record_success("ttyd", f"ttyd already installed at {result.path}")
    return result.path, result


def run_install(
    config: AppConfig,
    *,
    home: Path | None = None,
    skip_service: bool = False,
    skip_tailscale: bool = False,
    runner: SubprocessRunner = subprocess.run,
    which: Callable[[str], str | None] = shutil.which,
    downloader: Downloader | None = None,
    host: HostPlatform | None = None,
    architecture: str | None = None,
    path_env: str | None = None,
    python: str = sys.executable,
    report: InstallReport | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> InstallResult:
    progress = report or InstallReport()
    home_dir = home or Path.home()
    step = "detect-os"
    try:
        progress.record_started(step, "Detecting operating system")
        detected = host or detect_host()
        if not detected.supported:
            raise AnyshellError(
                "Unsupported operating system.",
                code=ExitCode.UNSUPPORTED_PLATFORM,
                hint="Supported: macOS, Debian/Ubuntu, Fedora/RHEL.",
            )
        progress.record_info(step, f"Detected OS: {detected.os_family} (package manager: {detected.package_manager})")
        result = InstallResult(host=detected)

        step = "packages"
        progress.record_started(step, "Installing dependencies")
        packages = install_packages(detected, runner=runner, which=which)
        progress.record_success(step, "mosh installed")
        progress.record_success(step, "tmux installed")

        step = "ttyd"
        if packages.ttyd_from_release:
            arch = architecture or detect_architecture()
            result.ttyd_path, result.fetch = _acquire_ttyd(
                config,
                progress,
                architecture=arch,
                which=which,
                downloader=downloader,
                sleep=sleep,
            )
        else:
            progress.record_success(step, "ttyd installed")

        step = "credentials"
        progress.record_started(step, "Generating web terminal credentials")
        result.credentials = ensure_web_credentials(config.config_path, config.web_username)
        if result.credentials.created:
            progress.record_success(step, "Generated new credentials")
        else:
            progress.record_info(step, "Existing credentials found")

        step = "directories"
        progress.record_started(step, "Preparing directories")
        config.bin_path.mkdir(parents=True, exist_ok=True)
        _prepare_data_dir(config.data_path)
        progress.record_success(step, f"Data directory ready at {config.data_path}")
        current_path = os.environ.get("PATH", "") if path_env is None else path_env
        if not _bin_dir_on_path(config.bin_path, current_path):
            warning = f"{config.bin_path} is not in your PATH"
            result.warnings.append(warning)
            progress.record_warning(step, warning)
            progress.record_info(step, f'Add to your shell profile: export PATH="{config.bin_path}:$PATH"')

        step = "tmux-config"
        progress.record_started(step, "Installing tmux configuration")
        result.tmux_backup = install_tmux_config(home_dir)
        if result.tmux_backup is not None:
            progress.record_info(step, f"Existing config backed up to: {result.tmux_backup}")
        progress.record_success(step, "tmux config installed to ~/.tmux.conf")

        step = "service"
        if skip_service or not config.install_service:
            progress.record_info(step, "Skipping web terminal service")
        else:
            progress.record_started(step, "Installing web terminal service")
            ttyd_for_service = (
                service_ttyd_path(detected, config.bin_path)
                if detected.is_macos
                else result.ttyd_path or config.bin_path / "ttyd"
            )
            result.service_unit = install_service(
                detected,
                home=home_dir,
                data_dir=config.data_path,
                ttyd=ttyd_for_service,
                python=python,
                runner=runner,
            )
            progress.record_success(step, f"Service installed and started ({result.service_unit.name})")

        step = "tailscale"
        if skip_tailscale or not config.configure_tailscale:
            progress.record_info(step, "Skipping Tailscale configuration")
        else:
            progress.record_started(step, "Configuring Tailscale")
            result.tailscale = setup_tailscale(config.web_port, runner=runner, which=which)
            _report_tailscale(progress, result.tailscale, detected, config.web_port)
    except AnyshellError as exc:
        progress.record_error(step, exc.message)
        raise

    logger.info("Installation finished host=%s ttyd=%s", detected.os_family, result.ttyd_path)
    return result


def _report_tailscale(report: InstallReport, outcome: TailscaleResult, host: HostPlatform, port: int) -> None:
    step = "tailscale"
    if not outcome.installed:
        report.record_warning(step, "Tailscale not installed")
        if host.is_macos:
            report.record_info(step, "Install with: brew install tailscale")
        else:
            report.record_info(
                step,
                f"Download and review before running: curl -fsSL {TAILSCALE_SCRIPT_URL} -o /tmp/tailscale-install.sh",
            )
        report.record_info(step, "Then run 'sudo tailscale up' and re-run this installer")
        return
    if not outcome.connected:
        report.record_warning(step, "Tailscale is not connected")
        report.record_info(step, "Run: sudo tailscale up")
        return
    if not outcome.serve_enabled:
        report.record_warning(step, "Could not configure Tailscale Serve automatically")
        report.record_info(step, f"Run manually: tailscale serve https:{port} / http://127.0.0.1:{port}")
        return
    report.record_success(step, "Tailscale Serve enabled (Tailnet-only)")
    if outcome.hostname:
        report.record_success(step, f"Web terminal available at: {web_url(outcome.hostname, port)}")


def completion_lines(
    result: InstallResult,
    config: AppConfig,
    *,
    user: str | None = None,
    hostname: str | None = None,
) -> list[str]:
    """Summary shown once at the end. This is the only place the password is printed."""
    user_name = user or getpass.getuser()
    host_name = hostname or socket.gethostname()
    lines = ["", "Installation Complete!", ""]
    if result.credentials is not None:
        lines.extend(
            [
                "IMPORTANT - Web Terminal Credentials:",
                f"  Username: {result.credentials.username}",
                f"  Password: {result.credentials.password}",
                f"  Credentials stored in: {result.credentials.path}",
                "",
            ]
        )
    lines.extend(
        [
            "Quick Start:",
            "  1. Start a persistent session:",
            "     anyshell session",
            "  2. Connect remotely with mosh (recommended):",
            f"     mosh {user_name}@{host_name} -- anyshell session",
            "  3. Connect via SSH:",
            f"     ssh {user_name}@{host_name} -t 'anyshell session'",
        ]
    )
    if result.tailscale is not None and result.tailscale.hostname:
        lines.extend(
            [
                "  4. Connect via web browser (requires Tailscale):",
                f"     {web_url(result.tailscale.hostname, config.web_port)}",
            ]
        )
    lines.extend(
        [
            "",
            "Security Notes:",
            "  • ttyd binds to localhost only (127.0.0.1)",
            "  • Web access requires Tailscale plus password authentication",
            f"  • Max {config.web_max_clients} concurrent web connections allowed",
            "",
            "Usage Tips:",
            "  • Use 'anyshell session <name>' to create named sessions",
            "  • tmux prefix is Ctrl+a (e.g., Ctrl+a d to detach)",
            "  • Session auto-locks after 15 minutes idle",
        ]
    )
    return lines
