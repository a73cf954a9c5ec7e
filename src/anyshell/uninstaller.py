"""Removal flow: services, data directory, tmux config and Tailscale Serve."""

from __future__ import annotations

import logging as py_logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from anyshell.config import AppConfig
from anyshell.installer import InstallReport
from anyshell.runtime.host import HostPlatform, detect_host
from anyshell.services import remove_service
from anyshell.tailscale import disable_tailscale_serve
from anyshell.tmux_config import latest_backup, remove_tmux_config, restore_tmux_config, tmux_conf_path

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]
Confirm = Callable[[str], bool]

KEPT_PACKAGES = ("mosh", "tmux", "ttyd")


@dataclass
class UninstallResult:
    cancelled: bool = False
    removed: list[Path] = field(default_factory=list)
    tmux_config: str = "untouched"
    tailscale_serve_disabled: bool = False


def prompt_yes_no(question: str) -> bool:
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def run_uninstall(
    config: AppConfig,
    *,
    home: Path | None = None,
    confirm: Confirm = prompt_yes_no,
    assume_yes: bool = False,
    runner: SubprocessRunner = subprocess.run,
    which: Callable[[str], str | None] = shutil.which,
    host: HostPlatform | None = None,
    report: InstallReport | None = None,
) -> UninstallResult:
    progress = report or InstallReport()
    home_dir = home or Path.home()

    def ask(question: str) -> bool:
        return True if assume_yes else confirm(question)

    if not ask("Are you sure you want to uninstall anyshell?"):
        progress.record_info("confirm", "Uninstall cancelled.")
        return UninstallResult(cancelled=True)

    result = UninstallResult()
    detected = host or detect_host()

    progress.record_started("services", "Stopping services")
    for path in remove_service(detected, home=home_dir, runner=runner):
        result.removed.append(path)
        progress.record_success("services", f"Removed {path.name}")

    progress.record_started("data", "Removing data")
    if config.data_path.is_dir():
        shutil.rmtree(config.data_path)
        result.removed.append(config.data_path)
        progress.record_success("data", f"Removed {config.data_path}")

    progress.record_started("tmux-config", "Handling configuration")
    if tmux_conf_path(home_dir).exists():
        backup = latest_backup(home_dir)
        if backup is not None:
            if ask("Restore previous tmux.conf from backup?"):
                restore_tmux_config(home_dir)
                result.tmux_config = "restored"
                progress.record_success("tmux-config", f"Restored tmux.conf from {backup.name}")
            else:
                progress.record_info("tmux-config", "Left current tmux.conf in place")
        elif ask("Remove tmux.conf?"):
            remove_tmux_config(home_dir)
            result.tmux_config = "removed"
            progress.record_success("tmux-config", "Removed tmux.conf")
        else:
            progress.record_info("tmux-config", "Left tmux.conf in place")

    if which("tailscale") is not None:
        progress.record_started("tailscale", "Tailscale configuration")
        if ask(f"Disable Tailscale Serve for port {config.web_port}?"):
            result.tailscale_serve_disabled = disable_tailscale_serve(runner=runner)
            if result.tailscale_serve_disabled:
                progress.record_success("tailscale", "Disabled Tailscale Serve")
            else:
                progress.record_warning("tailscale", "Could not disable Tailscale Serve")

    progress.record_started("packages", "Installed packages")
    progress.record_info(
        "packages",
        f"Not removed (remove manually if desired): {', '.join(KEPT_PACKAGES)}",
    )
    logger.info("Uninstall finished removed=%s tmux_config=%s", len(result.removed), result.tmux_config)
    return result
