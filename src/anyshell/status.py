"""Installation and runtime status report."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from anyshell.errors import AnyshellError
from anyshell.runtime.host import HostPlatform
from anyshell.services import service_active
from anyshell.session import SessionInfo, list_sessions
from anyshell.tailscale import tailscale_hostname, web_url
from anyshell.web import resolve_ttyd

SubprocessRunner = Callable[..., subprocess.CompletedProcess]


@dataclass
class StatusReport:
    sessions: list[SessionInfo] = field(default_factory=list)
    tmux_path: str = ""
    mosh_path: str = ""
    ttyd_path: str = ""
    service_active: bool = False
    tailscale_url: str = ""


def collect_status(
    host: HostPlatform,
    *,
    bin_dir: Path,
    port: int,
    runner: SubprocessRunner = subprocess.run,
    which: Callable[[str], str | None] = shutil.which,
) -> StatusReport:
    report = StatusReport(
        tmux_path=which("tmux") or "",
        mosh_path=which("mosh-server") or "",
    )
    if report.tmux_path:
        report.sessions = list_sessions(runner=runner)
    try:
        report.ttyd_path = str(resolve_ttyd(bin_dir, which=which))
    except AnyshellError:
        report.ttyd_path = ""
    report.service_active = service_active(host, runner=runner)
    if which("tailscale"):
        report.tailscale_url = web_url(tailscale_hostname(runner=runner), port)
    return report


def format_status(report: StatusReport) -> list[str]:
    def mark(ok: bool) -> str:
        return "✓" if ok else "✗"

    lines = [
        f"{mark(bool(report.tmux_path))} tmux: {report.tmux_path or 'not installed'}",
        f"{mark(bool(report.mosh_path))} mosh: {report.mosh_path or 'not installed'}",
        f"{mark(bool(report.ttyd_path))} ttyd: {report.ttyd_path or 'not installed'}",
        f"{mark(report.service_active)} web service: {'running' if report.service_active else 'stopped'}",
        f"{mark(bool(report.tailscale_url))} web URL: {report.tailscale_url or 'unavailable (Tailscale offline)'}",
    ]
    if report.sessions:
        lines.append("Sessions:")
        for item in report.sessions:
            attached = " (attached)" if item.attached else ""
            lines.append(f"  {item.name}: {item.windows} windows{attached}")
    else:
        lines.append("Sessions: none")
    return lines
