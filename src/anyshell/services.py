"""systemd/launchd units for the web terminal service."""

from __future__ import annotations

import logging as py_logging
import re
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from xml.sax.saxutils import escape

from anyshell.errors import AnyshellError, ExitCode
from anyshell.runtime.host import HostPlatform

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]

SYSTEMD_UNIT_NAME = "anyshell-web.service"
LAUNCHD_LABEL = "com.anyshell.web"
LAUNCHD_PLIST_NAME = f"{LAUNCHD_LABEL}.plist"
MACOS_DEFAULT_TTYD = Path("/usr/local/bin/ttyd")
MACOS_HOMEBREW_TTYD = Path("/opt/homebrew/bin/ttyd")
_TOKEN_PATTERN = re.compile(r"HOMEDIR|PYTHONBIN|DATADIR|TTYDBIN")

SYSTEMD_TEMPLATE = """\
[Unit]
Description=anyshell web terminal (ttyd on 127.0.0.1)
After=network-online.target

[Service]
Type=simple
ExecStart="PYTHONBIN" -m anyshell web-terminal --ttyd "TTYDBIN"
Restart=on-failure
RestartSec=5
Environment=PATH=HOMEDIR/.local/bin:/usr/local/bin:/usr/bin:/bin
StandardOutput=append:DATADIR/ttyd.log
StandardError=append:DATADIR/ttyd.error.log

[Install]
WantedBy=default.target
"""

LAUNCHD_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>com.anyshell.web</string>
    <key>ProgramArguments</key>
    <array>
        <string>PYTHONBIN</string>
        <string>-m</string>
        <string>anyshell</string>
        <string>web-terminal</string>
        <string>--ttyd</string>
        <string>TTYDBIN</string>
    </array>
    <key>EnvironmentVariables</key>
    <dict>
        <key>PATH</key>
        <string>HOMEDIR/.local/bin:/opt/homebrew/bin:/usr/local/bin:/usr/bin:/bin</string>
    </dict>
    <key>RunAtLoad</key>
    <true/>
    <key>KeepAlive</key>
    <true/>
    <key>StandardOutPath</key>
    <string>DATADIR/ttyd.log</string>
    <key>StandardErrorPath</key>
    <string>DATADIR/ttyd.error.log</string>
</dict>
</plist>
"""


def render_unit(
    template: str,
    *,
    home: Path,
    python: str,
    data_dir: Path,
    ttyd: Path,
    xml: bool = False,
) -> str:
    """Substitute the placeholder tokens literally; nothing else is templated."""
    values = {
        "HOMEDIR": str(home),
        "PYTHONBIN": python,
        "DATADIR": str(data_dir),
        "TTYDBIN": str(ttyd),
    }
    if xml:
        values = {token: escape(value) for token, value in values.items()}
    # Single pass, so a substituted path that happens to contain a token is left alone.
    return _TOKEN_PATTERN.sub(lambda match: values[match.group(0)], template)


def service_unit_path(host: HostPlatform, home: Path) -> Path:
    if host.is_macos:
        return home / "Library" / "LaunchAgents" / LAUNCHD_PLIST_NAME
    return home / ".config" / "systemd" / "user" / SYSTEMD_UNIT_NAME


def service_ttyd_path(host: HostPlatform, bin_dir: Path, *, homebrew_ttyd: Path = MACOS_HOMEBREW_TTYD) -> Path:
    if host.is_macos:
        # Apple Silicon Homebrew installs outside /usr/local.
        return homebrew_ttyd if homebrew_ttyd.exists() else MACOS_DEFAULT_TTYD
    return bin_dir / "ttyd"


def _run_checked(command: list[str], runner: SubprocessRunner) -> None:
    result = runner(command, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        logger.error("Service command failed code=%s command=%s", result.returncode, command)
        raise AnyshellError(
            f"Service command failed: {' '.join(command)}",
            code=ExitCode.INSTALL_ERROR,
            hint=(result.stderr or "Check the service manager output.").strip(),
        )


def install_service(
    host: HostPlatform,
    *,
    home: Path,
    data_dir: Path,
    ttyd: Path,
    python: str = sys.executable,
    runner: SubprocessRunner = subprocess.run,
) -> Path:
    unit_path = service_unit_path(host, home)
    unit_path.parent.mkdir(parents=True, exist_ok=True)
    template = LAUNCHD_TEMPLATE if host.is_macos else SYSTEMD_TEMPLATE
    unit_path.write_text(
        render_unit(template, home=home, python=python, data_dir=data_dir, ttyd=ttyd, xml=host.is_macos),
        encoding="utf-8",
    )
    logger.info("Wrote service unit %s", unit_path)

    if host.is_macos:
        _run_checked(["launchctl", "load", str(unit_path)], runner)
    else:
        _run_checked(["systemctl", "--user", "daemon-reload"], runner)
        _run_checked(["systemctl", "--user", "enable", SYSTEMD_UNIT_NAME], runner)
        _run_checked(["systemctl", "--user", "start", SYSTEMD_UNIT_NAME], runner)
    return unit_path


def remove_service(
    host: HostPlatform,
    *,
    home: Path,
    runner: SubprocessRunner = subprocess.run,
) -> list[Path]:
    unit_path = service_unit_path(host, home)
    removed: list[Path] = []
    if host.is_macos:
        if unit_path.exists():
            runner(["launchctl", "unload", str(unit_path)], capture_output=True, text=True, check=False)
            unit_path.unlink()
            removed.append(unit_path)
        return removed

    if unit_path.exists():
        for action in ("stop", "disable"):
            runner(
                ["systemctl", "--user", action, SYSTEMD_UNIT_NAME],
                capture_output=True,
                text=True,
                check=False,
            )
        unit_path.unlink()
        removed.append(unit_path)
    runner(["systemctl", "--user", "daemon-reload"], capture_output=True, text=True, check=False)
    return removed


def service_active(host: HostPlatform, *, runner: SubprocessRunner = subprocess.run) -> bool:
    if host.is_macos:
        command = ["launchctl", "list", LAUNCHD_LABEL]
    else:
        command = ["systemctl", "--user", "is-active", "--quiet", SYSTEMD_UNIT_NAME]
    try:
        result = runner(command, capture_output=True, text=True, check=False)
    except OSError:
        return False
    return result.returncode == 0
