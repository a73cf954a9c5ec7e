"""Tailnet-only exposure of the web terminal via Tailscale Serve."""

from __future__ import annotations

import json
import logging as py_logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

logger = py_logging.getLogger(__name__)

SubprocessRunner = Callable[..., subprocess.CompletedProcess]

TAILSCALE_SCRIPT_URL = "https://tailscale.com/install.sh"


@dataclass(frozen=True)
class TailscaleResult:
    installed: bool
    connected: bool = False
    serve_enabled: bool = False
    hostname: str = ""


def serve_command(port: int) -> list[str]:
    return ["tailscale", "serve", f"https:{port}", "/", f"http://127.0.0.1:{port}"]


def _parse_dns_name(payload: str) -> str:
    try:
        status = json.loads(payload)
    except json.JSONDecodeError:
        return ""
    if not isinstance(status, dict):
        return ""
    self_node = status.get("Self")
    if not isinstance(self_node, dict):
        return ""
    dns_name = self_node.get("DNSName")
    if not isinstance(dns_name, str):
        return ""
    return dns_name.strip().rstrip(".")


def tailscale_hostname(*, runner: SubprocessRunner = subprocess.run) -> str:
    try:
        result = runner(["tailscale", "status", "--json"], capture_output=True, text=True, check=False)
    except OSError:
        return ""
    if result.returncode != 0:
        return ""
    return _parse_dns_name(result.stdout or "")


def tailscale_connected(*, runner: SubprocessRunner = subprocess.run) -> bool:
    result = runner(["tailscale", "status"], capture_output=True, text=True, check=False)
    return result.returncode == 0


def web_url(hostname: str, port: int) -> str:
    return f"https://{hostname}:{port}" if hostname else ""


def setup_tailscale(
    port: int,
    *,
    runner: SubprocessRunner = subprocess.run,
    which: Callable[[str], str | None] = shutil.which,
) -> TailscaleResult:
    """Enable Tailscale Serve for ``port``; never raises for a missing or offline tailscale."""
    if which("tailscale") is None:
        logger.warning("Tailscale not installed; web terminal stays local-only")
        return TailscaleResult(installed=False)

    if not tailscale_connected(runner=runner):
        logger.warning("Tailscale is not connected; run 'sudo tailscale up'")
        return TailscaleResult(installed=True, connected=False)

    command = serve_command(port)
    result = runner(command, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        logger.warning(
            "Could not configure Tailscale Serve automatically stderr=%s",
            (result.stderr or "").strip()[:200],
        )
        return TailscaleResult(installed=True, connected=True, serve_enabled=False)

    hostname = tailscale_hostname(runner=runner)
    logger.info("Tailscale Serve enabled (Tailnet-only) hostname=%s", hostname or "<unknown>")
    return TailscaleResult(installed=True, connected=True, serve_enabled=True, hostname=hostname)


def disable_tailscale_serve(*, runner: SubprocessRunner = subprocess.run) -> bool:
    result = runner(["tailscale", "serve", "off"], capture_output=True, text=True, check=False)
    return result.returncode == 0
