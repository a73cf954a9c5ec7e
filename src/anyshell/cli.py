"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .artifacts.fetcher import Downloader, acquire_verified_binary
from .config import AppConfig, load_config
from .credentials import load_web_credentials
from .errors import AnyshellError, ExitCode, user_facing_error
from .installer import InstallReport, completion_lines, run_install
from .logging import configure_logging, default_log_path
from .retry import RetryPolicy
from .runtime.host import detect_architecture, detect_host
from .session import kill_session, list_sessions, open_session, require_session_name
from .status import collect_status, format_status
from .uninstaller import run_uninstall
from .web import resolve_ttyd, run_web_terminal

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _port_type(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--port must be an integer") from exc
    if port < 1024 or port > 65535:
        raise argparse.ArgumentTypeError("--port must be between 1024 and 65535")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anyshell",
        description="Persistent remote terminals with tmux, mosh and a Tailscale-only web terminal.",
    )
    parser.add_argument("--log-level", type=_log_level_type, default="INFO")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    install = commands.add_parser("install", help="Install packages, ttyd, credentials and services")
    install.add_argument("--skip-service", action="store_true", help="Do not install the web service")
    install.add_argument("--skip-tailscale", action="store_true", help="Do not configure Tailscale Serve")

    uninstall = commands.add_parser("uninstall", help="Remove services, data and configuration")
    uninstall.add_argument("-y", "--yes", action="store_true", help="Answer yes to every prompt")

    session = commands.add_parser("session", help="Attach to (or create) a persistent tmux session")
    session.add_argument("name", nargs="?", default=None)
    session_actions = session.add_mutually_exclusive_group()
    session_actions.add_argument("--list", action="store_true", help="List sessions")
    session_actions.add_argument("--kill", metavar="NAME", default=None, help="Kill a session")

    fetch = commands.add_parser("fetch-ttyd", help="Download and verify the pinned ttyd binary")
    fetch.add_argument("--arch", default=None, help="Architecture tag (default: this machine)")
    fetch.add_argument("--version", dest="ttyd_version", default=None, help="Pinned ttyd version")

    web = commands.add_parser("web-terminal", help="Run ttyd on 127.0.0.1 attached to tmux")
    web.add_argument("--ttyd", type=Path, default=None)
    web.add_argument("--session", default=None)
    web.add_argument("--port", type=_port_type, default=None)

    commands.add_parser("status", help="Show installation and session status")
    return parser


def parse_args(
    argv: Sequence[str] | None = None,
    *,
    parser: argparse.ArgumentParser | None = None,
) -> argparse.Namespace:
    return (parser or build_parser()).parse_args(argv)


@dataclass
class CliContext:
    config: AppConfig
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run
    which: Callable[[str], str | None] = shutil.which
    downloader: Downloader | None = None
    echo: Callable[[str], None] = print


def _cmd_install(namespace: argparse.Namespace, ctx: CliContext) -> int:
    result = run_install(
        ctx.config,
        skip_service=namespace.skip_service,
        skip_tailscale=namespace.skip_tailscale,
        runner=ctx.runner,
        which=ctx.which,
        downloader=ctx.downloader,
        report=InstallReport(echo=ctx.echo),
    )
    for line in completion_lines(result, ctx.config):
        ctx.echo(line)
    return int(ExitCode.SUCCESS)


def _cmd_uninstall(namespace: argparse.Namespace, ctx: CliContext) -> int:
    run_uninstall(
        ctx.config,
        assume_yes=namespace.yes,
        runner=ctx.runner,
        which=ctx.which,
        report=InstallReport(echo=ctx.echo),
    )
    return int(ExitCode.SUCCESS)


def _cmd_session(namespace: argparse.Namespace, ctx: CliContext) -> int:
    if namespace.list:
        sessions = list_sessions(runner=ctx.runner)
        if not sessions:
            ctx.echo("No sessions.")
        for item in sessions:
            attached = " (attached)" if item.attached else ""
            ctx.echo(f"{item.name}: {item.windows} windows{attached}")
        return int(ExitCode.SUCCESS)

    target = namespace.kill if namespace.kill is not None else namespace.name
    if target is None:
        target = ctx.config.default_session
    require_session_name(target)

    if namespace.kill is not None:
        kill_session(target, runner=ctx.runner)
        ctx.echo(f"Killed session {target}")
        return int(ExitCode.SUCCESS)

    open_session(target, runner=ctx.runner)
    return int(ExitCode.SUCCESS)


def _cmd_fetch_ttyd(namespace: argparse.Namespace, ctx: CliContext) -> int:
    config = ctx.config
    architecture = namespace.arch or detect_architecture()
    version = namespace.ttyd_version or config.ttyd_version
    result = acquire_verified_binary(
        architecture,
        version,
        table=config.checksum_table(),
        install_dir=config.bin_path,
        release_host=config.ttyd_release_host,
        downloader=ctx.downloader,
        timeout=float(config.download_timeout_seconds),
        policy=RetryPolicy(max_attempts=config.download_attempts, initial_backoff_seconds=1.0),
    )
    if result.downloaded:
        ctx.echo(f"ttyd {version} installed to {result.path} (sha256 {result.digest})")
    else:
        ctx.echo(f"ttyd already installed at {result.path}")
    return int(ExitCode.SUCCESS)


def _cmd_web_terminal(namespace: argparse.Namespace, ctx: CliContext) -> int:
    config = ctx.config
    session = require_session_name(namespace.session or config.default_session)
    ttyd = namespace.ttyd or resolve_ttyd(config.bin_path, which=ctx.which)
    credentials = load_web_credentials(config.config_path, config.web_username)
    return run_web_terminal(
        ttyd,
        credentials,
        port=namespace.port or config.web_port,
        max_clients=config.web_max_clients,
        session=session,
        runner=ctx.runner,
    )


def _cmd_status(namespace: argparse.Namespace, ctx: CliContext) -> int:
    del namespace
    report = collect_status(
        detect_host(),
        bin_dir=ctx.config.bin_path,
        port=ctx.config.web_port,
        runner=ctx.runner,
        which=ctx.which,
    )
    for line in format_status(report):
        ctx.echo(line)
    return int(ExitCode.SUCCESS)


_HANDLERS: dict[str, Callable[[argparse.Namespace, CliContext], int]] = {
    "install": _cmd_install,
    "uninstall": _cmd_uninstall,
    "session": _cmd_session,
    "fetch-ttyd": _cmd_fetch_ttyd,
    "web-terminal": _cmd_web_terminal,
    "status": _cmd_status,
}


def main(
    argv: Sequence[str] | None = None,
    *,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    which: Callable[[str], str | None] = shutil.which,
    downloader: Downloader | None = None,
    echo: Callable[[str], None] = print,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parse_args(argv, parser=parser)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    if namespace.command is None:
        parser.print_help(sys.stderr)
        return int(ExitCode.INVALID_ARGS)

    try:
        ctx = CliContext(
            config=load_config(namespace.config),
            runner=runner,
            which=which,
            downloader=downloader,
            echo=echo,
        )
        logger.debug("Running command=%s", namespace.command)
        return _HANDLERS[namespace.command](namespace, ctx)
    except AnyshellError as exc:
        logger.error(
            "Handled AnyshellError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=namespace.log_level == "DEBUG",
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return int(ExitCode.RUNTIME_ERROR)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(
            user_facing_error("Unexpected runtime failure", hint=f"Inspect logs: {log_path}"),
            file=sys.stderr,
        )
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
