"""Bundled ~/.tmux.conf with timestamped backups."""

from __future__ import annotations

import logging as py_logging
import shutil
from datetime import datetime
from pathlib import Path

logger = py_logging.getLogger(__name__)

TMUX_CONF_NAME = ".tmux.conf"
BACKUP_PREFIX = ".tmux.conf.backup."

TMUX_CONF = """\
# anyshell tmux configuration

# Ctrl+a prefix
unbind C-b
set -g prefix C-a
bind C-a send-prefix

set -g mouse on
set -g history-limit 50000
set -g base-index 1
setw -g pane-base-index 1
set -g renumber-windows on
set -sg escape-time 10
set -g default-terminal "tmux-256color"

# Lock idle clients after 15 minutes
set -g lock-after-time 900
set -g lock-command "vlock || tput clear"

bind r source-file ~/.tmux.conf \\; display-message "Config reloaded"
bind | split-window -h -c "#{pane_current_path}"
bind - split-window -v -c "#{pane_current_path}"

set -g status-interval 5
set -g status-left "[#S] "
set -g status-right "%H:%M"
"""


def tmux_conf_path(home: Path) -> Path:
    return home / TMUX_CONF_NAME


def install_tmux_config(home: Path, *, now: datetime | None = None) -> Path | None:
    """Write the bundled config, backing up an existing one first.

    Returns the backup path, or None when there was nothing to back up.
    """
    target = tmux_conf_path(home)
    backup: Path | None = None
    if target.exists():
        stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
        backup = home / f"{BACKUP_PREFIX}{stamp}"
        shutil.copy2(target, backup)
        logger.info("Existing tmux config backed up to %s", backup)
    target.write_text(TMUX_CONF, encoding="utf-8")
    logger.info("tmux config installed to %s", target)
    return backup


def latest_backup(home: Path) -> Path | None:
    backups = sorted(home.glob(f"{BACKUP_PREFIX}*"), key=lambda item: item.name)
    return backups[-1] if backups else None


def restore_tmux_config(home: Path) -> Path | None:
    backup = latest_backup(home)
    if backup is None:
        return None
    shutil.copy2(backup, tmux_conf_path(home))
    logger.info("Restored tmux config from %s", backup)
    return backup


def remove_tmux_config(home: Path) -> bool:
    target = tmux_conf_path(home)
    if not target.exists():
        return False
    target.unlink()
    return True
