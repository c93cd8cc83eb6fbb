"""Filesystem locations and tool discovery.

Every other module asks here for default paths instead of reading
environment variables itself.  Locations follow the XDG base directory
layout used by the original shell tooling.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path

APP_DIR_NAME = "add-fp-alias"


def _xdg_dir(env_var: str, fallback: str) -> Path:
    value = os.environ.get(env_var, "")
    if value and os.path.isabs(value):
        return Path(value)
    return Path.home() / fallback


def config_home() -> Path:
    """Return ``$XDG_CONFIG_HOME/add-fp-alias`` (``~/.config/add-fp-alias``)."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / APP_DIR_NAME


def state_home() -> Path:
    """Return ``$XDG_STATE_HOME/add-fp-alias`` (``~/.local/state/add-fp-alias``)."""
    return _xdg_dir("XDG_STATE_HOME", os.path.join(".local", "state")) / APP_DIR_NAME


def default_alias_file() -> Path:
    """Return ``~/.bashrc.d/flatpak-aliases``, sourced by most bashrc setups."""
    return Path.home() / ".bashrc.d" / "flatpak-aliases"


def default_skip_file() -> Path:
    return config_home() / "skipped-aliases"


def default_monitor_log() -> Path:
    return state_home() / "monitor.log"


def default_snapshot_path(now: datetime | None = None) -> Path:
    """Return ``~/flatpak_aliases_backup_<timestamp>.sh``."""
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return Path.home() / f"flatpak_aliases_backup_{stamp}.sh"


def find_tool(name: str) -> str | None:
    """Return the absolute path of executable *name*, or ``None``."""
    return shutil.which(name)
