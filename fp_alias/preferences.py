"""User preferences for add-fp-alias.

Loads file locations and tuning knobs from
``~/.config/add-fp-alias/preferences.yaml``.  Falls back to sensible
defaults if the file doesn't exist or is invalid.  Creates a default file
on first run so users can discover and edit it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .log import logger
from .platform import (
    config_home,
    default_alias_file,
    default_monitor_log,
    default_skip_file,
)

PREFS_PATH = config_home() / "preferences.yaml"

_DEFAULT_YAML = """\
# add-fp-alias preferences
# Paths accept ~ for your home directory.
# Delete this file to reset to defaults.

paths:
  alias_file: "~/.bashrc.d/flatpak-aliases"              # sourced by your shell
  skip_file: "~/.config/add-fp-alias/skipped-aliases"    # app IDs ignored by --add-all
  monitor_log: "~/.local/state/add-fp-alias/monitor.log" # background monitor output

naming:
  extra_suffixes: []             # more trailing tokens to drop, e.g. ["-beta"]

flatpak:
  timeout_seconds: 30            # give up on a flatpak command after this long

monitor:
  settle_seconds: 5.0            # wait after install/uninstall before syncing
"""


@dataclass
class PathPreferences:
    """Where the alias file, skip list and monitor log live."""

    alias_file: Path = field(default_factory=default_alias_file)
    skip_file: Path = field(default_factory=default_skip_file)
    monitor_log: Path = field(default_factory=default_monitor_log)


@dataclass
class Preferences:
    """Top-level preferences."""

    paths: PathPreferences = field(default_factory=PathPreferences)
    extra_suffixes: list[str] = field(default_factory=list)
    flatpak_timeout: float = 30.0
    settle_seconds: float = 5.0


def _as_path(value: object) -> Path:
    return Path(str(value)).expanduser()


def load_preferences(path: Path | None = None) -> Preferences:
    """Load preferences from YAML file.

    Falls back to sensible defaults if the file doesn't exist or is invalid.
    Creates a default preferences file on first run.
    """
    path = path or PREFS_PATH
    prefs = Preferences()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text()) or {}
            if not isinstance(data, dict):
                data = {}
            if isinstance(data.get("paths"), dict):
                pdata = data["paths"]
                for key in ("alias_file", "skip_file", "monitor_log"):
                    if pdata.get(key):
                        setattr(prefs.paths, key, _as_path(pdata[key]))
            if isinstance(data.get("naming"), dict):
                suffixes = data["naming"].get("extra_suffixes") or []
                if isinstance(suffixes, list):
                    prefs.extra_suffixes = [str(s) for s in suffixes if s]
            if isinstance(data.get("flatpak"), dict):
                if "timeout_seconds" in data["flatpak"]:
                    prefs.flatpak_timeout = float(data["flatpak"]["timeout_seconds"])
            if isinstance(data.get("monitor"), dict):
                if "settle_seconds" in data["monitor"]:
                    prefs.settle_seconds = float(data["monitor"]["settle_seconds"])
        except (OSError, yaml.YAMLError, TypeError, ValueError):
            logger.debug("failed to load preferences from %s", path, exc_info=True)
            return Preferences()
    else:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(_DEFAULT_YAML)
        except OSError:
            logger.debug("could not write default preferences to %s", path, exc_info=True)

    return prefs
