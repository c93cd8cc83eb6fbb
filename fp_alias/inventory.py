"""Flatpak inventory -- the only module that shells out to ``flatpak``.

Provides the installed-application list, per-app metadata and an
existence check.  Failures that make the answer unknowable (missing binary,
timeout, a failing ``flatpak list``) raise
:class:`~fp_alias.errors.ExternalCollaboratorError`.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

from .errors import ExternalCollaboratorError
from .log import logger
from .naming import is_valid_app_id

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class InstalledApp:
    app_id: str
    display_name: str | None = None


class Inventory(Protocol):
    def list_installed(self) -> Sequence[InstalledApp]: ...

    def get_metadata(self, app_id: str) -> str | None: ...

    def exists(self, app_id: str) -> bool: ...


def parse_app_list(output: str) -> list[InstalledApp]:
    """Parse ``flatpak list --columns=application,name`` output.

    Malformed IDs (header rows, blank lines, runtime refs) are dropped.
    """
    apps: list[InstalledApp] = []
    seen: set[str] = set()
    for line in output.splitlines():
        app_id, _, name = line.partition("\t")
        app_id = app_id.strip()
        if not is_valid_app_id(app_id) or app_id in seen:
            if app_id:
                logger.debug("ignoring inventory line %r", line)
            continue
        seen.add(app_id)
        apps.append(InstalledApp(app_id, name.strip() or None))
    return apps


def parse_metadata_name(output: str) -> str | None:
    """Return the first ``name=`` / ``app-name=`` value of keyfile metadata."""
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip().lower() in ("name", "app-name"):
            return value.strip() or None
    return None


class FlatpakInventory:
    """Query the local Flatpak installation through the ``flatpak`` CLI."""

    def __init__(self, binary: str = "flatpak", timeout: float = DEFAULT_TIMEOUT) -> None:
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary, *args]
        logger.debug("running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ExternalCollaboratorError(f"{self.binary} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalCollaboratorError(
                f"'{' '.join(cmd)}' timed out after {self.timeout:g}s"
            ) from exc
        except OSError as exc:
            raise ExternalCollaboratorError(f"'{' '.join(cmd)}' failed: {exc}") from exc

    def list_installed(self) -> list[InstalledApp]:
        result = self._run("list", "--app", "--columns=application,name")
        if result.returncode != 0:
            raise ExternalCollaboratorError(
                f"flatpak list failed: {result.stderr.strip() or result.returncode}"
            )
        return parse_app_list(result.stdout)

    def get_metadata(self, app_id: str) -> str | None:
        result = self._run("info", "--show-metadata", app_id)
        if result.returncode != 0:
            return None
        return parse_metadata_name(result.stdout)

    def exists(self, app_id: str) -> bool:
        return self._run("info", app_id).returncode == 0
