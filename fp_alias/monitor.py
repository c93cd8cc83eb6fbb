"""Background monitor -- resyncs aliases after Flatpak installs/uninstalls.

Watches ``dbus-monitor --system`` output for the Flatpak system helper's
``Deploy`` and ``Uninstall`` method calls.  Each burst of activity is
debounced into a single sync run after a settle delay, and runs are
serialized so two syncs never rewrite the alias file at the same time.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Callable, Iterable

from .confirm import AlwaysYes
from .engine import open_engine
from .errors import AliasError
from .inventory import FlatpakInventory, Inventory
from .log import logger
from .preferences import Preferences

_HELPER = "org.freedesktop.Flatpak.SystemHelper"
MATCH_RULES: tuple[str, ...] = (
    f"type='method_call',interface='{_HELPER}',member='Deploy'",
    f"type='method_call',interface='{_HELPER}',member='Uninstall'",
)
_ACTIVITY_MARKERS = ("member=Deploy", "member=Uninstall")


def is_flatpak_activity(line: str) -> bool:
    """True when a ``dbus-monitor`` line reports a Deploy/Uninstall call."""
    return any(marker in line for marker in _ACTIVITY_MARKERS)


class Debouncer:
    """Run *callback* once, *delay* seconds after the last :meth:`trigger`.

    Overlapping runs are impossible: the callback always executes under a
    lock, so a trigger that fires mid-run waits for the current run.
    """

    def __init__(self, delay: float, callback: Callable[[], object]) -> None:
        self.delay = delay
        self._callback = callback
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._run_lock = threading.Lock()

    def trigger(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._run_lock:
            try:
                self._callback()
            except Exception:
                logger.exception("Flatpak alias sync failed")


def sync_aliases(prefs: Preferences, inventory: Inventory | None = None) -> None:
    """Non-interactive add-all followed by stale purge, logging the outcome."""
    inventory = inventory or FlatpakInventory(timeout=prefs.flatpak_timeout)
    try:
        engine = open_engine(
            prefs.paths.alias_file,
            prefs.paths.skip_file,
            inventory,
            AlwaysYes(),
            extra_suffixes=prefs.extra_suffixes,
        )
        report = engine.reconcile_all()
        for outcome in report.outcomes:
            if outcome.action.mutates:
                logger.info(
                    "%s alias '%s' for %s",
                    outcome.action.value,
                    outcome.alias_name,
                    outcome.app_id,
                )
        stale = engine.purge_stale()
        for entry in stale.removed:
            logger.info("removed stale alias '%s' (%s)", entry.alias_name, entry.app_id)
        logger.info(
            "Sync finished: %d alias(es) added/overwritten, %d stale removed.",
            report.changed,
            len(stale.removed),
        )
    except AliasError as exc:
        logger.error("Sync aborted: %s", exc)


class AliasMonitor:
    """Feed ``dbus-monitor`` lines into a debounced sync."""

    def __init__(
        self,
        sync: Callable[[], object],
        settle_seconds: float = 5.0,
        command: list[str] | None = None,
    ) -> None:
        self.command = command or ["dbus-monitor", "--system", *MATCH_RULES]
        self.debouncer = Debouncer(settle_seconds, sync)

    def handle_line(self, line: str) -> bool:
        if not is_flatpak_activity(line):
            return False
        logger.info("Detected Flatpak activity: %s", line.strip())
        self.debouncer.trigger()
        return True

    def watch(self, lines: Iterable[str]) -> int:
        """Consume *lines* until exhausted.  Returns the number of triggers."""
        return sum(1 for line in lines if self.handle_line(line))

    def run(self) -> None:
        """Spawn ``dbus-monitor`` and watch it until it exits."""
        logger.info("Flatpak alias monitor started: %s", " ".join(self.command))
        try:
            proc = subprocess.Popen(
                self.command,
                stdout=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            raise AliasError(f"Cannot start {self.command[0]}: {exc}") from exc
        try:
            self.watch(proc.stdout or ())
        finally:
            self.debouncer.cancel()
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                logger.warning("%s did not exit; killing it", self.command[0])
                proc.kill()
                proc.wait()
        logger.info("Flatpak alias monitor stopped.")


def attach_log_file(path: Path) -> logging.Handler:
    """Append package log records to *path* with timestamps."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(handler)
    return handler
