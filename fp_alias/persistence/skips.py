"""Skip-list persistence store."""

from __future__ import annotations

from pathlib import Path

from ..log import logger
from ._base import TextStore

HEADER = (
    "# List of Flatpak App IDs to skip when generating aliases via --add-all.\n"
    "# Add one App ID per line. Lines starting with '#' are comments.\n"
)


class SkipSet(TextStore):
    """App IDs excluded from bulk alias generation.

    On-disk format: ``#`` comment header, then one app ID per line.  Written
    back sorted so repeated saves produce stable diffs.
    """

    def __init__(self, path: Path, ids: set[str] | None = None) -> None:
        super().__init__(path)
        self._ids: set[str] = set(ids or ())

    @classmethod
    def load(cls, path: Path) -> SkipSet:
        store = cls(path)
        text = store.read_text() or ""
        for line in text.splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                store._ids.add(line)
        logger.debug("loaded %d skipped app IDs from %s", len(store._ids), path)
        return store

    def contains(self, app_id: str) -> bool:
        return app_id in self._ids

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> list[str]:
        return sorted(self._ids)

    def add(self, app_id: str) -> bool:
        """Add *app_id*.  Return ``False`` if it was already skipped."""
        if app_id in self._ids:
            return False
        self._ids.add(app_id)
        return True

    def remove(self, app_id: str) -> bool:
        """Remove *app_id*.  Return ``False`` if it was not skipped."""
        if app_id not in self._ids:
            return False
        self._ids.discard(app_id)
        return True

    def serialize(self) -> str:
        return HEADER + "".join(f"{app_id}\n" for app_id in self.ids)

    def persist(self, path: Path | None = None) -> None:
        self.write_text(self.serialize(), path)
