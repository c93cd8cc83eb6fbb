"""Alias-file persistence store.

On-disk format: one shell directive per line.  Lines of the exact form
``alias <name>="flatpak run <app_id>"`` are entries; every other line is a
passenger kept verbatim and in order across rewrites.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..errors import StoreIOError
from ..log import logger
from ..platform import default_snapshot_path
from ._base import TextStore

ENTRY_RE = re.compile(r'^alias ([^\s="\']+)="flatpak run ([^\s"/]+)"$')


@dataclass(frozen=True)
class AliasEntry:
    """One ``alias name="flatpak run app_id"`` binding."""

    alias_name: str
    app_id: str

    @property
    def command(self) -> str:
        return f"flatpak run {self.app_id}"

    def to_line(self) -> str:
        return f'alias {self.alias_name}="{self.command}"'

    @classmethod
    def parse(cls, line: str) -> AliasEntry | None:
        """Return the entry for *line*, or ``None`` if it is a passenger."""
        m = ENTRY_RE.match(line)
        if m is None:
            return None
        return cls(alias_name=m.group(1), app_id=m.group(2))


Line = Union[AliasEntry, str]


def _split_lines(text: str) -> list[str]:
    """Split on newlines only; carriage returns and form feeds stay in the line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


class AliasStore(TextStore):
    """In-memory model of the alias file: an ordered list of tagged lines."""

    def __init__(self, path: Path, lines: list[Line] | None = None) -> None:
        super().__init__(path)
        self._lines: list[Line] = list(lines or [])

    @classmethod
    def load(cls, path: Path) -> AliasStore:
        """Parse *path*; a missing file is created empty."""
        store = cls(path)
        text = store.read_text()
        if text is None:
            store.ensure_exists()
            text = ""
        store._lines = [AliasEntry.parse(line) or line for line in _split_lines(text)]
        logger.debug("loaded %d alias entries from %s", len(store.entries), path)
        return store

    # -- queries --------------------------------------------------------------

    @property
    def entries(self) -> list[AliasEntry]:
        return [line for line in self._lines if isinstance(line, AliasEntry)]

    @property
    def passengers(self) -> list[str]:
        return [line for line in self._lines if isinstance(line, str)]

    @property
    def app_ids(self) -> list[str]:
        """Distinct app IDs in file order."""
        return list(dict.fromkeys(e.app_id for e in self.entries))

    def find_by_app_id(self, app_id: str) -> AliasEntry | None:
        for entry in self.entries:
            if entry.app_id == app_id:
                return entry
        return None

    def find_by_alias_name(self, name: str) -> AliasEntry | None:
        for entry in self.entries:
            if entry.alias_name == name:
                return entry
        return None

    def __len__(self) -> int:
        return len(self.entries)

    # -- mutation -------------------------------------------------------------

    def upsert(self, app_id: str, alias_name: str) -> AliasEntry:
        """Bind *alias_name* to *app_id*, dropping every other binding of either."""
        self._lines = [
            line
            for line in self._lines
            if not (
                isinstance(line, AliasEntry)
                and (line.app_id == app_id or line.alias_name == alias_name)
            )
        ]
        entry = AliasEntry(alias_name=alias_name, app_id=app_id)
        self._lines.append(entry)
        return entry

    def remove(self, target: str) -> list[AliasEntry]:
        """Remove every entry whose app ID or alias name equals *target*."""
        return self._drop(lambda e: target in (e.app_id, e.alias_name))

    def remove_entry(self, entry: AliasEntry) -> list[AliasEntry]:
        """Remove the one line holding *entry*, as returned by a lookup.

        Matching is by identity, so a hand-written duplicate of the same
        binding on another line stays.
        """
        return self._drop(lambda e: e is entry)

    def purge(self) -> int:
        """Remove every entry line, keeping all passengers.  Returns the count."""
        return len(self._drop(lambda e: True))

    def _drop(self, predicate) -> list[AliasEntry]:
        removed: list[AliasEntry] = []
        kept: list[Line] = []
        for line in self._lines:
            if isinstance(line, AliasEntry) and predicate(line):
                removed.append(line)
            else:
                kept.append(line)
        self._lines = kept
        return removed

    # -- output ---------------------------------------------------------------

    def serialize(self) -> str:
        text = "\n".join(
            line.to_line() if isinstance(line, AliasEntry) else line
            for line in self._lines
        )
        return f"{text}\n" if self._lines else ""

    def persist(self, path: Path | None = None) -> None:
        self.write_text(self.serialize(), path)

    def snapshot(self, target: Path | None = None) -> Path:
        """Copy the alias file as it is on disk to *target*."""
        target = Path(target) if target else default_snapshot_path()
        if not self.path.exists():
            raise StoreIOError(f"Alias file not found: {self.path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, target)
        except OSError as exc:
            raise StoreIOError(f"Cannot save alias list to {target}: {exc}") from exc
        return target
