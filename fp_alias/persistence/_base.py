"""Base text-file persistence with atomic replace."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ..errors import StoreIOError
from ..log import logger


class TextStore:
    """A plain-text file owned by one store.

    Reads fail loudly with :class:`StoreIOError`.  Writes go to a temporary
    file in the target directory which is then swapped into place with
    ``os.replace``, so readers only ever see the old or the new content.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # -- core I/O -------------------------------------------------------------

    def read_text(self) -> str | None:
        """Return the file content untranslated, or ``None`` if it does not exist."""
        try:
            with self.path.open(encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreIOError(f"Cannot read {self.path}: {exc}") from exc

    def write_text(self, text: str, path: Path | None = None) -> None:
        """Atomically replace *path* (default: own path) with *text*."""
        target = Path(path) if path is not None else self.path
        temp_file = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                newline="",
                dir=str(target.parent),
                prefix=f".{target.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                temp_file = f.name
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            if target.exists():
                os.chmod(temp_file, target.stat().st_mode & 0o7777)
            os.replace(temp_file, target)
            temp_file = None
        except OSError as exc:
            raise StoreIOError(f"Cannot write {target}: {exc}") from exc
        finally:
            if temp_file and os.path.exists(temp_file):
                try:
                    os.remove(temp_file)
                except OSError:
                    logger.debug("failed to clean up %s", temp_file, exc_info=True)
        logger.debug("wrote %d bytes to %s", len(text), target)

    def ensure_exists(self) -> None:
        """Create the file (and parent dirs) empty if it is missing."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as exc:
            raise StoreIOError(f"Cannot create {self.path}: {exc}") from exc
