"""Shared test fixtures for the fp_alias test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from fp_alias.engine import ReconciliationEngine
from fp_alias.persistence import AliasStore, SkipSet
from tests.fakes import FakeInventory, ScriptedGate


@pytest.fixture
def alias_path(tmp_path: Path) -> Path:
    return tmp_path / ".bashrc.d" / "flatpak-aliases"


@pytest.fixture
def skip_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "skipped-aliases"


@pytest.fixture
def make_engine(alias_path: Path, skip_path: Path):
    """Build an engine over the tmp alias/skip files.

    ``lines`` seeds the alias file; ``skipped`` seeds the skip list.
    """

    def _make(
        lines: Iterable[str] = (),
        *,
        inventory: FakeInventory | None = None,
        gate: ScriptedGate | None = None,
        skipped: Iterable[str] = (),
        **kwargs,
    ) -> ReconciliationEngine:
        lines = list(lines)
        if lines:
            alias_path.parent.mkdir(parents=True, exist_ok=True)
            alias_path.write_text("\n".join(lines) + "\n")
        skips = SkipSet.load(skip_path)
        for app_id in skipped:
            skips.add(app_id)
        return ReconciliationEngine(
            AliasStore.load(alias_path),
            skips,
            inventory or FakeInventory(),
            gate or ScriptedGate(default=True),
            **kwargs,
        )

    return _make
