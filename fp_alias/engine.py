"""Reconciliation engine: decides what happens to each app's alias.

The :class:`ReconciliationEngine` owns no files itself.  It is handed an
:class:`~fp_alias.persistence.AliasStore`, a
:class:`~fp_alias.persistence.SkipSet`, an inventory and a confirmation
gate, and persists the alias store after every individual mutation so an
interrupted bulk pass leaves a consistent file behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Collection, Iterable, Sequence

from .confirm import ConfirmationGate, Prompter
from .errors import (
    ConflictError,
    ExternalCollaboratorError,
    InvalidAliasName,
    InvalidAppId,
    NotFoundError,
)
from .inventory import InstalledApp, Inventory
from .log import logger
from .naming import default_alias_name, is_valid_app_id, validate_alias_name
from .persistence import AliasEntry, AliasStore, SkipSet


class Action(str, Enum):
    CREATED = "created"
    KEPT = "kept"
    OVERWRITTEN = "overwritten"
    RENAMED = "renamed"
    SKIPPED = "skipped"
    SKIPPED_CONFLICT = "skipped_conflict"

    @property
    def mutates(self) -> bool:
        return self in (Action.CREATED, Action.OVERWRITTEN, Action.RENAMED)


@dataclass(frozen=True)
class Outcome:
    """What happened to one app during reconciliation."""

    app_id: str
    action: Action
    alias_name: str = ""
    previous: str = ""  # alias name or holder app ID that was replaced


@dataclass
class ReconcileReport:
    outcomes: list[Outcome] = field(default_factory=list)

    def count(self, *actions: Action) -> int:
        return sum(1 for o in self.outcomes if o.action in actions)

    @property
    def changed(self) -> int:
        return sum(1 for o in self.outcomes if o.action.mutates)


@dataclass
class StaleReport:
    removed: list[AliasEntry] = field(default_factory=list)
    kept: list[AliasEntry] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len(self.removed) + len(self.kept)


class ReconciliationEngine:
    """Create, keep, overwrite, rename, skip and purge alias entries.

    Parameters
    ----------
    aliases, skips:
        Loaded stores; the engine mutates and persists them.
    inventory:
        Source of installed apps, metadata and existence checks.
    gate:
        Asked before destructive or ambiguous changes.
    force:
        Overwrite without asking when an app already has a different alias
        or the wanted name belongs to another app.
    prompter:
        Enables interactive mode (keep/overwrite/rename/skip choices).
    """

    def __init__(
        self,
        aliases: AliasStore,
        skips: SkipSet,
        inventory: Inventory,
        gate: ConfirmationGate,
        *,
        force: bool = False,
        prompter: Prompter | None = None,
        extra_suffixes: Iterable[str] = (),
    ) -> None:
        self.aliases = aliases
        self.skips = skips
        self.inventory = inventory
        self.gate = gate
        self.force = force
        self.prompter = prompter
        self.extra_suffixes = tuple(extra_suffixes)

    # ------------------------------------------------------------------
    # Per-app decision
    # ------------------------------------------------------------------

    def reconcile_app(
        self,
        app_id: str,
        display_name: str | None = None,
        desired: str | None = None,
        *,
        honor_skips: bool = True,
    ) -> Outcome:
        """Run the keep/create/overwrite/rename/skip decision for *app_id*."""
        if honor_skips and app_id in self.skips:
            logger.debug("Skipping '%s' as it's in the skip list.", app_id)
            return Outcome(app_id, Action.SKIPPED)

        suggested = default_alias_name(app_id, display_name, self.extra_suffixes)
        existing = self.aliases.find_by_app_id(app_id)

        if existing is not None:
            outcome = self._with_existing(app_id, existing, desired, suggested)
        else:
            outcome = self._without_existing(app_id, desired or suggested, bool(desired))

        if outcome.action.mutates:
            self.aliases.upsert(app_id, outcome.alias_name)
            self.aliases.persist()
            logger.debug("%s alias '%s' for %s", outcome.action.value, outcome.alias_name, app_id)
        return outcome

    def _with_existing(
        self, app_id: str, existing: AliasEntry, desired: str | None, suggested: str
    ) -> Outcome:
        current = existing.alias_name
        if not desired:
            if self.prompter is None or self.prompter.keep_existing(app_id, current):
                logger.debug("Alias '%s' already exists for '%s'.", current, app_id)
                return Outcome(app_id, Action.KEPT, current)
            desired = suggested
        if desired == current:
            return Outcome(app_id, Action.KEPT, current)

        holder = self._holder(desired, app_id)
        if holder and not self.force and self.prompter is not None:
            choice = self.prompter.resolve_conflict(app_id, desired, holder)
            if choice == "overwrite":
                return Outcome(app_id, Action.OVERWRITTEN, desired, previous=current)
            if choice == "rename":
                new_name = self._ask_free_name(self.prompter, app_id, desired)
                if new_name == current:
                    return Outcome(app_id, Action.KEPT, current)
                return Outcome(app_id, Action.RENAMED, new_name, previous=current)
            return Outcome(app_id, Action.SKIPPED_CONFLICT, desired, previous=holder)
        if not self.force:
            message = f"Overwrite alias '{current}' with '{desired}' for '{app_id}'"
            if holder:
                message += f" (replacing '{desired}' for '{holder}')"
            if not self.gate.confirm(message + "?"):
                return Outcome(app_id, Action.SKIPPED, current)
        return Outcome(app_id, Action.OVERWRITTEN, desired, previous=current)

    def _without_existing(self, app_id: str, name: str, explicit: bool) -> Outcome:
        holder = self._holder(name, app_id)
        if holder is None:
            return self._confirm_create(app_id, name, Action.CREATED)

        if self.force:
            return Outcome(app_id, Action.OVERWRITTEN, name, previous=holder)

        if self.prompter is not None:
            choice = self.prompter.resolve_conflict(app_id, name, holder)
            if choice == "overwrite":
                return Outcome(app_id, Action.OVERWRITTEN, name, previous=holder)
            if choice == "rename":
                new_name = self._ask_free_name(self.prompter, app_id, name)
                return self._confirm_create(app_id, new_name, Action.RENAMED)
            return Outcome(app_id, Action.SKIPPED_CONFLICT, name, previous=holder)

        if explicit and self.gate.confirm(
            f"Alias '{name}' runs '{holder}'. Rebind it to '{app_id}'?"
        ):
            return Outcome(app_id, Action.OVERWRITTEN, name, previous=holder)
        logger.debug("Alias '%s' is taken by '%s'; skipping %s.", name, holder, app_id)
        return Outcome(app_id, Action.SKIPPED_CONFLICT, name, previous=holder)

    def _confirm_create(self, app_id: str, name: str, action: Action) -> Outcome:
        """Interactive mode: yes / no / edit the name until yes or no."""
        prompter = self.prompter
        if prompter is None:
            return Outcome(app_id, action, name)
        while True:
            choice = prompter.confirm_add(app_id, name)
            if choice == "yes":
                return Outcome(app_id, action, name)
            if choice == "no":
                return Outcome(app_id, Action.SKIPPED, name)
            name = self._ask_free_name(prompter, app_id, name)
            action = Action.RENAMED

    def _ask_free_name(self, prompter: Prompter, app_id: str, current: str) -> str:
        """Loop until *prompter* supplies a valid name nobody else holds."""
        while True:
            answer = prompter.ask_name(app_id, current)
            try:
                name = validate_alias_name(answer)
            except InvalidAliasName as exc:
                logger.info("%s. Please try again.", exc)
                continue
            holder = self._holder(name, app_id)
            if holder is not None:
                logger.info(
                    "Alias '%s' is already used by '%s'. Please choose another name.",
                    name,
                    holder,
                )
                continue
            return name

    def _holder(self, name: str, app_id: str) -> str | None:
        """Return the app ID bound to *name* if it is not *app_id*."""
        entry = self.aliases.find_by_alias_name(name)
        if entry is not None and entry.app_id != app_id:
            return entry.app_id
        return None

    # ------------------------------------------------------------------
    # Bulk and single operations
    # ------------------------------------------------------------------

    def reconcile_all(self, installed: Sequence[InstalledApp] | None = None) -> ReconcileReport:
        """Reconcile every installed app, in inventory order.

        Raises:
            ExternalCollaboratorError: If the inventory fails; ``processed``
                lists the outcomes completed before the failure.
        """
        report = ReconcileReport()
        apps = list(self.inventory.list_installed() if installed is None else installed)
        for app in apps:
            try:
                if app.app_id in self.skips:
                    report.outcomes.append(Outcome(app.app_id, Action.SKIPPED))
                    logger.debug("Skipping '%s' as it's in the skip list.", app.app_id)
                    continue
                display_name = self.inventory.get_metadata(app.app_id) or app.display_name
                report.outcomes.append(self.reconcile_app(app.app_id, display_name))
            except ExternalCollaboratorError as exc:
                raise ExternalCollaboratorError(
                    f"Aborted at '{app.app_id}': {exc}", report.outcomes
                ) from exc
        return report

    def add_single(self, app_id: str, alias_name: str | None = None) -> Outcome:
        """Add or update the alias of one installed app.

        Raises:
            NotFoundError: If *app_id* is not installed.
            InvalidAliasName: If *alias_name* is not a usable alias.
            InvalidAppId: If *app_id* is not a plain dotted identifier.
        """
        if not is_valid_app_id(app_id):
            raise InvalidAppId(
                f"'{app_id}' is not a Flatpak App ID (expected e.g. org.gnome.Maps)."
            )
        desired = validate_alias_name(alias_name) if alias_name else None
        if not self.inventory.exists(app_id):
            raise NotFoundError(f"Flatpak App ID '{app_id}' not found.")
        display_name = self.inventory.get_metadata(app_id)
        return self.reconcile_app(app_id, display_name, desired, honor_skips=False)

    def resolve(self, target: str) -> AliasEntry:
        """Find the entry for *target*, trying it as an alias name first."""
        entry = self.aliases.find_by_alias_name(target) or self.aliases.find_by_app_id(target)
        if entry is None:
            raise NotFoundError(
                f"No alias found for '{target}' (neither as alias name nor App ID)."
            )
        return entry

    def remove(self, target: str) -> list[AliasEntry]:
        """Remove the alias(es) for *target*.  Returns ``[]`` if declined."""
        entry = self.resolve(target)
        key = entry.alias_name if entry.alias_name == target else entry.app_id
        if not self.gate.confirm(
            f"Are you sure you want to remove alias '{entry.alias_name}' "
            f"(for App ID: '{entry.app_id}')?"
        ):
            return []
        removed = self.aliases.remove(key)
        self.aliases.persist()
        return removed

    def rename(self, old_name: str, new_name: str) -> AliasEntry | None:
        """Rename alias *old_name* to *new_name*.  ``None`` if declined.

        Raises:
            NotFoundError: If *old_name* is not an alias.
            ConflictError: If *new_name* runs a different app.
        """
        new_name = validate_alias_name(new_name)
        entry = self.aliases.find_by_alias_name(old_name)
        if entry is None:
            raise NotFoundError(f"No alias named '{old_name}'.")
        if new_name == old_name:
            return entry
        holder = self._holder(new_name, entry.app_id)
        if holder is not None:
            raise ConflictError(f"Alias '{new_name}' is already used by '{holder}'.")
        if not self.gate.confirm(
            f"Rename alias '{old_name}' to '{new_name}' for '{entry.app_id}'?"
        ):
            return None
        self.aliases.remove_entry(entry)
        renamed = self.aliases.upsert(entry.app_id, new_name)
        self.aliases.persist()
        return renamed

    # ------------------------------------------------------------------
    # Stale entries and purge
    # ------------------------------------------------------------------

    def find_stale(self, installed: Collection[str] | None = None) -> list[AliasEntry]:
        """Return entries whose app is no longer installed, in file order."""
        if installed is not None:
            present = set(installed)
            return [e for e in self.aliases.entries if e.app_id not in present]
        checked: dict[str, bool] = {}
        stale: list[AliasEntry] = []
        for entry in self.aliases.entries:
            if entry.app_id not in checked:
                checked[entry.app_id] = self.inventory.exists(entry.app_id)
            if not checked[entry.app_id]:
                stale.append(entry)
        return stale

    def purge_stale(self, installed: Collection[str] | None = None) -> StaleReport:
        """Ask about each stale entry independently and remove the confirmed ones."""
        report = StaleReport()
        for entry in self.find_stale(installed):
            if self.gate.confirm(f"Remove stale alias '{entry.alias_name}' ({entry.app_id})?"):
                self.aliases.remove_entry(entry)
                self.aliases.persist()
                report.removed.append(entry)
            else:
                report.kept.append(entry)
        return report

    def purge_all(self) -> int | None:
        """Remove every alias entry after one confirmation.  ``None`` if declined."""
        if not self.gate.confirm(
            "Are you sure you want to remove ALL Flatpak aliases? This cannot be undone."
        ):
            return None
        removed = self.aliases.purge()
        self.aliases.persist()
        return removed

    # ------------------------------------------------------------------
    # Skip list and listings
    # ------------------------------------------------------------------

    def skip(self, app_id: str) -> bool:
        changed = self.skips.add(app_id)
        if changed:
            self.skips.persist()
        return changed

    def unskip(self, app_id: str) -> bool:
        changed = self.skips.remove(app_id)
        if changed:
            self.skips.persist()
        return changed

    def list_skipped(self) -> list[str]:
        return self.skips.ids

    def list_all(self) -> list[AliasEntry]:
        return sorted(self.aliases.entries, key=lambda e: (e.alias_name, e.app_id))

    def save_snapshot(self, path: Path | None = None) -> Path:
        return self.aliases.snapshot(path)


def open_engine(
    alias_file: Path,
    skip_file: Path,
    inventory: Inventory,
    gate: ConfirmationGate,
    **kwargs,
) -> ReconciliationEngine:
    """Load both stores from disk and wrap them in an engine."""
    return ReconciliationEngine(
        AliasStore.load(alias_file),
        SkipSet.load(skip_file),
        inventory,
        gate,
        **kwargs,
    )
