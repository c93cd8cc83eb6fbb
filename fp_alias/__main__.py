"""Entry point for the add-fp-alias CLI."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .confirm import AlwaysYes, TerminalGate, TerminalPrompter
from .engine import Action, Outcome, ReconciliationEngine, open_engine
from .errors import AliasError, ExternalCollaboratorError
from .inventory import FlatpakInventory
from .log import logger
from .platform import find_tool
from .preferences import PREFS_PATH, Preferences, load_preferences

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

_MUTATING_FLAGS = (
    "add_all",
    "interactive_add_all",
    "add_alias",
    "rename_alias",
    "remove_alias",
    "check_stale_aliases",
    "purge_all",
)


def _source_hint(alias_file: Path) -> None:
    console.print(
        "Remember to source your shell configuration "
        f"(e.g. 'source {escape(str(alias_file))}') to make the changes active."
    )


def _describe(outcome: Outcome) -> str | None:
    """One operator-facing line for *outcome*, or ``None`` if nothing to say."""
    name = escape(outcome.alias_name)
    app = escape(outcome.app_id)
    if outcome.action is Action.CREATED:
        return f"[green]->[/green] Added alias '{name}' for '{app}'."
    if outcome.action is Action.RENAMED:
        return f"[green]->[/green] Added alias '{name}' for '{app}' (renamed)."
    if outcome.action is Action.OVERWRITTEN:
        return (
            f"[green]->[/green] Overwrote alias '{name}' for '{app}' "
            f"(was: {escape(outcome.previous)})."
        )
    if outcome.action is Action.SKIPPED_CONFLICT:
        return (
            f"[yellow]Skipping[/yellow] '{app}': alias '{name}' is already used by "
            f"'{escape(outcome.previous)}'."
        )
    if outcome.action is Action.SKIPPED and outcome.alias_name:
        return f"Skipping alias update for '{app}'."
    return None


def _print_outcomes(outcomes: list[Outcome]) -> int:
    changed = 0
    for outcome in outcomes:
        line = _describe(outcome)
        if line:
            console.print(line)
        if outcome.action.mutates:
            changed += 1
    return changed


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _op_add_all(engine: ReconciliationEngine, interactive: bool) -> int:
    mode = "interactive" if interactive else "non-interactive"
    console.print(f"Adding aliases for all installed Flatpak applications ({mode})...")
    try:
        report = engine.reconcile_all()
    except ExternalCollaboratorError as exc:
        changed = _print_outcomes(exc.processed)
        console.print(
            f"Processed {len(exc.processed)} application(s) "
            f"({changed} added/overwritten) before the failure."
        )
        raise
    changed = _print_outcomes(report.outcomes)
    console.print(
        f"{mode.capitalize()} Flatpak alias process complete. "
        f"Total aliases added/overwritten: {changed}."
    )
    return changed


def _op_add_single(engine: ReconciliationEngine, app_id: str, alias: str | None) -> int:
    outcome = engine.add_single(app_id, alias)
    line = _describe(outcome)
    if line:
        console.print(line)
    if outcome.action is Action.KEPT:
        console.print(
            f"Alias '{escape(outcome.alias_name)}' already exists for '{escape(app_id)}'."
        )
    return 1 if outcome.action.mutates else 0


def _op_rename(engine: ReconciliationEngine, old: str, new: str) -> int:
    entry = engine.rename(old, new)
    if entry is None:
        console.print(f"Rename cancelled for '{escape(old)}'.")
        return 0
    if entry.alias_name == old:
        console.print(f"Alias '{escape(old)}' already has that name.")
        return 0
    console.print(
        f"[green]->[/green] Renamed alias '{escape(old)}' to '{escape(entry.alias_name)}' "
        f"for '{escape(entry.app_id)}'."
    )
    return 1


def _op_remove(engine: ReconciliationEngine, target: str) -> int:
    removed = engine.remove(target)
    if not removed:
        console.print(f"Removal cancelled for '{escape(target)}'.")
        return 0
    for entry in removed:
        console.print(
            f"[green]->[/green] Removed alias '{escape(entry.alias_name)}' "
            f"for '{escape(entry.app_id)}'."
        )
    return len(removed)


def _op_check_stale(engine: ReconciliationEngine) -> int:
    console.print("Checking for stale Flatpak aliases...")
    report = engine.purge_stale()
    for entry in report.removed:
        console.print(
            f"[green]-->[/green] Removed stale alias '{escape(entry.alias_name)}' "
            f"({escape(entry.app_id)})."
        )
    for entry in report.kept:
        console.print(
            f"--> Skipped removal of stale alias '{escape(entry.alias_name)}' "
            f"({escape(entry.app_id)})."
        )
    if report.found == 0:
        console.print("No stale Flatpak aliases found.")
    else:
        console.print(
            f"Stale alias check complete. Total stale aliases found: {report.found}."
        )
    return len(report.removed)


def _op_purge_all(engine: ReconciliationEngine) -> int:
    console.print(
        f"Purging all Flatpak aliases from '{escape(str(engine.aliases.path))}'..."
    )
    removed = engine.purge_all()
    if removed is None:
        console.print("Purge cancelled.")
        return 0
    console.print(f"[green]->[/green] Removed {removed} Flatpak aliases.")
    return removed


def _op_skip(engine: ReconciliationEngine, app_id: str) -> None:
    if engine.skip(app_id):
        console.print(f"[green]->[/green] Added '{escape(app_id)}' to the skip list.")
    else:
        console.print(f"'{escape(app_id)}' is already in the skip list.")


def _op_unskip(engine: ReconciliationEngine, app_id: str) -> None:
    if engine.unskip(app_id):
        console.print(f"[green]->[/green] Removed '{escape(app_id)}' from the skip list.")
    else:
        console.print(f"'{escape(app_id)}' is not in the skip list.")


def _op_list_skipped(engine: ReconciliationEngine) -> None:
    skipped = engine.list_skipped()
    if not skipped:
        console.print("No Flatpak App IDs are currently skipped.")
        return
    console.print("Currently skipped Flatpak App IDs:")
    for app_id in skipped:
        console.print(f"- {escape(app_id)}")


def _op_list_all(engine: ReconciliationEngine) -> None:
    entries = engine.list_all()
    if not entries:
        console.print(
            f"  (No Flatpak aliases found in '{escape(str(engine.aliases.path))}'.)"
        )
        return
    table = Table(title="Existing Flatpak Aliases", title_justify="left")
    table.add_column("Alias", style="bold")
    table.add_column("Command")
    for entry in entries:
        table.add_row(escape(entry.alias_name), escape(entry.command))
    console.print(table)


# ---------------------------------------------------------------------------
# Environment health check
# ---------------------------------------------------------------------------


def _run_doctor(prefs: Preferences, config_path: Path) -> None:
    """Print a short environment report and exit."""

    print("add-fp-alias -- Environment Doctor\n")
    print(f"  Python:   {sys.executable} ({sys.version.split()[0]})")
    print(f"  Config:   {config_path}")

    print()
    all_ok = True
    for tool, required in (("flatpak", True), ("dbus-monitor", False)):
        path = find_tool(tool)
        if path:
            print(f"  [ok] {tool:20s}  {path}")
        elif required:
            print(f"  [!!] {tool:20s}  NOT FOUND")
            all_ok = False
        else:
            print(f"  [--] {tool:20s}  not found (needed for --monitor)")

    print()
    for label, path in (
        ("Alias file", prefs.paths.alias_file),
        ("Skip file", prefs.paths.skip_file),
        ("Monitor log", prefs.paths.monitor_log),
    ):
        state = "exists" if path.exists() else "not created yet"
        print(f"  [--] {label:20s}  {path} ({state})")

    print()
    print("  All checks passed." if all_ok else "  Some checks failed.")
    sys.exit(0 if all_ok else 1)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="add-fp-alias",
        description=(
            "Manage shell aliases for Flatpak applications, so installed apps "
            "run without typing 'flatpak run <app.id>'."
        ),
    )
    parser.add_argument(
        "--version", action="version", version=f"add-fp-alias {__version__}"
    )

    ops = parser.add_argument_group("operations")
    ops.add_argument(
        "--add-all",
        action="store_true",
        help="Add aliases for all installed Flatpak apps (existing ones are kept)",
    )
    ops.add_argument(
        "--interactive-add-all",
        action="store_true",
        help="Like --add-all, but ask about every app and every conflict",
    )
    ops.add_argument(
        "--add-alias",
        nargs="+",
        metavar=("APP_ID", "ALIAS"),
        help="Add or update the alias of one app (alias name optional)",
    )
    ops.add_argument(
        "--rename-alias",
        nargs=2,
        metavar=("OLD", "NEW"),
        help="Rename an existing alias",
    )
    ops.add_argument(
        "--remove-alias",
        metavar="TARGET",
        help="Remove an alias by alias name or App ID",
    )
    ops.add_argument(
        "--check-stale-aliases",
        action="store_true",
        help="Find and remove aliases for uninstalled apps",
    )
    ops.add_argument(
        "--purge-all",
        action="store_true",
        help="Remove ALL Flatpak aliases (other lines in the file are kept)",
    )
    ops.add_argument("--skip-alias", metavar="APP_ID", help="Exclude an app from --add-all")
    ops.add_argument("--unskip-alias", metavar="APP_ID", help="Undo --skip-alias")
    ops.add_argument("--list-skipped", action="store_true", help="List skipped App IDs")
    ops.add_argument("--list-all", action="store_true", help="List all Flatpak aliases")
    ops.add_argument(
        "--save-alias-list",
        nargs="?",
        const="",
        metavar="PATH",
        help="Copy the alias file to PATH (default: timestamped file in ~)",
    )
    ops.add_argument(
        "--monitor",
        action="store_true",
        help="Watch the system bus and resync aliases after installs/uninstalls",
    )
    ops.add_argument(
        "--doctor", action="store_true", help="Check environment health and exit"
    )

    mods = parser.add_argument_group("modifiers")
    mods.add_argument(
        "--force", action="store_true", help="Overwrite without asking"
    )
    mods.add_argument(
        "--yes", "-y", action="store_true", help="Answer yes to every confirmation"
    )
    mods.add_argument(
        "--verbose", "-v", action="store_true", help="Show detailed progress"
    )
    mods.add_argument("--config", type=Path, help=f"Preferences file (default: {PREFS_PATH})")
    mods.add_argument("--alias-file", type=Path, help="Override the alias file")
    mods.add_argument("--skip-file", type=Path, help="Override the skip-list file")
    return parser


def _setup_logging(verbose: bool) -> None:
    for existing in list(logger.handlers):
        if isinstance(existing, RichHandler):
            logger.removeHandler(existing)
    handler = RichHandler(
        console=err_console,
        show_time=False,
        show_path=False,
        show_level=verbose,
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def main(argv: list[str] | None = None) -> None:
    """Run add-fp-alias."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.add_alias is not None and len(args.add_alias) > 2:
        parser.error("--add-alias takes an App ID and an optional alias name")

    _setup_logging(args.verbose)

    config_path = args.config or PREFS_PATH
    prefs = load_preferences(config_path)
    if args.alias_file:
        prefs.paths.alias_file = args.alias_file.expanduser()
    if args.skip_file:
        prefs.paths.skip_file = args.skip_file.expanduser()

    if args.doctor:
        _run_doctor(prefs, config_path)
        return

    if args.monitor:
        from .monitor import AliasMonitor, attach_log_file, sync_aliases

        attach_log_file(prefs.paths.monitor_log)
        monitor = AliasMonitor(
            lambda: sync_aliases(prefs), settle_seconds=prefs.settle_seconds
        )
        try:
            monitor.run()
        except KeyboardInterrupt:
            pass
        except AliasError as exc:
            err_console.print(f"Error: {escape(str(exc))}")
            sys.exit(1)
        return

    query_requested = (
        args.skip_alias
        or args.unskip_alias
        or args.list_skipped
        or args.list_all
        or args.save_alias_list is not None
    )
    if not query_requested and not any(
        getattr(args, flag) not in (None, False) for flag in _MUTATING_FLAGS
    ):
        parser.print_help()
        sys.exit(1)

    gate = AlwaysYes() if args.yes else TerminalGate(console)
    try:
        engine = open_engine(
            prefs.paths.alias_file,
            prefs.paths.skip_file,
            FlatpakInventory(timeout=prefs.flatpak_timeout),
            gate,
            force=args.force,
            extra_suffixes=prefs.extra_suffixes,
        )

        # Query-style operations run on their own and exit.
        if query_requested:
            if args.skip_alias:
                _op_skip(engine, args.skip_alias)
            elif args.unskip_alias:
                _op_unskip(engine, args.unskip_alias)
            elif args.list_skipped:
                _op_list_skipped(engine)
            elif args.list_all:
                _op_list_all(engine)
            else:
                target = engine.save_snapshot(
                    Path(args.save_alias_list).expanduser() if args.save_alias_list else None
                )
                console.print(f"[green]->[/green] Current aliases saved to '{escape(str(target))}'.")
            return

        changed = 0
        if args.add_all:
            changed += _op_add_all(engine, interactive=False)
        if args.interactive_add_all:
            engine.prompter = TerminalPrompter(console)
            changed += _op_add_all(engine, interactive=True)
            engine.prompter = None
        if args.add_alias:
            app_id, *rest = args.add_alias
            changed += _op_add_single(engine, app_id, rest[0] if rest else None)
        if args.rename_alias:
            changed += _op_rename(engine, *args.rename_alias)
        if args.remove_alias:
            changed += _op_remove(engine, args.remove_alias)
        if args.check_stale_aliases:
            changed += _op_check_stale(engine)
        if args.purge_all:
            changed += _op_purge_all(engine)
    except AliasError as exc:
        logger.debug("operation failed", exc_info=True)
        err_console.print(f"Error: {escape(str(exc))}")
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("Interrupted.")
        sys.exit(130)

    if changed:
        _source_hint(prefs.paths.alias_file)


if __name__ == "__main__":
    main()
