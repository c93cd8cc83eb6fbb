"""Operator confirmation and interactive prompts.

The engine never talks to a terminal directly.  It receives a
:class:`ConfirmationGate` (yes/no) and, in interactive mode, a
:class:`Prompter` for the richer keep/overwrite/rename choices.
"""

from __future__ import annotations

from typing import Literal, Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .log import logger

ConflictChoice = Literal["overwrite", "rename", "skip"]
AddChoice = Literal["yes", "no", "edit"]


class ConfirmationGate(Protocol):
    def confirm(self, message: str) -> bool: ...


class Prompter(Protocol):
    def keep_existing(self, app_id: str, alias_name: str) -> bool: ...

    def resolve_conflict(
        self, app_id: str, alias_name: str, holder_app_id: str
    ) -> ConflictChoice: ...

    def confirm_add(self, app_id: str, alias_name: str) -> AddChoice: ...

    def ask_name(self, app_id: str, current: str) -> str: ...


class AlwaysYes:
    """Gate for ``--yes`` and the background monitor: never blocks."""

    def confirm(self, message: str) -> bool:
        logger.debug("Auto-confirming: %s", message)
        return True


class TerminalGate:
    """Ask a yes/no question on the terminal, defaulting to No."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def confirm(self, message: str) -> bool:
        return Confirm.ask(escape(message), console=self.console, default=False)


class TerminalPrompter:
    """Interactive choices for ``--interactive-add-all``."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def keep_existing(self, app_id: str, alias_name: str) -> bool:
        self.console.print(
            f"  Note: alias [bold]{escape(alias_name)}[/bold] already exists "
            f"for {escape(app_id)}."
        )
        choice = Prompt.ask(
            escape("  [K]eep existing / [P]rocess (potential overwrite/rename)"),
            choices=["k", "p"],
            case_sensitive=False,
            default="k",
            console=self.console,
        )
        return choice == "k"

    def resolve_conflict(
        self, app_id: str, alias_name: str, holder_app_id: str
    ) -> ConflictChoice:
        self.console.print(
            f"  [yellow]Conflict[/yellow] for alias [bold]{escape(alias_name)}[/bold]: "
            f"it runs {escape(holder_app_id)}, {escape(app_id)} wants it too."
        )
        choice = Prompt.ask(
            escape("  [O]verwrite / [R]ename / [S]kip"),
            choices=["o", "r", "s"],
            case_sensitive=False,
            default="s",
            console=self.console,
        )
        return {"o": "overwrite", "r": "rename", "s": "skip"}[choice]

    def ask_name(self, app_id: str, current: str) -> str:
        return Prompt.ask(
            f"    New alias name for {escape(app_id)} (current: {escape(current)})",
            console=self.console,
            default="",
            show_default=False,
        )

    def confirm_add(self, app_id: str, alias_name: str) -> AddChoice:
        choice = Prompt.ask(
            f"  Add alias [bold]{escape(alias_name)}[/bold] for {escape(app_id)}? "
            + escape("[Y]es / [N]o / [E]dit name"),
            choices=["y", "n", "e"],
            case_sensitive=False,
            default="y",
            console=self.console,
        )
        return {"y": "yes", "n": "no", "e": "edit"}[choice]
