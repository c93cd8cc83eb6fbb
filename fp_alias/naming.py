"""Alias name derivation and validation.

Every function in this module is pure: it takes explicit parameters and
returns a value.  The prefix/suffix tables are fixed constants; callers may
pass extra suffixes loaded from preferences.
"""

from __future__ import annotations

import re
from typing import Iterable

from .errors import DerivationFailure, InvalidAliasName

# Reverse-DNS prefixes stripped from the very start of a candidate.
KNOWN_PREFIXES: tuple[str, ...] = (
    "org.",
    "com.",
    "net.",
    "io.",
    "md.",
    "de.",
    "it.",
    "one.",
)

# Trailing tokens that add nothing to a command name.
KNOWN_SUFFIXES: tuple[str, ...] = (
    "-text-editor",
    "-flatpak",
    "-community",
    "-desktop",
    "-gui2",
    "-code",
)

_NON_ALIAS_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-{2,}")
_APP_ID_RE = re.compile(r"^([A-Za-z0-9_-]+\.)+[A-Za-z0-9_-]+$")
_ALIAS_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


def _sanitize(candidate: str) -> str:
    candidate = _NON_ALIAS_CHARS.sub("-", candidate)
    candidate = _HYPHEN_RUNS.sub("-", candidate)
    return candidate.strip("-")


def _strip_prefix(candidate: str) -> str:
    for prefix in KNOWN_PREFIXES:
        if candidate.startswith(prefix):
            return candidate[len(prefix) :]
    return candidate


def _strip_suffix(candidate: str, suffixes: Iterable[str]) -> str:
    """Drop the first matching suffix, but never the whole candidate."""
    for suffix in suffixes:
        suffix = suffix.lower()
        if len(candidate) > len(suffix) and candidate.endswith(suffix):
            return candidate[: -len(suffix)].rstrip("-")
    return candidate


def derive(
    app_id: str,
    display_name: str | None = None,
    extra_suffixes: Iterable[str] = (),
) -> str:
    """Turn *app_id* (and optional *display_name*) into a candidate alias.

    >>> derive("org.mozilla.firefox")
    'firefox'
    >>> derive("org.gnome.TextEditor", "Text Editor")
    'text-editor'

    Returns ``""`` when nothing alphanumeric survives; callers treat that as
    a derivation failure.
    """
    if display_name and display_name != app_id:
        candidate = display_name
    else:
        candidate = app_id.rsplit(".", 1)[-1]

    candidate = candidate.lower()
    candidate = _strip_prefix(candidate)
    candidate = _sanitize(candidate)
    return _strip_suffix(candidate, (*KNOWN_SUFFIXES, *extra_suffixes))


def default_alias_name(
    app_id: str,
    display_name: str | None = None,
    extra_suffixes: Iterable[str] = (),
) -> str:
    """Return a non-empty alias for *app_id*, falling back step by step.

    Order: the display name, the bare ID tail, then the whole ID sanitized.

    Raises:
        DerivationFailure: If every fallback is empty.
    """
    extra = tuple(extra_suffixes)
    name = derive(app_id, display_name, extra)
    if not name and display_name:
        name = derive(app_id, None, extra)
    if not name:
        name = _sanitize(app_id.lower())
    if not name:
        raise DerivationFailure(f"Could not derive an alias name for '{app_id}'")
    return name


def is_valid_app_id(app_id: str) -> bool:
    """Check that *app_id* is a dotted identifier like ``org.gnome.Maps``."""
    return bool(_APP_ID_RE.match(app_id))


def validate_alias_name(name: str) -> str:
    """Return *name* stripped, or raise if it cannot be a shell alias.

    Raises:
        InvalidAliasName: If *name* is empty or holds whitespace, quotes,
            ``=`` or other shell metacharacters.
    """
    stripped = name.strip()
    if not stripped:
        raise InvalidAliasName("Alias name cannot be empty")
    if not _ALIAS_NAME_RE.match(stripped):
        raise InvalidAliasName(f"Invalid alias name: '{stripped}'")
    return stripped
