"""Exception hierarchy for alias operations.

Validation errors (:class:`NotFoundError`, :class:`ConflictError`,
:class:`InvalidAliasName`, :class:`InvalidAppId`) end a single operation.
:class:`StoreIOError` and :class:`ExternalCollaboratorError` abort the whole
command.
"""

from __future__ import annotations

from typing import Any, Sequence


class AliasError(Exception):
    """Base class for every error raised by fp_alias."""


class NotFoundError(AliasError):
    """An alias name or app ID has no corresponding entry (or app)."""


class ConflictError(AliasError):
    """An alias name is already bound to a different app ID."""


class InvalidAliasName(AliasError):
    """An operator-supplied alias name cannot be written as a shell alias."""


class InvalidAppId(AliasError):
    """An app ID is not a plain dotted identifier the alias file can hold."""


class DerivationFailure(AliasError):
    """No non-empty alias name could be derived for an app ID."""


class StoreIOError(AliasError):
    """A persisted file could not be read or written."""


class ExternalCollaboratorError(AliasError):
    """The Flatpak inventory failed or timed out.

    ``processed`` carries the per-app outcomes completed before the abort.
    """

    def __init__(self, message: str, processed: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.processed = list(processed)
