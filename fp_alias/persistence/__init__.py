"""Persistence layer – each store owns its file path, data format, and I/O."""

from .aliases import AliasEntry, AliasStore
from .skips import SkipSet

__all__ = [
    "AliasEntry",
    "AliasStore",
    "SkipSet",
]
