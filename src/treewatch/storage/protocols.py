"""Storage capability consumed by the change watcher.

The watcher only needs four things from a backend: an existence test, a
type test, a directory listing and a per-path change subscription. Any
object with these methods can stand in for the local filesystem.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

# (path, new_stat, old_stat); a stat of None means the path did not exist
ChangeCallback = Callable[[str, os.stat_result | None, os.stat_result | None], None]


@dataclass(frozen=True, slots=True)
class StatType:
    """Result of a type test on a path."""

    is_file: bool
    is_directory: bool


@runtime_checkable
class Subscription(Protocol):
    """A live registration of one callback against one path."""

    @property
    def path(self) -> str: ...

    def cancel(self) -> None:
        """Stop delivering notifications. Safe to call more than once."""
        ...


@runtime_checkable
class Storage(Protocol):
    """Filesystem operations the watcher depends on.

    ``stat_type`` and ``list_children`` raise ``OSError`` when the path is
    missing or unreadable; the watcher treats that as "not watchable right
    now" and moves on.
    """

    def exists(self, path: str) -> bool: ...

    def stat_type(self, path: str) -> StatType: ...

    def list_children(self, path: str) -> list[str]: ...

    def subscribe(self, path: str, callback: ChangeCallback) -> Subscription: ...
