"""Storage backends and filesystem helpers.

The change watcher talks to storage only through the ``Storage`` protocol.
``LocalStorage`` is the default backend: ``os`` for type tests and
listings, and a ``StatPoller`` for per-file change notifications.
"""

from treewatch.storage.helpers import (
    ensure_dir,
    file_id,
    is_directory,
    is_file,
    move,
)
from treewatch.storage.local import LocalStorage
from treewatch.storage.poller import (
    PollSubscription,
    StatChange,
    StatPoller,
    WatchedPath,
)
from treewatch.storage.protocols import (
    ChangeCallback,
    StatType,
    Storage,
    Subscription,
)

__all__ = [
    # Protocols
    "Storage",
    "Subscription",
    "StatType",
    "ChangeCallback",
    # Local backend
    "LocalStorage",
    "StatPoller",
    "StatChange",
    "PollSubscription",
    "WatchedPath",
    # Helpers
    "is_file",
    "is_directory",
    "file_id",
    "ensure_dir",
    "move",
]
