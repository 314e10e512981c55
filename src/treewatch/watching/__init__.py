"""Recursive change watching.

``watch(root)`` subscribes to every file under ``root`` and returns a
WatchSession, an async iterator of the paths that change. Excluded subtrees
are pruned, newly created files are picked up by throttled re-scans, and
``close()`` cancels every subscription the session made.
"""

from treewatch.watching.registry import SubscriptionRegistry
from treewatch.watching.watcher import (
    ChangeWatcher,
    WatchSession,
    watch,
)

__all__ = [
    "ChangeWatcher",
    "SubscriptionRegistry",
    "WatchSession",
    "watch",
]
