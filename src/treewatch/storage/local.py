"""Local filesystem implementation of the Storage capability."""

from __future__ import annotations

import os
import stat as stat_module

from treewatch.storage.poller import DEFAULT_POLL_INTERVAL, PollSubscription, StatPoller
from treewatch.storage.protocols import ChangeCallback, StatType


class LocalStorage:
    """Storage backed by ``os`` calls and a StatPoller.

    Type tests use ``lstat``: a symlink is neither a file nor a directory,
    so the watcher never follows links and cannot loop on them.
    """

    def __init__(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poller: StatPoller | None = None,
    ) -> None:
        self._poller = poller if poller is not None else StatPoller(poll_interval)

    @property
    def poller(self) -> StatPoller:
        return self._poller

    @property
    def poll_interval(self) -> float:
        return self._poller.poll_interval

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def stat_type(self, path: str) -> StatType:
        mode = os.lstat(path).st_mode
        return StatType(
            is_file=stat_module.S_ISREG(mode),
            is_directory=stat_module.S_ISDIR(mode),
        )

    def list_children(self, path: str) -> list[str]:
        return os.listdir(path)

    def subscribe(self, path: str, callback: ChangeCallback) -> PollSubscription:
        return self._poller.subscribe(path, callback)

    def start(self) -> None:
        """Start change polling on the running event loop."""
        self._poller.start()

    def close(self) -> None:
        """Cancel every subscription made through this storage."""
        self._poller.close()
