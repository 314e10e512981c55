"""Shared test utilities for treewatch tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable

from treewatch.pathutil import dirname, resolve
from treewatch.storage.protocols import ChangeCallback, StatType


class FakeSubscription:
    """Subscription handed out by FakeStorage."""

    def __init__(self, storage: FakeStorage, path: str, callback: ChangeCallback) -> None:
        self._storage = storage
        self._path = path
        self.callback = callback
        self.active = True

    @property
    def path(self) -> str:
        return self._path

    def cancel(self) -> None:
        self.active = False


class FakeStorage:
    """In-memory Storage whose change notifications are fired by hand.

    Paths are absolute strings. Adding a file implicitly creates its parent
    directories. ``fail`` maps a path to the OSError that ``stat_type`` or
    ``list_children`` should raise for it.
    """

    poll_interval = 0.01

    def __init__(self) -> None:
        self.files: set[str] = set()
        self.dirs: set[str] = set()
        self.fail: dict[str, OSError] = {}
        self.subscriptions: list[FakeSubscription] = []
        self.listed: list[str] = []

    def add_dir(self, path: str) -> str:
        path = resolve(path)
        while path not in self.dirs:
            self.dirs.add(path)
            parent = dirname(path)
            if parent == path:
                break
            path = parent
        return path

    def add_file(self, path: str) -> str:
        path = resolve(path)
        self.add_dir(dirname(path))
        self.files.add(path)
        return path

    def remove(self, path: str) -> None:
        path = resolve(path)
        self.files.discard(path)
        prefix = path + os.sep
        self.files = {f for f in self.files if not f.startswith(prefix)}
        self.dirs = {d for d in self.dirs if d != path and not d.startswith(prefix)}

    # Storage protocol

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    def stat_type(self, path: str) -> StatType:
        if path in self.fail:
            raise self.fail[path]
        if not self.exists(path):
            raise FileNotFoundError(path)
        return StatType(is_file=path in self.files, is_directory=path in self.dirs)

    def list_children(self, path: str) -> list[str]:
        if path in self.fail:
            raise self.fail[path]
        if path not in self.dirs:
            raise NotADirectoryError(path)
        self.listed.append(path)
        names = set()
        for entry in self.files | self.dirs:
            if entry != path and dirname(entry) == path:
                names.add(os.path.basename(entry))
        return sorted(names)

    def subscribe(self, path: str, callback: ChangeCallback) -> FakeSubscription:
        subscription = FakeSubscription(self, path, callback)
        self.subscriptions.append(subscription)
        return subscription

    # Test helpers

    def active(self, path: str | None = None) -> list[FakeSubscription]:
        return [
            s for s in self.subscriptions if s.active and (path is None or s.path == path)
        ]

    def subscribe_count(self, path: str) -> int:
        return sum(1 for s in self.subscriptions if s.path == path)

    def fire(
        self,
        path: str,
        new_stat: os.stat_result | None = None,
        old_stat: os.stat_result | None = None,
    ) -> int:
        """Deliver one notification to every active subscriber of ``path``."""
        targets = self.active(path)
        for subscription in targets:
            subscription.callback(path, new_stat, old_stat)
        return len(targets)


def make_stat(mode: int) -> os.stat_result:
    """A stat result with only ``st_mode`` filled in."""
    return os.stat_result((mode, 0, 0, 1, 0, 0, 0, 0, 0, 0))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it returns True or ``timeout`` expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
