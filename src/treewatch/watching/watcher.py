"""Recursive, filtered, throttled change stream over a directory tree.

A watch session walks the tree under its root, subscribes to every regular
file it finds, and funnels all of their change notifications into one
channel. Consumers pull changed paths from the session with ``async for``.
Each pull waits for the throttle interval, re-scans the tree so that newly
created files become watched, and then waits for the next notification.

Example:
    async with watch("/project", exclude=re.compile(r"/\\.git(/|$)")) as changes:
        async for path in changes:
            print("changed:", path)
"""

from __future__ import annotations

import asyncio
import os
import re
import stat
import time
from typing import Any

from treewatch.config.schema import WatchConfig
from treewatch.logging import get_logger
from treewatch.pathutil import StrPath, resolve, resolve_child
from treewatch.storage.local import LocalStorage
from treewatch.storage.poller import DEFAULT_POLL_INTERVAL
from treewatch.storage.protocols import Storage, Subscription
from treewatch.watching.registry import SubscriptionRegistry

log = get_logger("watching")

# Put on the channel by close() to wake pending pulls
_CLOSED: Any = object()


def _check_exclude(exclude: object) -> re.Pattern[str] | None:
    if exclude is None:
        return None
    if isinstance(exclude, re.Pattern) and isinstance(exclude.pattern, str):
        return exclude
    if isinstance(exclude, re.Pattern):
        kind = "bytes pattern"
    else:
        kind = type(exclude).__name__
    log.warning(
        "Watch exclude needs to be a compiled regular expression over str, got %s; ignoring it",
        kind,
    )
    return None


def _check_throttle(throttle_ms: object) -> float:
    if isinstance(throttle_ms, bool) or not isinstance(throttle_ms, (int, float)):
        log.warning("Watch throttle_ms must be a number, got %r; using 0", throttle_ms)
        return 0.0
    if throttle_ms < 0:
        log.warning("Watch throttle_ms must not be negative, got %r; using 0", throttle_ms)
        return 0.0
    return float(throttle_ms)


class ChangeWatcher:
    """Creates watch sessions with a shared filter, throttle and storage.

    Args:
        exclude: Compiled regex searched against absolute paths. A matching
            path is never subscribed and, if a directory, never descended
            into. Anything that is not a str ``re.Pattern`` is ignored with
            a warning.
        throttle_ms: Minimum wait before each re-scan triggered by a pull.
        storage: Backend used to stat, list and subscribe. Defaults to a
            new LocalStorage.
        rescan_interval: Seconds between re-scans while a pull is waiting.
            Defaults to the throttle interval, or to the storage poll
            interval when there is no throttle. Each re-scan walks the whole
            tree synchronously on the event loop, so large trees want a
            coarser interval.
        max_pending: Bound on buffered notifications per session, 0 for
            unbounded. When full, new notifications are dropped.
    """

    def __init__(
        self,
        *,
        exclude: re.Pattern[str] | None = None,
        throttle_ms: float = 0,
        storage: Storage | None = None,
        rescan_interval: float | None = None,
        max_pending: int = 0,
    ) -> None:
        self._exclude = _check_exclude(exclude)
        self._throttle_ms = _check_throttle(throttle_ms)
        self._storage: Storage = storage if storage is not None else LocalStorage()
        self._rescan_interval = rescan_interval
        self._max_pending = max(0, max_pending)

    @classmethod
    def from_config(
        cls,
        config: WatchConfig | None = None,
        storage: Storage | None = None,
    ) -> ChangeWatcher:
        """Build a watcher from a WatchConfig (the global config by default)."""
        if config is None:
            from treewatch.config.loader import get_config

            config = get_config().watch
        if storage is None:
            storage = LocalStorage(poll_interval=config.poll_interval)
        return cls(
            exclude=config.compiled_exclude(),
            throttle_ms=config.throttle_ms,
            storage=storage,
            rescan_interval=config.rescan_interval,
            max_pending=config.max_pending,
        )

    @property
    def exclude(self) -> re.Pattern[str] | None:
        return self._exclude

    @property
    def throttle_ms(self) -> float:
        return self._throttle_ms

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def max_pending(self) -> int:
        return self._max_pending

    @property
    def poll_interval(self) -> float:
        """How often the storage checks subscribed files."""
        return getattr(self._storage, "poll_interval", DEFAULT_POLL_INTERVAL)

    @property
    def rescan_interval(self) -> float:
        """Seconds between re-scans while a pull is waiting."""
        if self._rescan_interval is not None and self._rescan_interval > 0:
            return self._rescan_interval
        if self._throttle_ms > 0:
            return self._throttle_ms / 1000
        return self.poll_interval

    def start_storage(self) -> None:
        """Start the storage's change polling if it has a ``start()`` hook."""
        start = getattr(self._storage, "start", None)
        if start is not None:
            start()

    def is_excluded(self, path: str) -> bool:
        return self._exclude is not None and self._exclude.search(path) is not None

    def watch(self, root: StrPath) -> WatchSession:
        """Open a session on ``root`` and run the initial scan.

        ``root`` does not need to exist yet. Outside an event loop the
        storage's polling starts with the first pull.
        """
        session = WatchSession(self, resolve(root))
        count = session.scan()
        log.info("Watching %s (%d files)", session.root, count)
        return session


class WatchSession:
    """One open watch on one root: an async iterator of changed paths.

    Every notification from a subscribed file is pushed onto an
    ``asyncio.Queue``; each ``__anext__`` re-scans and then takes the next
    path from that queue. Notifications for the same path come out in the
    order they were raised. Several tasks may pull concurrently; each path
    is delivered to exactly one of them.

    ``close()`` cancels every subscription and ends the iteration for all
    pending and future pulls.
    """

    def __init__(self, watcher: ChangeWatcher, root: str) -> None:
        self._watcher = watcher
        self._root = root
        self._registry = SubscriptionRegistry()
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=watcher.max_pending)
        self._closed = False
        # Tracked paths a scan missed, with the time they were first missed
        self._missing: dict[str, float] = {}

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"WatchSession({self._root!r}, {state}, {len(self._registry)} files)"

    @property
    def root(self) -> str:
        return self._root

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def watched_paths(self) -> list[str]:
        """Sorted snapshot of the files currently subscribed."""
        return self._registry.paths()

    @property
    def pending(self) -> int:
        """Number of notifications buffered and not yet pulled."""
        return self._queue.qsize()

    def is_watching(self, path: StrPath) -> bool:
        return resolve(path) in self._registry

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def scan(self) -> int:
        """Walk the tree, subscribe to new files and drop vanished ones.

        A tracked path the walk no longer finds as a file stays subscribed
        for two storage poll intervals, so that the storage can still report
        its removal, and is then unsubscribed.

        Returns:
            Number of newly subscribed files
        """
        if self._closed:
            return 0
        seen: set[str] = set()
        added = self._scan_path(self._root, seen)
        if added:
            log.debug("Scan of %s subscribed %d new files", self._root, added)
        self._prune(seen)
        return added

    def _scan_path(self, path: str, seen: set[str]) -> int:
        if self._watcher.is_excluded(path):
            return 0

        storage = self._watcher.storage
        try:
            kind = storage.stat_type(path)
        except (FileNotFoundError, NotADirectoryError) as e:
            log.debug("Skipping %s: %s", path, e)
            return 0
        except OSError as e:
            log.debug("Skipping %s: %s", path, e)
            self._keep_tracked(path, seen)
            return 0

        if kind.is_file:
            seen.add(path)
            return int(self._registry.register(path, self._subscribe))

        if not kind.is_directory:
            return 0

        try:
            names = storage.list_children(path)
        except OSError as e:
            log.debug("Cannot list %s: %s", path, e)
            self._keep_tracked(path, seen)
            return 0

        added = 0
        for name in sorted(names):
            added += self._scan_path(resolve_child(path, name), seen)
        return added

    def _keep_tracked(self, path: str, seen: set[str]) -> None:
        # Unreadable is not gone: keep what is tracked at or under path
        prefix = path.rstrip(os.sep) + os.sep
        seen.update(p for p in self._registry if p == path or p.startswith(prefix))

    def _prune(self, seen: set[str]) -> None:
        for path in list(self._missing):
            if path in seen or path not in self._registry:
                del self._missing[path]

        now = time.monotonic()
        grace = 2 * self._watcher.poll_interval
        removed = 0
        for path in self._registry:
            if path in seen:
                continue
            missing_since = self._missing.setdefault(path, now)
            if now - missing_since >= grace:
                del self._missing[path]
                self._registry.unregister(path)
                removed += 1
        if removed:
            log.debug("Scan of %s dropped %d vanished files", self._root, removed)

    def _subscribe(self, path: str) -> Subscription:
        return self._watcher.storage.subscribe(path, self._on_change)

    def _on_change(
        self,
        path: str,
        new_stat: os.stat_result | None,
        old_stat: os.stat_result | None,
    ) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(path)
        except asyncio.QueueFull:
            log.warning("Change queue full (%d), dropping %s", self._queue.maxsize, path)
        if new_stat is not None and not stat.S_ISREG(new_stat.st_mode):
            # Replaced by a directory or another non-file: report once, then stop
            self._missing.pop(path, None)
            self._registry.unregister(path)

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def __aiter__(self) -> WatchSession:
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        self._watcher.start_storage()

        throttle = self._watcher.throttle_ms / 1000
        if throttle > 0:
            await asyncio.sleep(throttle)

        while True:
            if self._closed:
                raise StopAsyncIteration
            self.scan()
            try:
                path = await asyncio.wait_for(
                    self._queue.get(), timeout=self._watcher.rescan_interval
                )
            except asyncio.TimeoutError:
                continue
            if path is _CLOSED:
                # Leave the marker for any other task still waiting
                self._queue.put_nowait(_CLOSED)
                raise StopAsyncIteration
            return path

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Cancel all subscriptions and stop the iteration. Idempotent."""
        if self._closed:
            return
        self._closed = True
        cancelled = self._registry.cancel_all()
        self._missing.clear()
        log.info("Stopped watching %s (%d subscriptions cancelled)", self._root, cancelled)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # A full queue has no waiters to wake
            pass

    async def __aenter__(self) -> WatchSession:
        return self

    async def __aexit__(self, *args: object) -> None:
        self.close()


def watch(
    root: StrPath,
    *,
    exclude: re.Pattern[str] | None = None,
    throttle_ms: float = 0,
    storage: Storage | None = None,
    rescan_interval: float | None = None,
    max_pending: int = 0,
) -> WatchSession:
    """Watch every file under ``root`` and yield the paths that change.

    See ChangeWatcher for the meaning of the options.

    Usage:
        session = watch("/data", throttle_ms=200)
        try:
            async for path in session:
                print(path)
        finally:
            session.close()
    """
    watcher = ChangeWatcher(
        exclude=exclude,
        throttle_ms=throttle_ms,
        storage=storage,
        rescan_interval=rescan_interval,
        max_pending=max_pending,
    )
    return watcher.watch(root)
