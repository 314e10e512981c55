"""Per-file change notifications using stat polling.

Polling is preferred over native file watchers for cross-platform
reliability: every watched path is stat'ed at a fixed interval and its
callbacks fire whenever the stat signature differs from the last one seen,
including when the path appears or disappears.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field

from treewatch.logging import get_logger
from treewatch.storage.protocols import ChangeCallback

log = get_logger("storage.poller")

DEFAULT_POLL_INTERVAL = 0.5
MIN_POLL_INTERVAL = 0.01


def _signature(stat: os.stat_result | None) -> tuple[int, ...] | None:
    if stat is None:
        return None
    return (
        stat.st_dev,
        stat.st_ino,
        stat.st_mode,
        stat.st_uid,
        stat.st_gid,
        stat.st_size,
        stat.st_mtime_ns,
        stat.st_ctime_ns,
    )


def _stat_or_none(path: str) -> os.stat_result | None:
    try:
        return os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return None


@dataclass
class WatchedPath:
    """Tracks a watched path's last observed state."""

    path: str
    stat: os.stat_result | None = None
    callbacks: list[ChangeCallback] = field(default_factory=list)

    @property
    def exists(self) -> bool:
        return self.stat is not None


@dataclass
class StatChange:
    """One detected change: the stat before and after."""

    path: str
    new_stat: os.stat_result | None
    old_stat: os.stat_result | None

    @property
    def change_type(self) -> str:
        if self.old_stat is None:
            return "created"
        if self.new_stat is None:
            return "deleted"
        return "modified"


class PollSubscription:
    """Handle for one callback registered on one path."""

    def __init__(self, poller: StatPoller, path: str, callback: ChangeCallback) -> None:
        self._poller = poller
        self._path = path
        self._callback = callback
        self._active = True

    @property
    def path(self) -> str:
        return self._path

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._poller._remove(self._path, self._callback)

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"PollSubscription({self._path!r}, {state})"


class StatPoller:
    """Polls subscribed paths and invokes their callbacks on change.

    The polling task is created on the first subscription made while an
    event loop is running, or by ``start()`` from inside one later. It stops
    once the last subscription is cancelled.

    Example:
        poller = StatPoller(poll_interval=0.2)

        def on_change(path, new_stat, old_stat):
            print("changed:", path)

        sub = poller.subscribe("/project/main.py", on_change)
        ...
        sub.cancel()
    """

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._poll_interval = max(MIN_POLL_INTERVAL, poll_interval)
        self._watched: dict[str, WatchedPath] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def poll_interval(self) -> float:
        """Seconds between polling cycles."""
        return self._poll_interval

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        self._poll_interval = max(MIN_POLL_INTERVAL, value)

    @property
    def watched_count(self) -> int:
        return len(self._watched)

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_watching(self, path: str) -> bool:
        return path in self._watched

    def subscribe(self, path: str, callback: ChangeCallback) -> PollSubscription:
        """Register ``callback`` for changes to ``path``.

        The current state of ``path`` becomes the baseline; no notification
        is delivered for it.
        """
        watched = self._watched.get(path)
        if watched is None:
            try:
                stat = _stat_or_none(path)
            except OSError as e:
                log.debug("Cannot stat %s: %s", path, e)
                stat = None
            watched = WatchedPath(path=path, stat=stat)
            self._watched[path] = watched
            log.debug("Watching %s", path)
        watched.callbacks.append(callback)
        self._ensure_running()
        return PollSubscription(self, path, callback)

    def _remove(self, path: str, callback: ChangeCallback) -> None:
        watched = self._watched.get(path)
        if watched is None:
            return
        try:
            watched.callbacks.remove(callback)
        except ValueError:
            pass
        if not watched.callbacks:
            del self._watched[path]
            log.debug("Removed watch for %s", path)
        if not self._watched:
            self.stop()

    def check_changes(self) -> list[StatChange]:
        """Stat every watched path once and record differences.

        Callbacks are not invoked here; see ``poll_once``.

        Returns:
            List of StatChange for any changed paths
        """
        changes: list[StatChange] = []
        for watched in list(self._watched.values()):
            change = self._check_path(watched)
            if change:
                changes.append(change)
        return changes

    def _check_path(self, watched: WatchedPath) -> StatChange | None:
        try:
            current = _stat_or_none(watched.path)
        except OSError as e:
            log.warning("Error checking %s: %s", watched.path, e)
            return None

        if _signature(current) == _signature(watched.stat):
            return None

        previous = watched.stat
        watched.stat = current
        return StatChange(path=watched.path, new_stat=current, old_stat=previous)

    def poll_once(self) -> int:
        """Run one polling cycle and dispatch callbacks.

        Returns:
            Number of changes detected
        """
        changes = self.check_changes()
        for change in changes:
            self._dispatch(change)
        return len(changes)

    def _dispatch(self, change: StatChange) -> None:
        watched = self._watched.get(change.path)
        if watched is None:
            return
        for callback in list(watched.callbacks):
            try:
                callback(change.path, change.new_stat, change.old_stat)
            except Exception as e:
                log.error("Error in change callback for %s: %s", change.path, e)

    def start(self) -> None:
        """Start polling if anything is subscribed and it is not running yet."""
        if self._watched:
            self._ensure_running()

    def _ensure_running(self) -> None:
        if self.is_running():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop, polling waits for start()")
            return
        self._task = loop.create_task(self._poll_loop())
        log.debug("StatPoller started (interval: %.3fs)", self._poll_interval)

    async def _poll_loop(self) -> None:
        try:
            while self._watched:
                await asyncio.sleep(self._poll_interval)
                self.poll_once()
        except asyncio.CancelledError:
            log.debug("StatPoller cancelled")
            raise

    def stop(self) -> None:
        """Stop the polling task. Subscriptions stay registered."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def close(self) -> None:
        """Drop every subscription and stop polling."""
        self._watched.clear()
        self.stop()
