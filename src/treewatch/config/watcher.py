"""Config file watcher for automatic reload on changes.

Every file from ``get_config_paths()`` is subscribed through a storage
backend whether or not it exists yet, so creating, editing or deleting any
of them triggers a reload. The new logging level is applied on reload.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable

from treewatch.config.loader import on_config_reload, reload_config
from treewatch.config.paths import get_config_paths
from treewatch.config.schema import Config
from treewatch.logging import get_logger, set_level
from treewatch.storage.local import LocalStorage
from treewatch.storage.protocols import Storage, Subscription
from treewatch.watching.registry import SubscriptionRegistry

log = get_logger("config.watcher")

# Config files change rarely
DEFAULT_POLL_INTERVAL = 2.0


class ConfigWatcher:
    """Watches config files for changes and triggers reload.

    Notifications that arrive together are coalesced into one
    ``reload_config()`` call on the next event loop iteration.

    Example:
        async with ConfigWatcher(project_root="/project"):
            ...  # get_config() now follows edits to config.yaml
    """

    def __init__(
        self,
        project_root: str | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        storage: Storage | None = None,
    ) -> None:
        self._project_root = project_root
        self._storage: Storage = (
            storage if storage is not None else LocalStorage(poll_interval=poll_interval)
        )
        self._registry = SubscriptionRegistry()
        self._running = False
        self._reload_handle: asyncio.Handle | None = None
        self._unregister_callback: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def watched_paths(self) -> list[str]:
        return self._registry.paths()

    def start(self) -> None:
        """Start watching for config changes.

        Must be called from within an async context.
        """
        if self._running:
            return
        self._running = True
        self._unregister_callback = on_config_reload(self._apply_logging)
        for path in get_config_paths(self._project_root):
            self._registry.register(str(path), self._subscribe)
        log.debug("Config watcher started (%d files)", len(self._registry))

    def stop(self) -> None:
        """Stop watching for config changes."""
        if not self._running:
            return
        self._running = False
        self._registry.cancel_all()
        if self._reload_handle is not None:
            self._reload_handle.cancel()
            self._reload_handle = None
        if self._unregister_callback is not None:
            self._unregister_callback()
            self._unregister_callback = None
        log.debug("Config watcher stopped")

    def _subscribe(self, path: str) -> Subscription:
        return self._storage.subscribe(path, self._on_change)

    def _on_change(
        self,
        path: str,
        new_stat: os.stat_result | None,
        old_stat: os.stat_result | None,
    ) -> None:
        if not self._running:
            return
        log.info("Config changed: %s", path)
        if self._reload_handle is None:
            self._reload_handle = asyncio.get_running_loop().call_soon(self._reload)

    def _reload(self) -> None:
        self._reload_handle = None
        try:
            reload_config(project_root=self._project_root)
        except Exception as e:
            log.error("Error reloading config: %s", e)

    @staticmethod
    def _apply_logging(config: Config) -> None:
        set_level(config.logging)

    async def __aenter__(self) -> ConfigWatcher:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
