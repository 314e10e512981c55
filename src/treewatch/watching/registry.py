"""Registry of live per-file subscriptions, keyed by path."""

from __future__ import annotations

from collections.abc import Callable, Iterator

from treewatch.logging import get_logger
from treewatch.storage.protocols import Subscription

log = get_logger("watching.registry")


class SubscriptionRegistry:
    """Tracks at most one subscription per path.

    Registering a path that is already tracked does nothing, so a re-scan of
    an unchanged tree never creates duplicate low-level subscriptions.

    Example:
        registry = SubscriptionRegistry()
        registry.register("/project/main.py", lambda p: storage.subscribe(p, cb))
        ...
        registry.cancel_all()
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._subscriptions))

    def paths(self) -> list[str]:
        """Sorted snapshot of tracked paths."""
        return sorted(self._subscriptions)

    def get(self, path: str) -> Subscription | None:
        return self._subscriptions.get(path)

    def register(self, path: str, subscribe: Callable[[str], Subscription]) -> bool:
        """Subscribe to ``path`` unless it is already tracked.

        Args:
            path: Path to track
            subscribe: Called with ``path`` to create the subscription

        Returns:
            True if a new subscription was created
        """
        if path in self._subscriptions:
            return False
        self._subscriptions[path] = subscribe(path)
        log.debug("Subscribed %s", path)
        return True

    def unregister(self, path: str) -> bool:
        """Cancel and forget the subscription for ``path``.

        Returns:
            True if ``path`` was tracked
        """
        subscription = self._subscriptions.pop(path, None)
        if subscription is None:
            return False
        self._cancel(subscription)
        return True

    def cancel_all(self) -> int:
        """Cancel every tracked subscription and empty the registry.

        Returns:
            Number of subscriptions cancelled
        """
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            self._cancel(subscription)
        return len(subscriptions)

    @staticmethod
    def _cancel(subscription: Subscription) -> None:
        try:
            subscription.cancel()
        except Exception as e:
            log.warning("Error cancelling subscription for %s: %s", subscription.path, e)
