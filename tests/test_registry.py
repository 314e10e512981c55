"""Tests for the path-keyed subscription registry."""

from __future__ import annotations

import logging

import pytest

from treewatch.watching import SubscriptionRegistry
from tests.utils import FakeStorage


def noop(path, new_stat, old_stat) -> None:
    pass


class TestSubscriptionRegistry:
    """Registration is keyed by path and cancellation is complete."""

    def test_register_new_path(self, storage: FakeStorage) -> None:
        """First registration creates a subscription."""
        registry = SubscriptionRegistry()

        assert registry.register("/a", lambda p: storage.subscribe(p, noop)) is True
        assert "/a" in registry
        assert len(registry) == 1
        assert registry.get("/a") is storage.subscriptions[0]

    def test_register_existing_path_is_noop(self, storage: FakeStorage) -> None:
        """A second registration for the same path does not subscribe again."""
        registry = SubscriptionRegistry()
        factory = lambda p: storage.subscribe(p, noop)  # noqa: E731

        registry.register("/a", factory)
        assert registry.register("/a", factory) is False
        assert storage.subscribe_count("/a") == 1

    def test_unregister(self, storage: FakeStorage) -> None:
        """Unregistering cancels and forgets the subscription."""
        registry = SubscriptionRegistry()
        registry.register("/a", lambda p: storage.subscribe(p, noop))

        assert registry.unregister("/a") is True
        assert registry.unregister("/a") is False
        assert "/a" not in registry
        assert storage.active("/a") == []

    def test_cancel_all(self, storage: FakeStorage) -> None:
        """cancel_all cancels everything and empties the registry."""
        registry = SubscriptionRegistry()
        for path in ("/b", "/a", "/c"):
            registry.register(path, lambda p: storage.subscribe(p, noop))

        assert registry.paths() == ["/a", "/b", "/c"]
        assert registry.cancel_all() == 3
        assert len(registry) == 0
        assert storage.active() == []

    def test_cancel_error_does_not_stop_others(
        self, storage: FakeStorage, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failing cancel is logged and the rest are still cancelled."""
        registry = SubscriptionRegistry()
        registry.register("/bad", lambda p: storage.subscribe(p, noop))
        registry.register("/good", lambda p: storage.subscribe(p, noop))

        def broken_cancel() -> None:
            raise RuntimeError("boom")

        registry.get("/bad").cancel = broken_cancel  # type: ignore[method-assign]

        with caplog.at_level(logging.WARNING, logger="treewatch.watching.registry"):
            assert registry.cancel_all() == 2

        assert storage.active("/good") == []
        assert "boom" in caplog.text
