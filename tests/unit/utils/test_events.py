"""Tests for synchronous event dispatch."""

from __future__ import annotations

import logging

import pytest

from gnucore.utils.events import Event, EventDispatcher, EventHandler, EventType

pytestmark = [pytest.mark.unit, pytest.mark.observability]


class TestEventDispatcher:
    def test_dispatch_builds_event(self, recorder):
        dispatcher = EventDispatcher("test")
        dispatcher.register_handler(recorder)

        event = dispatcher.dispatch(EventType.CACHE_EVICTED, key="k", size=3)

        assert recorder.events == [event]
        assert event.event_type == "cache_evicted"
        assert event.source == "test"
        assert event.data == {"key": "k", "size": 3}
        assert event.to_dict()["data"]["key"] == "k"

    def test_handlers_called_in_registration_order(self):
        order = []

        class Named(EventHandler):
            def handle(self, event: Event) -> None:
                order.append(self.name)

        dispatcher = EventDispatcher("test")
        dispatcher.register_handler(Named("first"))
        dispatcher.register_handler(Named("second"))
        dispatcher.dispatch(EventType.CONNECTION_OPENED)

        assert order == ["first", "second"]

    def test_register_is_idempotent(self, recorder):
        dispatcher = EventDispatcher("test")
        dispatcher.register_handler(recorder)
        dispatcher.register_handler(recorder)
        dispatcher.dispatch(EventType.CONNECTION_OPENED)
        assert len(recorder.events) == 1

    def test_unregister_unknown_is_ignored(self, recorder):
        dispatcher = EventDispatcher("test")
        dispatcher.unregister_handler(recorder)
        assert dispatcher.handlers == []

    def test_can_handle_filters(self, recorder):
        class OnlyClosed(EventHandler):
            def __init__(self):
                super().__init__("only_closed")
                self.seen = []

            def handle(self, event: Event) -> None:
                self.seen.append(event.event_type)

            def can_handle(self, event: Event) -> bool:
                return event.event_type == EventType.CONNECTION_CLOSED.value

        handler = OnlyClosed()
        dispatcher = EventDispatcher("test")
        dispatcher.register_handler(handler)
        dispatcher.dispatch(EventType.CONNECTION_OPENED)
        dispatcher.dispatch(EventType.CONNECTION_CLOSED)
        assert handler.seen == ["connection_closed"]

    def test_handler_error_logged_and_isolated(self, recorder, caplog):
        class Broken(EventHandler):
            def handle(self, event: Event) -> None:
                msg = "handler exploded"
                raise ValueError(msg)

        dispatcher = EventDispatcher("test")
        dispatcher.register_handler(Broken("broken"))
        dispatcher.register_handler(recorder)

        with caplog.at_level(logging.ERROR, logger="gnucore"):
            dispatcher.dispatch(EventType.NODE_ROLE_CHANGED)

        assert len(recorder.events) == 1
        assert "handler exploded" in caplog.text
        stats = dispatcher.get_stats()
        assert stats["handler_errors"] == 1
        assert stats["events_dispatched"] == 1
        assert stats["handlers_registered"] == 2

    def test_handler_may_unregister_itself(self):
        dispatcher = EventDispatcher("test")

        class OneShot(EventHandler):
            calls = 0

            def handle(self, event: Event) -> None:
                OneShot.calls += 1
                dispatcher.unregister_handler(self)

        dispatcher.register_handler(OneShot("once"))
        dispatcher.dispatch(EventType.CONNECTION_OPENED)
        dispatcher.dispatch(EventType.CONNECTION_OPENED)
        assert OneShot.calls == 1
