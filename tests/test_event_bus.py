# tests/test_event_bus.py
"""
Tests for the in-process event bus and handler registration.

Run:
    pytest tests/test_event_bus.py -v
"""
from llave_system.events.event_bus import eventBus, LlaveEvents
from llave_system.events.handlers import handle_key_acquired, handle_week_recomputed
from llave_system.events.setup import setup_llave_event_handlers, teardown_llave_event_handlers


class TestEventBus:
    """Delivery and isolation of handlers."""

    async def test_sync_and_async_handlers_receive_data(self):
        received = []

        def sync_handler(data):
            received.append(("sync", data["agentId"]))

        async def async_handler(data):
            received.append(("async", data["agentId"]))

        eventBus.subscribe(LlaveEvents.KEY_ACQUIRED, sync_handler)
        eventBus.subscribe(LlaveEvents.KEY_ACQUIRED, async_handler)

        await eventBus.emit(LlaveEvents.KEY_ACQUIRED, {"agentId": 7})

        assert received == [("sync", 7), ("async", 7)]

    async def test_failing_handler_does_not_stop_others(self):
        received = []

        def broken(data):
            raise RuntimeError("boom")

        def healthy(data):
            received.append(data)

        eventBus.subscribe(LlaveEvents.KEY_LOST, broken)
        eventBus.subscribe(LlaveEvents.KEY_LOST, healthy)

        await eventBus.emit(LlaveEvents.KEY_LOST, {"agentId": 1})

        assert received == [{"agentId": 1}]

    async def test_emit_without_subscribers(self):
        await eventBus.emit("nobody.listens", {})

    def test_unsubscribe_unknown_handler_is_safe(self):
        eventBus.unsubscribe(LlaveEvents.KEY_LOST, print)


class TestHandlerSetup:
    """Registration is idempotent and reversible."""

    def test_setup_twice_registers_once(self):
        setup_llave_event_handlers()
        setup_llave_event_handlers()

        assert eventBus.handlersFor(LlaveEvents.KEY_ACQUIRED).count(handle_key_acquired) == 1
        assert handle_week_recomputed in eventBus.handlersFor(LlaveEvents.WEEK_RECOMPUTED)

    def test_teardown(self):
        setup_llave_event_handlers()
        teardown_llave_event_handlers()

        assert handle_key_acquired not in eventBus.handlersFor(LlaveEvents.KEY_ACQUIRED)

    async def test_handlers_tolerate_missing_fields(self):
        await handle_key_acquired({})
        await handle_week_recomputed({})
