# llave_system/events/event_bus.py
"""
Event bus for decoupled communication between components.
The weekly recompute publishes here; consumers (presentation, assistant,
notifications) subscribe without the engine knowing about them.
"""
from typing import Dict, List, Callable, Any
import logging
import asyncio

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple in-process event bus.
    Handlers may be sync or async; a failing handler never stops the others.
    """

    _instance = None
    _handlers: Dict[str, List[Callable]] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._handlers = {}
        return cls._instance

    def subscribe(self, eventName: str, handler: Callable):
        """Subscribe handler to event."""
        if eventName not in self._handlers:
            self._handlers[eventName] = []

        self._handlers[eventName].append(handler)
        logger.debug(f"Handler {handler.__name__} subscribed to {eventName}")

    def unsubscribe(self, eventName: str, handler: Callable):
        """Unsubscribe handler from event."""
        if eventName in self._handlers and handler in self._handlers[eventName]:
            self._handlers[eventName].remove(handler)
            logger.debug(f"Handler {handler.__name__} unsubscribed from {eventName}")

    def handlersFor(self, eventName: str) -> List[Callable]:
        return list(self._handlers.get(eventName, []))

    async def emit(self, eventName: str, data: Dict[str, Any]):
        """Emit event to all subscribers."""
        if eventName not in self._handlers:
            return

        logger.debug(f"Emitting event {eventName} with data: {data}")

        for handler in list(self._handlers[eventName]):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(data)
                else:
                    handler(data)
            except Exception as e:
                logger.error(f"Error in handler {handler.__name__} for event {eventName}: {e}", exc_info=True)

    def clear(self):
        """Clear all event handlers."""
        self._handlers.clear()


# Global event bus instance
eventBus = EventBus()


class LlaveEvents:
    """Events published by the engine."""

    KEY_ACQUIRED = "key.acquired"
    KEY_LOST = "key.lost"

    COMMISSION_CALCULATED = "commission.calculated"

    CAMPAIGN_CREATED = "campaign.created"
    CAMPAIGN_OVERFLOWED = "campaign.overflowed"
    SNAPSHOT_COMPUTED = "campaign.snapshot_computed"

    WEEK_RECOMPUTED = "week.recomputed"
