# llave_system/events/setup.py
"""
Setup Llave event handlers.
Register all event handlers with the event bus.
"""
import logging

from llave_system.events.event_bus import eventBus, LlaveEvents
from llave_system.events.handlers import (
    handle_key_acquired,
    handle_key_lost,
    handle_campaign_overflowed,
    handle_week_recomputed,
)

logger = logging.getLogger(__name__)

_HANDLERS = [
    (LlaveEvents.KEY_ACQUIRED, handle_key_acquired),
    (LlaveEvents.KEY_LOST, handle_key_lost),
    (LlaveEvents.CAMPAIGN_OVERFLOWED, handle_campaign_overflowed),
    (LlaveEvents.WEEK_RECOMPUTED, handle_week_recomputed),
]


def setup_llave_event_handlers():
    """
    Register all Llave event handlers with the event bus.

    This function should be called during service initialization.
    """
    logger.info("Setting up Llave event handlers...")

    for event_name, handler in _HANDLERS:
        if handler not in eventBus.handlersFor(event_name):
            eventBus.subscribe(event_name, handler)
            logger.debug(f"Registered handler for {event_name}")

    logger.info("Llave event handlers registered successfully")


def teardown_llave_event_handlers():
    """
    Unregister all Llave event handlers.
    Useful for testing or shutdown.
    """
    logger.info("Tearing down Llave event handlers...")

    for event_name, handler in _HANDLERS:
        eventBus.unsubscribe(event_name, handler)

    logger.info("Llave event handlers unregistered")
