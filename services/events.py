# services/events.py

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryStatusChanged:
    delivery_id: int
    order_id: int
    previous_status: str
    status: str
    courier_id: Optional[int] = None


@dataclass(frozen=True)
class PaymentConfirmed:
    payment_id: int
    order_id: int
    reference: str


class EventBus:
    """In-process publish/subscribe. Handlers run synchronously, in subscription order."""

    def __init__(self):
        self._handlers = defaultdict(list)

    def subscribe(self, event_type, handler):
        self._handlers[event_type].append(handler)

    def publish(self, event):
        handlers = self._handlers.get(type(event), [])
        logger.debug(f"Publishing {type(event).__name__} to {len(handlers)} handler(s)")
        for handler in handlers:
            handler(event)

    def clear(self):
        self._handlers.clear()


# Fallback outside an application context
event_bus = EventBus()


def get_event_bus():
    """The running app's bus (created by create_app), else the module default."""
    if has_app_context():
        return current_app.extensions.get('event_bus', event_bus)
    return event_bus
