"""Event Bus: decoupled publish/subscribe core.

Components never call each other for notifications; they publish named
events and subscribe handlers. Handlers run in priority order, each under
its own retry/backoff and timeout policy, isolated from one another.

Components:
- bus.py: EventBus (register, publish, history, metrics, shutdown)
- events.py: Event, EventMetadata, HandlerRegistration, RetryPolicy, errors
- observability.py: Fixed-shape observability events
- stream_publisher.py: Kinesis forwarding for persistent events

Usage:
    bus = EventBus()
    bus.register("request.completed", handler, priority=10, retry=True)
    await bus.publish("request.completed", {"request_id": "req_1"}, source="orchestrator")
"""

from .bus import EventBus
from .config import EventBusConfig
from .events import (
    Event,
    EventMetadata,
    EventTypes,
    EventBusError,
    EventValidationError,
    HandlerFailure,
    HandlerRegistration,
    RetryPolicy,
)
from .observability import ObservabilityEvents
from .stream_publisher import KinesisEventStream

__all__ = [
    "EventBus",
    "EventBusConfig",
    "Event",
    "EventMetadata",
    "EventTypes",
    "EventBusError",
    "EventValidationError",
    "HandlerFailure",
    "HandlerRegistration",
    "RetryPolicy",
    "ObservabilityEvents",
    "KinesisEventStream",
]
