"""Event Bus domain types.

Events are immutable once published. Handler registrations carry their
own retry policy so one topic can mix best-effort and retried handlers.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union
import uuid

HandlerCallback = Callable[[Dict[str, Any], "EventMetadata"], Union[None, Awaitable[None]]]


class EventTypes:
    """Named topics published by Harbor components."""
    REQUEST_COMPLETED = "request.completed"
    SAFETY_VIOLATION_DETECTED = "safety.violation.detected"
    SAFETY_CRISIS_DETECTED = "safety.crisis.detected"
    TARGET_PERFORMANCE = "target.performance"
    DECISION_OUTCOME = "analytics.decision.outcome"


class EventBusError(Exception):
    """Base exception for event bus errors."""
    pass


class EventValidationError(EventBusError):
    """Malformed topic or payload at publish time."""
    pass


class HandlerFailure(EventBusError):
    """A handler exhausted its attempts.

    Recorded by the bus and logged; never raised to publishers.
    """

    def __init__(
        self,
        topic: str,
        event_id: str,
        registration_id: str,
        attempts: int,
        cause: BaseException,
    ):
        super().__init__(
            f"Handler {registration_id} failed for {topic} after {attempts} attempt(s): {cause}"
        )
        self.topic = topic
        self.event_id = event_id
        self.registration_id = registration_id
        self.attempts = attempts
        self.cause = cause
        self.timed_out = isinstance(cause, (TimeoutError, asyncio.TimeoutError))


def generate_event_id() -> str:
    return f"evt_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata generated for every published event."""
    event_id: str
    timestamp: datetime
    source: str
    version: str = "1.0.0"
    correlation_id: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "version": self.version,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
        }


@dataclass(frozen=True)
class Event:
    """A published event as retained in history."""
    type: str
    payload: Mapping[str, Any]
    metadata: EventMetadata
    persistent: bool = False

    @property
    def id(self) -> str:
        return self.metadata.event_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for external streams and diagnostics."""
        return {
            "event_id": self.metadata.event_id,
            "event_type": self.type,
            "data": dict(self.payload),
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class RetryPolicy:
    """Per-handler retry and timeout policy.

    ``max_retries`` bounds the total number of attempts when retry is
    enabled. A disabled policy means exactly one attempt.
    """
    enabled: bool = False
    max_retries: int = 3
    timeout_ms: Optional[int] = 5000

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive or None, got {self.timeout_ms}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries if self.enabled else 1


@dataclass(frozen=True)
class HandlerRegistration:
    """A handler subscribed to one topic."""
    event_type: str
    callback: HandlerCallback
    priority: int = 0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    registration_id: str = field(default_factory=lambda: f"hdl_{uuid.uuid4().hex[:8]}")
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return getattr(self.callback, "__qualname__", repr(self.callback))
