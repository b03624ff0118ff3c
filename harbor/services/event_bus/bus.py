"""In-process event bus with priority-ordered, failure-isolated handlers.

Dispatch model:
- Each publish appends the event to a bounded history, then starts one task
  per registered handler, in priority order (ties keep registration order)
- A handler's failure, timeout or retry loop never blocks or cancels its
  siblings, and never surfaces to the publisher
- Only malformed topics or payloads raise, synchronously, at publish time

The bus is constructed explicitly and injected; shutdown is an explicit
call that drains in-flight dispatches for a bounded grace window.
"""
import asyncio
import inspect
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Set

from .config import EventBusConfig
from .events import (
    Event,
    EventMetadata,
    EventValidationError,
    HandlerCallback,
    HandlerFailure,
    HandlerRegistration,
    RetryPolicy,
    generate_event_id,
)
from .stream_publisher import KinesisEventStream

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[Any]]


class EventBus:
    """Publish/subscribe core shared by every Harbor component."""

    def __init__(
        self,
        config: Optional[EventBusConfig] = None,
        stream: Optional[KinesisEventStream] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize bus.

        Args:
            config: Dispatch, retry and history configuration
            stream: External stream for persistent events (optional)
            sleep: Awaitable used for retry backoff
        """
        self.config = config or EventBusConfig()
        self._stream = stream
        self._sleep = sleep
        self._handlers: Dict[str, List[HandlerRegistration]] = {}
        self._history: Deque[Event] = deque(maxlen=self.config.max_history_size)
        self._failures: Deque[HandlerFailure] = deque(maxlen=self.config.max_failure_records)
        self._in_flight: Set[asyncio.Task] = set()
        self._accepting = True
        self._metrics = {
            "events_emitted": 0,
            "events_processed": 0,
            "error_count": 0,
            "retry_count": 0,
            "timeout_count": 0,
            "total_processing_ms": 0.0,
        }

        logger.info(
            "EVENT_BUS_INITIALIZED",
            extra={
                "max_history_size": self.config.max_history_size,
                "backoff_base_seconds": self.config.backoff_base_seconds,
                "stream_enabled": stream is not None and stream.enabled,
            }
        )

    @property
    def accepting(self) -> bool:
        return self._accepting

    def register(
        self,
        topic: str,
        handler: HandlerCallback,
        priority: Optional[int] = None,
        retry: bool = False,
        max_retries: Optional[int] = None,
        timeout_ms: Optional[int] = -1,
    ) -> HandlerRegistration:
        """Subscribe a handler to a topic.

        Args:
            topic: Event type to subscribe to
            handler: Sync or async callable taking (payload, metadata)
            priority: Higher runs first; defaults to config default
            retry: Whether failed attempts are retried with backoff
            max_retries: Total attempt bound when retry is enabled
            timeout_ms: Per-attempt timeout; None disables, -1 uses default

        Returns:
            The registration, usable with ``unregister``
        """
        if not isinstance(topic, str) or not topic:
            raise EventValidationError("Topic must be a non-empty string")
        if not callable(handler):
            raise EventValidationError(f"Handler for {topic} is not callable")

        registration = HandlerRegistration(
            event_type=topic,
            callback=handler,
            priority=self.config.default_priority if priority is None else priority,
            retry_policy=RetryPolicy(
                enabled=retry,
                max_retries=self.config.default_max_retries if max_retries is None else max_retries,
                timeout_ms=self.config.default_timeout_ms if timeout_ms == -1 else timeout_ms,
            ),
        )

        handlers = self._handlers.setdefault(topic, [])
        handlers.append(registration)
        # list.sort is stable: equal priorities keep registration order
        handlers.sort(key=lambda r: r.priority, reverse=True)

        logger.debug(
            "EVENT_HANDLER_REGISTERED",
            extra={
                "topic": topic,
                "registration_id": registration.registration_id,
                "priority": registration.priority,
                "handlers_count": len(handlers),
            }
        )
        return registration

    def unregister(self, registration: HandlerRegistration) -> bool:
        """Remove a registration. Returns False if it was not registered."""
        handlers = self._handlers.get(registration.event_type, [])
        if registration not in handlers:
            return False
        handlers.remove(registration)
        if not handlers:
            del self._handlers[registration.event_type]
        return True

    def handlers_for(self, topic: str) -> List[HandlerRegistration]:
        """Registrations for a topic in invocation order."""
        return list(self._handlers.get(topic, []))

    async def publish(
        self,
        topic: str,
        payload: Mapping[str, Any],
        source: str = "unknown",
        correlation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        persistent: bool = False,
        wait: bool = True,
    ) -> Optional[Event]:
        """Publish an event to every handler registered for its topic.

        Args:
            topic: Event type
            payload: Event data; must be a mapping
            source: Publishing component
            correlation_id: Request id tying events together
            user_id: User the event concerns
            session_id: Session the event concerns
            persistent: Forward to the external stream after dispatch
            wait: Await handler completion; False dispatches in background

        Returns:
            The published event, or None if the bus is shut down

        Raises:
            EventValidationError: If topic or payload is malformed
        """
        if not self._accepting:
            logger.warning(
                "EVENT_PUBLISH_REJECTED",
                extra={"topic": topic, "reason": "bus_shut_down"}
            )
            return None

        self._validate(topic, payload)

        event = Event(
            type=topic,
            payload=dict(payload),
            metadata=EventMetadata(
                event_id=generate_event_id(),
                timestamp=datetime.now(timezone.utc),
                source=source,
                version=self.config.event_version,
                correlation_id=correlation_id,
                user_id=user_id,
                session_id=session_id,
            ),
            persistent=persistent,
        )

        self._history.append(event)
        self._metrics["events_emitted"] += 1

        task = asyncio.create_task(self._dispatch(event))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

        if wait:
            await task

        return event

    def _validate(self, topic: Any, payload: Any) -> None:
        if not isinstance(topic, str) or not topic.strip():
            raise EventValidationError("Topic must be a non-empty string")
        if not isinstance(payload, Mapping):
            raise EventValidationError(
                f"Payload for {topic} must be a mapping, got {type(payload).__name__}"
            )
        bad_keys = [k for k in payload if not isinstance(k, str)]
        if bad_keys:
            raise EventValidationError(f"Payload keys for {topic} must be strings")

    async def _dispatch(self, event: Event) -> None:
        start_time = time.perf_counter()
        registrations = self.handlers_for(event.type)

        tasks = [
            asyncio.create_task(self._execute_handler(registration, event))
            for registration in registrations
        ]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        processing_ms = (time.perf_counter() - start_time) * 1000
        self._metrics["events_processed"] += 1
        self._metrics["total_processing_ms"] += processing_ms

        logger.debug(
            "EVENT_DISPATCHED",
            extra={
                "topic": event.type,
                "event_id": event.id,
                "handlers_count": len(registrations),
                "processing_ms": processing_ms,
            }
        )

        if event.persistent and self._stream is not None:
            try:
                await asyncio.to_thread(self._stream.publish, event)
            except Exception as e:
                logger.error(
                    "EVENT_STREAM_FORWARD_FAILED",
                    extra={
                        "topic": event.type,
                        "event_id": event.id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )

    async def _execute_handler(
        self,
        registration: HandlerRegistration,
        event: Event,
    ) -> bool:
        """Run one handler under its retry policy.

        Returns:
            True if an attempt succeeded, False once attempts are exhausted
        """
        policy = registration.retry_policy
        attempt = 1

        while True:
            try:
                await self._invoke(registration, event)
                logger.debug(
                    "EVENT_HANDLER_SUCCEEDED",
                    extra={
                        "topic": event.type,
                        "event_id": event.id,
                        "registration_id": registration.registration_id,
                        "attempt": attempt,
                    }
                )
                return True

            except Exception as e:
                timed_out = isinstance(e, (TimeoutError, asyncio.TimeoutError))
                if timed_out:
                    self._metrics["timeout_count"] += 1

                logger.warning(
                    "EVENT_HANDLER_FAILED",
                    extra={
                        "topic": event.type,
                        "event_id": event.id,
                        "registration_id": registration.registration_id,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "timed_out": timed_out,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )

                if attempt >= policy.max_attempts:
                    self._record_failure(
                        HandlerFailure(
                            topic=event.type,
                            event_id=event.id,
                            registration_id=registration.registration_id,
                            attempts=attempt,
                            cause=e,
                        )
                    )
                    return False

                delay = self.config.backoff_base_seconds * (2 ** (attempt - 1))
                self._metrics["retry_count"] += 1
                await self._sleep(delay)
                attempt += 1

    async def _invoke(self, registration: HandlerRegistration, event: Event) -> None:
        call = self._call_handler(registration, event)
        timeout_ms = registration.retry_policy.timeout_ms
        if timeout_ms:
            await asyncio.wait_for(call, timeout=timeout_ms / 1000)
        else:
            await call

    @staticmethod
    async def _call_handler(registration: HandlerRegistration, event: Event) -> None:
        # Handlers get a copy so one cannot mutate what its siblings see
        result = registration.callback(dict(event.payload), event.metadata)
        if inspect.isawaitable(result):
            await result

    def _record_failure(self, failure: HandlerFailure) -> None:
        self._failures.append(failure)
        self._metrics["error_count"] += 1
        logger.error(
            "EVENT_HANDLER_EXHAUSTED",
            extra={
                "topic": failure.topic,
                "event_id": failure.event_id,
                "registration_id": failure.registration_id,
                "attempts": failure.attempts,
                "timed_out": failure.timed_out,
                "error": str(failure.cause),
                "error_type": type(failure.cause).__name__,
            }
        )

    def recent_failures(self) -> List[HandlerFailure]:
        """Terminal handler failures, oldest first."""
        return list(self._failures)

    def get_history(
        self,
        topic: Optional[str] = None,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> List[Event]:
        """Return retained events, newest first.

        Args:
            topic: Only events of this type
            limit: Maximum number of events returned
            user_id: Only events concerning this user

        Returns:
            Matching events sorted newest-first
        """
        matches = [
            event for event in reversed(self._history)
            if (topic is None or event.type == topic)
            and (user_id is None or event.metadata.user_id == user_id)
        ]
        # reversed() already yields newest-first; sorting keeps ties in that order
        matches.sort(key=lambda event: event.metadata.timestamp, reverse=True)
        return matches[:max(limit, 0)]

    def clear_history(self, before: Optional[datetime] = None) -> None:
        """Drop retained events, or only those at or before ``before``."""
        if before is None:
            self._history.clear()
        else:
            kept = [e for e in self._history if e.metadata.timestamp > before]
            self._history.clear()
            self._history.extend(kept)

        logger.info(
            "EVENT_HISTORY_CLEARED",
            extra={"remaining_events": len(self._history)}
        )

    def get_metrics(self) -> Dict[str, Any]:
        """Counters and current sizes for health reporting."""
        processed = self._metrics["events_processed"]
        return {
            "events_emitted": self._metrics["events_emitted"],
            "events_processed": processed,
            "error_count": self._metrics["error_count"],
            "retry_count": self._metrics["retry_count"],
            "timeout_count": self._metrics["timeout_count"],
            "avg_processing_ms": (
                self._metrics["total_processing_ms"] / processed if processed else 0.0
            ),
            "active_handlers": {
                topic: len(handlers) for topic, handlers in self._handlers.items()
            },
            "history_size": len(self._history),
            "in_flight": len([t for t in self._in_flight if not t.done()]),
            "accepting": self._accepting,
        }

    async def shutdown(self, grace_seconds: Optional[float] = None) -> None:
        """Stop accepting publishes, drain in-flight dispatches, clear state.

        Args:
            grace_seconds: Drain window; defaults to config value
        """
        if not self._accepting:
            return
        self._accepting = False

        grace = self.config.shutdown_grace_seconds if grace_seconds is None else grace_seconds
        pending = {task for task in self._in_flight if not task.done()}
        pending.discard(asyncio.current_task())

        logger.info(
            "EVENT_BUS_SHUTTING_DOWN",
            extra={"in_flight": len(pending), "grace_seconds": grace}
        )

        if pending:
            _, still_running = await asyncio.wait(pending, timeout=grace)
            if still_running:
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
                logger.warning(
                    "EVENT_BUS_DISPATCHES_CANCELLED",
                    extra={"cancelled": len(still_running)}
                )

        self._handlers.clear()
        self._history.clear()
        self._in_flight.clear()

        logger.info("EVENT_BUS_SHUTDOWN_COMPLETE")
