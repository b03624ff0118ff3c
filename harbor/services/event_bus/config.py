"""Event Bus configuration."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EventBusConfig:
    """Configuration for dispatch, retry and history behavior."""

    # Ring buffer bound; oldest events are evicted first
    max_history_size: int = 1000

    # Retry delay before attempt k+1 is base * 2^(k-1) seconds
    backoff_base_seconds: float = 1.0

    # Time in-flight dispatches get to finish during shutdown
    shutdown_grace_seconds: float = 1.0

    # Handler registration defaults
    default_priority: int = 0
    default_max_retries: int = 3
    default_timeout_ms: Optional[int] = 5000

    # Terminal handler failures kept for diagnostics
    max_failure_records: int = 100

    event_version: str = "1.0.0"

    def __post_init__(self):
        if self.max_history_size < 1:
            raise ValueError(f"max_history_size must be >= 1, got {self.max_history_size}")
        if self.backoff_base_seconds < 0:
            raise ValueError(
                f"backoff_base_seconds must be >= 0, got {self.backoff_base_seconds}"
            )
        if self.shutdown_grace_seconds < 0:
            raise ValueError(
                f"shutdown_grace_seconds must be >= 0, got {self.shutdown_grace_seconds}"
            )
