"""External event stream for persistent events.

Events published with ``persistent=True`` are forwarded to a Kinesis stream
after local dispatch, so downstream consumers (crisis review tooling,
analytics) still receive them if this process goes away.

Failure Handling:
    - Forwarding failure never blocks or fails the publisher
    - Failures are logged at CRITICAL level with the full payload so the
      event can be replayed manually
"""
import json
import logging
import os
from typing import Optional

from .events import Event

logger = logging.getLogger(__name__)


class KinesisEventStream:
    """Publishes persistent events to a Kinesis stream."""

    def __init__(
        self,
        stream_name: str = "harbor-events",
        enabled: bool = True,
        region: Optional[str] = None,
    ):
        """Initialize stream publisher.

        Args:
            stream_name: Kinesis stream name
            enabled: Whether forwarding is enabled (disable for local dev)
            region: AWS region (defaults to AWS_REGION env var)
        """
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = None

        logger.info(
            "EVENT_STREAM_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "region": self.region,
            }
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of Kinesis client."""
        if self._kinesis_client is None and self.enabled:
            try:
                import boto3
                self._kinesis_client = boto3.client(
                    "kinesis",
                    region_name=self.region,
                )
            except Exception as e:
                logger.error(
                    "KINESIS_CLIENT_INIT_FAILED",
                    extra={"error": str(e), "error_type": type(e).__name__}
                )
        return self._kinesis_client

    @staticmethod
    def _partition_key(event: Event) -> str:
        # Same user -> same shard keeps a user's events ordered
        return event.metadata.user_id or event.type

    def publish(self, event: Event) -> bool:
        """Forward one event to the stream.

        Args:
            event: Published event

        Returns:
            True if forwarded successfully, False otherwise
        """
        if not self.enabled:
            logger.debug(
                "EVENT_STREAM_SKIPPED",
                extra={"event_id": event.id, "reason": "stream_disabled"}
            )
            return False

        payload = json.dumps(event.to_dict(), default=str)

        try:
            if self.kinesis_client is None:
                logger.critical(
                    "EVENT_STREAM_FALLBACK_LOG",
                    extra={
                        "event_id": event.id,
                        "event_type": event.type,
                        "payload": payload,
                        "reason": "kinesis_client_unavailable",
                        "action": "MANUAL_PROCESSING_REQUIRED",
                    }
                )
                return False

            response = self.kinesis_client.put_record(
                StreamName=self.stream_name,
                Data=payload,
                PartitionKey=self._partition_key(event),
            )

            logger.info(
                "EVENT_STREAM_PUBLISHED",
                extra={
                    "event_id": event.id,
                    "event_type": event.type,
                    "shard_id": response.get("ShardId"),
                    "sequence_number": response.get("SequenceNumber"),
                }
            )
            return True

        except Exception as e:
            logger.critical(
                "EVENT_STREAM_PUBLISH_FAILED",
                extra={
                    "event_id": event.id,
                    "event_type": event.type,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "MANUAL_REVIEW_REQUIRED",
                    "payload": payload,
                }
            )
            return False
