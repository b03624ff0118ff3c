"""In-memory escalation queue for human review.

One entry per user (the latest escalation replaces an earlier one).
The queue is capacity-bounded; when full the least recently escalated
entry is evicted.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from harbor.shared.utils import hash_pii, hash_pii_for_log

logger = logging.getLogger(__name__)


class EscalationStatus(Enum):
    PENDING = "pending"
    HANDLED = "handled"


@dataclass(frozen=True)
class EscalationEntry:
    """One escalated verdict awaiting (or after) human review."""
    user_id: str
    crisis_type: str
    severity: str
    confidence: float
    query_preview: str
    escalated_at: datetime
    status: EscalationStatus = EscalationStatus.PENDING
    handled_by: Optional[str] = None
    handled_at: Optional[datetime] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Reviewer-facing view; the raw user id is replaced by its hash."""
        return {
            "user_id_hash": hash_pii(self.user_id),
            "crisis_type": self.crisis_type,
            "severity": self.severity,
            "confidence": self.confidence,
            "query_preview": self.query_preview,
            "escalated_at": self.escalated_at.isoformat(),
            "status": self.status.value,
            "handled_by": self.handled_by,
            "handled_at": self.handled_at.isoformat() if self.handled_at else None,
            "notes": self.notes,
        }


class EscalationQueue:
    """User-keyed, capacity-bounded review queue."""

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, EscalationEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        user_id: str,
        crisis_type: str,
        severity: str,
        confidence: float,
        query_preview: str,
    ) -> EscalationEntry:
        """Record an escalation, replacing any earlier entry for the user."""
        entry = EscalationEntry(
            user_id=user_id,
            crisis_type=crisis_type,
            severity=severity,
            confidence=confidence,
            query_preview=query_preview,
            escalated_at=datetime.now(timezone.utc),
        )
        self._entries.pop(user_id, None)
        self._entries[user_id] = entry

        while len(self._entries) > self.capacity:
            evicted_user, evicted = self._entries.popitem(last=False)
            logger.warning(
                "ESCALATION_ENTRY_EVICTED",
                extra={
                    "user_id_hash": hash_pii_for_log(evicted_user),
                    "status": evicted.status.value,
                    "capacity": self.capacity,
                }
            )

        logger.warning(
            "ESCALATION_QUEUED",
            extra={
                "user_id_hash": hash_pii_for_log(user_id),
                "crisis_type": crisis_type,
                "severity": severity,
                "confidence": confidence,
            }
        )
        return entry

    def get(self, user_id: str) -> Optional[EscalationEntry]:
        return self._entries.get(user_id)

    def mark_handled(
        self, user_id: str, handled_by: str, notes: Optional[str] = None
    ) -> Optional[EscalationEntry]:
        """Mark the user's entry as handled.

        Returns:
            The updated entry, or None if the user has no entry
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        updated = replace(
            entry,
            status=EscalationStatus.HANDLED,
            handled_by=handled_by,
            handled_at=datetime.now(timezone.utc),
            notes=notes,
        )
        self._entries[user_id] = updated

        logger.info(
            "ESCALATION_HANDLED",
            extra={
                "user_id_hash": hash_pii_for_log(user_id),
                "handled_by": handled_by,
                "original_severity": entry.severity,
            }
        )
        return updated

    def pending(self) -> List[EscalationEntry]:
        """Pending entries, most recently escalated first."""
        return [
            entry for entry in reversed(self._entries.values())
            if entry.status == EscalationStatus.PENDING
        ]
