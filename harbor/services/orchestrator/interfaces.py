"""Narrow interfaces to external collaborators.

The orchestrator only needs two things from the outside world: a semantic
cache for previously answered queries and a feature lookup for per-user
risk and consent. In-memory implementations back local runs and tests.
"""
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Tuple

from harbor.shared.models import UserFeatures
from harbor.shared.utils import hash_pii

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResponse:
    """A stored answer matched to a new query."""
    response: str
    confidence: float
    source_target: Optional[str] = None
    stored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SemanticCache(Protocol):
    async def find_similar(self, query: str, user_id: str) -> Optional[CachedResponse]:
        ...

    async def store(
        self,
        query: str,
        response: str,
        user_id: str,
        confidence: float,
        source_target: Optional[str] = None,
    ) -> None:
        ...


class FeatureLookup(Protocol):
    async def get_user_features(self, user_id: str) -> Optional[UserFeatures]:
        ...


_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    return _WHITESPACE.sub(" ", query.strip().lower())


class InMemorySemanticCache:
    """Exact match on normalized query text, per user, LRU-bounded.

    A normalized match is reported with similarity 1.0.
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[Tuple[str, str], CachedResponse]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def find_similar(self, query: str, user_id: str) -> Optional[CachedResponse]:
        key = (user_id, normalize_query(query))
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return CachedResponse(
            response=entry.response,
            confidence=1.0,
            source_target=entry.source_target,
            stored_at=entry.stored_at,
        )

    async def store(
        self,
        query: str,
        response: str,
        user_id: str,
        confidence: float,
        source_target: Optional[str] = None,
    ) -> None:
        key = (user_id, normalize_query(query))
        self._entries[key] = CachedResponse(
            response=response,
            confidence=confidence,
            source_target=source_target,
        )
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

        logger.debug(
            "SEMANTIC_CACHE_STORED",
            extra={"user_id_hash": hash_pii(user_id), "size": len(self._entries)}
        )


class InMemoryFeatureStore:
    """Dictionary-backed feature lookup."""

    def __init__(self, features: Optional[Dict[str, UserFeatures]] = None):
        self._features: Dict[str, UserFeatures] = dict(features or {})

    def put(self, features: UserFeatures) -> None:
        self._features[features.user_id] = features

    async def get_user_features(self, user_id: str) -> Optional[UserFeatures]:
        return self._features.get(user_id)
