"""Inbound query models.

A ``QueryContext`` is built once per call to ``process_query`` and is the
only input the routing rules see.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .risk import AuthContext


class QueryPriority(Enum):
    """Caller-declared request priority."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class QueryPreferences:
    """Caller preferences for generation."""
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    priority: QueryPriority = QueryPriority.NORMAL


@dataclass(frozen=True)
class QueryContext:
    """Everything known about one inbound query."""
    query: str
    auth_context: AuthContext
    request_id: str
    context: Dict[str, Any] = field(default_factory=dict)
    preferences: QueryPreferences = field(default_factory=QueryPreferences)
    consent_to_train: bool = False
