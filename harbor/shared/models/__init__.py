"""Shared domain models for Harbor."""
from .risk import (
    RiskLevel,
    Severity,
    CrisisSeverity,
    RecommendedAction,
    CrisisType,
    ConsentFlags,
    AuthContext,
    UserFeatures,
)
from .request import QueryPriority, QueryPreferences, QueryContext

__all__ = [
    "RiskLevel",
    "Severity",
    "CrisisSeverity",
    "RecommendedAction",
    "CrisisType",
    "ConsentFlags",
    "AuthContext",
    "UserFeatures",
    "QueryPriority",
    "QueryPreferences",
    "QueryContext",
]
