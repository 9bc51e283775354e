"""
Core history module.

Contains the data models, session segmentation and history stores.
The orchestrator lives in `core.analyzer`.
"""

from .models import (
    Analysis,
    AnalysisResult,
    BehaviorDetails,
    BehaviorPatterns,
    CategorizedItem,
    ContentTypes,
    DomainCount,
    DomainFrequency,
    Pathway,
    SectionError,
    Session,
    SyncItem,
    SyncResult,
    TimeDistribution,
    TimelinePoint,
    TopicCategories,
    UserHistory,
    VisitEvent,
    WeekdayWeekendSplit,
)
from .sessions import segment_sessions
from .store import D1HistoryStore, HistoryStore, InMemoryHistoryStore

__all__ = [
    "VisitEvent", "UserHistory", "Session", "SyncItem", "SyncResult",
    "TimeDistribution", "TimelinePoint", "DomainFrequency", "DomainCount",
    "TopicCategories", "CategorizedItem", "ContentTypes",
    "BehaviorPatterns", "WeekdayWeekendSplit", "Pathway", "BehaviorDetails",
    "SectionError", "Analysis", "AnalysisResult",
    "segment_sessions",
    "HistoryStore", "InMemoryHistoryStore", "D1HistoryStore",
]
