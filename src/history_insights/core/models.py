"""
Pydantic models for browsing history and derived analysis reports.
"""
from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TITLE = "No Title"

# =============================================================================
# Raw Data Models
# =============================================================================

class VisitEvent(BaseModel):
    """A single browsing-history record (one URL)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str
    title: str = DEFAULT_TITLE
    visit_count: int = Field(default=1, ge=1, alias="visitCount")
    last_visit_time: datetime = Field(alias="lastVisitTime")

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value):
        return value or DEFAULT_TITLE

    @field_validator("visit_count", mode="before")
    @classmethod
    def _default_visit_count(cls, value):
        return value or 1

    @field_validator("last_visit_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from clients are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SyncItem(BaseModel):
    """A history item as sent by a browser client.

    Items without a URL are counted as filtered and never stored.
    """
    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    title: str | None = None
    visit_count: int | None = Field(default=None, ge=0, alias="visitCount")
    last_visit_time: datetime | None = Field(default=None, alias="lastVisitTime")

    def to_event(self, now: datetime) -> VisitEvent:
        return VisitEvent(
            url=self.url,
            title=self.title,
            visit_count=self.visit_count,
            last_visit_time=self.last_visit_time or now,
        )


class Session(BaseModel):
    """A run of visits separated by no more than the inactivity timeout."""
    start_time: datetime
    end_time: datetime
    duration_minutes: float = 0.0
    items: list[VisitEvent]

    @property
    def depth(self) -> int:
        """Number of pages visited in this session."""
        return len(self.items)


class SyncResult(BaseModel):
    """Outcome of merging a batch of client history into the store."""
    added: int = 0
    updated: int = 0
    filtered: int = 0


# =============================================================================
# Report Section Models
# =============================================================================

class SectionError(BaseModel):
    """Placeholder for a report section whose analysis failed."""
    model_config = ConfigDict(extra="forbid")

    error: str


class TimelinePoint(BaseModel):
    """Visit count for one calendar day."""
    day: date
    count: int


class TimeDistribution(BaseModel):
    """Hour-of-day and day-of-week visit histograms."""
    hourly: list[int]  # 24 buckets, local hour
    weekday: list[int]  # 7 buckets, 0 = Sunday
    timeline: list[TimelinePoint]
    peak_hour: int
    peak_weekday: str


class DomainCount(BaseModel):
    """Visit-weighted count for one domain."""
    domain: str
    count: int
    percentage: float | None = None


class DomainFrequency(BaseModel):
    """Ranked domains and overall domain diversity."""
    top_domains: list[DomainCount]
    total_unique_domains: int
    diversity_ratio: float  # unique domains / total events


class CategorizedItem(BaseModel):
    """A history item with its assigned topic category."""
    url: str
    title: str = DEFAULT_TITLE
    category: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    keywords: list[str] = Field(default_factory=list)


class TopicCategories(BaseModel):
    """Topic classification of recent history.

    Same shape whether produced by the LLM classifier or the keyword
    fallback; `source` records which one.
    """
    source: Literal["llm", "fallback"]
    categorized_items: list[CategorizedItem]
    distribution: dict[str, float]  # category -> percentage
    primary_interests: list[str]
    secondary_interests: list[str]
    summary: str


class ContentTypes(BaseModel):
    """Content-type mix of the history."""
    distribution: dict[str, float]  # type -> percentage (includes Other)
    primary_type: str
    diversity_score: str  # normalized entropy 0-100, two decimals
    top_domains_by_type: dict[str, list[DomainCount]]
    diversity_label: str = ""
    insight: str = ""


class WeekdayWeekendSplit(BaseModel):
    """Share of visits on weekdays vs weekends."""
    weekday_percentage: float
    weekend_percentage: float
    weekday_peak_hour: int | None = None
    weekend_peak_hour: int | None = None
    summary: str = ""


class Pathway(BaseModel):
    """A domain-to-domain transition inside a session."""
    from_domain: str
    to_domain: str
    count: int


class BehaviorPatterns(BaseModel):
    """Session and habit metrics."""
    session_count: int
    avg_session_minutes: float
    avg_session_depth: float  # pages per session
    avg_daily_visits: float
    returning_visit_rate: float  # % of domains visited more than once
    top_returning_domains: list[DomainCount]
    weekday_weekend: WeekdayWeekendSplit
    common_pathways: list[Pathway] = Field(default_factory=list)


class BehaviorDetails(BaseModel):
    """LLM-derived narrative about browsing behavior."""
    preferences: list[str] = Field(default_factory=list)
    wellbeing_notes: list[str] = Field(default_factory=list)
    learning_behavior: str
    keywords: list[str] = Field(default_factory=list)
    summary: str


# =============================================================================
# Report Models
# =============================================================================

class Analysis(BaseModel):
    """Complete analysis report for one history snapshot."""
    total_events: int
    generated_at: datetime
    time_distribution: TimeDistribution | SectionError
    domain_frequency: DomainFrequency | SectionError
    topic_categories: TopicCategories | SectionError
    content_types: ContentTypes | SectionError
    behavior_patterns: BehaviorPatterns | SectionError
    behavior_details: BehaviorDetails | SectionError

    def failed_sections(self) -> list[str]:
        """Names of sections that carry an error instead of data."""
        return [
            name for name in self.__class__.model_fields
            if isinstance(getattr(self, name), SectionError)
        ]


class UserHistory(BaseModel):
    """All stored history for one user plus the cached report."""
    user_id: str
    events: list[VisitEvent] = Field(default_factory=list)
    last_updated: datetime | None = None
    analysis: Analysis | None = None
    analysis_timestamp: datetime | None = None


class AnalysisResult(BaseModel):
    """Caller-facing analysis response."""
    model_config = ConfigDict(populate_by_name=True)

    analysis: Analysis
    from_cache: bool = Field(alias="fromCache")
    analysis_timestamp: datetime = Field(alias="analysisTimestamp")
