"""Tests for the analysis orchestrator."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from history_insights.config import InsightsConfig
from history_insights.core import analyzer as analyzer_module
from history_insights.core.analyzer import HistoryAnalyzer
from history_insights.core.models import (
    BehaviorDetails,
    ContentTypes,
    SectionError,
    SyncItem,
    TimeDistribution,
)
from history_insights.core.store import InMemoryHistoryStore
from history_insights.errors import (
    ClassifierUnavailableError,
    NoDataError,
    StoreError,
)

START = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)


def run_async(coro):
    return asyncio.run(coro)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _items(count: int = 100) -> list[SyncItem]:
    """100 visits over 10 days: 60 YouTube, 25 GitHub, 15 example.com."""
    items = []
    for i in range(count):
        if i < 60:
            url = f"https://www.youtube.com/watch?v={i}"
        elif i < 85:
            url = f"https://github.com/org/repo{i}"
        else:
            url = f"https://example.com/page{i}"
        items.append(SyncItem(
            url=url,
            title=f"Page {i}",
            visit_count=1,
            last_visit_time=START + timedelta(hours=2.4 * i),
        ))
    return items


def _setup(classifier=None, ttl: int = 3600):
    clock = FakeClock(START + timedelta(days=11))
    store = InMemoryHistoryStore(clock=clock)
    config = InsightsConfig(classifier_provider="none", cache_ttl_seconds=ttl)
    analyzer = HistoryAnalyzer(store, classifier=classifier, config=config, clock=clock)
    run_async(store.sync_history("u1", _items()))
    return analyzer, store, clock


class TestGetAnalysis:
    """Test report generation and caching."""

    def test_no_history(self):
        analyzer = HistoryAnalyzer(InMemoryHistoryStore())
        with pytest.raises(NoDataError) as exc_info:
            run_async(analyzer.get_analysis("nobody"))
        assert "nobody" in str(exc_info.value)

    def test_full_report(self):
        analyzer, _, clock = _setup()

        result = run_async(analyzer.get_analysis("u1"))
        analysis = result.analysis

        assert result.from_cache is False
        assert result.analysis_timestamp == clock.now
        assert analysis.total_events == 100

        assert isinstance(analysis.time_distribution, TimeDistribution)
        assert sum(analysis.time_distribution.hourly) == 100

        assert isinstance(analysis.content_types, ContentTypes)
        assert analysis.content_types.primary_type == "Video"
        assert analysis.content_types.distribution["Video"] == 60.0
        assert sum(analysis.content_types.distribution.values()) == pytest.approx(100.0)

        assert analysis.domain_frequency.top_domains[0].domain == "youtube.com"
        assert analysis.domain_frequency.top_domains[0].count == 60

        # Fallback sees the 50 most recent: 10 YouTube, 25 GitHub, 15 other
        assert analysis.topic_categories.source == "fallback"
        assert analysis.topic_categories.primary_interests == ["Technology", "Entertainment"]
        assert len(analysis.topic_categories.categorized_items) == 50

        assert analysis.behavior_patterns.session_count == 100

        # No classifier configured
        assert isinstance(analysis.behavior_details, SectionError)
        assert analysis.failed_sections() == ["behavior_details"]

    def test_served_from_cache_while_fresh(self):
        analyzer, _, clock = _setup()

        first = run_async(analyzer.get_analysis("u1"))
        clock.advance(minutes=30)
        second = run_async(analyzer.get_analysis("u1"))

        assert second.from_cache is True
        assert second.analysis_timestamp == first.analysis_timestamp
        assert second.analysis == first.analysis

    def test_recomputed_after_ttl(self):
        analyzer, _, clock = _setup()

        first = run_async(analyzer.get_analysis("u1"))
        clock.advance(hours=1)
        second = run_async(analyzer.get_analysis("u1"))

        assert second.from_cache is False
        assert second.analysis_timestamp == first.analysis_timestamp + timedelta(hours=1)

    def test_force_refresh(self):
        analyzer, _, clock = _setup()

        run_async(analyzer.get_analysis("u1"))
        clock.advance(seconds=1)
        result = run_async(analyzer.get_analysis("u1", force_refresh=True))

        assert result.from_cache is False
        assert result.analysis_timestamp == clock.now

    def test_refresh_is_idempotent(self):
        """Recomputing an unchanged snapshot gives identical statistical sections."""
        analyzer, _, clock = _setup()

        first = run_async(analyzer.get_analysis("u1", force_refresh=True))
        clock.advance(minutes=5)
        second = run_async(analyzer.get_analysis("u1", force_refresh=True))

        assert second.analysis_timestamp != first.analysis_timestamp
        for section in ("time_distribution", "domain_frequency", "content_types", "behavior_patterns"):
            assert getattr(second.analysis, section) == getattr(first.analysis, section)

    def test_zero_ttl_never_caches(self):
        analyzer, _, _ = _setup(ttl=0)

        run_async(analyzer.get_analysis("u1"))
        result = run_async(analyzer.get_analysis("u1"))

        assert result.from_cache is False

    def test_save_failure_still_returns_report(self):
        analyzer, store, _ = _setup()
        store.save_analysis = AsyncMock(side_effect=StoreError("D1 unavailable"))

        result = run_async(analyzer.get_analysis("u1"))

        assert result.from_cache is False
        assert result.analysis.total_events == 100

    def test_read_failure_propagates(self):
        analyzer, store, _ = _setup()
        store.get_history = AsyncMock(side_effect=StoreError("D1 unavailable"))

        with pytest.raises(StoreError):
            run_async(analyzer.get_analysis("u1"))


class TestSectionIsolation:
    """Test that one failing section does not sink the report."""

    def test_failing_aggregator_becomes_section_error(self, monkeypatch):
        def explode(events):
            raise RuntimeError("content type table corrupted")

        monkeypatch.setattr(analyzer_module, "analyze_content_types", explode)
        analyzer, _, _ = _setup()

        analysis = run_async(analyzer.get_analysis("u1")).analysis

        assert analysis.content_types == SectionError(error="content type table corrupted")
        assert isinstance(analysis.time_distribution, TimeDistribution)
        assert "content_types" in analysis.failed_sections()

    def test_exception_without_message_uses_type_name(self, monkeypatch):
        def explode(events):
            raise ZeroDivisionError()

        monkeypatch.setattr(analyzer_module, "analyze_content_types", explode)
        analyzer, _, _ = _setup()

        analysis = run_async(analyzer.get_analysis("u1")).analysis

        assert analysis.content_types.error == "ZeroDivisionError"

    def test_classifier_outage_degrades_only_llm_sections(self):
        classifier = AsyncMock()
        classifier.classify.side_effect = ClassifierUnavailableError("quota exceeded", status_code=429)
        analyzer, _, _ = _setup(classifier=classifier)

        analysis = run_async(analyzer.get_analysis("u1")).analysis

        assert analysis.topic_categories.source == "fallback"
        assert isinstance(analysis.behavior_details, SectionError)
        assert analysis.behavior_details.error == "Behavior analysis unavailable: quota exceeded"
        assert analysis.failed_sections() == ["behavior_details"]

    def test_classifier_answers_used(self):
        topics = {
            "categorized_items": [{"url": "https://github.com/org/repo84", "category": "Technology"}],
            "topic_distribution": {"Technology": 100},
            "primary_interests": ["Technology"],
            "summary": "Mostly code.",
        }
        behavior = {"learning_behavior": "Hands-on.", "summary": "Focused."}

        async def classify(items, instructions):
            return json.dumps(behavior if "visit_count" in items[0] else topics)

        classifier = AsyncMock()
        classifier.classify.side_effect = classify
        analyzer, _, _ = _setup(classifier=classifier)

        analysis = run_async(analyzer.get_analysis("u1")).analysis

        assert analysis.topic_categories.source == "llm"
        assert analysis.topic_categories.summary == "Mostly code."
        assert isinstance(analysis.behavior_details, BehaviorDetails)
        assert analysis.failed_sections() == []
        assert classifier.classify.await_count == 2
