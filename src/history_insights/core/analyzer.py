"""
Analysis orchestrator.

Reads one snapshot of a user's history, runs every report section
concurrently, merges the results and caches the report on the user's
record for `cache_ttl_seconds`.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

from ..classifier import TopicClassifier
from ..config import InsightsConfig
from ..content_types import analyze_content_types
from ..errors import NoDataError, StoreError
from ..topics import classify_topics, describe_behavior
from .aggregators import (
    analyze_behavior_patterns,
    analyze_domain_frequency,
    analyze_time_distribution,
)
from .models import Analysis, AnalysisResult, SectionError, VisitEvent
from .sessions import segment_sessions
from .store import HistoryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryAnalyzer:
    """Builds and caches browsing-history analysis reports."""

    def __init__(
        self,
        store: HistoryStore,
        classifier: TopicClassifier | None = None,
        config: InsightsConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.classifier = classifier
        self.config = config or InsightsConfig(classifier_provider="none")
        self._clock = clock

    def is_fresh(self, analysis_timestamp: datetime | None, now: datetime) -> bool:
        """Whether a cached analysis is still inside the validity window."""
        if analysis_timestamp is None:
            return False
        return now - analysis_timestamp < timedelta(seconds=self.config.cache_ttl_seconds)

    async def get_analysis(self, user_id: str, force_refresh: bool = False) -> AnalysisResult:
        """
        Get the analysis report for a user.

        Args:
            user_id: Owner of the history
            force_refresh: Recompute even if a fresh cached report exists

        Raises:
            NoDataError: If the user has no stored events
            StoreError: If the history cannot be read
        """
        history = await self.store.get_history(user_id)
        if history is None or not history.events:
            raise NoDataError(user_id)

        now = self._clock()
        if (
            not force_refresh
            and history.analysis is not None
            and self.is_fresh(history.analysis_timestamp, now)
        ):
            logger.debug(f"Serving cached analysis for {user_id} from {history.analysis_timestamp}")
            return AnalysisResult(
                analysis=history.analysis,
                from_cache=True,
                analysis_timestamp=history.analysis_timestamp,
            )

        analysis = await self.build_analysis(history.events, generated_at=now)

        try:
            await self.store.save_analysis(user_id, analysis, now)
        except StoreError as e:
            # Report is still valid; next request recomputes
            logger.error(f"Failed to cache analysis for {user_id}: {e}")

        failed = analysis.failed_sections()
        if failed:
            logger.warning(f"Analysis for {user_id} completed with failed sections: {', '.join(failed)}")
        else:
            logger.info(f"Analysis for {user_id} completed over {len(history.events)} events")

        return AnalysisResult(analysis=analysis, from_cache=False, analysis_timestamp=now)

    async def build_analysis(self, events: Sequence[VisitEvent], generated_at: datetime | None = None) -> Analysis:
        """Run every section over one immutable snapshot and merge them."""
        snapshot = tuple(events)
        tz = self.config.tzinfo

        sections = await self._run_sections(
            time_distribution=asyncio.to_thread(analyze_time_distribution, snapshot, tz),
            domain_frequency=asyncio.to_thread(
                analyze_domain_frequency, snapshot, self.config.top_domains_limit
            ),
            content_types=asyncio.to_thread(analyze_content_types, snapshot),
            behavior_patterns=asyncio.to_thread(self._behavior_patterns, snapshot),
            topic_categories=classify_topics(
                snapshot, self.classifier, self.config.recent_items_limit, tz
            ),
            behavior_details=describe_behavior(
                snapshot, self.classifier, self.config.recent_items_limit
            ),
        )

        return Analysis(
            total_events=len(snapshot),
            generated_at=generated_at or self._clock(),
            **sections,
        )

    def _behavior_patterns(self, events: Sequence[VisitEvent]):
        sessions = segment_sessions(events, self.config.session_timeout_minutes)
        return analyze_behavior_patterns(events, sessions, self.config.tzinfo)

    async def _run_sections(self, **sections) -> dict[str, Any]:
        """Await named section coroutines concurrently.

        A section that raises is replaced by a SectionError carrying the
        message; the other sections are unaffected.
        """
        names = list(sections.keys())
        results = await asyncio.gather(*sections.values(), return_exceptions=True)

        output = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Section '{name}' failed: {result}")
                output[name] = SectionError(error=str(result) or type(result).__name__)
            elif isinstance(result, BaseException):
                raise result
            else:
                output[name] = result

        return output
