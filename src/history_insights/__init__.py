"""
Browsing-history insights for a personal digital twin.

Usage:
    from history_insights import setup_insights

    insights = setup_insights()  # reads HISTORY_INSIGHTS_* / OPENAI_API_KEY

    # Include history routes
    app.include_router(insights.router, prefix="/api")

    # Or query directly
    result = await insights.analyzer.get_analysis(user_id)
"""

from .core.analyzer import HistoryAnalyzer
from .classifier import create_classifier
from .config import InsightsConfig
from .core.models import Analysis, AnalysisResult, VisitEvent
from .core.store import D1HistoryStore, HistoryStore, InMemoryHistoryStore
from .errors import NoDataError
from .routes import create_history_router

__version__ = "0.1.0"
__all__ = [
    "setup_insights", "HistoryInsights", "HistoryAnalyzer", "InsightsConfig",
    "Analysis", "AnalysisResult", "VisitEvent", "NoDataError",
    "HistoryStore", "InMemoryHistoryStore", "D1HistoryStore",
]


class HistoryInsights:
    """Main insights interface: store, classifier, analyzer and routes."""

    def __init__(
        self,
        config: InsightsConfig,
        store: HistoryStore | None = None,
        classifier=None,
    ):
        self.config = config
        self.store = store or self._default_store(config)
        self.classifier = classifier if classifier is not None else create_classifier(config)
        self.analyzer = HistoryAnalyzer(
            store=self.store,
            classifier=self.classifier,
            config=config,
        )
        self.router = create_history_router(self.analyzer, self.store)

    @staticmethod
    def _default_store(config: InsightsConfig) -> HistoryStore:
        if config.has_d1:
            return D1HistoryStore(
                d1_database_id=config.d1_database_id,
                cf_account_id=config.cf_account_id,
                cf_api_token=config.cf_api_token,
            )
        return InMemoryHistoryStore()


def setup_insights(
    config: InsightsConfig | None = None,
    store: HistoryStore | None = None,
    classifier=None,
) -> HistoryInsights:
    """
    Set up history insights.

    Args:
        config: Settings; read from the environment when omitted
        store: History store; D1 when configured, in-memory otherwise
        classifier: Topic classifier; built from config when omitted

    Returns:
        HistoryInsights instance with analyzer and router
    """
    return HistoryInsights(
        config=config or InsightsConfig.from_env(),
        store=store,
        classifier=classifier,
    )
