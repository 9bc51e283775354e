"""
Configuration for history insights.
"""
import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Analysis constants
DEFAULT_SESSION_TIMEOUT_MINUTES = 30
DEFAULT_CACHE_TTL_SECONDS = 60 * 60  # 1 hour
DEFAULT_RECENT_ITEMS_LIMIT = 50
DEFAULT_TOP_DOMAINS_LIMIT = 10

CLASSIFIER_PROVIDERS = ("openai", "gemini", "none")

ENV_PREFIX = "HISTORY_INSIGHTS_"


@dataclass
class InsightsConfig:
    """Configuration for a history insights instance."""

    # Analysis settings
    session_timeout_minutes: int = DEFAULT_SESSION_TIMEOUT_MINUTES
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    recent_items_limit: int = DEFAULT_RECENT_ITEMS_LIMIT
    top_domains_limit: int = DEFAULT_TOP_DOMAINS_LIMIT
    timezone: str = "UTC"  # Used for hour/weekday/date bucketing

    # Topic classifier
    classifier_provider: str = "openai"  # openai, gemini, none
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"
    classifier_timeout_seconds: float = 30.0

    # Optional D1 persistence (in-memory store when unset)
    d1_database_id: str | None = None
    cf_account_id: str | None = None
    cf_api_token: str | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.session_timeout_minutes <= 0:
            raise ConfigError("session_timeout_minutes must be positive")
        if self.cache_ttl_seconds < 0:
            raise ConfigError("cache_ttl_seconds cannot be negative")
        if self.recent_items_limit <= 0 or self.top_domains_limit <= 0:
            raise ConfigError("Item limits must be positive")
        if self.classifier_provider not in CLASSIFIER_PROVIDERS:
            raise ConfigError(
                f"Unknown classifier provider '{self.classifier_provider}'. "
                f"Expected one of: {', '.join(CLASSIFIER_PROVIDERS)}"
            )
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"Unknown timezone '{self.timezone}'") from None

        self._warn_missing_credentials()

    def _warn_missing_credentials(self) -> None:
        """Log when the classifier will always fall back to keyword rules."""
        if self.classifier_provider == "none":
            logger.info("Topic classifier disabled, using keyword fallback only")
        elif not self.classifier_api_key:
            logger.warning(
                f"No API key configured for classifier '{self.classifier_provider}'. "
                f"Topic analysis will use keyword fallback and behavior details "
                f"will be unavailable."
            )

    @property
    def classifier_api_key(self) -> str | None:
        """API key of the selected classifier provider."""
        if self.classifier_provider == "openai":
            return self.openai_api_key
        if self.classifier_provider == "gemini":
            return self.gemini_api_key
        return None

    @property
    def has_d1(self) -> bool:
        """Check if D1 persistence is configured."""
        return bool(self.d1_database_id and self.cf_account_id and self.cf_api_token)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "InsightsConfig":
        """Build a config from environment variables.

        Reads HISTORY_INSIGHTS_* settings plus the provider keys
        OPENAI_API_KEY and GEMINI_API_KEY.
        """
        env = os.environ if environ is None else environ

        def _get(name: str, default=None):
            return env.get(f"{ENV_PREFIX}{name}", default)

        def _get_int(name: str, default: int) -> int:
            raw = _get(name)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got '{raw}'") from None

        timeout_raw = _get("CLASSIFIER_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else 30.0
        except ValueError:
            raise ConfigError(
                f"{ENV_PREFIX}CLASSIFIER_TIMEOUT must be a number, got '{timeout_raw}'"
            ) from None

        return cls(
            session_timeout_minutes=_get_int("SESSION_TIMEOUT_MINUTES", DEFAULT_SESSION_TIMEOUT_MINUTES),
            cache_ttl_seconds=_get_int("CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
            recent_items_limit=_get_int("RECENT_ITEMS_LIMIT", DEFAULT_RECENT_ITEMS_LIMIT),
            top_domains_limit=_get_int("TOP_DOMAINS_LIMIT", DEFAULT_TOP_DOMAINS_LIMIT),
            timezone=_get("TIMEZONE", "UTC"),
            classifier_provider=_get("CLASSIFIER", "openai").lower(),
            openai_api_key=env.get("OPENAI_API_KEY"),
            openai_model=_get("OPENAI_MODEL", "gpt-4o-mini"),
            openai_base_url=_get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            gemini_api_key=env.get("GEMINI_API_KEY"),
            gemini_model=_get("GEMINI_MODEL", "gemini-2.0-flash"),
            classifier_timeout_seconds=timeout,
            d1_database_id=_get("D1_DATABASE_ID"),
            cf_account_id=_get("CF_ACCOUNT_ID"),
            cf_api_token=_get("CF_API_TOKEN"),
        )
