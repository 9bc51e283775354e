"""
Topic and behavior analysis with a deterministic fallback.

The LLM classifier is tried first. If it is unavailable or its answer
does not validate, topic categories come from the keyword table instead.
Behavior details have no fallback: they degrade to a SectionError.
"""
import logging
from datetime import timezone, tzinfo
from typing import Sequence

from pydantic import BaseModel, Field, ValidationError

from .categories import category_distribution, categorize_items, rank_interests
from .classifier import TopicClassifier, extract_json
from .config import DEFAULT_RECENT_ITEMS_LIMIT
from .core.models import (
    BehaviorDetails,
    CategorizedItem,
    SectionError,
    TopicCategories,
    VisitEvent,
)
from .errors import (
    ClassifierError,
    ClassifierUnavailableError,
    UnparseableClassifierResponseError,
)
from .narrative import generate_summary

logger = logging.getLogger(__name__)

TOPIC_INSTRUCTIONS = """
Categorize each browsing history item into a topic category (for example
Technology, News, Social Media, Entertainment, Shopping, Education, Finance,
Health or Other) and describe the user's interests.

Respond with this JSON structure:
{
  "categorized_items": [{"url": "...", "title": "...", "category": "...", "confidence": 0.0-1.0}],
  "topic_distribution": {"<category>": <percentage 0-100>},
  "primary_interests": ["<category>", "<category>"],
  "secondary_interests": ["<category>", "<category>", "<category>"],
  "summary": "<2-3 sentence description of the user's interests>"
}
"""

BEHAVIOR_INSTRUCTIONS = """
Study the browsing history items (with visit counts) and describe the
user's browsing behavior.

Respond with this JSON structure:
{
  "preferences": ["<content or site preference>", ...],
  "wellbeing_notes": ["<observation about screen time, balance or wellbeing>", ...],
  "learning_behavior": "<assessment of how the user seeks and consumes knowledge>",
  "keywords": ["<keyword>", ...],
  "summary": "<short narrative of the user's browsing behavior>"
}
"""


class _ClassifiedItem(BaseModel):
    url: str
    title: str = ""
    category: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class _TopicResponse(BaseModel):
    """Expected shape of the classifier's topic answer."""
    categorized_items: list[_ClassifiedItem] = Field(min_length=1)
    topic_distribution: dict[str, float]
    primary_interests: list[str]
    secondary_interests: list[str] = Field(default_factory=list)
    summary: str = Field(min_length=1)


def select_recent(events: Sequence[VisitEvent], limit: int = DEFAULT_RECENT_ITEMS_LIMIT) -> list[VisitEvent]:
    """The most recently visited items, newest first."""
    return sorted(events, key=lambda e: e.last_visit_time, reverse=True)[:limit]


def parse_topic_response(text: str) -> TopicCategories:
    """
    Validate a raw classifier answer into TopicCategories.

    Raises:
        UnparseableClassifierResponseError: If the text holds no JSON object
            or the object does not match the expected schema
    """
    payload = extract_json(text)
    try:
        response = _TopicResponse.model_validate(payload)
    except ValidationError as e:
        raise UnparseableClassifierResponseError(
            f"Classifier topic response failed validation: {e.error_count()} errors"
        ) from e

    distribution = dict(sorted(
        response.topic_distribution.items(),
        key=lambda pair: pair[1],
        reverse=True,
    ))

    return TopicCategories(
        source="llm",
        categorized_items=[
            CategorizedItem(
                url=item.url,
                title=item.title,
                category=item.category,
                confidence=item.confidence,
            )
            for item in response.categorized_items
        ],
        distribution=distribution,
        primary_interests=response.primary_interests,
        secondary_interests=response.secondary_interests,
        summary=response.summary,
    )


def parse_behavior_response(text: str) -> BehaviorDetails:
    """Validate a raw classifier answer into BehaviorDetails."""
    payload = extract_json(text)
    try:
        return BehaviorDetails.model_validate(payload)
    except ValidationError as e:
        raise UnparseableClassifierResponseError(
            f"Classifier behavior response failed validation: {e.error_count()} errors"
        ) from e


def fallback_topic_categories(
    recent: Sequence[VisitEvent],
    events: Sequence[VisitEvent],
    tz: tzinfo = timezone.utc,
) -> TopicCategories:
    """
    Keyword-table topic categories and a templated summary.

    Args:
        recent: Items to categorize (the same selection the LLM would see)
        events: Full history, used for the narrative statistics
        tz: Timezone for peak hour/weekday in the narrative
    """
    items = categorize_items(recent)
    distribution = category_distribution(items)
    primary, secondary = rank_interests(distribution)

    return TopicCategories(
        source="fallback",
        categorized_items=items,
        distribution=distribution,
        primary_interests=primary,
        secondary_interests=secondary,
        summary=generate_summary(events, primary[0] if primary else None, tz),
    )


async def classify_topics(
    events: Sequence[VisitEvent],
    classifier: TopicClassifier | None,
    limit: int = DEFAULT_RECENT_ITEMS_LIMIT,
    tz: tzinfo = timezone.utc,
) -> TopicCategories:
    """Topic categories from the classifier, or the keyword fallback."""
    recent = select_recent(events, limit)

    if classifier is None:
        return fallback_topic_categories(recent, events, tz)

    items = [{"url": e.url, "title": e.title} for e in recent]
    try:
        raw = await classifier.classify(items, TOPIC_INSTRUCTIONS)
        return parse_topic_response(raw)
    except ClassifierUnavailableError as e:
        logger.warning(f"Topic classifier unavailable, using keyword fallback: {e}")
    except UnparseableClassifierResponseError as e:
        logger.warning(f"Topic classifier response unusable, using keyword fallback: {e}")
    except Exception as e:
        logger.error(f"Topic classifier failed unexpectedly, using keyword fallback: {e!r}")

    return fallback_topic_categories(recent, events, tz)


async def describe_behavior(
    events: Sequence[VisitEvent],
    classifier: TopicClassifier | None,
    limit: int = DEFAULT_RECENT_ITEMS_LIMIT,
) -> BehaviorDetails | SectionError:
    """LLM behavior narrative, or an explicit error when unavailable."""
    if classifier is None:
        return SectionError(error="Behavior analysis unavailable: no classifier configured")

    recent = select_recent(events, limit)
    items = [{"url": e.url, "title": e.title, "visit_count": e.visit_count} for e in recent]
    try:
        raw = await classifier.classify(items, BEHAVIOR_INSTRUCTIONS)
        return parse_behavior_response(raw)
    except ClassifierError as e:
        logger.warning(f"Behavior analysis failed: {e}")
        return SectionError(error=f"Behavior analysis unavailable: {e}")
    except Exception as e:
        logger.error(f"Behavior analysis failed unexpectedly: {e!r}")
        return SectionError(error=f"Behavior analysis unavailable: {type(e).__name__}")
