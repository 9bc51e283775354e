"""
Templated narrative summaries for the keyword fallback.

Everything here is deterministic string building; nothing calls out to a
classifier service.
"""
from datetime import timezone, tzinfo
from typing import Sequence

from .core.aggregators import analyze_time_distribution, count_domains
from .core.models import VisitEvent

CATEGORY_SENTENCES = {
    "Technology": "You spend a lot of time on technical topics such as programming, software and developer tools.",
    "News": "You keep up with current events and regularly read news coverage.",
    "Social Media": "Social platforms make up a large part of your browsing, keeping you connected with people and communities.",
    "Entertainment": "Entertainment such as video, music and games features prominently in your browsing.",
    "Shopping": "You frequently browse shopping sites, comparing products and looking for deals.",
    "Education": "You show a strong interest in learning, with visits to courses, tutorials and reference material.",
    "Finance": "You pay close attention to money matters such as banking, investing and markets.",
    "Health": "Health and wellbeing topics like fitness, nutrition and medical information stand out in your browsing.",
}

NO_PATTERN_SENTENCE = (
    "No clear pattern of interests stands out yet; your browsing does not "
    "fall into any of the recognized topic categories."
)


def _format_hour(hour: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display} {suffix}"


def day_span(events: Sequence[VisitEvent]) -> float:
    """Days between the oldest and newest visit."""
    if not events:
        return 0.0
    times = [e.last_visit_time for e in events]
    return (max(times) - min(times)).total_seconds() / 86400


def generate_summary(
    events: Sequence[VisitEvent],
    top_category: str | None,
    tz: tzinfo = timezone.utc,
) -> str:
    """
    Build the fallback narrative for a history.

    Args:
        events: The full history snapshot
        top_category: Highest-ranked interest, or None when nothing matched
        tz: Timezone used for the peak hour and weekday
    """
    if not events:
        return NO_PATTERN_SENTENCE

    total_visits = sum(e.visit_count for e in events)
    unique_domains = len(count_domains(events))
    span = day_span(events)
    timing = analyze_time_distribution(events, tz)

    span_text = "less than a day" if span < 1 else f"{span:.1f} days"
    parts = [
        f"Across {total_visits} visits to {unique_domains} unique domains over {span_text}, "
        f"you are most active around {_format_hour(timing.peak_hour)} and on {timing.peak_weekday}s.",
        CATEGORY_SENTENCES.get(top_category, NO_PATTERN_SENTENCE) if top_category else NO_PATTERN_SENTENCE,
    ]
    return " ".join(parts)
