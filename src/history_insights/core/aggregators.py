"""
Statistical aggregators over a browsing-history snapshot.

All functions are pure: they read a list of visits and return a report
section. None of them raise on empty input.
"""
from collections import Counter
from datetime import date, timezone, tzinfo
from typing import Sequence

from ..config import DEFAULT_TOP_DOMAINS_LIMIT
from ..domains import extract_domain
from .models import (
    BehaviorPatterns,
    DomainCount,
    DomainFrequency,
    Pathway,
    Session,
    TimeDistribution,
    TimelinePoint,
    VisitEvent,
    WeekdayWeekendSplit,
)

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEKEND_INDICES = (0, 6)  # Sunday, Saturday


def _peak_index(buckets: Sequence[int]) -> int:
    """Index of the maximum bucket; the lowest index wins ties."""
    return buckets.index(max(buckets))


def _weekday_index(moment) -> int:
    """Weekday with Sunday as 0 (Python's weekday() has Monday as 0)."""
    return (moment.weekday() + 1) % 7


def _percentage(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


# =========================================================================
# TIME DISTRIBUTION
# =========================================================================

def analyze_time_distribution(
    events: Sequence[VisitEvent],
    tz: tzinfo = timezone.utc,
) -> TimeDistribution:
    """Hourly/weekday histograms, per-date timeline and peak activity."""
    hourly = [0] * 24
    weekday = [0] * 7
    per_day: Counter[date] = Counter()

    for event in events:
        local = event.last_visit_time.astimezone(tz)
        hourly[local.hour] += 1
        weekday[_weekday_index(local)] += 1
        per_day[local.date()] += 1

    return TimeDistribution(
        hourly=hourly,
        weekday=weekday,
        timeline=[TimelinePoint(day=d, count=per_day[d]) for d in sorted(per_day)],
        peak_hour=_peak_index(hourly),
        peak_weekday=WEEKDAY_NAMES[_peak_index(weekday)],
    )


# =========================================================================
# DOMAINS
# =========================================================================

def count_domains(events: Sequence[VisitEvent]) -> Counter[str]:
    """Visit-weighted counts per domain. Unparseable URLs are skipped."""
    counts: Counter[str] = Counter()
    for event in events:
        domain = extract_domain(event.url)
        if domain is None:
            continue
        counts[domain] += event.visit_count
    return counts


def analyze_domain_frequency(
    events: Sequence[VisitEvent],
    limit: int = DEFAULT_TOP_DOMAINS_LIMIT,
) -> DomainFrequency:
    """
    Rank domains by visit-weighted count.

    Percentages are relative to the total weighted count of parseable
    visits. The diversity ratio divides unique domains by the raw number
    of events, parseable or not.
    """
    counts = count_domains(events)
    total_weighted = sum(counts.values())

    return DomainFrequency(
        top_domains=[
            DomainCount(
                domain=domain,
                count=count,
                percentage=_percentage(count, total_weighted),
            )
            for domain, count in counts.most_common(limit)
        ],
        total_unique_domains=len(counts),
        diversity_ratio=round(len(counts) / len(events), 4) if events else 0.0,
    )


# =========================================================================
# BEHAVIOR PATTERNS
# =========================================================================

def _summarize_week_split(weekday_pct: float, weekend_pct: float, peak_day: str) -> str:
    if weekday_pct > 80:
        return f"Your browsing is almost exclusively on weekdays, with {peak_day} being your most active day."
    elif weekend_pct > 80:
        return f"You primarily browse on weekends, with {peak_day} showing the highest activity."
    elif weekday_pct > 60:
        return f"You browse more on weekdays than weekends, with peak activity on {peak_day}."
    elif weekend_pct > 60:
        return f"Your browsing is concentrated on weekends, with {peak_day} being particularly active."
    preference = "weekdays" if weekday_pct > weekend_pct else "weekends"
    return (
        f"Your browsing is fairly evenly split between weekdays and weekends, "
        f"with a slight preference for {preference} and peak activity on {peak_day}."
    )


def analyze_week_split(events: Sequence[VisitEvent], tz: tzinfo = timezone.utc) -> WeekdayWeekendSplit:
    """Weekday vs weekend share with the peak hour of each group."""
    weekday_hours = [0] * 24
    weekend_hours = [0] * 24
    day_counts = [0] * 7

    for event in events:
        local = event.last_visit_time.astimezone(tz)
        index = _weekday_index(local)
        day_counts[index] += 1
        if index in WEEKEND_INDICES:
            weekend_hours[local.hour] += 1
        else:
            weekday_hours[local.hour] += 1

    weekday_total = sum(weekday_hours)
    weekend_total = sum(weekend_hours)
    total = weekday_total + weekend_total
    weekday_pct = _percentage(weekday_total, total)
    weekend_pct = _percentage(weekend_total, total)

    return WeekdayWeekendSplit(
        weekday_percentage=weekday_pct,
        weekend_percentage=weekend_pct,
        weekday_peak_hour=_peak_index(weekday_hours) if weekday_total else None,
        weekend_peak_hour=_peak_index(weekend_hours) if weekend_total else None,
        summary=(
            _summarize_week_split(weekday_pct, weekend_pct, WEEKDAY_NAMES[_peak_index(day_counts)])
            if total else ""
        ),
    )


def find_pathways(sessions: Sequence[Session], limit: int = 5) -> list[Pathway]:
    """Most frequent domain-to-domain transitions within sessions."""
    transitions: Counter[tuple[str, str]] = Counter()

    for session in sessions:
        previous = None
        for event in session.items:
            domain = extract_domain(event.url)
            if domain is None:
                continue
            if previous is not None and domain != previous:
                transitions[(previous, domain)] += 1
            previous = domain

    return [
        Pathway(from_domain=source, to_domain=target, count=count)
        for (source, target), count in transitions.most_common(limit)
    ]


def analyze_behavior_patterns(
    events: Sequence[VisitEvent],
    sessions: Sequence[Session],
    tz: tzinfo = timezone.utc,
    top_returning: int = 5,
) -> BehaviorPatterns:
    """
    Session, returning-visit and weekly-rhythm metrics.

    A domain counts as returning when its visit-weighted count exceeds one.
    """
    session_count = len(sessions)
    if session_count:
        avg_minutes = sum(s.duration_minutes for s in sessions) / session_count
        avg_depth = sum(s.depth for s in sessions) / session_count
    else:
        avg_minutes = avg_depth = 0.0

    active_days = {e.last_visit_time.astimezone(tz).date() for e in events}
    avg_daily = len(events) / len(active_days) if active_days else 0.0

    domain_counts = count_domains(events)
    returning = Counter({d: c for d, c in domain_counts.items() if c > 1})

    return BehaviorPatterns(
        session_count=session_count,
        avg_session_minutes=round(avg_minutes, 2),
        avg_session_depth=round(avg_depth, 2),
        avg_daily_visits=round(avg_daily, 2),
        returning_visit_rate=_percentage(len(returning), len(domain_counts)),
        top_returning_domains=[
            DomainCount(domain=domain, count=count)
            for domain, count in returning.most_common(top_returning)
        ],
        weekday_weekend=analyze_week_split(events, tz),
        common_pathways=find_pathways(sessions),
    )
