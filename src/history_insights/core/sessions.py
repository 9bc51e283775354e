"""
Session segmentation for browsing history.

A session is a run of visits where no two consecutive visits are more than
the inactivity timeout apart.
"""
from datetime import timedelta
from typing import Iterable

from ..config import DEFAULT_SESSION_TIMEOUT_MINUTES
from .models import Session, VisitEvent


def _close_session(items: list[VisitEvent]) -> Session:
    start = items[0].last_visit_time
    end = items[-1].last_visit_time
    return Session(
        start_time=start,
        end_time=end,
        duration_minutes=round((end - start).total_seconds() / 60, 2),
        items=items,
    )


def segment_sessions(
    events: Iterable[VisitEvent],
    timeout_minutes: int = DEFAULT_SESSION_TIMEOUT_MINUTES,
) -> list[Session]:
    """
    Split visits into sessions by inactivity gap.

    Args:
        events: Visits in any order
        timeout_minutes: A gap strictly greater than this starts a new session

    Returns:
        Sessions ordered by start time. Every input visit appears in
        exactly one session.
    """
    ordered = sorted(events, key=lambda e: e.last_visit_time)
    if not ordered:
        return []

    timeout = timedelta(minutes=timeout_minutes)
    sessions: list[Session] = []
    current = [ordered[0]]

    for event in ordered[1:]:
        if event.last_visit_time - current[-1].last_visit_time > timeout:
            sessions.append(_close_session(current))
            current = [event]
        else:
            current.append(event)

    sessions.append(_close_session(current))
    return sessions
