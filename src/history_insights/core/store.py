"""
Persistence for per-user browsing history and cached analyses.

Two implementations share one interface:
- InMemoryHistoryStore: process-local, for tests and single-node use
- D1HistoryStore: Cloudflare D1 through its HTTP query API
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Sequence

import httpx
from pydantic import ValidationError

from ..errors import StoreError
from .models import Analysis, SyncItem, SyncResult, UserHistory, VisitEvent

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def merge_history(history: UserHistory, items: Sequence[SyncItem], now: datetime) -> SyncResult:
    """
    Merge client items into a user's history in place.

    A known URL keeps the larger visit count and the later visit time;
    a new URL is appended. Items without a URL are filtered out.
    """
    result = SyncResult()
    index = {event.url: i for i, event in enumerate(history.events)}

    for item in items:
        if not item.url:
            result.filtered += 1
            continue

        incoming = item.to_event(now)
        position = index.get(incoming.url)
        if position is None:
            index[incoming.url] = len(history.events)
            history.events.append(incoming)
            result.added += 1
        else:
            existing = history.events[position]
            history.events[position] = existing.model_copy(update={
                "visit_count": max(existing.visit_count, incoming.visit_count),
                "last_visit_time": max(existing.last_visit_time, incoming.last_visit_time),
            })
            result.updated += 1

    history.last_updated = now
    return result


class HistoryStore(ABC):
    """Storage interface used by the analyzer and the HTTP routes."""

    @abstractmethod
    async def get_history(self, user_id: str) -> Optional[UserHistory]:
        """Full snapshot of a user's events plus any cached analysis."""

    @abstractmethod
    async def save_analysis(self, user_id: str, analysis: Analysis, timestamp: datetime) -> None:
        """Upsert the cached analysis for a user."""

    @abstractmethod
    async def sync_history(self, user_id: str, items: Sequence[SyncItem]) -> SyncResult:
        """Merge a batch of client history items."""

    @abstractmethod
    async def list_events(self, user_id: str, page: int = 1, limit: int = 50) -> tuple[list[VisitEvent], int]:
        """A page of events, most recent first, with the total count."""

    @abstractmethod
    async def delete_all_history(self, user_id: str) -> None:
        """Remove every event and the cached analysis for a user."""


class InMemoryHistoryStore(HistoryStore):
    """History store kept in process memory."""

    def __init__(self, clock=_utcnow):
        self._histories: dict[str, UserHistory] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get_history(self, user_id: str) -> Optional[UserHistory]:
        async with self._lock:
            history = self._histories.get(user_id)
            # Callers get a copy so in-flight analyses never see later syncs
            return history.model_copy(deep=True) if history else None

    async def save_analysis(self, user_id: str, analysis: Analysis, timestamp: datetime) -> None:
        async with self._lock:
            history = self._histories.setdefault(user_id, UserHistory(user_id=user_id))
            history.analysis = analysis
            history.analysis_timestamp = timestamp

    async def sync_history(self, user_id: str, items: Sequence[SyncItem]) -> SyncResult:
        async with self._lock:
            history = self._histories.setdefault(user_id, UserHistory(user_id=user_id))
            result = merge_history(history, items, self._clock())

        logger.info(
            f"Synced history for {user_id}: {result.added} added, "
            f"{result.updated} updated, {result.filtered} filtered"
        )
        return result

    async def list_events(self, user_id: str, page: int = 1, limit: int = 50) -> tuple[list[VisitEvent], int]:
        async with self._lock:
            history = self._histories.get(user_id)
            events = list(history.events) if history else []

        events.sort(key=lambda e: e.last_visit_time, reverse=True)
        offset = (page - 1) * limit
        return events[offset:offset + limit], len(events)

    async def delete_all_history(self, user_id: str) -> None:
        async with self._lock:
            self._histories.pop(user_id, None)


# =============================================================================
# CLOUDFLARE D1
# =============================================================================

SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS visit_events (
        user_id TEXT NOT NULL,
        url TEXT NOT NULL,
        title TEXT NOT NULL,
        visit_count INTEGER NOT NULL DEFAULT 1,
        last_visit_time TEXT NOT NULL,
        PRIMARY KEY (user_id, url)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_analyses (
        user_id TEXT PRIMARY KEY,
        analysis TEXT,
        analysis_timestamp TEXT,
        last_updated TEXT
    )
    """,
]

# D1 caps bound parameters per statement at 100
UPSERT_BATCH_SIZE = 20


def _iso(moment: datetime) -> str:
    """UTC ISO timestamp; fixed format keeps text comparison chronological."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class D1HistoryStore(HistoryStore):
    """History store backed by a Cloudflare D1 database."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        clock=_utcnow,
    ):
        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"
        self._clock = clock

    async def _query(self, sql: str, params: Optional[list] = None) -> list[dict]:
        """Execute a SQL query against D1."""
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    f"{self.base_url}/query",
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Content-Type": "application/json",
                    },
                    json={"sql": sql, "params": params or []},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise StoreError(f"D1 request failed: {e}") from e

        if not data.get("success"):
            raise StoreError(f"D1 query failed: {data.get('errors')}")

        results = data.get("result", [])
        if results:
            return results[0].get("results", [])
        return []

    async def ensure_schema(self) -> None:
        """Create tables if they do not exist."""
        for statement in SCHEMA_SQL:
            await self._query(statement)

    async def get_history(self, user_id: str) -> Optional[UserHistory]:
        rows = await self._query(
            """
            SELECT url, title, visit_count, last_visit_time
            FROM visit_events
            WHERE user_id = ?
            ORDER BY rowid ASC
            """,
            [user_id],
        )
        meta = await self._query(
            "SELECT analysis, analysis_timestamp, last_updated FROM user_analyses WHERE user_id = ?",
            [user_id],
        )

        if not rows and not meta:
            return None

        record = meta[0] if meta else {}
        analysis = None
        if record.get("analysis") and record.get("analysis_timestamp"):
            try:
                analysis = Analysis.model_validate_json(record["analysis"])
            except ValidationError as e:
                # Stale shape from an older release; recompute on next request
                logger.warning(f"Ignoring unreadable cached analysis for {user_id}: {e.error_count()} errors")

        return UserHistory(
            user_id=user_id,
            events=[
                VisitEvent(
                    url=r["url"],
                    title=r["title"],
                    visit_count=r["visit_count"],
                    last_visit_time=r["last_visit_time"],
                )
                for r in rows
            ],
            last_updated=record.get("last_updated"),
            analysis=analysis,
            analysis_timestamp=record.get("analysis_timestamp") if analysis else None,
        )

    async def save_analysis(self, user_id: str, analysis: Analysis, timestamp: datetime) -> None:
        await self._query(
            """
            INSERT INTO user_analyses (user_id, analysis, analysis_timestamp)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                analysis = excluded.analysis,
                analysis_timestamp = excluded.analysis_timestamp
            """,
            [user_id, analysis.model_dump_json(), _iso(timestamp)],
        )

    async def sync_history(self, user_id: str, items: Sequence[SyncItem]) -> SyncResult:
        now = self._clock()
        existing_rows = await self._query(
            "SELECT url FROM visit_events WHERE user_id = ?",
            [user_id],
        )
        known = {r["url"] for r in existing_rows}

        result = SyncResult()
        events: list[VisitEvent] = []
        for item in items:
            if not item.url:
                result.filtered += 1
                continue
            if item.url in known:
                result.updated += 1
            else:
                known.add(item.url)
                result.added += 1
            events.append(item.to_event(now))

        for start in range(0, len(events), UPSERT_BATCH_SIZE):
            batch = events[start:start + UPSERT_BATCH_SIZE]
            placeholders = ", ".join(["(?, ?, ?, ?, ?)"] * len(batch))
            params: list = []
            for event in batch:
                params += [user_id, event.url, event.title, event.visit_count, _iso(event.last_visit_time)]
            await self._query(
                f"""
                INSERT INTO visit_events (user_id, url, title, visit_count, last_visit_time)
                VALUES {placeholders}
                ON CONFLICT(user_id, url) DO UPDATE SET
                    visit_count = MAX(visit_count, excluded.visit_count),
                    last_visit_time = MAX(last_visit_time, excluded.last_visit_time)
                """,
                params,
            )

        await self._query(
            """
            INSERT INTO user_analyses (user_id, last_updated)
            VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET last_updated = excluded.last_updated
            """,
            [user_id, _iso(now)],
        )

        logger.info(
            f"Synced history for {user_id}: {result.added} added, "
            f"{result.updated} updated, {result.filtered} filtered"
        )
        return result

    async def list_events(self, user_id: str, page: int = 1, limit: int = 50) -> tuple[list[VisitEvent], int]:
        rows = await self._query(
            """
            SELECT url, title, visit_count, last_visit_time
            FROM visit_events
            WHERE user_id = ?
            ORDER BY last_visit_time DESC
            LIMIT ? OFFSET ?
            """,
            [user_id, limit, (page - 1) * limit],
        )
        total = await self._query(
            "SELECT COUNT(*) as total FROM visit_events WHERE user_id = ?",
            [user_id],
        )

        events = [
            VisitEvent(
                url=r["url"],
                title=r["title"],
                visit_count=r["visit_count"],
                last_visit_time=r["last_visit_time"],
            )
            for r in rows
        ]
        return events, (total[0].get("total") or 0) if total else 0

    async def delete_all_history(self, user_id: str) -> None:
        await self._query("DELETE FROM visit_events WHERE user_id = ?", [user_id])
        await self._query("DELETE FROM user_analyses WHERE user_id = ?", [user_id])
