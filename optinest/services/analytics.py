import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional
from urllib.parse import urlsplit

from optinest.core.errors import OptinestError
from optinest.db.supabase import SupabaseClient
from optinest.models.analytics import AnalyticsSummary, DailyViews, PageViewEvent, PathViews, ReferrerViews

logger = logging.getLogger(__name__)

EVENT_COLUMNS = "id,type,path,referrer,user_agent,created_at"
MAX_EVENTS = 25000
MAX_USER_AGENT_LENGTH = 220
MAX_TRACKED_PATH_LENGTH = 300
TOP_N = 10
DAILY_SERIES_DAYS = 14


def normalize_path(value: Optional[str]) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        return "/"
    if trimmed.startswith(("http://", "https://")):
        try:
            parsed = urlsplit(trimmed)
        except ValueError:
            return "/"
        return (parsed.path or "/") + (f"?{parsed.query}" if parsed.query else "")
    if not trimmed.startswith("/"):
        return f"/{trimmed}"
    return trimmed


def sanitize_referrer(value: Optional[str]) -> Optional[str]:
    """Keep only the referrer's hostname."""
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    try:
        parsed = urlsplit(trimmed)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return parsed.hostname


def is_trackable_path(path: Any) -> bool:
    if not isinstance(path, str):
        return False
    path = path.strip()
    return bool(path) and path.startswith("/") and not path.startswith("//") and len(path) <= MAX_TRACKED_PATH_LENGTH


def sanitize_events(rows: Any) -> List[PageViewEvent]:
    if not isinstance(rows, list):
        return []
    events = []
    for row in rows:
        if not isinstance(row, dict) or not row.get("id") or not row.get("created_at"):
            continue
        events.append(
            PageViewEvent(
                id=str(row["id"]),
                path=normalize_path(row.get("path")),
                referrer=sanitize_referrer(row.get("referrer")),
                user_agent=row.get("user_agent") or None,
                created_at=str(row["created_at"]),
            )
        )
    return events


def track_page_view(
    client: SupabaseClient, path: str, referrer: Optional[str] = None, user_agent: Optional[str] = None
) -> bool:
    """Record a page view. Admin pages are ignored; returns whether an event was written."""
    normalized = normalize_path(path)
    if normalized.startswith("/admin"):
        return False

    event = PageViewEvent(
        id=str(uuid.uuid4()),
        path=normalized,
        referrer=sanitize_referrer(referrer),
        user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    client.insert("analytics_events", [event.model_dump()])
    return True


def get_analytics_events(client: SupabaseClient, since: Optional[datetime] = None) -> List[PageViewEvent]:
    filters = {"order": "created_at.desc", "limit": str(MAX_EVENTS)}
    if since is not None:
        filters["created_at"] = f"gte.{since.isoformat()}"
    try:
        rows = client.select("analytics_events", EVENT_COLUMNS, **filters)
    except OptinestError as e:
        logger.warning("Could not load analytics events: %s", e)
        return []
    return sanitize_events(rows)


def get_analytics_summary(
    client: SupabaseClient, days: int = 30, now: Optional[datetime] = None
) -> AnalyticsSummary:
    now = now or datetime.now(timezone.utc)
    events = get_analytics_events(client, since=now - timedelta(days=days))

    path_counts = Counter(event.path for event in events)
    referrer_counts = Counter(event.referrer for event in events if event.referrer)
    views_by_day = Counter(event.created_at[:10] for event in events)

    series_days = [(now - timedelta(days=offset)).date().isoformat() for offset in range(DAILY_SERIES_DAYS - 1, -1, -1)]

    return AnalyticsSummary(
        total_views=len(events),
        unique_paths=len(path_counts),
        unique_referrers=len(referrer_counts),
        top_paths=[PathViews(path=path, views=count) for path, count in path_counts.most_common(TOP_N)],
        top_referrers=[
            ReferrerViews(referrer=referrer, views=count) for referrer, count in referrer_counts.most_common(TOP_N)
        ],
        daily_views=[DailyViews(date=day, views=views_by_day.get(day, 0)) for day in series_days],
    )
