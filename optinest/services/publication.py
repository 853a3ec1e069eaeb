"""Post visibility as a pure function of (status, publish_at, now).

Nothing here is stored: every read recomputes the state, so a scheduled post
goes live on the first request after its publish time.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from optinest.models.post import PostBase, PostStatus
from optinest.services.sanitizers import parse_timestamp


class PublicationState(str, Enum):
    DRAFT = "draft"
    SCHEDULED_PENDING = "scheduled-pending"
    SCHEDULED_LIVE = "scheduled-live"
    PUBLISHED = "published"


STATUS_LABELS = {
    PostStatus.PUBLISHED: "Published",
    PostStatus.DRAFT: "Draft",
    PostStatus.SCHEDULED: "Scheduled",
}


def _now_seconds(now: Optional[Union[datetime, float]]) -> float:
    if now is None:
        return datetime.now(timezone.utc).timestamp()
    if isinstance(now, datetime):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.timestamp()
    return float(now)


def publication_state(
    status: PostStatus, publish_at: Optional[str], now: Optional[Union[datetime, float]] = None
) -> PublicationState:
    status = PostStatus(status)
    if status == PostStatus.DRAFT:
        return PublicationState.DRAFT
    if status == PostStatus.PUBLISHED:
        return PublicationState.PUBLISHED

    live_at = parse_timestamp(publish_at)
    if live_at is not None and live_at <= _now_seconds(now):
        return PublicationState.SCHEDULED_LIVE
    return PublicationState.SCHEDULED_PENDING


def is_published(
    status: PostStatus, publish_at: Optional[str], now: Optional[Union[datetime, float]] = None
) -> bool:
    return publication_state(status, publish_at, now) in (
        PublicationState.PUBLISHED,
        PublicationState.SCHEDULED_LIVE,
    )


def effective_timestamp(post: PostBase) -> float:
    """Sort key: publish_at for scheduled posts that have one, else date. Unparseable sorts as 0."""
    if post.status == PostStatus.SCHEDULED and post.publish_at:
        candidate = post.publish_at
    else:
        candidate = post.date
    parsed = parse_timestamp(candidate)
    return parsed if parsed is not None else 0.0


def status_label(status: PostStatus) -> str:
    return STATUS_LABELS[PostStatus(status)]
