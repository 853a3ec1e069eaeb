import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from optinest.core.errors import ContentValidationError, OptinestError
from optinest.db.supabase import SupabaseClient, eq
from optinest.models.post import Post, PostRecord, PostStatus
from optinest.services.media_paths import normalize_legacy_media_path
from optinest.services.publication import effective_timestamp, is_published
from optinest.services.sanitizers import Valid, check_date, check_iso_datetime, parse_timestamp, to_text
from optinest.services.text import reading_time, slugify

logger = logging.getLogger(__name__)

POST_COLUMNS = (
    "slug,title,excerpt,date,category,author_id,cover_image,cover_alt,status,publish_at,"
    "seo_title,seo_description,focus_keyword,featured,recommended,content"
)

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_post_status(value: Any) -> PostStatus:
    normalized = to_text(value).strip().lower()
    try:
        return PostStatus(normalized)
    except ValueError:
        return PostStatus.PUBLISHED


def _optional(value: Any) -> Optional[str]:
    return to_text(value).strip() or None


def sanitize_post_row(row: Any) -> Optional[Post]:
    """Build a Post from a stored row, or None if slug/title/author/date are missing."""
    if not isinstance(row, dict):
        return None

    slug = to_text(row.get("slug")).strip()
    title = to_text(row.get("title")).strip()
    author_id = to_text(row.get("author_id")).strip()
    date_result = check_date(row.get("date"))
    if not slug or not title or not author_id or not isinstance(date_result, Valid):
        return None

    publish_result = check_iso_datetime(row.get("publish_at"))
    content = to_text(row.get("content"))
    minutes, label = reading_time(content)

    return Post(
        slug=slug,
        title=title,
        excerpt=to_text(row.get("excerpt")),
        date=date_result.value,
        category=to_text(row.get("category"), "General"),
        author_id=author_id,
        cover_image=normalize_legacy_media_path(to_text(row.get("cover_image"))),
        cover_alt=to_text(row.get("cover_alt"), title),
        status=parse_post_status(row.get("status")),
        publish_at=publish_result.value if isinstance(publish_result, Valid) else None,
        seo_title=_optional(row.get("seo_title")),
        seo_description=_optional(row.get("seo_description")),
        focus_keyword=_optional(row.get("focus_keyword")),
        featured=bool(row.get("featured")),
        recommended=bool(row.get("recommended")),
        content=content,
        reading_time_text=label,
        reading_time_minutes=minutes,
    )


def get_all_posts(
    client: SupabaseClient, include_unpublished: bool = False, now: Optional[datetime] = None
) -> List[Post]:
    try:
        rows = client.select("posts", POST_COLUMNS)
    except OptinestError as e:
        logger.warning("Could not load posts: %s", e)
        rows = []

    posts = []
    for row in rows:
        post = sanitize_post_row(row)
        if not post:
            continue
        post.is_published = is_published(post.status, post.publish_at, now)
        if include_unpublished or post.is_published:
            posts.append(post)

    return sorted(posts, key=effective_timestamp, reverse=True)


def get_post_by_slug(client: SupabaseClient, slug: str, include_unpublished: bool = False) -> Optional[Post]:
    for post in get_all_posts(client, include_unpublished=include_unpublished):
        if post.slug == slug:
            return post
    return None


def get_featured_posts(client: SupabaseClient, limit: int = 4, include_unpublished: bool = False) -> List[Post]:
    return [post for post in get_all_posts(client, include_unpublished) if post.featured][:limit]


def get_recommended_posts(client: SupabaseClient, limit: int = 4, include_unpublished: bool = False) -> List[Post]:
    return [post for post in get_all_posts(client, include_unpublished) if post.recommended][:limit]


def get_latest_posts(
    client: SupabaseClient, limit: Optional[int] = None, include_unpublished: bool = False
) -> List[Post]:
    posts = get_all_posts(client, include_unpublished)
    return posts[:limit] if limit is not None else posts


def get_posts_by_author(client: SupabaseClient, author_id: str, include_unpublished: bool = False) -> List[Post]:
    return [post for post in get_all_posts(client, include_unpublished) if post.author_id == author_id]


# Writes


def save_post(client: SupabaseClient, post: PostRecord) -> None:
    row = post.model_dump(mode="json")
    row["updated_at"] = datetime.now(timezone.utc).isoformat()
    client.upsert("posts", [row], on_conflict="slug")


def delete_post_by_slug(client: SupabaseClient, slug: str) -> None:
    client.delete("posts", slug=eq(slug))


def rename_category_in_posts(client: SupabaseClient, previous_name: str, next_name: str) -> None:
    client.update(
        "posts",
        {"category": next_name, "updated_at": datetime.now(timezone.utc).isoformat()},
        category=eq(previous_name),
    )


def rename_author_in_posts(client: SupabaseClient, previous_author_id: str, next_author_id: str) -> None:
    client.update(
        "posts",
        {"author_id": next_author_id, "updated_at": datetime.now(timezone.utc).isoformat()},
        author_id=eq(previous_author_id),
    )


def is_cover_image_used(client: SupabaseClient, cover_image: str) -> bool:
    target = normalize_legacy_media_path(cover_image)
    for row in client.select("posts", "cover_image"):
        value = to_text(row.get("cover_image")).strip()
        if not value:
            continue
        if value == cover_image or normalize_legacy_media_path(value) == target:
            return True
    return False


# Admin form parsing


def parse_publish_at(value: Optional[str]) -> Optional[str]:
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    result = check_iso_datetime(trimmed)
    if not isinstance(result, Valid):
        raise ContentValidationError("Scheduled publish time is invalid.")
    return result.value


def parse_post_payload(
    title: str,
    slug: str,
    excerpt: str,
    date: str,
    category: str,
    author_id: str,
    cover_alt: str,
    content: str,
    status: str = "published",
    publish_at: Optional[str] = None,
    seo_title: Optional[str] = None,
    seo_description: Optional[str] = None,
    focus_keyword: Optional[str] = None,
    featured: bool = False,
    recommended: bool = False,
    categories: Optional[List[str]] = None,
    author_ids: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> PostRecord:
    """Validate the admin post form. The cover image is resolved separately."""
    title = (title or "").strip()
    slug = slugify((slug or "").strip() or title)
    excerpt = (excerpt or "").strip()
    date = (date or "").strip()
    category = (category or "").strip()
    author_id = (author_id or "").strip()
    cover_alt = (cover_alt or "").strip()
    content = (content or "").strip()
    post_status = parse_post_status(status)
    parsed_publish_at = parse_publish_at(publish_at)

    if not all((title, slug, excerpt, date, category, author_id, cover_alt, content)):
        raise ContentValidationError("All post fields are required.")
    if not _DATE_PATTERN.match(date):
        raise ContentValidationError("Date must be in YYYY-MM-DD format.")

    if post_status == PostStatus.SCHEDULED:
        if not parsed_publish_at:
            raise ContentValidationError("Scheduled posts must include a publish date and time.")
        current = (now or datetime.now(timezone.utc)).timestamp()
        if parse_timestamp(parsed_publish_at) <= current:
            raise ContentValidationError("Scheduled publish time must be in the future.")

    if categories is not None and category not in categories:
        raise ContentValidationError("Category is invalid. Please select a category from the list.")
    if author_ids is not None and author_id not in author_ids:
        raise ContentValidationError("Author is invalid. Please select an author from the list.")

    return PostRecord(
        slug=slug,
        title=title,
        excerpt=excerpt,
        date=date,
        category=category,
        author_id=author_id,
        cover_alt=cover_alt,
        status=post_status,
        publish_at=parsed_publish_at,
        seo_title=(seo_title or "").strip() or None,
        seo_description=(seo_description or "").strip() or None,
        focus_keyword=(focus_keyword or "").strip() or None,
        featured=featured,
        recommended=recommended,
        content=content,
    )
