import csv
import io
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from optinest.core.errors import ContentValidationError, OptinestError
from optinest.db.supabase import IGNORE_DUPLICATES, SupabaseClient, eq
from optinest.models.newsletter import NewsletterSubscriber
from optinest.services.sanitizers import Valid, check_iso_datetime, optional_text, parse_timestamp

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 254
MAX_SOURCE_PATH_LENGTH = 200
CSV_HEADER = ("id", "email", "sourcePath", "submittedAt")


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and len(email) <= MAX_EMAIL_LENGTH and bool(EMAIL_PATTERN.match(email))


def sanitize_source_path(value: Any) -> Optional[str]:
    path = optional_text(value)
    if not path.startswith("/") or path.startswith("//"):
        return None
    return path[:MAX_SOURCE_PATH_LENGTH]


def sanitize_subscriber(value: Any) -> Optional[NewsletterSubscriber]:
    if isinstance(value, NewsletterSubscriber):
        value = value.model_dump()
    if not isinstance(value, dict):
        return None

    subscriber_id = optional_text(value.get("id"))
    email = optional_text(value.get("email")).lower()
    submitted = check_iso_datetime(value.get("submitted_at"))
    if not subscriber_id or not email or not isinstance(submitted, Valid):
        return None

    return NewsletterSubscriber(
        id=subscriber_id,
        email=email,
        submitted_at=submitted.value,
        source_path=sanitize_source_path(value.get("source_path")),
    )


def sanitize_subscribers(value: Any) -> List[NewsletterSubscriber]:
    """Drop invalid rows and order newest first."""
    if not isinstance(value, (list, tuple)):
        return []
    subscribers = [entry for entry in (sanitize_subscriber(row) for row in value) if entry]
    return sorted(subscribers, key=lambda entry: parse_timestamp(entry.submitted_at) or 0.0, reverse=True)


def get_newsletter_subscribers(client: SupabaseClient) -> List[NewsletterSubscriber]:
    try:
        rows = client.select(
            "newsletter_subscribers", "id,email,submitted_at,source_path", order="submitted_at.desc"
        )
    except OptinestError as e:
        logger.warning("Could not load newsletter subscribers: %s", e)
        return []
    return sanitize_subscribers(rows)


def is_subscribed(client: SupabaseClient, email: str) -> bool:
    normalized = normalize_email(email)
    return any(entry.email == normalized for entry in get_newsletter_subscribers(client))


def add_newsletter_subscriber(client: SupabaseClient, email: str, source_path: Optional[str] = None) -> None:
    """Insert a subscriber; an existing email is left untouched.

    Raises ContentValidationError before any backend call when the email is invalid.
    """
    normalized = normalize_email(email)
    if not is_valid_email(normalized):
        raise ContentValidationError("Invalid email address.")

    client.upsert(
        "newsletter_subscribers",
        [
            {
                "email": normalized,
                "source_path": sanitize_source_path(source_path),
                "submitted_at": datetime.now(timezone.utc).isoformat(),
            }
        ],
        on_conflict="email",
        prefer=IGNORE_DUPLICATES,
    )


def save_newsletter_subscribers(client: SupabaseClient, subscribers: Iterable[Any]) -> None:
    rows = [
        {
            "id": entry.id or str(uuid.uuid4()),
            "email": entry.email,
            "submitted_at": entry.submitted_at,
            "source_path": entry.source_path,
        }
        for entry in sanitize_subscribers(list(subscribers))
    ]
    client.upsert("newsletter_subscribers", rows, on_conflict="email")


def delete_newsletter_subscriber(client: SupabaseClient, subscriber_id: str) -> bool:
    subscriber_id = (subscriber_id or "").strip()
    if not subscriber_id:
        return False
    deleted = client.delete("newsletter_subscribers", returning="id", id=eq(subscriber_id))
    return len(deleted) > 0


def filter_subscribers(subscribers: List[NewsletterSubscriber], query: Optional[str]) -> List[NewsletterSubscriber]:
    needle = (query or "").strip().lower()
    if not needle:
        return subscribers
    return [
        entry
        for entry in subscribers
        if needle in " ".join((entry.email, entry.source_path or "", entry.submitted_at)).lower()
    ]


def _csv_cell(value: Optional[str]) -> str:
    return re.sub(r"\r?\n", " ", value or "").strip()


def export_subscribers_csv(subscribers: List[NewsletterSubscriber]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in subscribers:
        writer.writerow(
            [_csv_cell(entry.id), _csv_cell(entry.email), _csv_cell(entry.source_path), _csv_cell(entry.submitted_at)]
        )
    return buffer.getvalue().rstrip("\n")
