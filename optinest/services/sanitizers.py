"""Field-level validators for untrusted JSON coming back from the backend.

Each ``check_*`` function returns a tagged result (``Valid`` or ``Invalid``)
instead of raising; the ``*_or`` helpers collapse a result onto a fallback.
Record sanitizers in the other service modules are built from these.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar, Union
from urllib.parse import urlsplit, urlunsplit

from pydantic import TypeAdapter, ValidationError

from optinest.models.cms import CmsLinkItem, CmsSocialLinkItem

T = TypeVar("T")

_DATETIME = TypeAdapter(datetime)
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Invalid:
    reason: str
    ok: bool = False


FieldResult = Union[Valid, Invalid]


def resolve(result: FieldResult, fallback: Any) -> Any:
    return result.value if isinstance(result, Valid) else fallback


def check_text(value: Any) -> FieldResult:
    if not isinstance(value, str):
        return Invalid("not a string")
    normalized = value.strip()
    if not normalized:
        return Invalid("blank")
    return Valid(normalized)


def text_or(value: Any, fallback: str) -> str:
    return resolve(check_text(value), fallback)


def optional_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def to_text(value: Any, fallback: str = "") -> str:
    """Loose coercion used for post rows: None -> fallback, non-strings -> str()."""
    if isinstance(value, str):
        return value
    if value is None:
        return fallback
    return str(value)


def check_url(value: Any) -> FieldResult:
    text = check_text(value)
    if not isinstance(text, Valid):
        return text
    try:
        parts = urlsplit(text.value)
        parts.port
    except ValueError:
        return Invalid("unparseable url")
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return Invalid("unsupported scheme")
    path = parts.path or "/"
    normalized = urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, parts.fragment))
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return Valid(normalized)


def url_or(value: Any, fallback: str) -> str:
    return resolve(check_url(value), fallback)


def parse_iso_datetime(text: str) -> Optional[datetime]:
    """ISO-8601 through pydantic, which also takes fractions of any length (PostgREST trims zeros)."""
    if not _ISO_DATE_PREFIX.match(text):
        return None
    if len(text) == 10:
        try:
            return datetime.combine(date.fromisoformat(text), datetime.min.time())
        except ValueError:
            return None
    try:
        return _DATETIME.validate_python(text)
    except ValidationError:
        return None


def check_iso_datetime(value: Any) -> FieldResult:
    """Parse an ISO-8601 timestamp (or datetime) to a UTC ISO string."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = check_text(value)
        if not isinstance(text, Valid):
            return text
        parsed = parse_iso_datetime(text.value)
        if parsed is None:
            return Invalid("unparseable date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return Valid(parsed.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"))


def check_date(value: Any) -> FieldResult:
    """Normalize to YYYY-MM-DD."""
    if isinstance(value, datetime):
        return Valid(value.date().isoformat())
    if isinstance(value, date):
        return Valid(value.isoformat())
    text = check_text(value)
    if not isinstance(text, Valid):
        return text
    try:
        return Valid(date.fromisoformat(text.value).isoformat())
    except ValueError:
        pass
    parsed = check_iso_datetime(text.value)
    if isinstance(parsed, Valid):
        return Valid(parsed.value[:10])
    return Invalid("unparseable date")


def parse_timestamp(value: Optional[str]) -> Optional[float]:
    """Epoch seconds for an ISO date/timestamp, or None if it does not parse."""
    if not value:
        return None
    result = check_iso_datetime(value)
    if not isinstance(result, Valid):
        return None
    return parse_iso_datetime(result.value).timestamp()


def sanitize_link_item(value: Any) -> Optional[CmsLinkItem]:
    if not isinstance(value, dict):
        return None
    label = optional_text(value.get("label"))
    href = optional_text(value.get("href"))
    if not label or not href:
        return None
    return CmsLinkItem(label=label, href=href, external=value.get("external") is True)


def sanitize_links(value: Any, fallback: Sequence[CmsLinkItem]) -> Tuple[CmsLinkItem, ...]:
    if not isinstance(value, (list, tuple)):
        return tuple(fallback)
    links: List[CmsLinkItem] = []
    for entry in value:
        if isinstance(entry, CmsLinkItem):
            entry = entry.model_dump()
        item = sanitize_link_item(entry)
        if item:
            links.append(item)
    return tuple(links)


def sanitize_social_link_item(value: Any) -> Optional[CmsSocialLinkItem]:
    if not isinstance(value, dict):
        return None
    platform = optional_text(value.get("platform")).lower()
    href = optional_text(value.get("href"))
    if not platform or not href:
        return None
    return CmsSocialLinkItem(platform=platform, href=href)


def sanitize_social_links(value: Any, fallback: Sequence[CmsSocialLinkItem]) -> Tuple[CmsSocialLinkItem, ...]:
    if not isinstance(value, (list, tuple)):
        return tuple(fallback)
    links: List[CmsSocialLinkItem] = []
    for entry in value:
        if isinstance(entry, CmsSocialLinkItem):
            entry = entry.model_dump()
        item = sanitize_social_link_item(entry)
        if item:
            links.append(item)
    return tuple(links)
