"""Mapping between the three ways an image is referenced.

* legacy root-relative path: ``/images/posts/cover.png``
* storage object key:         ``images/posts/cover.png``
* public storage URL:         ``<base>/storage/v1/object/public/<bucket>/images/posts/cover.png``

Base URL and bucket default to the configured backend; pass them explicitly
to use these helpers without settings.
"""
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from optinest.core.config import settings
from optinest.core.errors import InvalidMediaUrlError

STORAGE_PUBLIC_MARKER = "/storage/v1/object/public/"
LEGACY_IMAGES_PREFIX = "/images/"
MEDIA_PROXY_PREFIX = "/api/media/"


def encode_object_path(object_path: str) -> str:
    return "/".join(quote(segment, safe="") for segment in object_path.split("/"))


def decode_object_path(raw_path: str) -> str:
    return "/".join(unquote(segment) for segment in raw_path.split("/"))


def normalize_object_path(object_path: str) -> str:
    return object_path.strip().lstrip("/")


def is_safe_object_path(object_path: str) -> bool:
    """Relative key with no parent segments, backslashes or NULs."""
    if not object_path or object_path.startswith("/"):
        return False
    if "\\" in object_path or "\x00" in object_path:
        return False
    return all(segment not in ("", ".", "..") for segment in object_path.split("/"))


def build_public_url(object_path: str, base_url: Optional[str] = None, bucket: Optional[str] = None) -> str:
    encoded = encode_object_path(normalize_object_path(object_path))
    if base_url is None and bucket is None:
        return f"{settings.storage_public_prefix}{encoded}"
    base = (base_url if base_url is not None else settings.supabase_base_url).rstrip("/")
    bucket = bucket or settings.storage_bucket
    return f"{base}{STORAGE_PUBLIC_MARKER}{bucket}/{encoded}"


def _storage_remainder(value: str) -> Optional[str]:
    """Raw path after ``<marker><bucket>/`` for a storage URL, else None."""
    try:
        parsed = urlsplit(value.strip())
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    if not parsed.path.startswith(STORAGE_PUBLIC_MARKER):
        return None
    remainder = parsed.path[len(STORAGE_PUBLIC_MARKER):]
    _bucket, _, object_part = remainder.partition("/")
    return object_part


def object_path_from_storage_url(value: str) -> Optional[str]:
    if not value or not value.strip():
        return None
    remainder = _storage_remainder(value)
    if remainder is None:
        return None
    object_path = decode_object_path(remainder.lstrip("/"))
    return object_path or None


def get_storage_object_path_from_public_url(public_url: str) -> str:
    """Inverse of build_public_url; also accepts legacy ``/images/...`` paths."""
    trimmed = (public_url or "").strip()
    if not trimmed:
        raise InvalidMediaUrlError("Missing media URL.")

    if trimmed.startswith(LEGACY_IMAGES_PREFIX):
        object_path = trimmed[1:]
    else:
        object_path = object_path_from_storage_url(trimmed)
    if object_path and is_safe_object_path(object_path):
        return object_path

    raise InvalidMediaUrlError("Invalid media URL.")


def normalize_legacy_media_path(value: str, base_url: Optional[str] = None, bucket: Optional[str] = None) -> str:
    """Rewrite legacy paths and storage URLs to the current canonical public URL.

    Values that match neither shape, or any value while the backend is not
    configured, come back trimmed but otherwise unchanged.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        return trimmed

    base = base_url if base_url is not None else settings.supabase_base_url
    if not base:
        return trimmed

    if trimmed.startswith(LEGACY_IMAGES_PREFIX):
        return build_public_url(trimmed[1:], base, bucket)

    object_path = object_path_from_storage_url(trimmed)
    if not object_path:
        return trimmed
    return build_public_url(object_path, base, bucket)


def should_unoptimize_image(src: str) -> bool:
    trimmed = (src or "").strip().lower()
    if not trimmed.startswith(("http://", "https://")):
        return False
    return trimmed.split("?", 1)[0].endswith(".svg")


def get_renderable_image_src(src: str) -> str:
    """Route remote storage SVGs through the same-origin media proxy."""
    if not should_unoptimize_image(src):
        return src

    remainder = _storage_remainder(src)
    if not remainder:
        return src
    return f"{MEDIA_PROXY_PREFIX}{remainder}"
