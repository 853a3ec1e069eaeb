import logging
import posixpath
import re
import time
from datetime import datetime, timezone
from typing import Any, List, Optional

from optinest.core.errors import BackendError, ContentValidationError, OptinestError
from optinest.db.supabase import SupabaseClient, eq
from optinest.models.media import MediaAsset, MediaAssetRecord, MediaKind
from optinest.services.authors import get_authors
from optinest.services.media_paths import (
    build_public_url,
    get_storage_object_path_from_public_url,
    normalize_legacy_media_path,
    normalize_object_path,
    object_path_from_storage_url,
)
from optinest.services.posts import is_cover_image_used
from optinest.services.sanitizers import optional_text
from optinest.services.storage import StorageService
from optinest.services.text import slugify

logger = logging.getLogger(__name__)

MEDIA_COLUMNS = "object_path,public_url,file_name,extension,directory,kind,size_bytes,modified_at"
MAX_IMAGE_SIZE_BYTES = 5 * 1024 * 1024
ALLOWED_MEDIA_FOLDERS = {"posts", "authors", "about", "general"}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".avif", ".gif", ".svg"}
MIME_TO_EXTENSION = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/avif": ".avif",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
}
EXTENSION_TO_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
}

_SVG_SCRIPT = re.compile(r"<script[\s>]", re.IGNORECASE)
_SVG_FOREIGN_OBJECT = re.compile(r"<foreignObject[\s>]", re.IGNORECASE)
_SVG_EVENT_HANDLER = re.compile(r"\son[a-z]+\s*=", re.IGNORECASE)
_SVG_JAVASCRIPT_HREF = re.compile(r"(href|xlink:href)\s*=\s*[\"']\s*javascript:", re.IGNORECASE)


def infer_media_kind(object_path: str) -> MediaKind:
    """Kind comes from the second path segment: images/<kind>/file.png."""
    segments = normalize_object_path(object_path).split("/")
    folder = segments[1].lower() if len(segments) > 1 else ""
    if folder in ("posts", "authors", "about"):
        return MediaKind(folder)
    return MediaKind.OTHER


def object_path_to_directory(object_path: str) -> str:
    return "/" + posixpath.dirname(normalize_object_path(object_path))


def to_media_asset_record(
    object_path: str, size_bytes: int, modified_at: Optional[str] = None, base_url: Optional[str] = None
) -> MediaAssetRecord:
    normalized = normalize_object_path(object_path)
    file_name = posixpath.basename(normalized)
    return MediaAssetRecord(
        object_path=normalized,
        public_url=build_public_url(normalized, base_url),
        file_name=file_name,
        extension=posixpath.splitext(file_name)[1].lower(),
        directory=object_path_to_directory(normalized),
        kind=infer_media_kind(normalized),
        size_bytes=size_bytes,
        modified_at=modified_at or datetime.now(timezone.utc).isoformat(),
    )


def sanitize_media_asset(row: Any) -> Optional[MediaAsset]:
    if not isinstance(row, dict):
        return None
    object_path = normalize_object_path(optional_text(row.get("object_path")))
    public_url = optional_text(row.get("public_url"))
    if not object_path and not public_url:
        return None

    canonical = build_public_url(object_path) if object_path else normalize_legacy_media_path(public_url)
    file_name = optional_text(row.get("file_name")) or posixpath.basename(object_path or public_url)
    kind_value = optional_text(row.get("kind")).lower()
    try:
        kind = MediaKind(kind_value)
    except ValueError:
        kind = infer_media_kind(object_path)
    try:
        size_bytes = int(row.get("size_bytes") or 0)
    except (TypeError, ValueError):
        size_bytes = 0

    return MediaAsset(
        path=canonical or public_url,
        object_path=object_path,
        file_name=file_name,
        extension=optional_text(row.get("extension")) or posixpath.splitext(file_name)[1].lower(),
        directory=optional_text(row.get("directory")) or object_path_to_directory(object_path),
        kind=kind,
        size_bytes=size_bytes,
        modified_at=optional_text(row.get("modified_at")),
    )


def _sanitize_rows(rows: List[Any]) -> List[MediaAsset]:
    return [asset for asset in (sanitize_media_asset(row) for row in rows) if asset]


def get_media_assets(client: SupabaseClient) -> List[MediaAsset]:
    try:
        rows = client.select("media_assets", MEDIA_COLUMNS, order="modified_at.desc")
    except OptinestError as e:
        logger.warning("Could not load media assets: %s", e)
        return []
    return _sanitize_rows(rows)


def get_post_media_assets(client: SupabaseClient) -> List[MediaAsset]:
    return [asset for asset in get_media_assets(client) if asset.kind == MediaKind.POSTS]


def upsert_media_asset_record(
    client: SupabaseClient, object_path: str, size_bytes: int, modified_at: Optional[str] = None
) -> MediaAsset:
    record = to_media_asset_record(object_path, size_bytes, modified_at)
    row = record.model_dump(mode="json")
    rows = client.upsert(
        "media_assets",
        [{**row, "updated_at": datetime.now(timezone.utc).isoformat()}],
        on_conflict="object_path",
        prefer="resolution=merge-duplicates,return=representation",
        columns=MEDIA_COLUMNS,
    )
    stored = rows[0] if isinstance(rows, list) and rows else row
    return sanitize_media_asset(stored) or sanitize_media_asset(row)


def get_media_asset_by_public_url(client: SupabaseClient, public_url: str) -> Optional[MediaAsset]:
    normalized = normalize_legacy_media_path(public_url)
    rows = client.select("media_assets", MEDIA_COLUMNS, public_url=eq(normalized), limit="1")
    if not rows:
        object_path = object_path_from_storage_url(normalized)
        if not object_path:
            return None
        rows = client.select("media_assets", MEDIA_COLUMNS, object_path=eq(object_path), limit="1")
    return sanitize_media_asset(rows[0]) if rows else None


def delete_media_asset_by_public_url(client: SupabaseClient, public_url: str) -> Optional[str]:
    """Delete the asset row matched by public URL, falling back to object path."""
    normalized = normalize_legacy_media_path(public_url)
    deleted = client.delete("media_assets", returning="object_path", public_url=eq(normalized))
    if deleted and deleted[0].get("object_path"):
        return deleted[0]["object_path"]

    object_path = object_path_from_storage_url(normalized)
    if not object_path:
        return None
    deleted = client.delete("media_assets", returning="object_path", object_path=eq(object_path))
    return deleted[0].get("object_path") if deleted else None


# Uploads


def infer_file_extension(file_name: str, content_type: Optional[str]) -> Optional[str]:
    extension = posixpath.splitext(file_name or "")[1].lower()
    if extension in ALLOWED_EXTENSIONS:
        return ".jpg" if extension == ".jpeg" else extension
    return MIME_TO_EXTENSION.get((content_type or "").lower())


def to_mime_type(extension: str, content_type: Optional[str]) -> str:
    if content_type:
        return content_type
    return EXTENSION_TO_MIME.get(extension, "application/octet-stream")


def assert_safe_image_file(content: bytes, extension: str, label: str) -> None:
    if extension != ".svg":
        return
    raw = content.decode("utf-8", errors="ignore")
    if (
        _SVG_SCRIPT.search(raw)
        or _SVG_FOREIGN_OBJECT.search(raw)
        or _SVG_EVENT_HANDLER.search(raw)
        or _SVG_JAVASCRIPT_HREF.search(raw)
    ):
        raise ContentValidationError(f"{label} SVG contains unsafe markup.")


def validate_image_upload(file_name: str, content_type: Optional[str], content: bytes, label: str) -> str:
    """Return the normalized extension, or raise ContentValidationError."""
    if not content:
        raise ContentValidationError(f"Please choose a {label.lower()} file.")
    if len(content) > MAX_IMAGE_SIZE_BYTES:
        raise ContentValidationError(f"{label} must be 5MB or smaller.")
    extension = infer_file_extension(file_name, content_type)
    if not extension:
        raise ContentValidationError(
            f"Unsupported {label.lower()} format. Use SVG, PNG, JPG, WEBP, AVIF, or GIF."
        )
    assert_safe_image_file(content, extension, label)
    return extension


def normalize_media_folder(folder: str) -> str:
    normalized = (folder or "").strip().lower()
    return normalized if normalized in ALLOWED_MEDIA_FOLDERS else "general"


def build_object_path(folder: str, file_name: str) -> str:
    return f"images/{file_name}" if folder == "general" else f"images/{folder}/{file_name}"


def timestamped_file_name(base_name: str, extension: str) -> str:
    return f"{base_name}-{int(time.time() * 1000)}{extension}"


def upload_image(
    client: SupabaseClient,
    storage: StorageService,
    object_path: str,
    content: bytes,
    extension: str,
    content_type: Optional[str],
) -> MediaAsset:
    """Store the bytes, then record the asset. Returns the recorded asset."""
    key = storage.upload_file(object_path, content, to_mime_type(extension, content_type))
    return upsert_media_asset_record(
        client, key, size_bytes=len(content), modified_at=datetime.now(timezone.utc).isoformat()
    )


def upload_media_file(
    client: SupabaseClient,
    storage: StorageService,
    folder: str,
    file_name: str,
    content_type: Optional[str],
    content: bytes,
) -> MediaAsset:
    extension = validate_image_upload(file_name, content_type, content, "Media")
    base_name = slugify(posixpath.splitext(posixpath.basename(file_name or ""))[0]) or "media-file"
    object_path = build_object_path(normalize_media_folder(folder), timestamped_file_name(base_name, extension))
    return upload_image(client, storage, object_path, content, extension, content_type)


def delete_media_file(client: SupabaseClient, storage: StorageService, public_path: str) -> None:
    """Remove the stored object and its asset row. Callers check usage first."""
    asset = get_media_asset_by_public_url(client, public_path)
    object_path = get_storage_object_path_from_public_url(public_path)
    storage.delete_file(object_path)
    if asset:
        try:
            delete_media_asset_by_public_url(client, public_path)
        except BackendError:
            logger.error("Deleted object %s but could not remove its asset row", object_path)
            raise


def resolve_image(
    client: SupabaseClient,
    storage: StorageService,
    folder: str,
    base_name: str,
    label: str,
    file_name: Optional[str] = None,
    content_type: Optional[str] = None,
    content: Optional[bytes] = None,
    fallback: str = "",
    missing_message: Optional[str] = None,
) -> str:
    """Upload the image when one was sent, else keep ``fallback``. Returns its public path."""
    if content:
        extension = validate_image_upload(file_name or "", content_type, content, label)
        object_path = build_object_path(folder, timestamped_file_name(base_name, extension))
        return upload_image(client, storage, object_path, content, extension, content_type).path

    fallback = (fallback or "").strip()
    if not fallback:
        raise ContentValidationError(missing_message or f"Please upload a {label.lower()}.")
    return fallback


def is_media_in_use(client: SupabaseClient, public_path: str) -> bool:
    normalized = (public_path or "").strip()
    if is_cover_image_used(client, normalized):
        return True
    return any(author.avatar == normalized for author in get_authors(client))
