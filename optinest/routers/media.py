import posixpath
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from optinest.services.storage import StorageService, get_storage

router = APIRouter()

SVG_MIME = "image/svg+xml"


def sanitize_proxy_path(raw_path: str) -> Optional[str]:
    joined = (raw_path or "").strip().lstrip("/")
    if not joined or ".." in joined or "\\" in joined:
        return None
    return joined


def infer_mime_type(object_path: str, fallback: Optional[str]) -> str:
    if posixpath.splitext(object_path)[1].lower() == ".svg":
        return SVG_MIME
    return fallback or "application/octet-stream"


@router.get("/{path:path}")
def proxy_media(path: str, storage: StorageService = Depends(get_storage)):
    """Serve a storage object from this origin."""
    object_path = sanitize_proxy_path(path)
    if not object_path:
        return JSONResponse({"error": "Invalid media path."}, status_code=400)

    status_code, body, upstream_type = storage.fetch_public_object(object_path)
    if status_code >= 400:
        return JSONResponse({"error": "Media not found."}, status_code=status_code)

    return Response(
        content=body,
        media_type=infer_mime_type(object_path, upstream_type),
        headers={"Cache-Control": "public, max-age=86400, stale-while-revalidate=86400"},
    )
