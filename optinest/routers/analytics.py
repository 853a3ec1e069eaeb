import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from optinest.core.security import is_same_origin
from optinest.db.supabase import SupabaseClient, get_supabase
from optinest.services.analytics import is_trackable_path, track_page_view

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_BODY_BYTES = 4096


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


@router.post("/track")
async def track(request: Request, client: SupabaseClient = Depends(get_supabase)):
    """Page-view beacon. Only 403 and 413 are surfaced; every other failure answers 200 ``{ok: false}``."""
    if not is_same_origin(request.headers):
        return JSONResponse({"ok": False}, status_code=403)
    if _declared_length(request) > MAX_BODY_BYTES:
        return JSONResponse({"ok": False}, status_code=413)

    try:
        body = await request.json()
        if not isinstance(body, dict):
            body = {}
        path = body.get("path")
        if not is_trackable_path(path):
            return JSONResponse({"ok": False, "error": "Missing path."}, status_code=400)

        referrer = body.get("referrer")
        track_page_view(
            client,
            path.strip(),
            referrer=referrer if isinstance(referrer, str) else None,
            user_agent=request.headers.get("user-agent"),
        )
    except Exception as e:
        logger.warning("Page view not recorded: %s", e)
        return JSONResponse({"ok": False}, status_code=200)

    return JSONResponse({"ok": True}, status_code=200)
