from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from optinest.db.supabase import SupabaseClient, get_supabase
from optinest.models.admin_user import AdminUser
from optinest.routers.auth import require_admin_page
from optinest.services import newsletter as newsletter_service

router = APIRouter()


@router.get("/admin/newsletter/export")
def export_newsletter(
    q: Optional[str] = None,
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_admin_page()),
):
    """Download subscribers as CSV; a search query narrows the export."""
    query = (q or "").strip()
    subscribers = newsletter_service.filter_subscribers(newsletter_service.get_newsletter_subscribers(client), query)
    suffix = "-filtered" if query else ""
    file_name = f"newsletter-subscribers{suffix}-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.csv"
    return Response(
        content=newsletter_service.export_subscribers_csv(subscribers),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "Cache-Control": "no-store",
        },
    )
