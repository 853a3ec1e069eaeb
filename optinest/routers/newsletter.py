import logging
from typing import Literal

from fastapi import APIRouter, Depends, Form, Request
from pydantic import BaseModel

from optinest.core.errors import OptinestError
from optinest.core.security import is_same_origin
from optinest.db.supabase import SupabaseClient, get_supabase
from optinest.services import newsletter as newsletter_service

logger = logging.getLogger(__name__)

router = APIRouter()


class SubscribeResult(BaseModel):
    status: Literal["success", "error"]
    message: str


class ExistsResult(BaseModel):
    exists: bool


@router.post("/subscribe", response_model=SubscribeResult)
def subscribe(
    request: Request,
    email: str = Form(""),
    source_path: str = Form("", alias="sourcePath"),
    client: SupabaseClient = Depends(get_supabase),
):
    """Newsletter form action; outcomes are reported in the body, not the status code."""
    if not is_same_origin(request.headers):
        return SubscribeResult(
            status="error", message="Request blocked for security reasons. Please refresh and try again."
        )

    normalized = newsletter_service.normalize_email(email)
    if not newsletter_service.is_valid_email(normalized):
        return SubscribeResult(status="error", message="Please enter a valid email address.")

    if newsletter_service.is_subscribed(client, normalized):
        return SubscribeResult(status="success", message="You are already subscribed with this email.")

    try:
        newsletter_service.add_newsletter_subscriber(client, normalized, source_path)
    except OptinestError as e:
        logger.error("Could not save newsletter subscription: %s", e)
        return SubscribeResult(
            status="error", message="Could not save your subscription right now. Please try again."
        )

    return SubscribeResult(status="success", message="Thanks, you are subscribed.")


@router.get("/exists", response_model=ExistsResult)
def subscriber_exists(request: Request, email: str = "", client: SupabaseClient = Depends(get_supabase)):
    if not is_same_origin(request.headers):
        return ExistsResult(exists=False)

    normalized = newsletter_service.normalize_email(email)
    if not newsletter_service.is_valid_email(normalized):
        return ExistsResult(exists=False)
    return ExistsResult(exists=newsletter_service.is_subscribed(client, normalized))
