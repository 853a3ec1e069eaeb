import logging
from typing import Optional, Sequence

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response, status
from pydantic import BaseModel

from optinest.core.config import settings
from optinest.core.errors import OptinestError
from optinest.core.security import check_same_origin, get_client_fingerprint
from optinest.db.supabase import SupabaseClient, get_supabase
from optinest.models.admin_user import AdminRole, AdminUser
from optinest.services.auth import ADMIN_COOKIE_NAME, AuthService, LoginRateLimiter, lockout_message

logger = logging.getLogger(__name__)

router = APIRouter()

ALL_ROLES = (AdminRole.ADMIN, AdminRole.EDITOR)
LOGIN_PAGE = "/admin/login"


class SessionStatus(BaseModel):
    authenticated: bool
    role: Optional[AdminRole] = None
    name: Optional[str] = None


def get_auth_service(client: SupabaseClient = Depends(get_supabase)) -> AuthService:
    return AuthService(client)


def get_rate_limiter(client: SupabaseClient = Depends(get_supabase)) -> LoginRateLimiter:
    return LoginRateLimiter(client)


def get_current_admin_user(
    request: Request, service: AuthService = Depends(get_auth_service)
) -> Optional[AdminUser]:
    """Resolve the session cookie to an active admin user, or None."""
    cookie_value = request.cookies.get(ADMIN_COOKIE_NAME)
    if not cookie_value:
        return None
    try:
        return service.get_session_user(cookie_value)
    except OptinestError as e:
        logger.warning("Could not resolve admin session: %s", e)
        return None


def require_admin_session(roles: Sequence[AdminRole] = ALL_ROLES):
    """Dependency for admin API routes: 401 without a session, 403 for the wrong role."""

    def dependency(user: Optional[AdminUser] = Depends(get_current_admin_user)) -> AdminUser:
        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin session required")
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="You are not allowed to access this page."
            )
        return user

    return dependency


def require_admin_page(roles: Sequence[AdminRole] = ALL_ROLES):
    """Dependency for page-like routes: unauthenticated callers are sent to the login page."""

    def dependency(user: Optional[AdminUser] = Depends(get_current_admin_user)) -> AdminUser:
        if not user:
            raise HTTPException(status_code=status.HTTP_303_SEE_OTHER, headers={"Location": LOGIN_PAGE})
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_303_SEE_OTHER,
                headers={"Location": "/admin?error=You are not allowed to access this page."},
            )
        return user

    return dependency


def require_same_origin(request: Request) -> None:
    reason = check_same_origin(request.headers)
    if reason:
        logger.warning("Blocked cross-origin request to %s: %s", request.url.path, reason)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Request was blocked for security reasons."
        )


def require_trusted_admin_mutation(roles: Sequence[AdminRole] = ALL_ROLES):
    """Same-origin check first, then the session gate."""
    session_dependency = require_admin_session(roles)

    def dependency(
        _origin: None = Depends(require_same_origin), user: AdminUser = Depends(session_dependency)
    ) -> AdminUser:
        return user

    return dependency


@router.post("/login", response_model=SessionStatus)
def login(
    request: Request,
    response: Response,
    email: str = Form(""),
    password: str = Form(""),
    _origin: None = Depends(require_same_origin),
    service: AuthService = Depends(get_auth_service),
    limiter: LoginRateLimiter = Depends(get_rate_limiter),
):
    if not email.strip() or not password:
        raise HTTPException(status_code=400, detail="Email and password are required.")

    client_key = get_client_fingerprint(request.headers)
    limited, retry_after = limiter.get_state(client_key)
    if limited:
        raise HTTPException(
            status_code=429, detail=lockout_message(retry_after), headers={"Retry-After": str(retry_after)}
        )

    user, error_message = service.authenticate_user(email, password)
    if not user:
        limited, retry_after = limiter.record_failure(client_key)
        if limited:
            logger.warning("Login locked out for client %s", client_key[:12])
            raise HTTPException(
                status_code=429, detail=lockout_message(retry_after), headers={"Retry-After": str(retry_after)}
            )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=error_message)

    limiter.clear(client_key)
    cookie_value = service.create_session(user, user_agent=request.headers.get("user-agent"))
    response.set_cookie(
        ADMIN_COOKIE_NAME,
        cookie_value,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return SessionStatus(authenticated=True, role=user.role, name=user.name)


@router.post("/logout", response_model=SessionStatus)
def logout(
    request: Request,
    response: Response,
    _origin: None = Depends(require_same_origin),
    service: AuthService = Depends(get_auth_service),
):
    service.clear_session(request.cookies.get(ADMIN_COOKIE_NAME))
    response.delete_cookie(ADMIN_COOKIE_NAME, path="/")
    return SessionStatus(authenticated=False)


@router.get("/session", response_model=SessionStatus)
def read_session(response: Response, user: Optional[AdminUser] = Depends(get_current_admin_user)):
    response.headers["Cache-Control"] = "no-store"
    if not user:
        return SessionStatus(authenticated=False)
    return SessionStatus(authenticated=True, role=user.role, name=user.name)
