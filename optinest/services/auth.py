import logging
import math
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from optinest.core.config import settings
from optinest.core.errors import ContentValidationError
from optinest.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    hash_session_token,
    verify_password,
)
from optinest.db.supabase import IGNORE_DUPLICATES, SupabaseClient, eq
from optinest.models.admin_user import AdminRole, AdminSession, AdminUser, LoginRateLimit, StoredAdminUser
from optinest.services.sanitizers import parse_timestamp

logger = logging.getLogger(__name__)

ADMIN_COOKIE_NAME = "nomod_admin_session"
DEFAULT_ADMIN_NAME = "Site Admin"
MAX_SESSIONS_PER_USER = 20
MAX_SESSIONS_TOTAL = 5000
MIN_PASSWORD_LENGTH = 8
# argon2 hashes carry their own salt; the column is kept for the stored row shape
PASSWORD_SALT_PLACEHOLDER = "argon2"

USER_COLUMNS = "id,email,name,role,password_hash,password_salt,is_active,created_at,updated_at,last_login_at"
SESSION_COLUMNS = "id,token_hash,user_id,role,created_at,expires_at,last_seen_at,user_agent"

LOGIN_WINDOW = timedelta(minutes=15)
LOGIN_LOCKOUT = timedelta(minutes=15)
MAX_LOGIN_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.isoformat()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def sanitize_role(value) -> AdminRole:
    return AdminRole.ADMIN if value == AdminRole.ADMIN.value else AdminRole.EDITOR


def to_stored_user(row: dict) -> Optional[StoredAdminUser]:
    if not all(row.get(key) for key in ("id", "email", "name", "password_hash")):
        return None
    return StoredAdminUser(
        id=row["id"],
        email=normalize_email(row["email"]),
        name=row["name"],
        role=sanitize_role(row.get("role")),
        password_hash=row["password_hash"],
        is_active=row.get("is_active") is not False,
        created_at=row.get("created_at") or "",
        updated_at=row.get("updated_at") or "",
        last_login_at=row.get("last_login_at"),
    )


def to_session(row: dict) -> Optional[AdminSession]:
    if not all(row.get(key) for key in ("id", "token_hash", "user_id", "created_at", "expires_at")):
        return None
    return AdminSession(
        id=row["id"],
        token_hash=row["token_hash"],
        user_id=row["user_id"],
        role=sanitize_role(row.get("role")),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        last_seen_at=row.get("last_seen_at") or row["created_at"],
        user_agent=row.get("user_agent"),
    )


def to_public_user(user: StoredAdminUser) -> AdminUser:
    return AdminUser(**user.model_dump(exclude={"password_hash"}))


class AuthService:
    """Admin users and their sessions, stored in ``admin_users`` / ``admin_sessions``."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    # Users

    def _fetch_users(self) -> List[StoredAdminUser]:
        rows = self.client.select("admin_users", USER_COLUMNS, order="created_at.asc")
        return [user for user in (to_stored_user(row) for row in rows) if user]

    def ensure_default_admin_user(self) -> None:
        """Bootstrap the configured admin account when no user exists yet."""
        if self._fetch_users():
            return
        now = _iso(_utcnow())
        logger.info("Creating default admin user %s", normalize_email(settings.ADMIN_EMAIL))
        self.client.upsert(
            "admin_users",
            [
                {
                    "id": str(uuid.uuid4()),
                    "email": normalize_email(settings.ADMIN_EMAIL),
                    "name": DEFAULT_ADMIN_NAME,
                    "role": AdminRole.ADMIN.value,
                    "password_hash": get_password_hash(settings.ADMIN_PASSWORD),
                    "password_salt": PASSWORD_SALT_PLACEHOLDER,
                    "is_active": True,
                    "created_at": now,
                    "updated_at": now,
                }
            ],
            on_conflict="email",
            prefer=IGNORE_DUPLICATES,
        )

    def read_users(self) -> List[StoredAdminUser]:
        self.ensure_default_admin_user()
        return self._fetch_users()

    def list_users(self) -> List[AdminUser]:
        users = sorted(self.read_users(), key=lambda user: user.name.lower())
        return [to_public_user(user) for user in users]

    def get_user(self, user_id: str) -> Optional[StoredAdminUser]:
        return next((u for u in self.read_users() if u.id == user_id and u.is_active), None)

    def authenticate_user(self, email: str, password: str) -> Tuple[Optional[AdminUser], Optional[str]]:
        normalized = normalize_email(email)
        user = next((u for u in self.read_users() if u.email == normalized and u.is_active), None)
        if not user or not verify_password(password, user.password_hash):
            return None, "Invalid credentials."

        now = _iso(_utcnow())
        self.client.update("admin_users", {"last_login_at": now, "updated_at": now}, id=eq(user.id))
        public = to_public_user(user)
        public.last_login_at = now
        public.updated_at = now
        return public, None

    def create_user(self, email: str, name: str, password: str, role: AdminRole) -> AdminUser:
        email = normalize_email(email)
        name = (name or "").strip()
        if not email or not name:
            raise ContentValidationError("Name and email are required.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ContentValidationError("Password must be at least 8 characters.")
        if any(user.email == email for user in self.read_users()):
            raise ContentValidationError("A user with this email already exists.")

        now = _iso(_utcnow())
        user = AdminUser(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            role=sanitize_role(AdminRole(role).value),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        row = user.model_dump(mode="json", exclude={"last_login_at"})
        row.update({"password_hash": get_password_hash(password), "password_salt": PASSWORD_SALT_PLACEHOLDER})
        self.client.insert("admin_users", [row])
        return user

    def _assert_admin_remains(self, users: List[StoredAdminUser], target: StoredAdminUser) -> None:
        if target.role != AdminRole.ADMIN:
            return
        active_admins = sum(1 for user in users if user.is_active and user.role == AdminRole.ADMIN)
        if active_admins <= 1:
            raise ContentValidationError("At least one admin user must remain.")

    def update_user_role(self, user_id: str, role: AdminRole) -> None:
        role = AdminRole(role)
        users = self.read_users()
        target = next((u for u in users if u.id == user_id and u.is_active), None)
        if not target:
            raise ContentValidationError("User not found.")
        if role != AdminRole.ADMIN:
            self._assert_admin_remains(users, target)

        now = _iso(_utcnow())
        self.client.update("admin_users", {"role": role.value, "updated_at": now}, id=eq(user_id))
        self.client.update("admin_sessions", {"role": role.value, "last_seen_at": now}, user_id=eq(user_id))

    def update_user_password(self, user_id: str, new_password: str) -> None:
        password = (new_password or "").strip()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ContentValidationError("Password must be at least 8 characters.")
        if not self.get_user(user_id):
            raise ContentValidationError("User not found.")
        self.client.update(
            "admin_users",
            {
                "password_hash": get_password_hash(password),
                "password_salt": PASSWORD_SALT_PLACEHOLDER,
                "updated_at": _iso(_utcnow()),
            },
            id=eq(user_id),
        )

    def delete_user(self, user_id: str) -> None:
        users = self.read_users()
        target = next((u for u in users if u.id == user_id and u.is_active), None)
        if not target:
            raise ContentValidationError("User not found.")
        self._assert_admin_remains(users, target)
        self.client.delete("admin_users", id=eq(user_id))

    # Sessions

    def _fetch_sessions(self) -> List[AdminSession]:
        rows = self.client.select(
            "admin_sessions", SESSION_COLUMNS, expires_at=f"gt.{_iso(_utcnow())}", order="created_at.asc"
        )
        return [session for session in (to_session(row) for row in rows) if session]

    def _delete_session(self, session_id: str) -> None:
        self.client.delete("admin_sessions", id=eq(session_id))

    def remove_orphaned_sessions(self) -> None:
        active_ids = {user.id for user in self.read_users() if user.is_active}
        for session in self._fetch_sessions():
            if session.user_id not in active_ids:
                self._delete_session(session.id)

    def create_session(self, user: AdminUser, user_agent: Optional[str] = None) -> str:
        """Store a new session and return the signed cookie value.

        Keeps at most MAX_SESSIONS_PER_USER per user and MAX_SESSIONS_TOTAL
        overall by removing the oldest ones first.
        """
        self.remove_orphaned_sessions()
        sessions = sorted(self._fetch_sessions(), key=lambda s: parse_timestamp(s.created_at) or 0.0)

        own = [s for s in sessions if s.user_id == user.id]
        stale = own[: max(0, len(own) - (MAX_SESSIONS_PER_USER - 1))]
        stale += sessions[: max(0, len(sessions) - (MAX_SESSIONS_TOTAL - 1))]
        for session_id in {s.id for s in stale}:
            self._delete_session(session_id)

        token = secrets.token_hex(32)
        now = _utcnow()
        max_age = timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS)
        self.client.insert(
            "admin_sessions",
            [
                {
                    "id": str(uuid.uuid4()),
                    "token_hash": hash_session_token(token),
                    "user_id": user.id,
                    "role": AdminRole(user.role).value,
                    "created_at": _iso(now),
                    "expires_at": _iso(now + max_age),
                    "last_seen_at": _iso(now),
                    "user_agent": user_agent,
                }
            ],
        )
        return create_access_token({"sub": user.id, "sid": token}, expires_delta=max_age)

    def get_session_user(self, cookie_value: Optional[str]) -> Optional[AdminUser]:
        if not cookie_value:
            return None
        claims = decode_access_token(cookie_value)
        if not claims or not claims.get("sid") or not claims.get("sub"):
            return None

        self.remove_orphaned_sessions()
        rows = self.client.select(
            "admin_sessions", SESSION_COLUMNS, token_hash=eq(hash_session_token(claims["sid"])), limit="1"
        )
        session = next((s for s in (to_session(row) for row in rows) if s), None)
        if not session or session.user_id != claims["sub"]:
            return None

        expires_at = parse_timestamp(session.expires_at)
        if expires_at is None or expires_at <= _utcnow().timestamp():
            self._delete_session(session.id)
            return None

        user = self.get_user(session.user_id)
        return to_public_user(user) if user else None

    def clear_session(self, cookie_value: Optional[str]) -> None:
        claims = decode_access_token(cookie_value) if cookie_value else None
        if claims and claims.get("sid"):
            self.client.delete("admin_sessions", token_hash=eq(hash_session_token(claims["sid"])))


class LoginRateLimiter:
    """Failed-login counter per client fingerprint, stored in ``login_rate_limits``."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    def _read(self, key: str) -> Optional[LoginRateLimit]:
        rows = self.client.select(
            "login_rate_limits", "key,count,first_attempt_at,blocked_until", key=eq(key), limit="1"
        )
        if not rows:
            return None
        row = rows[0]
        return LoginRateLimit(
            key=row.get("key") or key,
            count=int(row.get("count") or 0),
            first_attempt_at=row.get("first_attempt_at") or "",
            blocked_until=row.get("blocked_until"),
        )

    def _write(self, record: LoginRateLimit) -> None:
        self.client.upsert("login_rate_limits", [record.model_dump()], on_conflict="key")

    def clear(self, key: str) -> None:
        self.client.delete("login_rate_limits", key=eq(key))

    def get_state(self, key: str, now: Optional[datetime] = None) -> Tuple[bool, int]:
        """Return (limited, retry_after_seconds)."""
        now = now or _utcnow()
        record = self._read(key)
        if not record:
            return False, 0

        first = parse_timestamp(record.first_attempt_at)
        if first is None or now.timestamp() - first > (LOGIN_WINDOW * 4).total_seconds():
            self.clear(key)
            return False, 0

        blocked_until = parse_timestamp(record.blocked_until)
        if blocked_until and blocked_until > now.timestamp():
            return True, max(1, math.ceil(blocked_until - now.timestamp()))

        if record.blocked_until:
            record.blocked_until = None
            self._write(record)
        return False, 0

    def record_failure(self, key: str, now: Optional[datetime] = None) -> Tuple[bool, int]:
        now = now or _utcnow()
        current = self._read(key)
        if not current:
            self._write(LoginRateLimit(key=key, count=1, first_attempt_at=_iso(now)))
            return False, 0

        first = parse_timestamp(current.first_attempt_at)
        reset_window = first is None or now.timestamp() - first > LOGIN_WINDOW.total_seconds()
        count = 1 if reset_window else current.count + 1
        first_attempt_at = _iso(now) if reset_window else current.first_attempt_at

        if count >= MAX_LOGIN_ATTEMPTS:
            blocked_until = now + LOGIN_LOCKOUT
            self._write(
                LoginRateLimit(key=key, count=count, first_attempt_at=first_attempt_at, blocked_until=_iso(blocked_until))
            )
            return True, math.ceil(LOGIN_LOCKOUT.total_seconds())

        self._write(LoginRateLimit(key=key, count=count, first_attempt_at=first_attempt_at))
        return False, 0


def lockout_message(retry_after_seconds: int) -> str:
    minutes = math.ceil(retry_after_seconds / 60)
    return f"Too many login attempts. Try again in {minutes} minute{'' if minutes == 1 else 's'}."
