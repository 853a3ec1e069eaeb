import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional
from urllib.parse import urlsplit

from jose import JWTError, jwt
from passlib.context import CryptContext

from optinest.core.config import settings
from optinest.core.errors import OriginRejectedError

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

DEFAULT_PORTS = {"http": "80", "https": "443"}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette headers are case-insensitive, plain dicts in tests may not be
    value = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return value


def get_expected_host(headers: Mapping[str, str]) -> str:
    forwarded = _header(headers, "x-forwarded-host")
    host = forwarded if forwarded is not None else _header(headers, "host")
    return (host or "").strip().lower()


def parse_source_host(value: Optional[str]) -> Optional[str]:
    """Host (with port) of an Origin/Referer value, or None if it is not a URL."""
    if not value:
        return None
    try:
        parts = urlsplit(value.strip())
        # Accessing .port validates it
        parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    host = parts.netloc.rsplit("@", 1)[-1].strip().lower()
    default_port = DEFAULT_PORTS.get(parts.scheme.lower())
    if default_port and host.endswith(f":{default_port}"):
        host = host[: -len(f":{default_port}")]
    return host or None


def _normalize_port(host: str) -> str:
    if host == "localhost":
        return "localhost:80"
    return host


def check_same_origin(headers: Mapping[str, str]) -> Optional[str]:
    """Return None when the request looks same-origin, else the rejection reason.

    Origin wins over Referer. Requests carrying neither are rejected, which
    also blocks clients that strip both headers.
    """
    expected_host = get_expected_host(headers)
    if not expected_host:
        return "Missing host header."

    origin = _header(headers, "origin")
    if origin:
        source_host = parse_source_host(origin)
        if not source_host or _normalize_port(source_host) != _normalize_port(expected_host):
            return "Invalid request origin."
        return None

    referer = _header(headers, "referer")
    if referer:
        source_host = parse_source_host(referer)
        if not source_host or _normalize_port(source_host) != _normalize_port(expected_host):
            return "Invalid request referrer."
        return None

    return "Missing origin/referrer headers."


def is_same_origin(headers: Mapping[str, str]) -> bool:
    return check_same_origin(headers) is None


def assert_same_origin(headers: Mapping[str, str]) -> None:
    reason = check_same_origin(headers)
    if reason:
        raise OriginRejectedError(reason)


def get_client_ip(headers: Mapping[str, str]) -> str:
    forwarded = _header(headers, "x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (_header(headers, "x-real-ip") or "").strip()
    return real_ip or "unknown"


def get_client_fingerprint(headers: Mapping[str, str]) -> str:
    ip = get_client_ip(headers)
    user_agent = (_header(headers, "user-agent") or "")[:180]
    return hashlib.sha256(f"{ip}|{user_agent}".encode("utf-8")).hexdigest()


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def hash_session_token(token: str) -> str:
    return hmac.new(settings.auth_secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.auth_secret, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.auth_secret, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
