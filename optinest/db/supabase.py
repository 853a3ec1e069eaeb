import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from jose import JWTError, jwt

from optinest.core.config import settings
from optinest.core.errors import BackendError, BackendNotConfiguredError, BackendRLSError

logger = logging.getLogger(__name__)

MERGE_DUPLICATES = "resolution=merge-duplicates,return=minimal"
IGNORE_DUPLICATES = "resolution=ignore-duplicates,return=minimal"
RETURN_MINIMAL = "return=minimal"
RETURN_REPRESENTATION = "return=representation"


def assert_service_key_is_privileged(key: str) -> None:
    # Legacy keys are JWTs; enforce the service_role claim when we can read it
    if not key.startswith("eyJ"):
        return
    try:
        claims = jwt.get_unverified_claims(key)
    except JWTError:
        return
    role = claims.get("role") if isinstance(claims.get("role"), str) else ""
    if role and role != "service_role":
        raise BackendNotConfiguredError(
            f'SUPABASE_SERVICE_ROLE_KEY must be a service role key. Detected JWT role "{role}".'
        )


def eq(value: Any) -> str:
    return f"eq.{value}"


class SupabaseClient:
    """Thin client for the hosted PostgREST + storage backend.

    Every call goes through ``request``; the table helpers only build the
    query string and ``Prefer`` header for the common upsert/select shapes.
    """

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        bucket: str = "nomod",
        timeout: float = 15.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").strip().rstrip("/")
        self.service_role_key = (service_role_key or "").strip()
        self.bucket = bucket
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_role_key)

    def _assert_configured(self) -> None:
        if not self.is_configured:
            raise BackendNotConfiguredError(
                "Supabase is not configured. Set SUPABASE_URL (or NEXT_PUBLIC_SUPABASE_URL) and "
                "SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_SECRET_KEY)."
            )
        assert_service_key_is_privileged(self.service_role_key)

    def request(
        self,
        path: str,
        method: str = "GET",
        query: Optional[Dict[str, Optional[str]]] = None,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        self._assert_configured()
        url = f"{self.base_url}{path}" if path.startswith("/") else f"{self.base_url}/{path}"
        params = {key: value for key, value in (query or {}).items() if value is not None}

        request_headers = dict(headers or {})
        request_headers["apikey"] = self.service_role_key
        request_headers["Authorization"] = f"Bearer {self.service_role_key}"
        if prefer:
            request_headers["Prefer"] = prefer

        data = None
        if body is not None:
            if isinstance(body, (bytes, bytearray, str)):
                data = body
            else:
                data = json.dumps(body)
                request_headers.setdefault("Content-Type", "application/json")

        try:
            return self.http.request(
                method, url, params=params, data=data, headers=request_headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise BackendError(0, str(e)) from e

    def read_json(self, response: requests.Response) -> Any:
        if not response.ok:
            body = response.text or ""
            lower_body = body.lower()
            looks_like_rls = "row-level security policy" in lower_body or '"code":"42501"' in lower_body
            if response.status_code in (401, 403) and looks_like_rls:
                raise BackendRLSError(response.status_code, body)
            raise BackendError(response.status_code, body or response.reason or "")

        if response.status_code == 204 or not response.text:
            return None
        return response.json()

    # Table helpers

    def select(self, table: str, columns: str, **filters: Optional[str]) -> List[dict]:
        query = {"select": columns}
        query.update(filters)
        rows = self.read_json(self.request(f"/rest/v1/{table}", query=query))
        return rows if isinstance(rows, list) else []

    def upsert(
        self,
        table: str,
        rows: Iterable[dict],
        on_conflict: str,
        prefer: str = MERGE_DUPLICATES,
        columns: Optional[str] = None,
    ) -> Optional[List[dict]]:
        return self.read_json(
            self.request(
                f"/rest/v1/{table}",
                method="POST",
                query={"on_conflict": on_conflict, "select": columns},
                prefer=prefer,
                body=list(rows),
            )
        )

    def insert(self, table: str, rows: Iterable[dict]) -> None:
        self.read_json(
            self.request(f"/rest/v1/{table}", method="POST", prefer=RETURN_MINIMAL, body=list(rows))
        )

    def update(self, table: str, values: dict, **filters: str) -> None:
        self.read_json(self.request(f"/rest/v1/{table}", method="PATCH", query=filters, body=values))

    def delete(self, table: str, returning: Optional[str] = None, **filters: str) -> List[dict]:
        query = dict(filters)
        prefer = None
        if returning:
            query["select"] = returning
            prefer = RETURN_REPRESENTATION
        rows = self.read_json(
            self.request(f"/rest/v1/{table}", method="DELETE", query=query, prefer=prefer)
        )
        return rows if isinstance(rows, list) else []


def build_client() -> SupabaseClient:
    return SupabaseClient(
        base_url=settings.supabase_base_url,
        service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        bucket=settings.storage_bucket,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )


_client: Optional[SupabaseClient] = None


def get_supabase() -> SupabaseClient:
    """FastAPI dependency; tests override it with an in-memory backend."""
    global _client
    if _client is None:
        _client = build_client()
    return _client
