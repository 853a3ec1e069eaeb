import os
import uuid
from typing import Dict, List, Optional

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from optinest.core.errors import BackendError
from optinest.db.supabase import MERGE_DUPLICATES, get_supabase
from optinest.main import app
from optinest.models.admin_user import AdminRole
from optinest.models.author import Author
from optinest.services.auth import ADMIN_COOKIE_NAME, AuthService
from optinest.services.authors import save_authors
from optinest.services.media_paths import build_public_url, normalize_object_path
from optinest.services.storage import get_storage

SAME_ORIGIN = {"origin": "http://testserver"}
CROSS_ORIGIN = {"origin": "https://evil.example"}


def _matches(row: dict, column: str, condition: str) -> bool:
    op, _, expected = condition.partition(".")
    actual = row.get(column)
    if actual is None:
        return False
    if op == "eq":
        return str(actual) == expected
    if op == "gt":
        return str(actual) > expected
    if op == "gte":
        return str(actual) >= expected
    if op == "lt":
        return str(actual) < expected
    raise AssertionError(f"Unsupported filter {condition!r}")


class FakeSupabase:
    """In-memory stand-in for the PostgREST table helpers."""

    is_configured = True

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.calls: List[tuple] = []
        self.failing_tables = set()

    def rows(self, table: str) -> List[dict]:
        return self.tables.setdefault(table, [])

    def _check(self, method: str, table: str) -> None:
        self.calls.append((method, table))
        if table in self.failing_tables:
            raise BackendError(500, f"{table} unavailable")

    def _filtered(self, table: str, filters: Dict[str, str]) -> List[dict]:
        return [
            row for row in self.rows(table)
            if all(_matches(row, column, condition) for column, condition in filters.items())
        ]

    def select(self, table: str, columns: str, order: Optional[str] = None, limit: Optional[str] = None, **filters):
        self._check("select", table)
        rows = self._filtered(table, filters)
        if order:
            column, _, direction = order.partition(".")
            rows = sorted(rows, key=lambda row: str(row.get(column) or ""), reverse=direction == "desc")
        if limit:
            rows = rows[: int(limit)]
        wanted = [column.strip() for column in columns.split(",")]
        return [{column: row.get(column) for column in wanted} for row in rows]

    def upsert(self, table: str, rows, on_conflict: str, prefer: str = MERGE_DUPLICATES, columns=None):
        self._check("upsert", table)
        stored = []
        for row in rows:
            existing = next(
                (current for current in self.rows(table) if current.get(on_conflict) == row.get(on_conflict)), None
            )
            if existing is None:
                existing = {"id": str(uuid.uuid4()), **row}
                self.rows(table).append(existing)
            elif "ignore-duplicates" in prefer:
                continue
            else:
                existing.update(row)
            stored.append(dict(existing))
        return stored if "return=representation" in prefer else None

    def insert(self, table: str, rows) -> None:
        self._check("insert", table)
        self.rows(table).extend({"id": str(uuid.uuid4()), **row} for row in rows)

    def update(self, table: str, values: dict, **filters) -> None:
        self._check("update", table)
        for row in self._filtered(table, filters):
            row.update(values)

    def delete(self, table: str, returning: Optional[str] = None, **filters) -> List[dict]:
        self._check("delete", table)
        removed = self._filtered(table, filters)
        self.tables[table] = [row for row in self.rows(table) if row not in removed]
        if not returning:
            return []
        wanted = [column.strip() for column in returning.split(",")]
        return [{column: row.get(column) for column in wanted} for row in removed]


class FakeStorage:
    bucket_name = "nomod"

    def __init__(self):
        self.objects: Dict[str, tuple] = {}

    def upload_file(self, object_path: str, file_content: bytes, content_type: str) -> str:
        key = normalize_object_path(object_path)
        self.objects[key] = (file_content, content_type)
        return key

    def delete_file(self, object_path: str) -> None:
        self.objects.pop(normalize_object_path(object_path), None)

    def get_public_url(self, object_path: str) -> str:
        return build_public_url(object_path, bucket=self.bucket_name)

    def fetch_public_object(self, object_path: str):
        if object_path not in self.objects:
            return 404, b"", None
        body, content_type = self.objects[object_path]
        return 200, body, content_type


def make_post_row(**overrides) -> dict:
    row = {
        "slug": "hello-world",
        "title": "Hello World",
        "excerpt": "A first post.",
        "date": "2024-05-01",
        "category": "General",
        "author_id": "abram-lubin",
        "cover_image": "/images/posts/hello.png",
        "cover_alt": "Hello cover",
        "status": "published",
        "publish_at": None,
        "featured": False,
        "recommended": False,
        "content": "Some words here.",
    }
    row.update(overrides)
    return row


def make_author(author_id: str, admin_user_id: Optional[str] = None, **overrides) -> Author:
    values = dict(
        id=author_id,
        name=author_id.replace("-", " ").title(),
        role="Writer",
        short_bio="Writes things.",
        bio="Writes many things.",
        avatar=f"/images/authors/{author_id}.svg",
        admin_user_id=admin_user_id,
    )
    values.update(overrides)
    return Author(**values)


@pytest.fixture
def backend():
    return FakeSupabase()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(backend, storage):
    app.dependency_overrides[get_supabase] = lambda: backend
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(backend, client):
    """Sign the test client in as a new user; editors get a linked author unless told otherwise."""

    def _login(role: AdminRole = AdminRole.ADMIN, email: str = None, author_id: Optional[str] = "staff-writer"):
        service = AuthService(backend)
        user = service.create_user(email or f"{role.value}@example.com", role.value.title(), "password123", role)
        if author_id:
            authors = [author for author in backend.rows("authors")]
            save_authors(backend, authors + [make_author(author_id, admin_user_id=user.id)])
        client.cookies.set(ADMIN_COOKIE_NAME, service.create_session(user))
        return user

    return _login
