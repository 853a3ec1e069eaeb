import pytest

from optinest.core.errors import ContentValidationError
from optinest.models.admin_user import AdminRole
from optinest.services import newsletter as newsletter_service

from conftest import CROSS_ORIGIN, SAME_ORIGIN

SUBSCRIBERS = [
    {"id": "1", "email": "old@example.com", "submitted_at": "2024-01-01T00:00:00Z", "source_path": "/about"},
    {"id": "2", "email": "New@Example.com", "submitted_at": "2024-03-01T00:00:00Z", "source_path": "//evil"},
    {"id": "", "email": "broken@example.com", "submitted_at": "2024-02-01T00:00:00Z"},
]


def test_email_validation():
    assert newsletter_service.is_valid_email("reader@example.com")
    assert not newsletter_service.is_valid_email("reader@example")
    assert not newsletter_service.is_valid_email("two words@example.com")
    assert not newsletter_service.is_valid_email("a" * 250 + "@example.com")


def test_invalid_email_never_reaches_the_backend(backend):
    with pytest.raises(ContentValidationError):
        newsletter_service.add_newsletter_subscriber(backend, "not-an-email", "/")
    assert backend.calls == []


def test_subscribers_are_sanitized_and_sorted():
    subscribers = newsletter_service.sanitize_subscribers(SUBSCRIBERS)
    assert [entry.email for entry in subscribers] == ["new@example.com", "old@example.com"]
    assert subscribers[0].source_path is None
    assert subscribers[1].source_path == "/about"


def test_backend_timestamps_with_short_fractions_are_kept():
    row = {"id": "7", "email": "reader@example.com", "submitted_at": "2024-06-01T12:00:00.12+00:00"}
    subscribers = newsletter_service.sanitize_subscribers([row])
    assert [entry.submitted_at for entry in subscribers] == ["2024-06-01T12:00:00.120000Z"]


def test_source_path_must_be_local():
    assert newsletter_service.sanitize_source_path("/posts/a") == "/posts/a"
    assert newsletter_service.sanitize_source_path("//evil.com") is None
    assert newsletter_service.sanitize_source_path("https://evil.com") is None


def test_filter_and_export_csv():
    subscribers = newsletter_service.sanitize_subscribers(SUBSCRIBERS)
    filtered = newsletter_service.filter_subscribers(subscribers, "ABOUT")
    assert [entry.id for entry in filtered] == ["1"]

    csv_text = newsletter_service.export_subscribers_csv(filtered)
    assert csv_text == "id,email,sourcePath,submittedAt\n1,old@example.com,/about,2024-01-01T00:00:00Z"


def test_subscribe_flow(client, backend):
    form = {"email": " Reader@Example.com ", "sourcePath": "/posts/hello"}
    first = client.post("/api/newsletter/subscribe", data=form, headers=SAME_ORIGIN)
    assert first.json() == {"status": "success", "message": "Thanks, you are subscribed."}
    stored = backend.rows("newsletter_subscribers")
    assert stored[0]["email"] == "reader@example.com"
    assert stored[0]["source_path"] == "/posts/hello"

    second = client.post("/api/newsletter/subscribe", data=form, headers=SAME_ORIGIN)
    assert second.json()["message"] == "You are already subscribed with this email."
    assert len(backend.rows("newsletter_subscribers")) == 1


def test_subscribe_rejects_invalid_email(client, backend):
    response = client.post("/api/newsletter/subscribe", data={"email": "nope"}, headers=SAME_ORIGIN)
    assert response.json() == {"status": "error", "message": "Please enter a valid email address."}
    assert backend.calls == []


def test_subscribe_blocks_cross_origin(client, backend):
    response = client.post("/api/newsletter/subscribe", data={"email": "a@example.com"}, headers=CROSS_ORIGIN)
    assert response.json()["status"] == "error"
    assert "blocked" in response.json()["message"]
    assert backend.calls == []


def test_subscribe_reports_backend_failure(client, backend):
    backend.failing_tables.add("newsletter_subscribers")
    response = client.post("/api/newsletter/subscribe", data={"email": "a@example.com"}, headers=SAME_ORIGIN)
    assert response.json()["message"] == "Could not save your subscription right now. Please try again."


def test_exists_endpoint(client, backend):
    backend.tables["newsletter_subscribers"] = list(SUBSCRIBERS)
    assert client.get("/api/newsletter/exists", params={"email": "old@example.com"}, headers=SAME_ORIGIN).json() == {
        "exists": True
    }
    assert client.get("/api/newsletter/exists", params={"email": "old@example.com"}, headers=CROSS_ORIGIN).json() == {
        "exists": False
    }
    assert client.get("/api/newsletter/exists", params={"email": "bad"}, headers=SAME_ORIGIN).json() == {
        "exists": False
    }


def test_export_redirects_without_session(client):
    response = client.get("/admin/newsletter/export", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/admin/login"


def test_export_downloads_csv(client, backend, login_as):
    login_as(AdminRole.EDITOR)
    backend.tables["newsletter_subscribers"] = list(SUBSCRIBERS)

    response = client.get("/admin/newsletter/export", params={"q": "old"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "text/csv; charset=utf-8"
    assert response.headers["cache-control"] == "no-store"
    assert 'filename="newsletter-subscribers-filtered-' in response.headers["content-disposition"]
    assert response.text.splitlines() == ["id,email,sourcePath,submittedAt", "1,old@example.com,/about,2024-01-01T00:00:00Z"]


def test_admin_can_remove_subscriber(client, backend, login_as):
    login_as()
    backend.tables["newsletter_subscribers"] = [dict(row) for row in SUBSCRIBERS]
    assert client.delete("/api/v1/admin/newsletter/1", headers=SAME_ORIGIN).status_code == 200
    assert client.delete("/api/v1/admin/newsletter/1", headers=SAME_ORIGIN).status_code == 404
