from optinest.models.admin_user import AdminRole
from optinest.services.auth import AuthService
from optinest.services.authors import save_authors
from optinest.services.permissions import UNLINKED_EDITOR_MESSAGE

from conftest import CROSS_ORIGIN, SAME_ORIGIN, make_author, make_post_row

PNG = ("cover.png", b"\x89PNG\r\n\x1a\nfake", "image/png")


def post_form(**overrides):
    form = {
        "title": "My First Post",
        "slug": "",
        "excerpt": "Short summary.",
        "date": "2024-05-01",
        "category": "Design",
        "author_id": "abram-lubin",
        "cover_alt": "A cover",
        "content": "Hello there.",
        "status": "published",
    }
    form.update(overrides)
    return form


def author_form(**overrides):
    form = {
        "author_id": "",
        "name": "New Writer",
        "role": "Writer",
        "short_bio": "Short bio.",
        "bio": "Long bio.",
        "existing_avatar": "/images/authors/new-writer.svg",
    }
    form.update(overrides)
    return form


# Access


def test_admin_api_requires_session(client):
    assert client.get("/api/v1/admin/posts").status_code == 401


def test_mutations_require_same_origin(client, login_as):
    login_as()
    response = client.post("/api/v1/admin/categories", data={"name": "News"}, headers=CROSS_ORIGIN)
    assert response.status_code == 403
    assert response.json()["detail"] == "Request was blocked for security reasons."


def test_editors_cannot_manage_users(client, login_as):
    login_as(AdminRole.EDITOR)
    assert client.get("/api/v1/admin/users").status_code == 403


# Posts


def test_admin_lists_all_posts_with_status(client, backend, login_as):
    login_as()
    backend.tables["posts"] = [
        make_post_row(slug="draft", status="draft"),
        make_post_row(slug="later", status="scheduled", publish_at="2999-01-01T00:00:00Z"),
    ]
    posts = {post["slug"]: post for post in client.get("/api/v1/admin/posts").json()}
    assert posts["draft"]["status_label"] == "Draft"
    assert posts["later"]["publication_state"] == "scheduled-pending"
    assert posts["later"]["is_published"] is False


def test_editor_posts_are_forced_to_their_author(client, backend, storage, login_as):
    login_as(AdminRole.EDITOR, author_id="staff-writer")
    response = client.post(
        "/api/v1/admin/posts", data=post_form(author_id="abram-lubin"), files={"cover_image": PNG}, headers=SAME_ORIGIN
    )
    assert response.status_code == 201, response.text
    post = response.json()
    assert post["slug"] == "my-first-post"
    assert post["author_id"] == "staff-writer"
    assert "/images/posts/my-first-post-" in post["cover_image"]
    assert any(key.startswith("images/posts/my-first-post-") for key in storage.objects)


def test_saved_posts_carry_their_seo_report(client, login_as):
    login_as()
    response = client.post(
        "/api/v1/admin/posts",
        data=post_form(author_id="staff-writer", existing_cover_image="/images/a.png", focus_keyword="first post"),
        headers=SAME_ORIGIN,
    )
    assert response.status_code == 201, response.text
    seo = response.json()["seo"]
    checks = {check["id"]: check["passed"] for check in seo["checks"]}
    assert len(checks) == 8
    assert checks["slug"] is True
    assert checks["keyword-title"] is True
    assert checks["content-length"] is False
    assert 0 < seo["score"] < 100

    listed = client.get("/api/v1/admin/posts/my-first-post").json()
    assert listed["seo"] == seo


def test_unlinked_editor_cannot_create_posts(client, login_as):
    login_as(AdminRole.EDITOR, author_id=None)
    response = client.post(
        "/api/v1/admin/posts", data=post_form(existing_cover_image="/images/a.png"), headers=SAME_ORIGIN
    )
    assert response.status_code == 403
    assert response.json()["detail"] == UNLINKED_EDITOR_MESSAGE


def test_editor_cannot_edit_foreign_posts(client, backend, login_as):
    login_as(AdminRole.EDITOR, author_id="staff-writer")
    backend.tables["posts"] = [make_post_row(slug="theirs", author_id="abram-lubin")]
    response = client.put("/api/v1/admin/posts/theirs", data=post_form(slug="theirs"), headers=SAME_ORIGIN)
    assert response.status_code == 403
    assert response.json()["detail"] == "Editors can only edit posts from their linked author profile."
    assert client.delete("/api/v1/admin/posts/theirs", headers=SAME_ORIGIN).status_code == 403


def test_post_requires_cover_image(client, login_as):
    login_as()
    response = client.post("/api/v1/admin/posts", data=post_form(author_id="staff-writer"), headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == "Please upload a featured image."


def test_post_rejects_unknown_category_and_duplicate_slug(client, backend, login_as):
    login_as()
    bad_category = post_form(author_id="staff-writer", category="Nope", existing_cover_image="/images/a.png")
    response = client.post("/api/v1/admin/posts", data=bad_category, headers=SAME_ORIGIN)
    assert response.json()["detail"] == "Category is invalid. Please select a category from the list."

    backend.tables["posts"] = [make_post_row(slug="my-first-post", author_id="staff-writer")]
    duplicate = post_form(author_id="staff-writer", existing_cover_image="/images/a.png")
    response = client.post("/api/v1/admin/posts", data=duplicate, headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == "A post with that slug already exists."


def test_renaming_a_post_moves_it(client, backend, login_as):
    login_as()
    backend.tables["posts"] = [make_post_row(slug="hello-world", author_id="staff-writer")]
    response = client.put(
        "/api/v1/admin/posts/hello-world",
        data=post_form(slug="hello-again", author_id="staff-writer"),
        headers=SAME_ORIGIN,
    )
    assert response.status_code == 200, response.text
    assert response.json()["cover_image"].endswith("/images/posts/hello.png")
    assert [row["slug"] for row in backend.rows("posts")] == ["hello-again"]


def test_update_of_missing_post(client, login_as):
    login_as()
    response = client.put("/api/v1/admin/posts/missing", data=post_form(), headers=SAME_ORIGIN)
    assert response.json()["detail"] == "Original post was not found."


def test_scheduling_in_the_past_is_rejected(client, login_as):
    login_as()
    form = post_form(
        author_id="staff-writer", status="scheduled", publish_at="2020-01-01T00:00:00Z",
        existing_cover_image="/images/a.png",
    )
    response = client.post("/api/v1/admin/posts", data=form, headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == "Scheduled publish time must be in the future."


# Categories


def test_category_rename_updates_posts(client, backend, login_as):
    login_as()
    backend.tables["categories"] = [{"name": "Design"}, {"name": "Tech"}]
    backend.tables["posts"] = [make_post_row(category="Tech")]
    response = client.put(
        "/api/v1/admin/categories", data={"previous_name": "Tech", "name": "Technology"}, headers=SAME_ORIGIN
    )
    assert response.status_code == 200
    assert "Technology" in response.json()["categories"]
    assert backend.rows("posts")[0]["category"] == "Technology"


# Authors


def test_author_create_links_the_editor(client, backend, login_as):
    editor = login_as(AdminRole.EDITOR, author_id=None)
    response = client.post("/api/v1/admin/authors", data=author_form(admin_user_id="someone"), headers=SAME_ORIGIN)
    assert response.status_code == 201, response.text
    assert response.json()["id"] == "new-writer"
    assert response.json()["admin_user_id"] == editor.id


def test_author_create_requires_avatar(client, login_as):
    login_as(AdminRole.EDITOR, author_id=None)
    response = client.post("/api/v1/admin/authors", data=author_form(existing_avatar=""), headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == "Please upload an avatar image."


def test_user_cannot_be_linked_twice(client, login_as):
    admin = login_as()
    response = client.post("/api/v1/admin/authors", data=author_form(admin_user_id=admin.id), headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == "That user is already linked to another author."


def test_editor_cannot_update_other_profiles(client, backend, login_as):
    login_as(AdminRole.EDITOR, author_id="staff-writer")
    save_authors(backend, list(backend.rows("authors")) + [make_author("other-writer", admin_user_id="other-user")])
    response = client.put(
        "/api/v1/admin/authors/other-writer", data=author_form(author_id="other-writer"), headers=SAME_ORIGIN
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Editors can only update their own author profile."


def test_unlinked_editor_cannot_claim_unowned_author(client, backend, login_as):
    login_as(AdminRole.EDITOR, author_id=None)
    save_authors(backend, [make_author("orphan-writer")])
    backend.tables["posts"] = [make_post_row(slug="theirs", author_id="orphan-writer")]

    response = client.put(
        "/api/v1/admin/authors/orphan-writer", data=author_form(author_id="orphan-writer"), headers=SAME_ORIGIN
    )
    assert response.status_code == 403
    assert backend.rows("authors")[0]["admin_user_id"] is None

    assert client.delete("/api/v1/admin/posts/theirs", headers=SAME_ORIGIN).status_code == 403
    assert [row["slug"] for row in backend.rows("posts")] == ["theirs"]


def test_author_rename_moves_posts(client, backend, login_as):
    admin = login_as()
    backend.tables["posts"] = [make_post_row(author_id="staff-writer")]
    response = client.put(
        "/api/v1/admin/authors/staff-writer",
        data=author_form(author_id="lead-writer", admin_user_id=admin.id),
        headers=SAME_ORIGIN,
    )
    assert response.status_code == 200, response.text
    assert [row["id"] for row in backend.rows("authors")] == ["lead-writer"]
    assert backend.rows("posts")[0]["author_id"] == "lead-writer"


def test_author_delete_requires_reassignment(client, backend, login_as):
    login_as()
    save_authors(backend, list(backend.rows("authors")) + [make_author("other-writer")])
    backend.tables["posts"] = [make_post_row(author_id="other-writer")]

    response = client.delete("/api/v1/admin/authors/other-writer", headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == (
        "Author has 1 post(s). Select another author to reassign posts before delete."
    )

    response = client.delete(
        "/api/v1/admin/authors/other-writer", params={"reassign_to": "staff-writer"}, headers=SAME_ORIGIN
    )
    assert response.status_code == 200
    assert backend.rows("posts")[0]["author_id"] == "staff-writer"
    assert [row["id"] for row in backend.rows("authors")] == ["staff-writer"]


def test_editors_cannot_delete_authors(client, login_as):
    login_as(AdminRole.EDITOR)
    assert client.delete("/api/v1/admin/authors/staff-writer", headers=SAME_ORIGIN).status_code == 403


# CMS


def test_cms_update_and_reset(client, backend, login_as):
    login_as()
    response = client.put(
        "/api/v1/admin/cms", json={"siteConfig": {"name": "Renamed", "url": "javascript:x"}}, headers=SAME_ORIGIN
    )
    assert response.status_code == 200
    assert response.json()["siteConfig"]["name"] == "Renamed"
    assert response.json()["siteConfig"]["url"] == "http://localhost:3000"
    assert client.get("/api/v1/site").json()["siteConfig"]["name"] == "Renamed"

    assert client.delete("/api/v1/admin/cms", headers=SAME_ORIGIN).status_code == 200
    assert backend.rows("cms_content") == []
    assert client.get("/api/v1/site").json()["siteConfig"]["name"] == "Optinest"


def test_cms_site_form(client, login_as):
    login_as()
    form = {
        "site_name": "Renamed",
        "site_title": "Renamed | Blog",
        "site_description": "About things",
        "site_url": "https://blog.example.com",
        "menu_links": "Home | /\nDocs | https://docs.example.com | external",
        "social_links": "GitHub | https://github.com/example",
    }
    response = client.put("/api/v1/admin/cms/site", data=form, headers=SAME_ORIGIN)
    assert response.status_code == 200
    body = response.json()
    assert body["siteConfig"]["url"] == "https://blog.example.com"
    assert body["header"]["menuLinks"][1] == {"label": "Docs", "href": "https://docs.example.com", "external": True}
    assert body["footer"]["socialLinks"] == [{"platform": "github", "href": "https://github.com/example"}]

    bad = client.put("/api/v1/admin/cms/site", data={**form, "menu_links": "Home"}, headers=SAME_ORIGIN)
    assert bad.status_code == 400
    bad_url = client.put("/api/v1/admin/cms/site", data={**form, "site_url": "ftp://x"}, headers=SAME_ORIGIN)
    assert bad_url.status_code == 400


# Users


def test_admin_creates_user_with_author_profile(client, backend, login_as):
    login_as()
    response = client.post(
        "/api/v1/admin/users",
        data={"email": "Writer@Example.com", "name": "Jo Writer", "password": "password123", "role": "editor"},
        headers=SAME_ORIGIN,
    )
    assert response.status_code == 201, response.text
    user = response.json()
    assert user["email"] == "writer@example.com"
    profile = next(row for row in backend.rows("authors") if row["admin_user_id"] == user["id"])
    assert profile["id"] == "jo-writer"
    assert profile["role"] == "Staff Writer"


def test_admin_cannot_delete_self(client, login_as):
    admin = login_as()
    response = client.delete(f"/api/v1/admin/users/{admin.id}", headers=SAME_ORIGIN)
    assert response.status_code == 400
    assert response.json()["detail"] == "You cannot delete your own account."


def test_user_delete_reassigns_posts(client, backend, login_as):
    admin = login_as()
    editor = AuthService(backend).create_user("ed@example.com", "Ed", "password123", AdminRole.EDITOR)
    save_authors(backend, list(backend.rows("authors")) + [make_author("ed", admin_user_id=editor.id)])
    backend.tables["posts"] = [make_post_row(author_id="ed")]

    response = client.delete(f"/api/v1/admin/users/{editor.id}", headers=SAME_ORIGIN)
    assert response.status_code == 400

    response = client.delete(
        f"/api/v1/admin/users/{editor.id}", params={"reassign_to_user_id": admin.id}, headers=SAME_ORIGIN
    )
    assert response.status_code == 200, response.text
    assert backend.rows("posts")[0]["author_id"] == "staff-writer"
    assert all(row["id"] != "ed" for row in backend.rows("authors"))
    assert all(row["id"] != editor.id for row in backend.rows("admin_users"))


def test_sync_creates_missing_profiles(client, backend, login_as):
    login_as()
    response = client.post("/api/v1/admin/users/sync-authors", headers=SAME_ORIGIN)
    assert response.status_code == 200
    # The bootstrapped admin had no profile yet
    assert [author["name"] for author in response.json()] == ["Site Admin"]
    assert client.post("/api/v1/admin/users/sync-authors", headers=SAME_ORIGIN).json() == []
