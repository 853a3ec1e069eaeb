from optinest.services.authors import DEFAULT_AUTHORS

from conftest import SAME_ORIGIN, make_post_row


def test_root(client):
    assert client.get("/").json()["message"].startswith("Welcome to Optinest API")


def test_site_falls_back_to_defaults(client, backend):
    backend.failing_tables.add("cms_content")
    response = client.get("/api/v1/site")
    assert response.status_code == 200
    assert response.json()["siteConfig"]["name"] == "Optinest"


def test_listing_filters(client, backend):
    backend.tables["posts"] = [
        make_post_row(slug="a", date="2024-01-01", featured=True),
        make_post_row(slug="b", date="2024-02-01", recommended=True),
        make_post_row(slug="c", date="2024-03-01"),
        make_post_row(slug="d", date="2024-04-01", status="draft", featured=True),
    ]
    assert [post["slug"] for post in client.get("/api/v1/posts").json()] == ["c", "b", "a"]
    assert [post["slug"] for post in client.get("/api/v1/posts", params={"limit": 2}).json()] == ["c", "b"]
    assert [post["slug"] for post in client.get("/api/v1/posts", params={"featured": True}).json()] == ["a"]
    assert [post["slug"] for post in client.get("/api/v1/posts", params={"recommended": True}).json()] == ["b"]


def test_post_reading_time(client, backend):
    backend.tables["posts"] = [make_post_row(content="word " * 450)]
    post = client.get("/api/v1/posts/hello-world").json()
    assert post["reading_time_minutes"] == 3
    assert post["reading_time_text"] == "3 min read"


def test_authors_count_published_posts(client, backend):
    backend.tables["posts"] = [
        make_post_row(slug="a", author_id="abram-lubin"),
        make_post_row(slug="b", author_id="abram-lubin", status="draft"),
    ]
    authors = {author["id"]: author for author in client.get("/api/v1/authors").json()}
    assert authors["abram-lubin"]["post_count"] == 1
    assert [post["slug"] for post in client.get("/api/v1/authors/abram-lubin/posts").json()] == ["a"]
    assert client.get("/api/v1/authors/nobody/posts").status_code == 404


def test_categories_default(client):
    assert client.get("/api/v1/categories").json() == ["Lifestyle", "Design", "Technology"]


def test_backend_outage_surfaces_as_bad_gateway(client, backend, login_as):
    login_as()
    backend.failing_tables.add("categories")
    response = client.post("/api/v1/admin/categories", data={"name": "News"}, headers=SAME_ORIGIN)
    assert response.status_code == 502
    assert response.json() == {"detail": "Content backend request failed."}


def test_author_counts_do_not_leak_between_requests(client, backend, login_as):
    backend.tables["posts"] = [
        make_post_row(slug="a", author_id="abram-lubin"),
        make_post_row(slug="b", author_id="abram-lubin", status="draft"),
    ]
    login_as(author_id=None)
    admin_counts = {author["id"]: author["post_count"] for author in client.get("/api/v1/admin/authors").json()}
    assert admin_counts["abram-lubin"] == 2

    public_counts = {author["id"]: author["post_count"] for author in client.get("/api/v1/authors").json()}
    assert public_counts["abram-lubin"] == 1
    assert all(author.post_count is None for author in DEFAULT_AUTHORS)
