import pytest

from optinest.core.errors import ContentValidationError
from optinest.models.cms import DEFAULT_CMS_CONTENT
from optinest.services.cms import parse_link_rows, parse_site_url, parse_social_rows, sanitize_cms_content
from optinest.services.sanitizers import (
    Invalid,
    Valid,
    check_date,
    check_iso_datetime,
    check_text,
    check_url,
    parse_timestamp,
    sanitize_links,
    text_or,
)


def test_check_text_trims_and_rejects_blank():
    assert check_text("  hi ") == Valid("hi")
    assert isinstance(check_text("   "), Invalid)
    assert isinstance(check_text(42), Invalid)
    assert text_or(None, "fallback") == "fallback"


def test_check_url_normalizes():
    assert check_url("HTTPS://Example.COM/") == Valid("https://example.com")
    assert check_url("https://example.com/blog/") == Valid("https://example.com/blog")
    assert isinstance(check_url("javascript:alert(1)"), Invalid)
    assert isinstance(check_url("/relative"), Invalid)


def test_check_iso_datetime_converts_to_utc():
    assert check_iso_datetime("2024-05-01T12:00:00+02:00") == Valid("2024-05-01T10:00:00Z")
    assert check_iso_datetime("2024-05-01T10:00:00") == Valid("2024-05-01T10:00:00Z")
    assert isinstance(check_iso_datetime("yesterday"), Invalid)
    assert isinstance(check_iso_datetime("1717243200"), Invalid)


def test_check_iso_datetime_accepts_trimmed_fractions():
    assert check_iso_datetime("2024-06-01T12:00:00.12+00:00") == Valid("2024-06-01T12:00:00.120000Z")
    assert check_iso_datetime("2024-06-01T12:00:00.1234Z") == Valid("2024-06-01T12:00:00.123400Z")
    assert parse_timestamp("2024-06-01T12:00:00.5+00:00") == parse_timestamp("2024-06-01T12:00:00Z") + 0.5
    assert parse_timestamp("2024-06-01") == parse_timestamp("2024-06-01T00:00:00Z")


def test_check_date_accepts_timestamps():
    assert check_date("2024-05-01") == Valid("2024-05-01")
    assert check_date("2024-05-01T23:00:00Z") == Valid("2024-05-01")
    assert isinstance(check_date(""), Invalid)


def test_sanitize_links_drops_incomplete_entries():
    links = sanitize_links(
        [{"label": "Home", "href": "/"}, {"label": "", "href": "/x"}, "junk", {"label": "X", "href": "https://x.com", "external": True}],
        fallback=(),
    )
    assert [link.label for link in links] == ["Home", "X"]
    assert links[1].external is True


def test_sanitize_links_uses_fallback_for_non_lists():
    fallback = DEFAULT_CMS_CONTENT.header.menu_links
    assert sanitize_links(None, fallback) == tuple(fallback)


def test_cms_content_falls_back_per_field():
    content = sanitize_cms_content(
        {"siteConfig": {"name": "My Blog", "title": "   ", "url": "not a url"}, "header": "junk"}
    )
    assert content.site_config.name == "My Blog"
    assert content.site_config.title == DEFAULT_CMS_CONTENT.site_config.title
    assert content.site_config.url == DEFAULT_CMS_CONTENT.site_config.url
    assert content.header == DEFAULT_CMS_CONTENT.header


def test_cms_content_defaults_for_non_objects():
    assert sanitize_cms_content(None) == DEFAULT_CMS_CONTENT
    assert sanitize_cms_content([1, 2]) == DEFAULT_CMS_CONTENT


def test_cms_content_round_trips_by_alias():
    dumped = DEFAULT_CMS_CONTENT.model_dump(by_alias=True, mode="json")
    assert sanitize_cms_content(dumped) == DEFAULT_CMS_CONTENT


def test_parse_link_rows():
    links = parse_link_rows("Home | /\n\nDocs | https://docs.example | external", "Menu")
    assert [(link.label, link.href, link.external) for link in links] == [
        ("Home", "/", False),
        ("Docs", "https://docs.example", True),
    ]
    with pytest.raises(ContentValidationError, match="Menu rows"):
        parse_link_rows("Home without href", "Menu")


def test_parse_social_rows_lowercases_platform():
    links = parse_social_rows("X | https://x.com/optinest")
    assert links[0].platform == "x"
    with pytest.raises(ContentValidationError):
        parse_social_rows("x")


def test_parse_site_url():
    assert parse_site_url("https://Blog.example.com/") == "https://blog.example.com"
    with pytest.raises(ContentValidationError):
        parse_site_url("ftp://blog.example.com")
