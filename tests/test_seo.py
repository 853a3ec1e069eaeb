from optinest.services.seo import count_h2_headings, evaluate_seo
from optinest.services.text import count_words, reading_time, slugify

from conftest import SAME_ORIGIN

TITLE = "Practical SEO checklist for small editorial teams today"
DESCRIPTION = (
    "A practical SEO checklist that helps small editorial teams plan, write and publish articles "
    "which rank well and read clearly on every device they ship."
)
CONTENT = "## Planning\n" + "word " * 200 + "\n## Publishing\n" + "word " * 120


def test_text_helpers():
    assert slugify("  Hello, World -- Again!  ") == "hello-world-again"
    assert count_words("one  two\nthree") == 3
    assert reading_time("") == (1, "1 min read")
    assert reading_time("word " * 401) == (3, "3 min read")


def test_count_h2_headings_ignores_other_levels():
    assert count_h2_headings("## A\n### B\n##C\n## D") == 2


def test_well_optimized_post_scores_full_marks():
    assert 50 <= len(TITLE) <= 60
    assert 140 <= len(DESCRIPTION) <= 160
    report = evaluate_seo(
        TITLE, CONTENT, "practical-seo-checklist", seo_description=DESCRIPTION, focus_keyword="SEO checklist"
    )
    assert [check.id for check in report.checks if not check.passed] == []
    assert report.score == 100


def test_seo_fields_fall_back_to_title_and_excerpt():
    report = evaluate_seo(TITLE, CONTENT, "practical-seo-checklist", excerpt=DESCRIPTION, focus_keyword="seo")
    checks = {check.id: check for check in report.checks}
    assert checks["seo-title-length"].passed
    assert checks["seo-description-length"].passed


def test_empty_draft_scores_zero():
    report = evaluate_seo("", "", "")
    assert report.score == 0
    assert len(report.checks) == 8
    assert {check.id: check.detail for check in report.checks}["slug"] == "Add a slug"


def test_seo_check_endpoint(client, login_as):
    login_as()
    response = client.post(
        "/api/v1/admin/seo/check",
        json={"title": TITLE, "content": CONTENT, "slug": "Bad Slug", "focus_keyword": "seo"},
        headers=SAME_ORIGIN,
    )
    assert response.status_code == 200
    checks = {check["id"]: check["passed"] for check in response.json()["checks"]}
    assert checks["slug"] is False
    assert checks["keyword-title"] is True
