import re
from typing import List, Optional

from pydantic import BaseModel

from optinest.services.text import count_words

_H2 = re.compile(r"^##\s+", re.MULTILINE)
_SLUG = re.compile(r"^[a-z0-9-]+$")


class SeoCheck(BaseModel):
    id: str
    label: str
    passed: bool
    detail: str


class SeoReport(BaseModel):
    score: int
    checks: List[SeoCheck]


def count_h2_headings(content: str) -> int:
    return len(_H2.findall(content or ""))


def contains_keyword(value: str, keyword: str) -> bool:
    keyword = (keyword or "").strip().lower()
    return bool(keyword) and keyword in (value or "").lower()


def evaluate_seo(
    title: str,
    content: str,
    slug: str,
    seo_title: Optional[str] = None,
    seo_description: Optional[str] = None,
    focus_keyword: Optional[str] = None,
    excerpt: str = "",
) -> SeoReport:
    """Score a post draft against eight on-page checks. SEO fields fall back to title and excerpt."""
    title = (title or "").strip()
    seo_title = (seo_title or title).strip()
    seo_description = (seo_description or excerpt or "").strip()
    keyword = (focus_keyword or "").strip()
    slug = (slug or "").strip()
    words = count_words(content)
    headings = count_h2_headings(content)
    keyword_detail = f"Keyword: {keyword}" if keyword else "Add a focus keyword"

    checks = [
        SeoCheck(
            id="title-length",
            label="Title length is between 50 and 60 characters",
            passed=50 <= len(title) <= 60,
            detail=f"{len(title)} characters",
        ),
        SeoCheck(
            id="seo-title-length",
            label="SEO title length is between 50 and 60 characters",
            passed=50 <= len(seo_title) <= 60,
            detail=f"{len(seo_title)} characters",
        ),
        SeoCheck(
            id="seo-description-length",
            label="Meta description is 140-160 characters",
            passed=140 <= len(seo_description) <= 160,
            detail=f"{len(seo_description)} characters",
        ),
        SeoCheck(
            id="keyword-title",
            label="Focus keyword appears in title",
            passed=contains_keyword(title, keyword),
            detail=keyword_detail,
        ),
        SeoCheck(
            id="keyword-description",
            label="Focus keyword appears in meta description",
            passed=contains_keyword(seo_description, keyword),
            detail=keyword_detail,
        ),
        SeoCheck(
            id="content-length",
            label="Content has at least 300 words",
            passed=words >= 300,
            detail=f"{words} words",
        ),
        SeoCheck(
            id="headings",
            label="Content has at least 2 H2 sections",
            passed=headings >= 2,
            detail=f"{headings} H2 headings",
        ),
        SeoCheck(
            id="slug",
            label="Slug is concise and SEO friendly",
            passed=3 <= len(slug) <= 80 and bool(_SLUG.match(slug)),
            detail=slug or "Add a slug",
        ),
    ]

    passed = sum(1 for check in checks if check.passed)
    return SeoReport(score=round(passed / len(checks) * 100), checks=checks)
