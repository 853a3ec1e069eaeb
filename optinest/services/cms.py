import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Type, TypeVar

from optinest.core.errors import ContentValidationError, OptinestError
from optinest.db.supabase import SupabaseClient
from optinest.models.cms import (
    AboutPageContent,
    CmsContent,
    CmsLinkItem,
    CmsModel,
    CmsSocialLinkItem,
    DEFAULT_CMS_CONTENT,
    FooterContent,
    HeaderContent,
    HomePageContent,
    ListingPageContent,
    NewsletterContent,
    SiteConfig,
)
from optinest.services.sanitizers import (
    check_url,
    sanitize_links,
    sanitize_social_links,
    text_or,
    url_or,
    Valid,
)

logger = logging.getLogger(__name__)

CMS_ROW_ID = 1

M = TypeVar("M", bound=CmsModel)

# Fields that are not plain text, keyed by field name
_URL_FIELDS = {"url"}
_LINK_FIELDS = {"menu_links", "pages_links", "resource_links"}
_SOCIAL_FIELDS = {"social_links"}


def _section(value: Any) -> Dict[str, Any]:
    if isinstance(value, CmsModel):
        return value.model_dump(by_alias=True)
    return value if isinstance(value, dict) else {}


def _sanitize_section(model: Type[M], raw: Any, fallback: M) -> M:
    record = _section(raw)
    values = {}
    for name, field in model.model_fields.items():
        key = field.alias or name
        candidate = record.get(key, record.get(name))
        default = getattr(fallback, name)
        if name in _URL_FIELDS:
            values[name] = url_or(candidate, default)
        elif name in _LINK_FIELDS:
            values[name] = sanitize_links(candidate, default)
        elif name in _SOCIAL_FIELDS:
            values[name] = sanitize_social_links(candidate, default)
        else:
            values[name] = text_or(candidate, default)
    return model(**values)


def sanitize_cms_content(value: Any) -> CmsContent:
    """Map arbitrary stored JSON onto a complete CmsContent.

    Every field that is missing, of the wrong type or blank takes its value
    from DEFAULT_CMS_CONTENT. Never raises.
    """
    if isinstance(value, CmsContent):
        value = value.model_dump(by_alias=True)
    if not isinstance(value, dict):
        return DEFAULT_CMS_CONTENT

    defaults = DEFAULT_CMS_CONTENT
    return CmsContent(
        site_config=_sanitize_section(SiteConfig, value.get("siteConfig"), defaults.site_config),
        header=_sanitize_section(HeaderContent, value.get("header"), defaults.header),
        footer=_sanitize_section(FooterContent, value.get("footer"), defaults.footer),
        home=_sanitize_section(HomePageContent, value.get("home"), defaults.home),
        latest_page=_sanitize_section(ListingPageContent, value.get("latestPage"), defaults.latest_page),
        authors_page=_sanitize_section(ListingPageContent, value.get("authorsPage"), defaults.authors_page),
        about_page=_sanitize_section(AboutPageContent, value.get("aboutPage"), defaults.about_page),
        newsletter=_sanitize_section(NewsletterContent, value.get("newsletter"), defaults.newsletter),
    )


def get_cms_content(client: SupabaseClient) -> CmsContent:
    try:
        rows = client.select("cms_content", "content", id=f"eq.{CMS_ROW_ID}", limit="1")
    except OptinestError as e:
        logger.warning("Falling back to default CMS content: %s", e)
        return DEFAULT_CMS_CONTENT

    content = rows[0].get("content") if rows and isinstance(rows[0], dict) else None
    return sanitize_cms_content(content) if content else DEFAULT_CMS_CONTENT


def save_cms_content(client: SupabaseClient, content: Any) -> CmsContent:
    sanitized = sanitize_cms_content(content)
    client.upsert(
        "cms_content",
        [
            {
                "id": CMS_ROW_ID,
                "content": sanitized.model_dump(by_alias=True, mode="json"),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        ],
        on_conflict="id",
    )
    return sanitized


def delete_cms_content(client: SupabaseClient) -> None:
    client.delete("cms_content", id=f"eq.{CMS_ROW_ID}")


# Admin form parsing


def parse_site_url(value: str) -> str:
    result = check_url(value)
    if not isinstance(result, Valid):
        raise ContentValidationError("Site URL must be a valid absolute URL (http/https).")
    return result.value


def _split_row(line: str) -> List[str]:
    return [part.strip() for part in line.split("|")]


def parse_link_rows(raw: str, label: str) -> List[CmsLinkItem]:
    """One link per line: ``Label | /href`` with an optional ``| external`` flag."""
    links = []
    for line in (raw or "").splitlines():
        if not line.strip():
            continue
        parts = _split_row(line)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ContentValidationError(
                f'{label} rows must use the format "Label | /path" (optional: "| external").'
            )
        external = len(parts) > 2 and parts[2].lower() in ("external", "true", "yes", "1")
        links.append(CmsLinkItem(label=parts[0], href=parts[1], external=external))
    return links


def parse_social_rows(raw: str) -> List[CmsSocialLinkItem]:
    """One social link per line: ``platform | https://...``."""
    links = []
    for line in (raw or "").splitlines():
        if not line.strip():
            continue
        parts = _split_row(line)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ContentValidationError('Social link rows must use the format "platform | https://url".')
        links.append(CmsSocialLinkItem(platform=parts[0].lower(), href=parts[1]))
    return links
