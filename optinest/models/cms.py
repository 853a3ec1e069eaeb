from typing import Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# The CMS document is stored as one JSON blob (row id=1 of cms_content).
# Models are frozen so the defaults below can be shared safely.

class CmsModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

class CmsLinkItem(CmsModel):
    label: str
    href: str
    external: bool = False

class CmsSocialLinkItem(CmsModel):
    platform: str
    href: str

class SiteConfig(CmsModel):
    name: str
    title: str
    description: str
    url: str
    locale: str

class HeaderContent(CmsModel):
    home_aria_label: str
    search_label: str
    contact_label: str
    contact_href: str
    menu_links: Tuple[CmsLinkItem, ...]

class FooterContent(CmsModel):
    brand: str
    copy_text: str = Field(alias="copy")
    pages_heading: str
    resources_heading: str
    social_heading: str
    pages_links: Tuple[CmsLinkItem, ...]
    resource_links: Tuple[CmsLinkItem, ...]
    social_links: Tuple[CmsSocialLinkItem, ...]
    copyright_text: str
    back_to_top_label: str

class HomePageContent(CmsModel):
    hero_kicker: str
    hero_title: str
    hero_description: str
    hero_cta_label: str
    hero_cta_href: str
    featured_heading: str
    latest_heading: str
    latest_view_all_label: str
    recommended_heading: str
    schema_description: str

class ListingPageContent(CmsModel):
    meta_title: str
    meta_description: str
    hero_title: str
    hero_description: str

class AboutPageContent(CmsModel):
    meta_title: str
    meta_description: str
    hero_title: str
    hero_description: str
    mission_paragraph: str
    value_quote: str
    experience_paragraph: str
    closing_paragraph: str
    team_caption: str
    planning_caption: str

class NewsletterContent(CmsModel):
    title: str
    description: str
    email_placeholder: str
    button_label: str

class CmsContent(CmsModel):
    site_config: SiteConfig
    header: HeaderContent
    footer: FooterContent
    home: HomePageContent
    latest_page: ListingPageContent
    authors_page: ListingPageContent
    about_page: AboutPageContent
    newsletter: NewsletterContent


_MAIN_LINKS = (
    CmsLinkItem(href="/", label="Home"),
    CmsLinkItem(href="/latest", label="Latest"),
    CmsLinkItem(href="/authors", label="Authors"),
    CmsLinkItem(href="/about", label="About"),
)

DEFAULT_CMS_CONTENT = CmsContent(
    site_config=SiteConfig(
        name="Optinest",
        title="Optinest | Web Design, Web Development, AI and SEO",
        description=(
            "Optinest publishes practical guides on web design, web development, AI, and SEO "
            "to help teams build faster, rank better, and convert more."
        ),
        url="http://localhost:3000",
        locale="en_US",
    ),
    header=HeaderContent(
        home_aria_label="Optinest Home",
        search_label="Search",
        contact_label="Get in touch",
        contact_href="/about#contact",
        menu_links=_MAIN_LINKS,
    ),
    footer=FooterContent(
        brand="Optinest",
        copy_text=(
            "Optinest is a focused publication for teams building modern websites. We share practical "
            "web design, web development, AI, and SEO insights you can apply right away."
        ),
        pages_heading="Pages",
        resources_heading="Topics",
        social_heading="Social",
        pages_links=_MAIN_LINKS,
        resource_links=(
            CmsLinkItem(href="/latest", label="Web Design"),
            CmsLinkItem(href="/latest", label="Web Development"),
            CmsLinkItem(href="/latest", label="AI"),
            CmsLinkItem(href="/latest", label="SEO"),
        ),
        social_links=(
            CmsSocialLinkItem(platform="facebook", href="https://facebook.com"),
            CmsSocialLinkItem(platform="x", href="https://x.com"),
            CmsSocialLinkItem(platform="instagram", href="https://instagram.com"),
            CmsSocialLinkItem(platform="tiktok", href="https://tiktok.com"),
        ),
        copyright_text="2026 © Optinest. Built for modern digital growth.",
        back_to_top_label="Back to top",
    ),
    home=HomePageContent(
        hero_kicker="Web Design, Development, AI, and SEO",
        hero_title="Practical Strategies for Web Design, Development, AI, and SEO",
        hero_description=(
            "Explore implementation-focused guides, real workflows, and growth playbooks for building "
            "better websites and ranking stronger in search."
        ),
        hero_cta_label="Explore latest articles",
        hero_cta_href="/latest",
        featured_heading="Featured",
        latest_heading="Latest",
        latest_view_all_label="View all",
        recommended_heading="Recommended",
        schema_description="Actionable web design, web development, AI, and SEO insights for modern teams.",
    ),
    latest_page=ListingPageContent(
        meta_title="Latest Web Design, Development, AI, and SEO Posts",
        meta_description=(
            "Browse the newest Optinest articles on web design, web development, AI, and SEO, with "
            "practical frameworks and implementation details."
        ),
        hero_title="Latest Posts on Web Design, Development, AI, and SEO",
        hero_description=(
            "Read the newest guides, case-based lessons, and practical breakdowns to improve website "
            "quality, performance, and organic growth."
        ),
    ),
    authors_page=ListingPageContent(
        meta_title="Authors",
        meta_description=(
            "Meet the Optinest contributors covering web design, web development, AI, and SEO with "
            "practical, execution-ready advice."
        ),
        hero_title="Authors",
        hero_description="Meet the specialists behind our web design, web development, AI, and SEO content.",
    ),
    about_page=AboutPageContent(
        meta_title="About Optinest",
        meta_description=(
            "Learn about Optinest, a publication dedicated to web design, web development, AI, and SEO "
            "best practices."
        ),
        hero_title="About Optinest",
        hero_description=(
            "Optinest is built for teams that want practical guidance on web design, web development, "
            "AI, and SEO without the noise."
        ),
        mission_paragraph=(
            "Our mission is to publish practical, technically sound insights that help teams ship better "
            "digital experiences and grow sustainably through search."
        ),
        value_quote="We value clarity over hype, execution over theory, and long-term growth over shortcuts.",
        experience_paragraph=(
            "Every article is designed to be useful in real production work, from component-level design "
            "decisions to front-end performance and SEO architecture."
        ),
        closing_paragraph=(
            "As the web evolves, we continue to share tested workflows, modern frameworks, and actionable "
            "playbooks that connect design quality with measurable results."
        ),
        team_caption="The Optinest team and workspace.",
        planning_caption="Planning practical content for modern web teams.",
    ),
    newsletter=NewsletterContent(
        title="Get Weekly Web Design, Development, AI, and SEO Insights",
        description=(
            "Every week, we send practical strategies, implementation tips, and optimization ideas you "
            "can apply to your next release."
        ),
        email_placeholder="Your work email",
        button_label="Subscribe",
    ),
)
