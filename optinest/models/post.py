from typing import Optional
from enum import Enum
from sqlmodel import Field, SQLModel

class PostStatus(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"
    SCHEDULED = "scheduled"

class PostBase(SQLModel):
    slug: str = Field(index=True)  # Stable identity; a rename is delete + recreate
    title: str
    excerpt: str = ""
    date: str  # YYYY-MM-DD
    category: str = "General"
    author_id: str
    cover_image: str = ""
    cover_alt: str = ""

    # Publication
    status: PostStatus = PostStatus.PUBLISHED
    publish_at: Optional[str] = None  # ISO timestamp, required when scheduled

    # SEO
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    focus_keyword: Optional[str] = None

    # Placement
    featured: bool = False
    recommended: bool = False

    content: str = ""

class PostRecord(PostBase):
    """What gets written to the ``posts`` table."""

class Post(PostBase):
    """A post as read back and sanitized, with derived fields."""
    reading_time_text: str = "1 min read"
    reading_time_minutes: int = 1
    is_published: bool = False
