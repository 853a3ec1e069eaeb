import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from optinest.core.errors import BackendError, ContentValidationError, OptinestError
from optinest.db.supabase import SupabaseClient, eq
from optinest.models.admin_user import AdminRole, AdminUser
from optinest.models.author import Author
from optinest.services.media_paths import normalize_legacy_media_path
from optinest.services.sanitizers import optional_text
from optinest.services.text import slugify

logger = logging.getLogger(__name__)

AUTHOR_COLUMNS = "id,name,role,short_bio,bio,avatar,x_url,admin_user_id"

DEFAULT_AUTHORS = (
    Author(
        id="abram-lubin",
        name="Abram Lubin",
        role="Photography Editor",
        short_bio="Shapes visual storytelling systems with sharp composition and editorial intent.",
        bio=(
            "Abram leads visual direction across feature stories, from art direction to final image "
            "sequencing. He writes about image systems, narrative pacing, and how photography decisions "
            "influence trust and readability on modern publishing sites."
        ),
        avatar="/images/authors/abram-lubin.svg",
        x_url="https://x.com",
    ),
    Author(
        id="giana-franci",
        name="Giana Franci",
        role="Senior Writer",
        short_bio="Writes practical editorial frameworks for consistency, clarity, and growth.",
        bio=(
            "Giana focuses on repeatable writing workflows, audience-first messaging, and long-form "
            "content structure. Her pieces help teams publish high-quality work consistently without "
            "sacrificing craft, voice, or strategic focus."
        ),
        avatar="/images/authors/giana-franci.svg",
        x_url="https://x.com",
    ),
    Author(
        id="carla-dokidis",
        name="Carla Dokidis",
        role="Culture Columnist",
        short_bio="Interprets digital culture shifts with context, nuance, and clarity.",
        bio=(
            "Carla analyzes how platform behavior, social norms, and identity trends shape what "
            "audiences value online. She writes at the intersection of culture, ethics, and media, "
            "translating broad shifts into clear editorial decisions."
        ),
        avatar="/images/authors/carla-dokidis.svg",
        x_url="https://x.com",
    ),
    Author(
        id="daniel-foster",
        name="Daniel Foster",
        role="Technology Editor",
        short_bio="Translates AI and platform changes into clear product and content strategy.",
        bio=(
            "Daniel covers emerging web and AI trends with a systems-thinking lens grounded in "
            "execution. He helps readers connect technical shifts to practical outcomes in product, "
            "SEO, analytics, and publishing operations."
        ),
        avatar="/images/authors/daniel-foster.svg",
        x_url="https://x.com",
    ),
    Author(
        id="richard-miller",
        name="Richard Miller",
        role="Design Writer",
        short_bio="Covers design systems, typography, and interface decisions that scale.",
        bio=(
            "Richard writes about design tokens, layout systems, and interface clarity for "
            "content-led products. His work breaks down complex design choices into practical "
            "patterns teams can apply across editorial and product surfaces."
        ),
        avatar="/images/authors/richard-miller.svg",
        x_url="https://x.com",
    ),
)


def _first_text(record: dict, *keys: str) -> str:
    for key in keys:
        if isinstance(record.get(key), str):
            return record[key].strip()
    return ""


def sanitize_author(value: Any) -> Optional[Author]:
    if isinstance(value, Author):
        value = value.model_dump()
    if not isinstance(value, dict):
        return None

    author_id = optional_text(value.get("id"))
    name = optional_text(value.get("name"))
    role = optional_text(value.get("role"))
    short_bio = _first_text(value, "short_bio", "shortBio")
    bio = optional_text(value.get("bio"))
    avatar = normalize_legacy_media_path(optional_text(value.get("avatar")))
    if not all((author_id, name, role, short_bio, bio, avatar)):
        return None

    return Author(
        id=author_id,
        name=name,
        role=role,
        short_bio=short_bio,
        bio=bio,
        avatar=avatar,
        x_url=_first_text(value, "x_url", "xUrl") or None,
        admin_user_id=_first_text(value, "admin_user_id", "adminUserId") or None,
    )


def sanitize_authors(value: Any) -> List[Author]:
    if not isinstance(value, (list, tuple)):
        return []
    seen = set()
    authors = []
    for item in value:
        author = sanitize_author(item)
        if author and author.id not in seen:
            seen.add(author.id)
            authors.append(author)
    return authors


def default_authors() -> List[Author]:
    """Fresh copies; callers annotate and save the result."""
    return [author.model_copy() for author in DEFAULT_AUTHORS]


def get_authors(client: SupabaseClient) -> List[Author]:
    try:
        rows = client.select("authors", AUTHOR_COLUMNS, order="name.asc")
    except OptinestError as e:
        logger.warning("Falling back to default authors: %s", e)
        return default_authors()
    return sanitize_authors(rows) or default_authors()


def get_author_by_id(client: SupabaseClient, author_id: str) -> Optional[Author]:
    return next((author for author in get_authors(client) if author.id == author_id), None)


def get_author_by_admin_user_id(client: SupabaseClient, admin_user_id: str) -> Optional[Author]:
    normalized = (admin_user_id or "").strip()
    if not normalized:
        return None
    return next((author for author in get_authors(client) if author.admin_user_id == normalized), None)


def _to_row(author: Author, timestamp: str) -> dict:
    row = author.model_dump(exclude={"post_count"})
    row["updated_at"] = timestamp
    return row


def _is_referenced_by_posts(error: BackendError) -> bool:
    body = (error.body or "").lower()
    return "posts_author_id_fkey" in body or ("is still referenced from table" in body and "posts" in body)


def save_authors(
    client: SupabaseClient, authors: Iterable[Author], allow_referenced_delete: bool = False
) -> None:
    """Replace the author list: upsert what is given, delete what is no longer there."""
    normalized = sanitize_authors(list(authors))
    if not normalized:
        raise ContentValidationError("Authors cannot be empty.")

    timestamp = datetime.now(timezone.utc).isoformat()
    existing = get_authors(client)
    next_ids = {author.id for author in normalized}
    removed = [author for author in existing if author.id not in next_ids]

    # A renamed author keeps its linked user; free the link on the old row first
    linked_user_ids = {author.admin_user_id for author in normalized if author.admin_user_id}
    for author in removed:
        if author.admin_user_id and author.admin_user_id in linked_user_ids:
            client.update("authors", {"admin_user_id": None, "updated_at": timestamp}, id=eq(author.id))

    client.upsert("authors", [_to_row(author, timestamp) for author in normalized], on_conflict="id")

    for author in removed:
        try:
            client.delete("authors", id=eq(author.id))
        except BackendError as e:
            if allow_referenced_delete and _is_referenced_by_posts(e):
                continue
            raise


def parse_author_payload(
    author_id: str,
    name: str,
    role: str,
    short_bio: str,
    bio: str,
    x_url: Optional[str] = None,
    admin_user_id: Optional[str] = None,
    avatar: str = "",
) -> Author:
    name = (name or "").strip()
    role = (role or "").strip()
    short_bio = (short_bio or "").strip()
    bio = (bio or "").strip()
    slug = slugify((author_id or "").strip() or name)
    if not all((slug, name, role, short_bio, bio)):
        raise ContentValidationError("All author fields except social URL are required.")
    return Author(
        id=slug,
        name=name,
        role=role,
        short_bio=short_bio,
        bio=bio,
        avatar=avatar,
        x_url=(x_url or "").strip() or None,
        admin_user_id=(admin_user_id or "").strip() or None,
    )


def pick_available_author_id(base_id: str, authors: List[Author]) -> str:
    taken = {author.id for author in authors}
    base = slugify(base_id) or "author"
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


# Profiles for admin accounts

DEFAULT_PROFILE_AVATAR = "/images/authors/giana-franci.svg"


def build_default_author_profile(user: AdminUser, authors: List[Author]) -> Author:
    role = "Site Administrator" if user.role == AdminRole.ADMIN else "Staff Writer"
    return Author(
        id=pick_available_author_id(user.name or user.email.split("@")[0], authors),
        name=user.name,
        role=role,
        short_bio=f"{user.name} contributes editorial content across the publication.",
        bio=f"{user.name} writes and edits practical, reader-first articles focused on clarity and depth.",
        avatar=DEFAULT_PROFILE_AVATAR,
        admin_user_id=user.id,
    )


def create_missing_author_profiles(client: SupabaseClient, users: Iterable[AdminUser]) -> List[Author]:
    """Give every active admin account a linked author profile. Returns the profiles created."""
    authors = get_authors(client)
    linked = {author.admin_user_id for author in authors if author.admin_user_id}
    created = []
    for user in users:
        if not user.is_active or user.id in linked:
            continue
        profile = build_default_author_profile(user, authors)
        authors.append(profile)
        created.append(profile)

    if created:
        save_authors(client, authors)
        logger.info("Created %d author profile(s) for admin users", len(created))
    return created
