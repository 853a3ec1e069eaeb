import logging
from typing import Any, Iterable, List

from optinest.core.errors import ContentValidationError, OptinestError
from optinest.db.supabase import SupabaseClient, eq
from optinest.services.posts import rename_category_in_posts

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ("Lifestyle", "Design", "Technology")


def _unique(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def sanitize_categories(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    names = []
    for row in value:
        name = row.get("name") if isinstance(row, dict) else None
        names.append(name.strip() if isinstance(name, str) else "")
    return _unique(names)


def get_categories(client: SupabaseClient) -> List[str]:
    try:
        rows = client.select("categories", "name", order="name.asc")
    except OptinestError as e:
        logger.warning("Falling back to default categories: %s", e)
        return list(DEFAULT_CATEGORIES)
    return sanitize_categories(rows) or list(DEFAULT_CATEGORIES)


def save_categories(client: SupabaseClient, categories: Iterable[str]) -> None:
    normalized = _unique(name.strip() for name in categories)
    if not normalized:
        raise ContentValidationError("Categories cannot be empty.")

    client.upsert("categories", [{"name": name} for name in normalized], on_conflict="name")
    for name in get_categories(client):
        if name not in normalized:
            client.delete("categories", name=eq(name))


def add_category(client: SupabaseClient, name: str) -> List[str]:
    name = (name or "").strip()
    if not name:
        raise ContentValidationError("Category name is required.")
    categories = get_categories(client)
    if any(category.lower() == name.lower() for category in categories):
        raise ContentValidationError("Category already exists.")
    save_categories(client, categories + [name])
    return categories + [name]


def rename_category(client: SupabaseClient, previous_name: str, next_name: str) -> List[str]:
    """Rename a category and move every post that used it."""
    previous_name = (previous_name or "").strip()
    next_name = (next_name or "").strip()
    if not previous_name or not next_name:
        raise ContentValidationError("Both current and new category names are required.")

    categories = get_categories(client)
    if previous_name not in categories:
        raise ContentValidationError("Selected category does not exist.")
    if previous_name != next_name and any(c.lower() == next_name.lower() for c in categories):
        raise ContentValidationError("Another category already uses that name.")

    renamed = [next_name if category == previous_name else category for category in categories]
    save_categories(client, renamed)
    rename_category_in_posts(client, previous_name, next_name)
    return renamed
