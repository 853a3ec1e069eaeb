import math
import re

WORDS_PER_MINUTE = 200

_WORD = re.compile(r"\S+")


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9\s-]", "", text or "").strip().lower()
    return re.sub(r"[\s-]+", "-", slug).strip("-")


def count_words(text: str) -> int:
    return len(_WORD.findall(text or ""))


def reading_time(text: str):
    """Return (minutes, label) at 200 words per minute, never below one minute."""
    minutes = max(1, math.ceil(count_words(text) / WORDS_PER_MINUTE))
    return minutes, f"{minutes} min read"
