"""Hashtag extraction and normalisation."""
import re
from typing import Iterable, Optional

# '#' followed by unicode letters, digits, underscore or hyphen
TAG_PATTERN = re.compile(r"#([\w-]+)")

# Width of post_tags.tag; stored tags and ?tag= filters are cut to the same length
MAX_TAG_LENGTH = 100


def _clean(tag: str) -> str:
    return tag.strip().lstrip("#").strip().lower()[:MAX_TAG_LENGTH]


def _dedupe(tags: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for tag in tags:
        if tag and tag not in seen:
            seen.add(tag)
            unique.append(tag)
    return unique


def parse_tags(text: Optional[str]) -> list[str]:
    """
    Extract hashtags from free-form text.

    Tags are lower-cased and de-duplicated, keeping the order in which they
    first appear. Text without hashtags yields an empty list.
    """
    if not text:
        return []
    return _dedupe(_clean(m.group(1)) for m in TAG_PATTERN.finditer(text))


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Normalise a client-supplied tag list the same way `parse_tags` does."""
    return _dedupe(_clean(t) for t in tags)


def normalize_tag_filter(tag: Optional[str]) -> Optional[str]:
    """Turn a `?tag=` query value into the stored form, or None for no filter."""
    if tag is None:
        return None
    return _clean(tag) or None
