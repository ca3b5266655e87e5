"""Slug derivation shared by the loader and the link scanner."""

from __future__ import annotations

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Convert a filename stem or link segment to a URL-safe slug.

    Args:
        text: The text to slugify

    Returns:
        A lowercase, hyphenated slug; ``untitled`` when nothing remains
    """
    slug = _NON_ALNUM_RE.sub("-", text.lower()).strip("-")
    return slug or "untitled"
