"""
Markdown post loading.

Reads every ``*.md`` file of the posts directory, splits the YAML
frontmatter block from the body, validates the required fields and
produces one Post per file. Any input error aborts the whole load.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
import logging
from pathlib import Path
from typing import Any

import yaml

from ..cache import content_fingerprint
from ..core.errors import DuplicateSlug, InvalidDate, MalformedFrontmatter, MissingRequiredField
from ..core.slug import slugify
from ..core.types import Post

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"
REQUIRED_FIELDS = ("title", "date")


def load_posts(posts_dir: Path, workers: int = 4) -> list[Post]:
    """Load and validate all posts under ``posts_dir``.

    A missing directory is created and yields no posts. Files are parsed on
    a bounded thread pool; posts come back in sorted path order so the first
    reported error is the same on every run.

    Args:
        posts_dir: Directory containing Markdown sources (searched recursively)
        workers: Maximum number of parser threads

    Returns:
        List of Post objects

    Raises:
        InputError: On malformed frontmatter, missing fields, invalid dates
            or duplicate slugs
    """
    if not posts_dir.exists():
        posts_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Created posts directory %s", posts_dir)
        return []

    paths = sorted(p for p in posts_dir.rglob("*.md") if p.is_file())
    if not paths:
        return []

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        posts = list(executor.map(load_post, paths))

    _check_unique_slugs(posts)
    return posts


def load_post(path: Path) -> Post:
    """Read and parse a single post file."""
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedFrontmatter(path, "not valid UTF-8") from exc
    return parse_post(text, path)


def parse_post(text: str, path: Path) -> Post:
    """Parse the text of a post source into a validated Post."""
    frontmatter, body = split_frontmatter(text, path)

    for name in REQUIRED_FIELDS:
        value = frontmatter.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingRequiredField(path, name)

    excerpt = frontmatter.get("excerpt")
    return Post(
        slug=derive_slug(path),
        source_name=path.stem,
        path=path,
        title=str(frontmatter["title"]).strip(),
        date=parse_date(frontmatter["date"], path),
        excerpt="" if excerpt is None else str(excerpt).strip(),
        body=body,
        frontmatter=frontmatter,
        fingerprint=content_fingerprint(frontmatter, body),
    )


def split_frontmatter(text: str, path: Path) -> tuple[dict[str, Any], str]:
    """Split the leading ``---`` delimited YAML block from the Markdown body.

    Returns an empty mapping and the full text when the file does not start
    with a delimiter line.

    Raises:
        MalformedFrontmatter: If the block is never closed, is not valid YAML,
            or does not hold a mapping
        InvalidDate: If an unquoted timestamp is not a real calendar date
    """
    lines = text.lstrip("\ufeff").splitlines(keepends=True)
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return {}, "".join(lines)

    end = None
    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONTMATTER_DELIMITER:
            end = idx
            break
    if end is None:
        raise MalformedFrontmatter(path, "unterminated frontmatter block")

    block = "".join(lines[1:end])
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise MalformedFrontmatter(path, f"invalid YAML: {exc}") from exc
    except ValueError as exc:
        # YAML resolves 2024-02-30 as a timestamp and datetime rejects it.
        raw = yaml.load(block, Loader=yaml.BaseLoader)
        value = raw.get("date") if isinstance(raw, dict) else None
        raise InvalidDate(path, value if value is not None else str(exc)) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontmatter(path, "frontmatter is not a mapping")

    body = "".join(lines[end + 1 :])
    return {str(key): value for key, value in data.items()}, body


def parse_date(value: Any, path: Path) -> datetime:
    """Parse an ISO 8601 frontmatter date into an aware UTC datetime.

    Date-only values mean midnight; naive timestamps are taken as UTC.
    YAML may already have produced ``date``/``datetime`` objects.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidDate(path, value) from exc
    else:
        raise InvalidDate(path, value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def derive_slug(path: Path) -> str:
    """Slug from a source filename: lowercased stem, non-alphanumerics collapsed to ``-``."""
    return slugify(path.stem)


def _check_unique_slugs(posts: list[Post]) -> None:
    seen: dict[str, Path] = {}
    for post in posts:
        if post.slug in seen:
            raise DuplicateSlug(post.slug, [seen[post.slug], post.path])
        seen[post.slug] = post.path
