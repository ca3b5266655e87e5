"""
Markdown rendering and internal link discovery.

Converts a post body to HTML with Python-Markdown and scans the resulting
anchors for links to other posts. A link counts as a cross-post reference
when it stays on the site (relative, root-relative, or absolute on the
configured base URL host) and its last path segment slugifies to a post
slug, e.g. ``[x](../other/)``, ``[x](other.md)`` or ``[x](/other)``.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from html import escape, unescape
import logging
import re
from typing import Callable, Iterable
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup
import markdown

from ..core.errors import RenderError
from ..core.slug import slugify
from ..core.types import Post, RenderedPost, RenderFailure

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]

_PAGE_SUFFIXES = (".md", ".markdown", ".html", ".htm")
_HREF_RE = re.compile(r'(<a\b[^>]*?\bhref=")([^"]*)(")')
_HAS_ALNUM_RE = re.compile(r"[A-Za-z0-9]")


def markdown_to_html(body: str) -> str:
    """Convert Markdown to HTML.

    A new converter is built per call: ``markdown.Markdown`` instances keep
    state between conversions and are not safe to share across threads.
    """
    converter = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, output_format="html")
    return converter.convert(body)


def site_host(base_url: str | None) -> str | None:
    """Host of the configured base URL, used to treat absolute self-links as internal."""
    if not base_url:
        return None
    return urlsplit(base_url).netloc.lower() or None


def link_target_slug(href: str, host: str | None = None) -> str | None:
    """Return the post slug an href points at, or None for non-post links.

    Args:
        href: Raw (unescaped) href attribute value
        host: Site host; absolute URLs on other hosts are external

    Returns:
        Slug candidate; existence is checked later by the backlink indexer
    """
    href = href.strip()
    if not href or href.startswith(("#", "?")):
        return None
    parts = urlsplit(href)
    if parts.scheme and parts.scheme.lower() not in ("http", "https"):
        return None
    if parts.scheme or parts.netloc:
        if host is None or parts.netloc.lower() != host:
            return None

    segments = [s for s in unquote(parts.path).split("/") if s and s not in (".", "..")]
    if segments and segments[-1].lower() == "index.html":
        segments.pop()
    if not segments:
        return None

    last = segments[-1]
    lowered = last.lower()
    for suffix in _PAGE_SUFFIXES:
        if lowered.endswith(suffix):
            last = last[: -len(suffix)]
            break
    if not _HAS_ALNUM_RE.search(last):
        return None
    return slugify(last)


def extract_link_targets(html: str, host: str | None = None) -> set[str]:
    """Collect slug candidates of every internal anchor in ``html``."""
    soup = BeautifulSoup(html, "html.parser")
    targets = set()
    for anchor in soup.find_all("a", href=True):
        slug = link_target_slug(anchor["href"], host)
        if slug:
            targets.add(slug)
    return targets


def first_letter(html: str) -> str | None:
    """Upper-cased first character of the first paragraph when it is a letter."""
    start = html.find("<p>")
    if start == -1:
        return None
    idx = start + len("<p>")
    if idx < len(html) and html[idx].isalpha():
        return html[idx].upper()
    return None


def drop_first_letter(html: str) -> str:
    """Remove the leading letter of the first paragraph (shown as an initial instead)."""
    start = html.find("<p>")
    if start == -1:
        return html
    idx = start + len("<p>")
    if idx < len(html) and html[idx].isalpha():
        return html[:idx] + html[idx + 1 :]
    return html


def rewrite_internal_links(html: str, slugs: Iterable[str], host: str | None = None) -> str:
    """Point links to existing posts at their canonical ``../<slug>/`` page.

    Fragments are preserved. Links to unknown slugs are left untouched.
    """
    known = set(slugs)

    def _replace(match: re.Match[str]) -> str:
        href = unescape(match.group(2))
        slug = link_target_slug(href, host)
        if slug is None or slug not in known:
            return match.group(0)
        fragment = urlsplit(href).fragment
        target = f"../{slug}/" + (f"#{escape(fragment)}" if fragment else "")
        return f"{match.group(1)}{target}{match.group(3)}"

    return _HREF_RE.sub(_replace, html)


def render_post(post: Post, base_url: str | None = None) -> RenderedPost:
    """Render one post and collect its outbound reference candidates.

    Raises:
        RenderError: If Markdown conversion fails
    """
    try:
        html = markdown_to_html(post.body)
    except Exception as exc:  # noqa: BLE001
        raise RenderError(f"{post.path}: {type(exc).__name__}: {exc}") from exc

    targets = extract_link_targets(html, site_host(base_url))
    targets.discard(post.slug)
    return RenderedPost(
        slug=post.slug,
        html=html,
        link_targets=frozenset(targets),
        first_letter=first_letter(html),
    )


def render_posts(
    posts: list[Post],
    workers: int = 4,
    base_url: str | None = None,
    on_done: Callable[[], None] | None = None,
) -> tuple[list[RenderedPost], list[RenderFailure]]:
    """Render all posts on a bounded thread pool.

    A post that fails to render is reported as a RenderFailure and left out;
    the other renders continue.

    Args:
        posts: Posts to render
        workers: Maximum number of renderer threads
        base_url: Site base URL for internal link detection
        on_done: Optional callback invoked after each post (progress updates)

    Returns:
        Tuple of (rendered posts in input order, failures)
    """
    results: list[RenderedPost | None] = [None] * len(posts)
    failures: list[RenderFailure] = []

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        future_map = {executor.submit(render_post, post, base_url): idx for idx, post in enumerate(posts)}
        for future in as_completed(future_map):
            idx = future_map[future]
            post = posts[idx]
            try:
                results[idx] = future.result()
            except RenderError as exc:
                logger.error("Failed to render %s: %s", post.path, exc)
                failures.append(RenderFailure(slug=post.slug, path=post.path, error=str(exc)))
            if on_done is not None:
                on_done()

    failures.sort(key=lambda f: f.slug)
    return [r for r in results if r is not None], failures
