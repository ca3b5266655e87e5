"""
Core data types for the Scribe build pipeline.

This module defines the records passed between pipeline stages:
- Post: A validated source document produced by the loader
- RenderedPost: HTML and outbound link candidates for one post
- RenderFailure: A post whose Markdown could not be converted
- Site: All posts of one build plus site-level configuration
- OutputDocument: A file ready to be written to the output tree
- PinRecord: The result of a successful publish
- BuildDecision: Incremental build classification of a post
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ..config import SiteConfig, ThemeConfig


@dataclass
class Post:
    """A post loaded from a Markdown source file.

    Attributes:
        slug: Unique identifier derived from the filename
        source_name: Filename stem as authored (before slug normalisation)
        path: Path of the source file
        title: Title from frontmatter
        date: Publish date as a timezone-aware UTC datetime
        excerpt: Optional excerpt from frontmatter (empty when absent)
        body: Raw Markdown body following the frontmatter block
        frontmatter: The full parsed frontmatter mapping
        fingerprint: Content hash over frontmatter and body
    """

    slug: str
    source_name: str
    path: Path
    title: str
    date: datetime
    excerpt: str
    body: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    fingerprint: str = ""


@dataclass
class RenderedPost:
    """Output of the content renderer for one post.

    Attributes:
        slug: Slug of the rendered post
        html: HTML fragment converted from the Markdown body
        link_targets: Slugs of internal link targets, excluding the post itself.
            Targets are not yet checked against the post set.
        first_letter: Upper-cased first letter of the first paragraph, if any
    """

    slug: str
    html: str
    link_targets: frozenset[str] = frozenset()
    first_letter: str | None = None


@dataclass
class RenderFailure:
    """A post excluded from the build because rendering failed."""

    slug: str
    path: Path
    error: str


@dataclass
class Site:
    """All posts of one build keyed by slug, plus site configuration."""

    config: SiteConfig
    theme: ThemeConfig
    posts: dict[str, Post] = field(default_factory=dict)

    @classmethod
    def from_posts(cls, config: SiteConfig, theme: ThemeConfig, posts: list[Post]) -> "Site":
        return cls(config=config, theme=theme, posts={post.slug: post for post in posts})

    def ordered(self) -> list[Post]:
        """Posts by date descending, slug ascending on ties."""
        return sorted(self.posts.values(), key=lambda p: (-p.date.timestamp(), p.slug))


@dataclass(frozen=True)
class OutputDocument:
    """A rendered file and its destination path."""

    path: Path
    content: bytes


@dataclass(frozen=True)
class PinRecord:
    """Result of a successful publish operation.

    Attributes:
        cid: Content identifier of the published root directory
        name: Optional human-readable pin name
        recursive: Whether the root was pinned recursively
        pinned_at: ISO 8601 timestamp of the publish
        endpoint: API endpoint the content was published to
        files: Number of entries added (files and directories)
    """

    cid: str
    name: str | None
    recursive: bool
    pinned_at: str
    endpoint: str
    files: int = 0

    def gateway_urls(self) -> list[str]:
        return [
            f"https://ipfs.io/ipfs/{self.cid}",
            f"https://dweb.link/ipfs/{self.cid}",
            f"http://127.0.0.1:8080/ipfs/{self.cid}",
        ]


class BuildDecision(str, Enum):
    """Incremental build classification of a post."""

    UNCHANGED = "unchanged"
    STALE = "stale"
