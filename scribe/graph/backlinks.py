"""
Backlink graph between posts.

Edges are kept as slug-keyed index tables next to the Post records rather
than as references between Post objects. The index is built in one global
pass once every post has been rendered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from ..cache import stable_hash
from ..core.types import Post


@dataclass(frozen=True)
class BacklinkIndex:
    """Directed reference graph over post slugs.

    Attributes:
        outbound: slug -> slugs it links to (existing posts only, no self loops)
        inbound: slug -> slugs linking to it; every post has an entry, possibly empty
    """

    outbound: Mapping[str, frozenset[str]] = field(default_factory=dict)
    inbound: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def backlinks(self, slug: str) -> frozenset[str]:
        return self.inbound.get(slug, frozenset())

    def links(self, slug: str) -> frozenset[str]:
        return self.outbound.get(slug, frozenset())


def build_backlink_index(link_targets: Mapping[str, frozenset[str] | set[str]]) -> BacklinkIndex:
    """Build the outbound and inbound tables for the complete post set.

    Args:
        link_targets: For every post slug, the slug candidates found in its
            rendered links. The keys define the post set; candidates outside it
            are dangling and dropped.

    Returns:
        BacklinkIndex covering every key of ``link_targets``
    """
    slugs = set(link_targets)
    outbound: dict[str, frozenset[str]] = {}
    inbound: dict[str, set[str]] = {slug: set() for slug in slugs}

    for source, targets in link_targets.items():
        resolved = frozenset(t for t in targets if t in slugs and t != source)
        outbound[source] = resolved
        for target in resolved:
            inbound[target].add(source)

    return BacklinkIndex(
        outbound=outbound,
        inbound={slug: frozenset(sources) for slug, sources in inbound.items()},
    )


def sorted_backlinks(index: BacklinkIndex, slug: str, posts: Mapping[str, Post]) -> list[Post]:
    """Referencing posts ordered by date descending, then slug ascending."""
    referrers = [posts[s] for s in index.backlinks(slug) if s in posts]
    return sorted(referrers, key=lambda p: (-p.date.timestamp(), p.slug))


def backlink_hash(index: BacklinkIndex, slug: str, posts: Mapping[str, Post]) -> str:
    """Hash of the backlink list as displayed on the post's page.

    Covers the referencing slugs plus the title and date shown for each, so
    retitling a referrer also refreshes the pages it links to.
    """
    parts = []
    for post in sorted_backlinks(index, slug, posts):
        parts.extend((post.slug, post.title, post.date.isoformat()))
    return stable_hash(parts)


def outbound_hash(index: BacklinkIndex, slug: str) -> str:
    """Hash of the resolved outbound set (which links point at existing posts)."""
    return stable_hash(sorted(index.links(slug)))
