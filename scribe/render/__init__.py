"""
Content rendering.

This package converts post Markdown to HTML and discovers cross-post links.
"""

from .content import (
    drop_first_letter,
    extract_link_targets,
    link_target_slug,
    markdown_to_html,
    render_post,
    render_posts,
    rewrite_internal_links,
)

__all__ = [
    "markdown_to_html",
    "render_post",
    "render_posts",
    "extract_link_targets",
    "link_target_slug",
    "rewrite_internal_links",
    "drop_first_letter",
]
