"""
Input loading.

This package turns the posts directory into validated Post records.
"""

from .loader import load_post, load_posts, parse_date, parse_post, split_frontmatter

__all__ = ["load_posts", "load_post", "parse_post", "parse_date", "split_frontmatter"]
