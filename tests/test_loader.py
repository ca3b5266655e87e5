"""Tests for post loading and frontmatter validation."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from scribe.core.errors import DuplicateSlug, InputError, InvalidDate, MalformedFrontmatter, MissingRequiredField
from scribe.input.loader import derive_slug, load_posts, parse_date, parse_post, split_frontmatter

from conftest import write_post


def test_parse_post_reads_frontmatter_and_body() -> None:
    text = '---\ntitle: "Hello"\ndate: "2024-01-20"\nexcerpt: "Short"\n---\n\nFirst paragraph.\n'
    post = parse_post(text, Path("posts/Hello World.md"))

    assert post.slug == "hello-world"
    assert post.source_name == "Hello World"
    assert post.title == "Hello"
    assert post.date == datetime(2024, 1, 20, tzinfo=timezone.utc)
    assert post.excerpt == "Short"
    assert post.body.strip() == "First paragraph."
    assert post.fingerprint


def test_missing_excerpt_defaults_to_empty() -> None:
    post = parse_post("---\ntitle: T\ndate: 2024-01-20\n---\nBody\n", Path("t.md"))
    assert post.excerpt == ""
    assert post.date == datetime(2024, 1, 20, tzinfo=timezone.utc)


@pytest.mark.parametrize("missing", ["title", "date"])
def test_missing_required_field(missing: str) -> None:
    fields = {"title": 'title: "T"', "date": 'date: "2024-01-20"'}
    del fields[missing]
    text = "---\n" + "\n".join(fields.values()) + "\n---\nBody\n"

    with pytest.raises(MissingRequiredField) as excinfo:
        parse_post(text, Path("posts/p.md"))
    assert excinfo.value.field_name == missing
    assert excinfo.value.paths == [Path("posts/p.md")]


def test_blank_title_counts_as_missing() -> None:
    with pytest.raises(MissingRequiredField):
        parse_post('---\ntitle: "  "\ndate: "2024-01-20"\n---\n', Path("p.md"))


def test_unterminated_frontmatter_is_malformed() -> None:
    with pytest.raises(MalformedFrontmatter, match="unterminated"):
        split_frontmatter('---\ntitle: "T"\ndate: "2024-01-20"\nBody\n', Path("p.md"))


def test_non_mapping_frontmatter_is_malformed() -> None:
    with pytest.raises(MalformedFrontmatter):
        split_frontmatter("---\n- a\n- b\n---\nBody\n", Path("p.md"))


def test_no_frontmatter_reports_missing_title() -> None:
    assert split_frontmatter("Just text\n", Path("p.md")) == ({}, "Just text\n")
    with pytest.raises(MissingRequiredField):
        parse_post("Just text\n", Path("p.md"))


def test_invalid_date_lists_the_file() -> None:
    path = Path("posts/bad.md")
    with pytest.raises(InvalidDate) as excinfo:
        parse_post('---\ntitle: "T"\ndate: "not a date"\n---\n', path)
    assert str(path) in str(excinfo.value)


@pytest.mark.parametrize("value", ["2024-02-30", "2024-13-01"])
def test_unquoted_impossible_date_is_invalid(value: str) -> None:
    path = Path("posts/bad.md")
    with pytest.raises(InvalidDate) as excinfo:
        parse_post(f"---\ntitle: T\ndate: {value}\n---\nBody\n", path)
    assert excinfo.value.value == value
    assert excinfo.value.paths == [path]


def test_parse_date_normalises_to_utc() -> None:
    parsed = parse_date("2024-03-01T12:00:00+02:00", Path("p.md"))
    assert parsed == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_date("2024-03-01T12:00:00", Path("p.md")).tzinfo == timezone.utc


def test_derive_slug_is_lowercase_without_extension() -> None:
    assert derive_slug(Path("My First Post.md")) == "my-first-post"
    assert derive_slug(Path("UPPER.md")) == "upper"


def test_fingerprint_covers_frontmatter() -> None:
    base = parse_post('---\ntitle: "T"\ndate: "2024-01-20"\n---\nBody\n', Path("p.md"))
    changed = parse_post('---\ntitle: "T"\ndate: "2024-01-20"\nexcerpt: "x"\n---\nBody\n', Path("p.md"))
    assert base.fingerprint != changed.fingerprint


def test_load_posts_creates_missing_directory(tmp_path: Path) -> None:
    posts_dir = tmp_path / "posts"
    assert load_posts(posts_dir) == []
    assert posts_dir.is_dir()


def test_load_posts_reads_every_file(tmp_path: Path) -> None:
    posts_dir = tmp_path / "posts"
    write_post(posts_dir, "a", "A")
    write_post(posts_dir, "b", "B")
    (posts_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    posts = load_posts(posts_dir, workers=2)
    assert sorted(post.slug for post in posts) == ["a", "b"]


def test_duplicate_slugs_fail_the_load(tmp_path: Path) -> None:
    posts_dir = tmp_path / "posts"
    first = write_post(posts_dir, "Hello World", "One")
    second = write_post(posts_dir, "hello_world", "Two")

    with pytest.raises(DuplicateSlug) as excinfo:
        load_posts(posts_dir)
    assert excinfo.value.slug == "hello-world"
    assert set(excinfo.value.paths) == {first, second}


def test_one_bad_post_aborts_the_load(tmp_path: Path) -> None:
    posts_dir = tmp_path / "posts"
    write_post(posts_dir, "good", "Good")
    (posts_dir / "bad.md").write_text("---\ntitle: Bad\n", encoding="utf-8")

    with pytest.raises(MalformedFrontmatter):
        load_posts(posts_dir)


def test_non_utf8_post_names_the_file(tmp_path: Path) -> None:
    posts_dir = tmp_path / "posts"
    write_post(posts_dir, "good", "Good")
    bad = posts_dir / "bad.md"
    bad.write_bytes(b"---\ntitle: T\ndate: 2024-01-01\n---\n\xff\xfe body\n")

    with pytest.raises(InputError) as excinfo:
        load_posts(posts_dir)
    assert excinfo.value.paths == [bad]
