"""Tests for configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from scribe.config import AppConfig, get_api_key, initials_enabled, load_config, save_config


def test_defaults_without_file() -> None:
    cfg = load_config(None)
    assert cfg.site.title == "Scribe"
    assert cfg.site.posts_dir == "posts"
    assert cfg.site.output_dir == "dist"
    assert cfg.publish.api_url == "http://127.0.0.1:5001"
    assert cfg.publish.recursive is True
    assert cfg.build.workers == 4


def test_missing_file_is_created_on_request(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    assert load_config(path) == AppConfig()
    assert not path.exists()

    load_config(path, create_missing=True)
    assert path.is_file()
    assert load_config(path) == AppConfig()


def test_nested_sections_merge_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "site:\n  title: Notes\nbuild:\n  workers: 8\npublish:\n  retries: 1\nunknown: 3\n",
        encoding="utf-8",
    )
    cfg = load_config(path)

    assert cfg.site.title == "Notes"
    assert cfg.site.author == "Author"
    assert cfg.build.workers == 8
    assert cfg.publish.retries == 1
    assert cfg.publish.backoff_seconds == 0.5


def test_flat_json_config_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "title": "Old Blog",
                "author": "Me",
                "posts_dir": "content",
                "openai_api_key": "sk-inline",
                "theme": {"primary_color": "#000000"},
            }
        ),
        encoding="utf-8",
    )
    cfg = load_config(path)

    assert cfg.site.title == "Old Blog"
    assert cfg.site.posts_dir == "content"
    assert cfg.initials.api_key == "sk-inline"
    assert cfg.theme.primary_color == "#000000"
    assert cfg.posts_dir == Path("content")


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_saved_config_omits_inline_key(tmp_path: Path) -> None:
    cfg = AppConfig()
    cfg.initials.api_key = "sk-secret"
    path = tmp_path / "config.yaml"
    save_config(cfg, path)

    assert "sk-secret" not in path.read_text(encoding="utf-8")
    assert load_config(path).initials.api_key is None


def test_api_key_from_environment(monkeypatch) -> None:
    cfg = AppConfig()
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert get_api_key(cfg.initials) is None
    assert not initials_enabled(cfg)

    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert get_api_key(cfg.initials) == "sk-env"
    assert initials_enabled(cfg)

    cfg.initials.api_key = "sk-inline"
    assert get_api_key(cfg.initials) == "sk-inline"
