from __future__ import annotations

from pathlib import Path

import pytest

from scribe.config import AppConfig


def write_post(
    posts_dir: Path,
    name: str,
    title: str,
    date: str = "2024-01-01",
    body: str = "Body text.",
    excerpt: str | None = None,
) -> Path:
    posts_dir.mkdir(parents=True, exist_ok=True)
    lines = ["---", f'title: "{title}"', f'date: "{date}"']
    if excerpt is not None:
        lines.append(f'excerpt: "{excerpt}"')
    lines.append("---")
    path = posts_dir / f"{name}.md"
    path.write_text("\n".join(lines) + "\n\n" + body + "\n", encoding="utf-8")
    return path


@pytest.fixture
def cfg(tmp_path: Path) -> AppConfig:
    config = AppConfig()
    config.site.posts_dir = str(tmp_path / "posts")
    config.site.output_dir = str(tmp_path / "dist")
    config.build.state_dir = str(tmp_path / ".scribe")
    config.build.workers = 2
    config.logging.console = False
    config.initials.api_key_env = "SCRIBE_TEST_UNSET_KEY"
    return config
