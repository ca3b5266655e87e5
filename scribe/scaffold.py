"""Project scaffolding used by ``scribe create``."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .config import AppConfig, save_config

CONFIG_FILENAME = "config.yaml"

WELCOME_POST = """---
title: "Welcome to {title}"
date: "{date}"
excerpt: "Your first post on your new Scribe-powered blog."
---

Welcome to your new Scribe-powered blog! This is your first post.

Scribe is a minimal static site generator that focuses on typography and clean design.
Write your posts in Markdown and let Scribe handle the rest.

## Getting Started

1. **Write**: Create new posts in the `posts/` directory using Markdown
2. **Generate**: Run `scribe generate` to build your static site
3. **Serve**: Use `scribe serve` to preview your site locally
4. **Publish**: Run `scribe pin` to publish the `dist/` directory to IPFS

## Features

- **Illuminated Initials**: Set `OPENAI_API_KEY` to generate decorative first letters
- **Backlinks**: Link to another post with `[text](../other-post/)` and it links back
- **Incremental Builds**: Only pages whose content or backlinks changed are rebuilt

Happy writing!
"""

GITIGNORE = """# Generated site
dist/

# Build state
.scribe/

# Environment variables
.env
*.env

# Editor and OS files
.vscode/
.idea/
*.swp
.DS_Store
Thumbs.db
"""

README = """# {title}

{description}

## Quick Start

```bash
# Generate your site
scribe generate

# Serve locally
scribe serve

# Visit http://localhost:3007
```

## Writing Posts

Create new Markdown files in the `posts/` directory:

```markdown
---
title: "Your Post Title"
date: "2024-01-20"
excerpt: "A brief description of your post"
---

Your post content here...
```

## Illuminated Initials

1. Get an OpenAI API key
2. Set the environment variable: `export OPENAI_API_KEY="your-key-here"`
3. Generate specific letters: `scribe initials --letters "ABC"`

## Configuration

Edit `config.yaml` to customize your site's appearance and settings.

## Deployment

Upload the contents of `dist/` to any static host, or pin it to IPFS with
`scribe pin` (requires a running IPFS node).
"""


@dataclass
class ProjectSettings:
    """Answers collected by the interactive ``create`` prompts."""

    title: str = "My Blog"
    description: str = "A minimal blog powered by Scribe"
    author: str = "Author"
    url: str | None = None


def create_project(directory: Path, settings: ProjectSettings) -> list[Path]:
    """Write a new project skeleton into ``directory``.

    Existing files are left untouched.

    Returns:
        Paths of the files created
    """
    directory.mkdir(parents=True, exist_ok=True)
    cfg = AppConfig()
    cfg.site.title = settings.title
    cfg.site.description = settings.description
    cfg.site.author = settings.author
    cfg.site.url = settings.url or None

    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    files = {
        directory / ".gitignore": GITIGNORE,
        directory / "README.md": README.format(title=settings.title, description=settings.description),
        directory / cfg.site.posts_dir / "welcome.md": WELCOME_POST.format(title=settings.title, date=today),
    }

    created = []
    config_path = directory / CONFIG_FILENAME
    if not config_path.exists():
        save_config(cfg, config_path)
        created.append(config_path)
    for path, content in files.items():
        if path.exists():
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        created.append(path)
    return created
