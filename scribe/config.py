"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. JSON is a subset of YAML, so projects that
still carry a ``config.json`` load unchanged. Configuration sections:
- SiteConfig: Site metadata and source/output directories
- ThemeConfig: Colors passed through to the stylesheet template
- BuildConfig: Worker pool size and persisted build state location
- PublishConfig: IPFS endpoint, retry and deadline settings
- InitialsConfig: Illuminated initial provider settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from pathlib import Path
from typing import Any

import yaml


@dataclass
class SiteConfig:
    """Site-level metadata and directories.

    Attributes:
        title: Site title shown in the header and index page
        description: Optional tagline shown under the title
        author: Author name shown in the footer
        url: Optional public base URL; absolute links on this host count as internal
        posts_dir: Directory containing Markdown posts
        output_dir: Directory receiving the generated site
    """

    title: str = "Scribe"
    description: str | None = "A minimal static site generator • ink • eternal"
    author: str = "Author"
    url: str | None = None
    posts_dir: str = "posts"
    output_dir: str = "dist"


@dataclass
class ThemeConfig:
    """Theme colors substituted into ``style.css``."""

    primary_color: str = "#f5f5f5"
    background_color: str = "#0a0a0a"
    text_color: str = "#f5f5f5"
    accent_color: str = "#8b8b8b"


@dataclass
class BuildConfig:
    """Configuration for the build pipeline.

    Attributes:
        workers: Size of the thread pools used for parsing, rendering and writing
        state_dir: Directory holding the build record, lock and logs
        record_filename: Name of the persisted build record
        lock_filename: Name of the single-writer lock file
    """

    workers: int = 4
    state_dir: str = ".scribe"
    record_filename: str = "build-record.json"
    lock_filename: str = "build.lock"


@dataclass
class PublishConfig:
    """Configuration for publishing the output tree to IPFS.

    Attributes:
        api_url: Kubo RPC API endpoint
        name: Optional human-readable pin name
        recursive: Whether the root CID is pinned recursively
        timeout_seconds: Timeout applied to each attempt
        retries: Retry attempts after the first failed connection
        backoff_seconds: Base delay for exponential backoff between attempts
        deadline_seconds: Hard ceiling on the total publish time
        pin_log: JSONL file (in the state dir) recording successful pins
    """

    api_url: str = "http://127.0.0.1:5001"
    name: str | None = None
    recursive: bool = True
    timeout_seconds: float = 30.0
    retries: int = 3
    backoff_seconds: float = 0.5
    deadline_seconds: float = 300.0
    pin_log: str = "pins.jsonl"


@dataclass
class InitialsConfig:
    """Configuration for illuminated initial generation.

    Attributes:
        api_key: Optional inline API key (overrides env var)
        api_key_env: Environment variable name containing the API key
        base_url: Base URL for the images API
        model: Image model identifier
        size: Requested image size
        timeout_seconds: HTTP request timeout
        concurrency: Maximum concurrent generation requests
        directory: Directory (inside the output dir) holding initial assets
    """

    api_key: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-image-1"
    size: str = "1024x1024"
    timeout_seconds: float = 120.0
    concurrency: int = 4
    directory: str = "initials"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to a file in the state dir
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = True
    format: str = "jsonl"
    filename: str = "build.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    site: SiteConfig = field(default_factory=SiteConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    initials: InitialsConfig = field(default_factory=InitialsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def posts_dir(self) -> Path:
        return Path(self.site.posts_dir)

    @property
    def output_dir(self) -> Path:
        return Path(self.site.output_dir)

    @property
    def state_dir(self) -> Path:
        return Path(self.build.state_dir)


# Top-level keys of older single-level config files (title, author, posts_dir, ...).
_FLAT_SITE_KEYS = {"title", "description", "author", "url", "posts_dir", "output_dir"}


def load_config(path: str | Path | None, create_missing: bool = False) -> AppConfig:
    """Load configuration from a YAML file with defaults.

    When ``create_missing`` is set and the file does not exist, the default
    configuration is written to ``path`` first.
    """
    if not path:
        return AppConfig()

    path = Path(path)
    if not path.exists():
        cfg = AppConfig()
        if create_missing:
            save_config(cfg, path)
        return cfg

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    return _merge_config(AppConfig(), raw)


def save_config(cfg: AppConfig, path: str | Path) -> None:
    """Write configuration to a YAML file, omitting inline secrets."""
    data = _asdict(cfg)
    data["initials"].pop("api_key", None)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key in _FLAT_SITE_KEYS:
            data["site"][key] = value
            continue
        if key == "openai_api_key":
            data["initials"]["api_key"] = value
            continue
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "site": asdict(cfg.site),
        "theme": asdict(cfg.theme),
        "build": asdict(cfg.build),
        "publish": asdict(cfg.publish),
        "initials": asdict(cfg.initials),
        "logging": asdict(cfg.logging),
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        site=SiteConfig(**data["site"]),
        theme=ThemeConfig(**data["theme"]),
        build=BuildConfig(**data["build"]),
        publish=PublishConfig(**data["publish"]),
        initials=InitialsConfig(**data["initials"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_api_key(cfg: InitialsConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.api_key_env)


def initials_enabled(cfg: AppConfig) -> bool:
    """Return True when an illuminated-initial credential is available."""
    return bool(get_api_key(cfg.initials))
