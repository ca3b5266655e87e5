"""
Site assembly.

Embeds rendered post fragments into the Jinja2 page templates, builds the
index page and stylesheet, and writes the resulting documents to the output
directory. Each document is replaced atomically; the site as a whole is not.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from datetime import datetime
import hashlib
import logging
from pathlib import Path
from typing import Iterable, Mapping

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from ..cache import stable_hash
from ..config import AppConfig
from ..core.types import OutputDocument, Post, RenderedPost, Site
from ..graph.backlinks import BacklinkIndex, sorted_backlinks
from ..render.content import drop_first_letter, rewrite_internal_links, site_host
from ..utils.files import write_if_changed

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
INDEX_PATH = Path("index.html")
STYLESHEET_PATH = Path("style.css")


def post_output_path(slug: str) -> Path:
    """Output path of a post page, relative to the output directory."""
    return Path(slug) / "index.html"


def format_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


class SiteAssembler:
    """Builds and writes the output documents of a site.

    Attributes:
        cfg: Application configuration
        output_dir: Root of the generated site
        workers: Maximum number of concurrent document writes
    """

    def __init__(self, cfg: AppConfig, workers: int | None = None):
        self.cfg = cfg
        self.output_dir = cfg.output_dir
        self.workers = max(1, workers or cfg.build.workers)
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
            keep_trailing_newline=True,
        )
        self.env.filters["longdate"] = format_date

    @property
    def initials_dir(self) -> Path:
        return self.output_dir / self.cfg.initials.directory

    def site_hash(self) -> str:
        """Hash of everything every page depends on: site config, theme and templates."""
        parts = [repr(sorted(asdict(self.cfg.site).items())), repr(sorted(asdict(self.cfg.theme).items()))]
        for template in sorted(TEMPLATES_DIR.iterdir()):
            if template.is_file():
                parts.append(template.name)
                parts.append(hashlib.sha256(template.read_bytes()).hexdigest())
        return stable_hash(parts)

    def initial_asset(self, letter: str | None) -> str | None:
        """Return the stored data URL of an illuminated initial, if one exists."""
        if not letter:
            return None
        path = self.initials_dir / f"{letter}.txt"
        if not path.is_file():
            return None
        data = path.read_text(encoding="utf-8").strip()
        return data or None

    def render_post_page(
        self,
        post: Post,
        rendered: RenderedPost,
        index: BacklinkIndex,
        site: Site,
    ) -> OutputDocument:
        """Render the page of one post."""
        content = rewrite_internal_links(rendered.html, site.posts.keys(), site_host(site.config.url))
        initial = self.initial_asset(rendered.first_letter)
        if initial:
            content = drop_first_letter(content)

        backlinks = [
            {"title": ref.title, "url": f"../{ref.slug}/", "date": ref.date}
            for ref in sorted_backlinks(index, post.slug, site.posts)
        ]
        template = self.env.get_template("post.html")
        html = template.render(
            site=site.config,
            post=post,
            content=Markup(content),
            initial=initial,
            initial_letter=rendered.first_letter,
            backlinks=backlinks,
            css_path="../style.css",
            home_path="../",
        )
        return OutputDocument(path=post_output_path(post.slug), content=html.encode("utf-8"))

    def render_index_page(self, site: Site) -> OutputDocument:
        """Render the index enumerating all posts, newest first."""
        entries = [
            {"title": post.title, "url": f"{post.slug}/", "date": post.date, "excerpt": post.excerpt}
            for post in site.ordered()
        ]
        template = self.env.get_template("index.html")
        html = template.render(
            site=site.config,
            posts=entries,
            css_path="style.css",
            home_path="./",
        )
        return OutputDocument(path=INDEX_PATH, content=html.encode("utf-8"))

    def render_stylesheet(self, site: Site) -> OutputDocument:
        template = self.env.get_template("style.css")
        css = template.render(theme=site.theme)
        return OutputDocument(path=STYLESHEET_PATH, content=css.encode("utf-8"))

    def assemble(
        self,
        site: Site,
        rendered: Mapping[str, RenderedPost],
        index: BacklinkIndex,
        stale: Iterable[str],
    ) -> list[OutputDocument]:
        """Produce documents for the stale posts plus the index and stylesheet."""
        documents = [
            self.render_post_page(site.posts[slug], rendered[slug], index, site)
            for slug in sorted(stale)
        ]
        documents.append(self.render_index_page(site))
        documents.append(self.render_stylesheet(site))
        return documents

    def write(self, documents: list[OutputDocument]) -> list[Path]:
        """Write documents in parallel across distinct paths.

        Returns:
            Paths (relative to the output dir) whose bytes actually changed
        """
        paths = [doc.path for doc in documents]
        if len(set(paths)) != len(paths):
            raise ValueError("Output documents must have distinct paths")

        self.output_dir.mkdir(parents=True, exist_ok=True)

        def _write(doc: OutputDocument) -> bool:
            return write_if_changed(self.output_dir / doc.path, doc.content)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            changed = list(executor.map(_write, documents))
        return [doc.path for doc, did_change in zip(documents, changed) if did_change]

    def remove(self, relative_paths: Iterable[str | Path]) -> list[Path]:
        """Delete output documents of posts that no longer exist.

        Empty parent directories inside the output dir are removed as well.
        Paths escaping the output directory are ignored.
        """
        root = self.output_dir.resolve()
        removed = []
        for rel in relative_paths:
            target = (self.output_dir / rel).resolve()
            if root not in target.parents:
                logger.warning("Refusing to remove %s outside %s", target, root)
                continue
            if target.is_file():
                target.unlink()
                removed.append(Path(rel))
            parent = target.parent
            while parent != root and parent.is_dir() and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent
        return removed
