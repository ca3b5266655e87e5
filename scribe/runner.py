"""
Build pipeline orchestration for scribe.

This module coordinates one build invocation:
1. Acquire the build lock over the output dir and build record
2. Load and validate every post
3. Render posts to HTML and collect outbound references
4. Generate missing illuminated initials (when enabled)
5. Build the backlink index once all renders are done
6. Classify posts against the previous build record
7. Assemble and write stale pages, the index and the stylesheet
8. Remove pages of deleted or failed posts and persist the new record
9. Optionally publish the finished output tree

Supports both progress bar and quiet modes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import logging
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)

from .cache import (
    BuildLock,
    BuildRecord,
    CacheKey,
    PinLog,
    RecordEntry,
    classify,
    deleted_slugs,
    load_build_record,
    save_build_record,
    stable_hash,
)
from .config import AppConfig, initials_enabled
from .core.types import BuildDecision, PinRecord, Post, RenderedPost, RenderFailure, Site
from .graph.backlinks import BacklinkIndex, backlink_hash, build_backlink_index, outbound_hash
from .initials import InitialGenerator, create_generator, generate_initials
from .input.loader import load_posts
from .output.assembler import SiteAssembler, post_output_path
from .publish import IpfsPublisher, Publisher
from .render.content import render_posts
from .utils.logging import log_event, setup_logging


@dataclass
class BuildStats:
    """Counters reported at the end of a build.

    Attributes:
        total: Number of posts loaded
        stale: Posts whose page was regenerated
        unchanged: Posts served from the previous build
        failed: Posts that failed to render
        removed: Output files deleted
    """

    total: int = 0
    stale: int = 0
    unchanged: int = 0
    failed: int = 0
    removed: int = 0


@dataclass
class BuildResult:
    """Outcome of one build invocation."""

    decisions: dict[str, BuildDecision] = field(default_factory=dict)
    written: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    failures: list[RenderFailure] = field(default_factory=list)
    index: BacklinkIndex = field(default_factory=BacklinkIndex)
    stats: BuildStats = field(default_factory=BuildStats)
    pin: PinRecord | None = None

    @property
    def ok(self) -> bool:
        return not self.failures


def run_build(
    cfg: AppConfig,
    force: bool = False,
    publish: bool = False,
    show_progress: bool = True,
    console: Console | None = None,
    publisher: Publisher | None = None,
    initial_generator: InitialGenerator | None = None,
) -> BuildResult:
    """Run a complete (incremental) build of the site.

    Args:
        cfg: Application configuration
        force: Regenerate every page regardless of the build record
        publish: Publish the output tree once assembly has completed
        show_progress: Whether to display progress bars
        console: Rich console for output (creates default if None)
        publisher: Publisher to use instead of the configured IPFS node
        initial_generator: Initial provider to use instead of the configured one

    Returns:
        BuildResult describing what was written, removed and published

    Raises:
        BuildLocked: If another build holds the lock
        InputError: If any post fails to load; nothing is written
        PublishError: If publishing was requested and failed
    """
    console = console or Console()
    lock = BuildLock(cfg.state_dir / cfg.build.lock_filename)
    with lock:
        logger = setup_logging(cfg.logging, cfg.state_dir)
        log_event(
            logger,
            "Build start",
            event="build_start",
            posts_dir=str(cfg.posts_dir),
            output_dir=str(cfg.output_dir),
            force=force,
        )

        posts = load_posts(cfg.posts_dir, workers=cfg.build.workers)
        log_event(logger, f"Loaded {len(posts)} posts", event="posts_loaded", count=len(posts))

        rendered, failures = _render(cfg, posts, show_progress, console)
        for item in rendered:
            log_event(
                logger,
                f"Rendered {item.slug}",
                level=logging.DEBUG,
                event="post_rendered",
                slug=item.slug,
                links=len(item.link_targets),
            )
        for failure in failures:
            log_event(
                logger,
                f"Failed to render {failure.path}",
                level=logging.ERROR,
                event="render_failed",
                slug=failure.slug,
                error=failure.error,
            )
        rendered_map = {item.slug: item for item in rendered}

        assembler = SiteAssembler(cfg)
        generator = initial_generator
        if generator is None and initials_enabled(cfg):
            generator = create_generator(cfg)
        if generator is not None:
            _ensure_initials(cfg, assembler, rendered_map.values(), generator, logger)

        live = [post for post in posts if post.slug in rendered_map]
        site = Site.from_posts(cfg.site, cfg.theme, live)
        index = build_backlink_index({slug: item.link_targets for slug, item in rendered_map.items()})

        keys = {
            slug: CacheKey(
                fingerprint=post.fingerprint,
                backlink_hash=backlink_hash(index, slug, site.posts),
                context_hash=stable_hash(
                    [
                        outbound_hash(index, slug),
                        _asset_digest(assembler.initial_asset(rendered_map[slug].first_letter)),
                    ]
                ),
            )
            for slug, post in site.posts.items()
        }

        record_path = cfg.state_dir / cfg.build.record_filename
        record = load_build_record(record_path)
        site_hash = assembler.site_hash()
        decisions = classify(record, keys, site_hash, cfg.output_dir, force=force)
        stale = [slug for slug, decision in decisions.items() if decision is BuildDecision.STALE]
        for slug, decision in sorted(decisions.items()):
            if decision is BuildDecision.UNCHANGED:
                log_event(logger, f"Unchanged {slug}", level=logging.DEBUG, event="cache_unchanged", slug=slug)

        documents = assembler.assemble(site, rendered_map, index, stale)
        written = assembler.write(documents)
        for path in written:
            log_event(logger, f"Wrote {path.as_posix()}", level=logging.DEBUG, event="output_written", path=path.as_posix())

        gone = deleted_slugs(record, site.posts)
        removed = assembler.remove(record.entries[slug].output_path for slug in gone)
        for path in removed:
            log_event(logger, f"Removed {path.as_posix()}", event="output_removed", path=path.as_posix())

        new_record = BuildRecord(
            site_hash=site_hash,
            entries={
                slug: RecordEntry(
                    fingerprint=key.fingerprint,
                    backlink_hash=key.backlink_hash,
                    context_hash=key.context_hash,
                    output_path=post_output_path(slug).as_posix(),
                )
                for slug, key in keys.items()
            },
        )
        save_build_record(new_record, record_path)

        stats = BuildStats(
            total=len(posts),
            stale=len(stale),
            unchanged=len(decisions) - len(stale),
            failed=len(failures),
            removed=len(removed),
        )
        log_event(
            logger,
            "Build complete",
            event="build_complete",
            total=stats.total,
            stale=stats.stale,
            unchanged=stats.unchanged,
            failed=stats.failed,
            removed=stats.removed,
        )

        pin = None
        if publish:
            pin = _publish(cfg, publisher, logger)

    return BuildResult(
        decisions=decisions,
        written=written,
        removed=removed,
        failures=failures,
        index=index,
        stats=stats,
        pin=pin,
    )


def publish_site(
    cfg: AppConfig,
    tree: Path | None = None,
    name: str | None = None,
    recursive: bool | None = None,
    publisher: Publisher | None = None,
) -> PinRecord:
    """Publish an already built output tree under the build lock.

    Raises:
        BuildLocked: If a build is running
        NotADirectoryError: If the tree does not exist
        PublishError: If publishing failed
    """
    tree = tree or cfg.output_dir
    with BuildLock(cfg.state_dir / cfg.build.lock_filename):
        logger = setup_logging(cfg.logging, cfg.state_dir)
        return _publish(cfg, publisher, logger, tree=tree, name=name, recursive=recursive)


def _publish(
    cfg: AppConfig,
    publisher: Publisher | None,
    logger: logging.Logger,
    tree: Path | None = None,
    name: str | None = None,
    recursive: bool | None = None,
) -> PinRecord:
    tree = tree or cfg.output_dir
    name = name if name is not None else cfg.publish.name
    recursive = cfg.publish.recursive if recursive is None else recursive
    publisher = publisher or IpfsPublisher.from_config(cfg.publish, event_logger=logger)

    log_event(logger, f"Publishing {tree}", event="publish_start", tree=str(tree), pin_name=name)
    pin = publisher.publish(tree, name=name, recursive=recursive)
    PinLog(cfg.state_dir / cfg.publish.pin_log).append(pin)
    return pin


def _render(
    cfg: AppConfig,
    posts: list[Post],
    show_progress: bool,
    console: Console,
) -> tuple[list[RenderedPost], list[RenderFailure]]:
    if not show_progress or not posts:
        return render_posts(posts, workers=cfg.build.workers, base_url=cfg.site.url)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Rendering", total=len(posts))
        return render_posts(
            posts,
            workers=cfg.build.workers,
            base_url=cfg.site.url,
            on_done=lambda: progress.advance(task),
        )


def _ensure_initials(
    cfg: AppConfig,
    assembler: SiteAssembler,
    rendered: Iterable[RenderedPost],
    generator: InitialGenerator,
    logger: logging.Logger,
) -> None:
    letters = {item.first_letter for item in rendered if item.first_letter}
    missing = sorted(letter for letter in letters if assembler.initial_asset(letter) is None)
    if not missing:
        return
    log_event(logger, f"Generating {len(missing)} illuminated initials", event="initials_start", letters="".join(missing))
    generate_initials(
        missing,
        assembler.initials_dir,
        generator,
        concurrency=cfg.initials.concurrency,
        event_logger=logger,
    )


def _asset_digest(asset: str | None) -> str:
    if asset is None:
        return ""
    return hashlib.sha256(asset.encode("utf-8")).hexdigest()
