"""End-to-end tests of the incremental build pipeline."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from scribe import runner
from scribe.config import AppConfig
from scribe.core.errors import BuildLocked, InputError
from scribe.core.types import BuildDecision, PinRecord
from scribe.publish import Publisher
from scribe.render import content

from conftest import write_post

STALE = BuildDecision.STALE
UNCHANGED = BuildDecision.UNCHANGED


def _build(cfg: AppConfig, **kwargs) -> runner.BuildResult:
    return runner.run_build(cfg, show_progress=False, **kwargs)


def _snapshot(root: Path) -> dict[str, bytes]:
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def _page(cfg: AppConfig, slug: str) -> str:
    return (cfg.output_dir / slug / "index.html").read_text(encoding="utf-8")


def _two_posts(cfg: AppConfig) -> None:
    write_post(cfg.posts_dir, "a", "Post A", date="2024-01-02", body="Read [b](../b/) next.")
    write_post(cfg.posts_dir, "b", "Post B", date="2024-01-01", body="Plain text.")


def test_two_post_example(cfg: AppConfig) -> None:
    _two_posts(cfg)
    result = _build(cfg)

    assert result.ok
    assert result.decisions == {"a": STALE, "b": STALE}
    assert result.index.links("a") == frozenset({"b"})
    assert result.index.backlinks("b") == frozenset({"a"})
    assert result.index.backlinks("a") == frozenset()
    assert result.index.links("b") == frozenset()

    assert '<a href="../b/">b</a>' in _page(cfg, "a")
    assert "Backlinks" not in _page(cfg, "a")
    assert '<a href="../a/">Post A</a>' in _page(cfg, "b")
    index_html = (cfg.output_dir / "index.html").read_text(encoding="utf-8")
    assert index_html.index('href="a/"') < index_html.index('href="b/"')
    assert (cfg.output_dir / "style.css").is_file()


def test_rebuild_without_changes_is_idempotent(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)
    before = _snapshot(cfg.output_dir)

    result = _build(cfg)

    assert result.decisions == {"a": UNCHANGED, "b": UNCHANGED}
    assert result.written == []
    assert result.removed == []
    assert _snapshot(cfg.output_dir) == before


def test_excerpt_change_rebuilds_only_that_post(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)

    write_post(cfg.posts_dir, "b", "Post B", date="2024-01-01", body="Plain text.", excerpt="Now with excerpt")
    result = _build(cfg)

    assert result.decisions == {"a": UNCHANGED, "b": STALE}
    assert Path("index.html") in result.written
    assert "Now with excerpt" in (cfg.output_dir / "index.html").read_text(encoding="utf-8")


def test_new_reference_rebuilds_target(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)

    write_post(cfg.posts_dir, "c", "Post C", date="2024-01-03", body="Also see [a](a.md).")
    result = _build(cfg)

    assert result.decisions == {"a": STALE, "b": UNCHANGED, "c": STALE}
    assert '<a href="../c/">Post C</a>' in _page(cfg, "a")


def test_removed_reference_drops_backlink(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)

    write_post(cfg.posts_dir, "a", "Post A", date="2024-01-02", body="No links any more.")
    result = _build(cfg)

    assert result.decisions == {"a": STALE, "b": STALE}
    assert result.index.backlinks("b") == frozenset()
    assert "Backlinks" not in _page(cfg, "b")


def test_retitled_referrer_refreshes_backlink(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)

    write_post(cfg.posts_dir, "a", "Renamed A", date="2024-01-02", body="Read [b](../b/) next.")
    result = _build(cfg)

    assert result.decisions["b"] is STALE
    assert "Renamed A" in _page(cfg, "b")


def test_dangling_link_resolves_when_target_appears(cfg: AppConfig) -> None:
    write_post(cfg.posts_dir, "a", "Post A", body="Soon: [later](../later/).")
    first = _build(cfg)
    assert first.index.links("a") == frozenset()

    write_post(cfg.posts_dir, "later", "Later")
    second = _build(cfg)

    assert second.decisions == {"a": STALE, "later": STALE}
    assert second.index.backlinks("later") == frozenset({"a"})


def test_self_link_is_not_a_backlink(cfg: AppConfig) -> None:
    write_post(cfg.posts_dir, "a", "Post A", body="See [myself](../a/).")
    result = _build(cfg)

    assert result.index.backlinks("a") == frozenset()
    assert result.index.links("a") == frozenset()
    assert "Backlinks" not in _page(cfg, "a")


def test_deleted_post_output_is_removed(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)

    (cfg.posts_dir / "b.md").unlink()
    result = _build(cfg)

    assert Path("b/index.html") in result.removed
    assert not (cfg.output_dir / "b").exists()
    assert 'href="b/"' not in (cfg.output_dir / "index.html").read_text(encoding="utf-8")
    assert result.decisions == {"a": STALE}
    record = json.loads((cfg.state_dir / cfg.build.record_filename).read_text(encoding="utf-8"))
    assert sorted(record["entries"]) == ["a"]


def test_deleted_referrer_leaves_target_backlink_set(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)
    assert "Post A" in _page(cfg, "b")

    (cfg.posts_dir / "a.md").unlink()
    result = _build(cfg)

    assert result.index.backlinks("b") == frozenset()
    assert result.decisions == {"b": STALE}
    assert Path("a/index.html") in result.removed
    assert "Post A" not in _page(cfg, "b")


def test_input_error_aborts_before_output(cfg: AppConfig) -> None:
    write_post(cfg.posts_dir, "good", "Good")
    (cfg.posts_dir / "bad.md").write_text('---\ntitle: "Bad"\n---\nBody\n', encoding="utf-8")

    with pytest.raises(InputError) as excinfo:
        _build(cfg)

    assert excinfo.value.paths == [cfg.posts_dir / "bad.md"]
    assert not cfg.output_dir.exists()
    assert not (cfg.state_dir / cfg.build.lock_filename).exists()


def test_render_failure_is_isolated(cfg: AppConfig, monkeypatch) -> None:
    _two_posts(cfg)
    _build(cfg)
    real = content.markdown_to_html

    def flaky(body: str) -> str:
        if "Plain text" in body:
            raise RuntimeError("converter crashed")
        return real(body)

    monkeypatch.setattr(content, "markdown_to_html", flaky)
    result = _build(cfg)

    assert not result.ok
    assert [failure.slug for failure in result.failures] == ["b"]
    assert result.decisions == {"a": STALE}
    assert not (cfg.output_dir / "b").exists()
    assert 'href="b/"' not in (cfg.output_dir / "index.html").read_text(encoding="utf-8")


def test_corrupt_build_record_rebuilds_everything(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)
    (cfg.state_dir / cfg.build.record_filename).write_text("{broken", encoding="utf-8")

    result = _build(cfg)
    assert result.decisions == {"a": STALE, "b": STALE}


def test_force_rebuilds_everything(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)
    assert _build(cfg, force=True).decisions == {"a": STALE, "b": STALE}


def test_config_change_rebuilds_everything(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)
    cfg.site.title = "Another Title"
    result = _build(cfg)

    assert result.decisions == {"a": STALE, "b": STALE}
    assert "Another Title" in _page(cfg, "a")


def test_missing_output_file_is_rebuilt(cfg: AppConfig) -> None:
    _two_posts(cfg)
    _build(cfg)
    (cfg.output_dir / "a" / "index.html").unlink()

    result = _build(cfg)
    assert result.decisions == {"a": STALE, "b": UNCHANGED}
    assert (cfg.output_dir / "a" / "index.html").is_file()


def test_held_lock_rejects_build(cfg: AppConfig) -> None:
    _two_posts(cfg)
    cfg.state_dir.mkdir(parents=True)
    (cfg.state_dir / cfg.build.lock_filename).write_text("12345\n", encoding="utf-8")

    with pytest.raises(BuildLocked):
        _build(cfg)
    assert not cfg.output_dir.exists()


class RecordingPublisher(Publisher):
    def __init__(self):
        self.trees: list[tuple[Path, bool]] = []

    def publish(self, tree: Path, name: str | None = None, recursive: bool = True) -> PinRecord:
        self.trees.append((tree, (tree / "index.html").is_file()))
        return PinRecord(cid="QmSite", name=name, recursive=recursive, pinned_at="now", endpoint="fake")


def test_publish_runs_after_assembly_and_logs_pin(cfg: AppConfig) -> None:
    _two_posts(cfg)
    cfg.publish.name = "blog"
    publisher = RecordingPublisher()

    result = _build(cfg, publish=True, publisher=publisher)

    assert publisher.trees == [(cfg.output_dir, True)]
    assert result.pin is not None and result.pin.cid == "QmSite"
    lines = (cfg.state_dir / cfg.publish.pin_log).read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["name"] == "blog"


def test_initials_are_generated_and_used(cfg: AppConfig) -> None:
    from test_initials import FakeGenerator

    write_post(cfg.posts_dir, "a", "Post A", body="Hello world.")
    generator = FakeGenerator()

    first = _build(cfg, initial_generator=generator)
    page = _page(cfg, "a")

    assert generator.requested == ["H"]
    assert (cfg.output_dir / "initials" / "H.txt").is_file()
    assert 'src="data:image/png;base64,H"' in page
    assert "<p>ello world.</p>" in page
    assert first.decisions == {"a": STALE}

    second = _build(cfg, initial_generator=generator)
    assert generator.requested == ["H"]
    assert second.decisions == {"a": UNCHANGED}
