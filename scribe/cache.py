"""
Incremental build state.

This module owns everything that survives between invocations:
- content fingerprints and the per-post build record that drives
  "skip unchanged" decisions
- the single-writer lock guarding the output directory and record
- the JSONL log of successful pins
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping

from .core.errors import BuildLocked
from .core.types import BuildDecision, PinRecord
from .utils.files import atomic_write_text

logger = logging.getLogger(__name__)

RECORD_VERSION = 1


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def content_fingerprint(frontmatter: Mapping[str, Any], body: str) -> str:
    """Return the SHA-256 fingerprint of a post's frontmatter and body.

    Frontmatter is serialized as canonical JSON with sorted keys, so key
    order is irrelevant and any value change alters the digest.
    """
    digest = hashlib.sha256()
    digest.update(
        json.dumps(frontmatter, sort_keys=True, ensure_ascii=True, default=_json_default).encode("utf-8")
    )
    digest.update(b"\0")
    digest.update(body.encode("utf-8"))
    return digest.hexdigest()


def stable_hash(parts: Iterable[str]) -> str:
    """Hash an ordered sequence of strings."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


@dataclass
class RecordEntry:
    """Last known build state of one post."""

    fingerprint: str
    backlink_hash: str
    context_hash: str
    output_path: str


@dataclass
class BuildRecord:
    """Persisted mapping of slug to the state its output was built from.

    Attributes:
        site_hash: Hash of the site configuration and templates of the last build
        entries: Per-slug record entries
    """

    site_hash: str = ""
    entries: dict[str, RecordEntry] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": RECORD_VERSION,
            "site_hash": self.site_hash,
            "entries": {slug: asdict(entry) for slug, entry in sorted(self.entries.items())},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BuildRecord":
        if data.get("version") != RECORD_VERSION:
            raise ValueError(f"Unsupported build record version: {data.get('version')!r}")
        entries = {
            str(slug): RecordEntry(**entry) for slug, entry in dict(data.get("entries") or {}).items()
        }
        return cls(site_hash=str(data.get("site_hash", "")), entries=entries)


@dataclass(frozen=True)
class CacheKey:
    """Everything a post's output page depends on."""

    fingerprint: str
    backlink_hash: str
    context_hash: str


def load_build_record(path: Path) -> BuildRecord:
    """Load the build record from disk.

    Returns an empty BuildRecord if the file doesn't exist or is corrupt,
    so every post is treated as stale.
    """
    if not path.exists():
        return BuildRecord()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return BuildRecord.from_dict(data)
    except (OSError, json.JSONDecodeError, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Unreadable build record at %s (%s), rebuilding everything", path, exc)
        return BuildRecord()


def save_build_record(record: BuildRecord, path: Path) -> None:
    """Save the build record to disk atomically."""
    atomic_write_text(path, json.dumps(record.to_dict(), indent=2, sort_keys=True) + "\n")


def classify(
    record: BuildRecord,
    keys: Mapping[str, CacheKey],
    site_hash: str,
    output_dir: Path,
    force: bool = False,
) -> dict[str, BuildDecision]:
    """Decide for every current post whether its page must be regenerated.

    Args:
        record: Build record of the previous run
        keys: Current cache key per slug
        site_hash: Hash of the current site configuration
        output_dir: Output directory, used to detect deleted output files
        force: Treat every post as stale

    Returns:
        Mapping of slug to BuildDecision
    """
    site_changed = record.site_hash != site_hash
    decisions: dict[str, BuildDecision] = {}
    for slug, key in keys.items():
        previous = record.entries.get(slug)
        if (
            force
            or site_changed
            or previous is None
            or previous.fingerprint != key.fingerprint
            or previous.backlink_hash != key.backlink_hash
            or previous.context_hash != key.context_hash
            or not (output_dir / previous.output_path).is_file()
        ):
            decisions[slug] = BuildDecision.STALE
        else:
            decisions[slug] = BuildDecision.UNCHANGED
    return decisions


def deleted_slugs(record: BuildRecord, current: Iterable[str]) -> list[str]:
    """Slugs present in the previous record but absent from the current build."""
    return sorted(set(record.entries) - set(current))


class BuildLock:
    """Exclusive lock file held for the duration of one build or publish.

    The lock is a file created with ``O_CREAT | O_EXCL`` that records the
    owning PID. It is removed on release.
    """

    def __init__(self, path: Path):
        self.path = path
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise BuildLocked(self.path) from exc
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        self._held = True

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def __enter__(self) -> "BuildLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class PinLog:
    """Append-only JSONL log of successful publishes.

    Attributes:
        path: Full path to the log file
    """

    def __init__(self, path: Path):
        self.path = path

    def append(self, record: PinRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(record), ensure_ascii=True))
            handle.write("\n")

    def read(self) -> list[PinRecord]:
        if not self.path.exists():
            return []
        records = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                records.append(PinRecord(**json.loads(line)))
            except (json.JSONDecodeError, TypeError):
                logger.warning("Skipping malformed pin log line in %s", self.path)
        return records
