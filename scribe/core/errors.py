"""Exception hierarchy for the build pipeline and publish step."""

from __future__ import annotations

from pathlib import Path


class ScribeError(Exception):
    """Base class for all errors raised by scribe."""


class InputError(ScribeError):
    """A post source could not be loaded. Aborts the whole build."""

    def __init__(self, message: str, paths: list[Path] | None = None):
        self.paths = list(paths or [])
        super().__init__(message)


class MalformedFrontmatter(InputError):
    def __init__(self, path: Path, reason: str):
        self.reason = reason
        super().__init__(f"{path}: malformed frontmatter ({reason})", [path])


class MissingRequiredField(InputError):
    def __init__(self, path: Path, field_name: str):
        self.field_name = field_name
        super().__init__(f"{path}: missing required field '{field_name}'", [path])


class InvalidDate(InputError):
    def __init__(self, path: Path, value: object):
        self.value = value
        super().__init__(f"{path}: invalid date {value!r}, expected ISO 8601", [path])


class DuplicateSlug(InputError):
    def __init__(self, slug: str, paths: list[Path]):
        self.slug = slug
        joined = ", ".join(str(p) for p in paths)
        super().__init__(f"Duplicate slug '{slug}' produced by: {joined}", paths)


class RenderError(ScribeError):
    """Markdown conversion failed for a single post."""


class BuildLocked(ScribeError):
    """Another build holds the lock on the output directory."""

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        super().__init__(
            f"Another build is running (lock file {lock_path}). "
            "Remove the file if no build is in progress."
        )


class PublishError(ScribeError):
    """Publishing the output tree failed.

    Attributes:
        attempts: Number of attempts made before giving up
        last_error: Description of the last underlying failure
    """

    kind = "publish_error"

    def __init__(self, message: str, attempts: int = 1, last_error: str | None = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f" after {attempts} attempt(s)"
        if last_error:
            detail += f": {last_error}"
        super().__init__(f"{message}{detail}")


class EndpointUnreachable(PublishError):
    kind = "endpoint_unreachable"


class PartialUpload(PublishError):
    kind = "partial_upload"


class InvalidResponse(PublishError):
    kind = "invalid_response"


class PublishDeadlineExceeded(PublishError):
    kind = "deadline_exceeded"


class InitialGenerationError(ScribeError):
    """The illuminated initial provider failed for one letter."""
