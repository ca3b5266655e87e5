"""
Core domain models.

This package contains the data types, errors and slug rules shared by
every pipeline stage.
"""

from .errors import (
    DuplicateSlug,
    EndpointUnreachable,
    InputError,
    InvalidDate,
    InvalidResponse,
    MalformedFrontmatter,
    MissingRequiredField,
    PartialUpload,
    PublishDeadlineExceeded,
    PublishError,
    ScribeError,
)
from .slug import slugify
from .types import (
    BuildDecision,
    OutputDocument,
    PinRecord,
    Post,
    RenderedPost,
    RenderFailure,
    Site,
)

__all__ = [
    "BuildDecision",
    "DuplicateSlug",
    "EndpointUnreachable",
    "InputError",
    "InvalidDate",
    "InvalidResponse",
    "MalformedFrontmatter",
    "MissingRequiredField",
    "OutputDocument",
    "PartialUpload",
    "PinRecord",
    "Post",
    "PublishDeadlineExceeded",
    "PublishError",
    "RenderedPost",
    "RenderFailure",
    "ScribeError",
    "Site",
    "slugify",
]
