"""
Abstract interface for publishing a built site.

New backends should inherit from Publisher and implement ``publish``.
The pipeline only depends on this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from ..core.types import PinRecord


class PublishState(str, Enum):
    """Lifecycle of a single publish call.

    IDLE -> CONNECTING -> UPLOADING -> PINNED, or -> FAILED from
    CONNECTING or UPLOADING.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    UPLOADING = "uploading"
    PINNED = "pinned"
    FAILED = "failed"


class Publisher(ABC):
    """Publishes an output tree to a content-addressed store."""

    state: PublishState = PublishState.IDLE

    @abstractmethod
    def publish(self, tree: Path, name: str | None = None, recursive: bool = True) -> PinRecord:
        """Upload ``tree`` and pin its root.

        Args:
            tree: Directory to publish
            name: Optional human-readable pin name
            recursive: Pin the root recursively

        Returns:
            PinRecord with the root content identifier

        Raises:
            PublishError: With the failure kind, attempt count and last error
        """
        raise NotImplementedError
