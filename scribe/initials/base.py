"""Abstract interface for illuminated initial providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class InitialGenerator(ABC):
    """Produces a decorative initial image for a single letter."""

    @abstractmethod
    async def generate(self, letter: str) -> str:
        """Return the image for ``letter`` as a ``data:`` URL.

        Raises:
            InitialGenerationError: If the provider fails
        """
        raise NotImplementedError
