"""
Batch generation of illuminated initials.

Letters are generated concurrently with asyncio; each asset is stored as
``<directory>/<LETTER>.txt`` holding a data URL. Existing assets are kept.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable

from ..core.errors import InitialGenerationError
from ..utils.files import atomic_write_text
from ..utils.logging import log_event
from .base import InitialGenerator

logger = logging.getLogger(__name__)


def parse_letters(letters: str) -> list[str]:
    """Parse ``"ABC"`` or ``"a,b,c"`` into unique upper-case letters, order kept."""
    if "," in letters:
        candidates = [chunk.strip()[:1] for chunk in letters.split(",")]
    else:
        candidates = list(letters)
    result: list[str] = []
    for char in candidates:
        if char and char.isalpha():
            upper = char.upper()
            if upper not in result:
                result.append(upper)
    return result


def initial_path(directory: Path, letter: str) -> Path:
    return directory / f"{letter}.txt"


def generate_initials(
    letters: Iterable[str],
    directory: Path,
    generator: InitialGenerator,
    concurrency: int = 4,
    event_logger: logging.Logger | None = None,
) -> dict[str, Path]:
    """Generate missing initials; returns the letters written in this call."""
    return asyncio.run(
        generate_initials_async(letters, directory, generator, concurrency, event_logger)
    )


async def generate_initials_async(
    letters: Iterable[str],
    directory: Path,
    generator: InitialGenerator,
    concurrency: int = 4,
    event_logger: logging.Logger | None = None,
) -> dict[str, Path]:
    log = event_logger or logger
    directory.mkdir(parents=True, exist_ok=True)
    semaphore = asyncio.Semaphore(max(1, concurrency))

    pending = []
    for letter in sorted(set(letters)):
        path = initial_path(directory, letter)
        if path.exists():
            log_event(log, "Initial exists", level=logging.DEBUG, event="initial_skipped", letter=letter)
            continue
        pending.append((letter, path))

    async def _generate(letter: str, path: Path) -> tuple[str, Path | None]:
        async with semaphore:
            try:
                data_url = await generator.generate(letter)
            except InitialGenerationError as exc:
                log_event(
                    log,
                    f"Failed to generate illuminated initial '{letter}'",
                    level=logging.WARNING,
                    event="initial_failed",
                    letter=letter,
                    error=str(exc),
                )
                return letter, None
        atomic_write_text(path, data_url)
        log_event(log, f"Generated illuminated initial '{letter}'", event="initial_generated", letter=letter)
        return letter, path

    results = await asyncio.gather(*(_generate(letter, path) for letter, path in pending))
    return {letter: path for letter, path in results if path is not None}
