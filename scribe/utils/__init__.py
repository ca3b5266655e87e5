"""
Shared utility functions.

This package contains logging and filesystem helpers used across
multiple pipeline stages.
"""

from .files import atomic_write_bytes, atomic_write_text, write_if_changed
from .logging import JsonlFormatter, log_event, setup_logging

__all__ = [
    "setup_logging",
    "log_event",
    "JsonlFormatter",
    "atomic_write_bytes",
    "atomic_write_text",
    "write_if_changed",
]
