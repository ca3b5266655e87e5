"""
Illuminated initials.

The pipeline depends only on the InitialGenerator interface; the OpenAI
images backend is the shipped implementation.
"""

from ..config import AppConfig, get_api_key
from .base import InitialGenerator
from .batch import generate_initials, initial_path, parse_letters
from .openai_images import OpenAIInitialGenerator


def create_generator(cfg: AppConfig) -> InitialGenerator:
    """Build the initial generator from configuration.

    Raises:
        ValueError: If no API key is configured
    """
    return OpenAIInitialGenerator(cfg.initials, get_api_key(cfg.initials))


__all__ = [
    "InitialGenerator",
    "OpenAIInitialGenerator",
    "create_generator",
    "generate_initials",
    "initial_path",
    "parse_letters",
]
