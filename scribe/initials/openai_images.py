"""OpenAI images provider for illuminated initials."""

from __future__ import annotations

import json
import logging

import httpx

from ..config import InitialsConfig
from ..core.errors import InitialGenerationError
from .base import InitialGenerator

logger = logging.getLogger(__name__)


def build_prompt(letter: str) -> str:
    return (
        f"A black background with white ink drawing featuring an illuminated initial '{letter}' "
        "in the Italian Futurist style, with geometric and abstract forms, swirling lines, and "
        "dynamic composition reminiscent of early 20th-century avant-garde art. The background "
        "should be pure black with white forms and lines."
    )


class OpenAIInitialGenerator(InitialGenerator):
    """Generates initials with the OpenAI image generation endpoint."""

    def __init__(
        self,
        cfg: InitialsConfig,
        api_key: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("Missing OpenAI API key")
        self.cfg = cfg
        self.api_key = api_key
        self._transport = transport

    async def generate(self, letter: str) -> str:
        endpoint = f"{self.cfg.base_url.rstrip('/')}/images/generations"
        payload = {
            "model": self.cfg.model,
            "prompt": build_prompt(letter),
            "n": 1,
            "size": self.cfg.size,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.cfg.timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.post(endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise InitialGenerationError(f"Request for '{letter}' failed: {type(exc).__name__}: {exc}") from exc

        if resp.status_code != 200:
            raise InitialGenerationError(
                f"API call for '{letter}' failed with status {resp.status_code}: {resp.text[:200]}"
            )
        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise InitialGenerationError(f"Malformed API response for '{letter}'") from exc

        images = data.get("data") if isinstance(data, dict) else None
        if isinstance(images, list) and images:
            b64 = images[0].get("b64_json") if isinstance(images[0], dict) else None
            if isinstance(b64, str) and b64:
                return f"data:image/png;base64,{b64}"
        raise InitialGenerationError(f"Could not extract image data for '{letter}'")
