"""Gemini text and image providers (google-genai SDK)."""

import io
import logging
import os

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from PIL import Image

from storyscape.config import ImageConfig, LLMConfig
from storyscape.errors import RemoteCallError
from storyscape.providers.base import ImageGenerator, TextGenerator

logger = logging.getLogger(__name__)


def _api_key() -> str | None:
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")


def _make_client(provider: str, timeout_seconds: float) -> genai.Client:
    api_key = _api_key()
    if not api_key:
        raise RemoteCallError(provider, "GEMINI_API_KEY / GOOGLE_API_KEY is not set")
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
    )


class GeminiTextGenerator(TextGenerator):
    name = "gemini"

    def __init__(self, config: LLMConfig, client: genai.Client | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = _make_client(self.name, self.config.timeout_seconds)
        return self._client

    def complete(self, prompt: str, system: str | None = None) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.config.model,
                contents=[prompt],
                config=types.GenerateContentConfig(
                    system_instruction=system,
                    temperature=self.config.temperature,
                    max_output_tokens=self.config.max_output_tokens,
                ),
            )
        except genai_errors.APIError as e:
            raise RemoteCallError(self.name, e.message or str(e), e.code) from e
        except httpx.HTTPError as e:
            raise RemoteCallError(self.name, f"transport error: {e}") from e

        text = response.text or ""
        logger.debug("Completion from %s: %d chars", self.config.model, len(text))
        return text


class GeminiImageGenerator(ImageGenerator):
    name = "gemini-image"

    def __init__(self, config: ImageConfig, client: genai.Client | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = _make_client(self.name, self.config.timeout_seconds)
        return self._client

    def generate(self, prompt: str) -> bytes:
        try:
            response = self.client.models.generate_content(
                model=self.config.model,
                contents=[prompt],
            )
        except genai_errors.APIError as e:
            raise RemoteCallError(self.name, e.message or str(e), e.code) from e
        except httpx.HTTPError as e:
            raise RemoteCallError(self.name, f"transport error: {e}") from e

        # inline_data carries the raw encoded image
        parts = response.parts or []
        for part in parts:
            if part.inline_data is not None and part.inline_data.data:
                return normalize_image(part.inline_data.data, self.config.size)

        text = ""
        for part in parts:
            if part.text:
                text = part.text[:200]
        raise RemoteCallError(self.name, f"No image in Gemini response. Text: {text}")


def normalize_image(data: bytes, size: int) -> bytes:
    """Re-encode provider image bytes as a square PNG of the configured size."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except OSError as e:
        raise RemoteCallError("gemini-image", f"unreadable image data: {e}") from e
    if img.size != (size, size):
        img = img.resize((size, size), Image.LANCZOS)
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="PNG")
    return buf.getvalue()
