"""ElevenLabs text-to-speech provider over plain HTTP."""

import logging
import os

import httpx

from storyscape.config import SpeechConfig
from storyscape.errors import RemoteCallError
from storyscape.providers.base import SpeechSynthesizer

logger = logging.getLogger(__name__)


class ElevenLabsSynthesizer(SpeechSynthesizer):
    name = "elevenlabs"

    def __init__(
        self,
        config: SpeechConfig,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.api_key = api_key or os.environ.get("ELEVENLABS_API_KEY")
        self._transport = transport

    def synthesize(self, text: str, voice_id: str) -> bytes:
        if not self.api_key:
            raise RemoteCallError(self.name, "ELEVENLABS_API_KEY is not set")
        if not text.strip():
            raise ValueError("Narration text is required")

        url = f"{self.config.api_base.rstrip('/')}/text-to-speech/{voice_id}"
        payload = {
            "text": text,
            "model_id": self.config.model_id,
            "voice_settings": {
                "stability": self.config.stability,
                "similarity_boost": self.config.similarity_boost,
            },
        }
        headers = {
            "Accept": self.content_type,
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }
        try:
            with httpx.Client(
                timeout=self.config.timeout_seconds, transport=self._transport
            ) as client:
                response = client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteCallError(self.name, f"transport error: {e}") from e

        if response.status_code != 200:
            raise RemoteCallError(self.name, response.text[:200], response.status_code)
        if not response.content:
            raise RemoteCallError(self.name, "empty audio response")

        logger.debug("Synthesized %d bytes of audio with voice %s", len(response.content), voice_id)
        return response.content
