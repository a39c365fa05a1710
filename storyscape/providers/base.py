"""Provider interfaces for text, image and speech generation."""

import abc


class TextGenerator(abc.ABC):
    """Turns a prompt into a free-text completion."""

    name = "text"

    @abc.abstractmethod
    def complete(self, prompt: str, system: str | None = None) -> str:
        """Return the completion text (possibly empty).

        Raises:
            RemoteCallError: the provider could not be reached or refused the call.
        """
        ...


class ImageGenerator(abc.ABC):
    """Turns a scene description into encoded image bytes."""

    name = "image"

    @abc.abstractmethod
    def generate(self, prompt: str) -> bytes:
        """Return PNG bytes. Raises RemoteCallError on failure."""
        ...


class SpeechSynthesizer(abc.ABC):
    """Turns narration text into encoded audio bytes."""

    name = "speech"
    content_type = "audio/mpeg"
    extension = "mp3"

    @abc.abstractmethod
    def synthesize(self, text: str, voice_id: str) -> bytes:
        ...
