"""Narration — read a story segment aloud in one of the friendly voices."""

import logging

from storyscape.config import Config, SpeechConfig
from storyscape.db import StoryDB
from storyscape.feed import get_story
from storyscape.providers.base import SpeechSynthesizer
from storyscape.storage import AUDIO_BUCKET, MediaStore

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "Alice"


def voice_names(config: SpeechConfig) -> list[str]:
    return sorted(config.voices)


def resolve_voice(config: SpeechConfig, voice: str) -> str:
    """Friendly voice name (case-insensitive) → provider voice id."""
    for name, voice_id in config.voices.items():
        if name.lower() == voice.strip().lower():
            return voice_id
    raise ValueError(
        f"Unknown voice: {voice}. Available: {', '.join(voice_names(config))}"
    )


def narrate_segment(
    db: StoryDB,
    config: Config,
    synthesizer: SpeechSynthesizer,
    media: MediaStore,
    story_id: int,
    segment_index: int = 0,
    voice: str = DEFAULT_VOICE,
) -> str:
    """Synthesize one segment (by position) and return the stored audio URL.

    The URL is recorded per (story, segment, voice) and also becomes the
    story's current audio_url.

    Raises:
        NotFoundError: unknown story.
        ValueError: unknown voice or segment index out of range.
        RemoteCallError: the speech provider failed.
        PersistenceError: the audio could not be stored.
    """
    voice_id = resolve_voice(config.speech, voice)
    document = get_story(db, story_id).document
    if not 0 <= segment_index < len(document.segments):
        raise ValueError(
            f"Story {story_id} has {len(document.segments)} segment(s); "
            f"no segment at index {segment_index}"
        )

    text = document.segments[segment_index].text
    audio = synthesizer.synthesize(text, voice_id)
    url = media.save(AUDIO_BUCKET, audio, synthesizer.extension)

    db.upsert_audio_segment(story_id, segment_index, voice_id, url)
    db.set_story_audio(story_id, url)
    logger.info(
        "Narrated story %d segment %d with %s (%d bytes)",
        story_id, segment_index, voice, len(audio),
    )
    return url
