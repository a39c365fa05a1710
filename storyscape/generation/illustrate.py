"""Scene illustration — one generated image per story segment."""

import logging

from storyscape.config import ImageConfig
from storyscape.errors import PersistenceError, RemoteCallError
from storyscape.models import StoryDocument
from storyscape.prompts import PROMPTS_DIR, render_prompt, split_system
from storyscape.providers.base import ImageGenerator
from storyscape.storage import IMAGE_BUCKET, MediaStore

logger = logging.getLogger(__name__)

MAX_SCENE_CHARS = 600


def generate_image_url(
    scene: str,
    location: str,
    generator: ImageGenerator,
    media: MediaStore,
    config: ImageConfig,
) -> str:
    """Generate and store one image. Returns the fallback URL on any provider/storage failure."""
    messages = render_prompt(
        PROMPTS_DIR / "segment_image.yaml",
        location=location,
        scene=scene[:MAX_SCENE_CHARS],
    )
    _, prompt = split_system(messages)
    try:
        data = generator.generate(prompt)
        return media.save(IMAGE_BUCKET, data, "png")
    except (RemoteCallError, PersistenceError) as e:
        logger.warning("Image generation failed for %s, using fallback image: %s", location, e)
        return config.fallback_url


def illustrate(
    document: StoryDocument,
    location: str,
    generator: ImageGenerator | None,
    media: MediaStore,
    config: ImageConfig,
) -> list[str | None]:
    """Image URLs in segment order; None where no generation was attempted."""
    if generator is None or not config.enabled:
        return [None] * len(document.segments)

    urls: list[str | None] = []
    for segment in document.segments:
        logger.info("Illustrating segment %d of %r", segment.id, document.title)
        urls.append(generate_image_url(segment.text, location, generator, media, config))
    return urls
