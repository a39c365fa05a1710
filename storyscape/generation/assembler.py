"""Story assembler — final images, provenance flags, and the persisted record."""

import json
import logging
import random
import sqlite3
from collections.abc import Sequence

from storyscape.config import ImageConfig
from storyscape.db import StoryDB
from storyscape.errors import PersistenceError
from storyscape.models import Provenance, StoryDocument, StoryInsert, StoryRow

logger = logging.getLogger(__name__)


def assemble(
    document: StoryDocument,
    generated_images: Sequence[str | None],
    images: ImageConfig,
    rng: random.Random | None = None,
) -> StoryDocument:
    """Give every segment a real image.

    Per segment (by position): the generated image if there is one, else the
    segment's own image when it is not a placeholder, else a random stock image.
    Stock picks may repeat.
    """
    rng = rng or random.Random()
    placeholders = {"", images.placeholder_url, images.fallback_url}
    segments = []
    for i, segment in enumerate(document.segments):
        generated = generated_images[i] if i < len(generated_images) else None
        if generated and generated not in placeholders:
            image = generated
        elif segment.image not in placeholders:
            image = segment.image
        elif images.stock_pool:
            image = rng.choice(images.stock_pool)
        else:
            image = images.placeholder_url
        segments.append(segment.model_copy(update={"image": image}))
    return document.model_copy(update={"segments": segments})


def to_insert(
    document: StoryDocument,
    location: str,
    user_id: str,
    generation_prompt: str | None = None,
    is_public: bool = True,
) -> StoryInsert:
    return StoryInsert(
        user_id=user_id,
        title=document.title,
        location=location.strip(),
        content=json.dumps(document.to_content()),
        cultural_insights=json.dumps(document.cultural_insights),
        image_urls=json.dumps([s.image for s in document.segments]),
        generation_prompt=generation_prompt,
        is_public=is_public,
        upvotes=1,  # the creator's implicit upvote
        ai_generated_story=document.provenance == Provenance.GENERATED,
        used_fallback_story=document.is_fallback,
        story_error_log=document.error_log,
    )


class StoryAssembler:
    """Writes an assembled story plus the creator's read record and upvote."""

    def __init__(self, db: StoryDB) -> None:
        self.db = db

    def persist(
        self,
        document: StoryDocument,
        location: str,
        user_id: str,
        generation_prompt: str | None = None,
        is_public: bool = True,
    ) -> StoryRow:
        """Store the story. Raises PersistenceError only if the story row itself fails."""
        insert = to_insert(document, location, user_id, generation_prompt, is_public)
        try:
            story_id = self.db.insert_story(insert)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save story {document.title!r}: {e}") from e

        root = document.root
        opening = {f"segment_{root.id}": root.choices[0].id} if root.choices else {}
        try:
            self.db.insert_interaction(user_id, story_id, choices_made=opening)
        except sqlite3.Error:
            logger.exception("Failed to record initial read of story %d", story_id)

        try:
            self.db.insert_vote(user_id, story_id)
        except sqlite3.Error:
            logger.exception("Failed to record creator upvote on story %d", story_id)

        try:
            row = self.db.get_story(story_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Story {story_id} was saved but could not be read back: {e}") from e
        if row is None:
            raise PersistenceError(f"Story {story_id} was saved but could not be read back")

        logger.info(
            "Saved story %d %r for %s (%s)", story_id, document.title, location,
            document.provenance.value,
        )
        return row
