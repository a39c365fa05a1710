"""Story generation pipeline — location → completion → parse/fallback → images → saved story.

Text-call and parse failures never reach the caller: they are routed to the
FallbackResolver and the saved story is tagged with its provenance. Only quota
exhaustion and a failed story write are raised.
"""

import logging
import random
import re
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass

from storyscape.config import Config
from storyscape.db import StoryDB
from storyscape.errors import ParseError, PersistenceError, QuotaExceededError, RemoteCallError
from storyscape.generation.assembler import StoryAssembler, assemble
from storyscape.generation.fallback import FallbackResolver, generic_insights
from storyscape.generation.illustrate import illustrate
from storyscape.generation.parser import parse_narrative, split_lines
from storyscape.models import Provenance, QuotaStatus, StoryDocument, StoryRow
from storyscape.prompts import PROMPTS_DIR, prompt_version, render_prompt, split_system
from storyscape.providers.base import ImageGenerator, TextGenerator
from storyscape.storage import MediaStore

logger = logging.getLogger(__name__)

STORY_PROMPT = PROMPTS_DIR / "story_completion.yaml"
INSIGHTS_PROMPT = PROMPTS_DIR / "cultural_insights.yaml"

_LIST_MARKER = re.compile(r"^(?:[-*•]|\d{1,2}[.)])\s*")


@dataclass
class GenerationResult:
    """Outcome of one generate() call."""

    document: StoryDocument
    story: StoryRow | None = None
    quota: QuotaStatus | None = None
    applied: bool = True

    @property
    def provenance(self) -> Provenance:
        return self.document.provenance

    def __repr__(self) -> str:
        story_id = self.story.id if self.story else None
        return (
            f"GenerationResult(story={story_id}, title={self.document.title!r}, "
            f"provenance={self.provenance.value}, applied={self.applied})"
        )


class StoryPipeline:
    """The one canonical generate-a-story flow."""

    def __init__(
        self,
        db: StoryDB,
        config: Config,
        text: TextGenerator,
        images: ImageGenerator | None = None,
        media: MediaStore | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.config = config
        self.text = text
        self.images = images
        self.media = media or MediaStore.from_config(config)
        self.rng = rng or random.Random()
        self._sleep = sleep
        self.fallback = FallbackResolver.from_db(db, config.images.placeholder_url)
        self.assembler = StoryAssembler(db)

    @classmethod
    def from_config(cls, db: StoryDB, config: Config) -> "StoryPipeline":
        """Pipeline wired to the Gemini providers."""
        from storyscape.providers.gemini import GeminiImageGenerator, GeminiTextGenerator

        return cls(
            db,
            config,
            text=GeminiTextGenerator(config.llm),
            images=GeminiImageGenerator(config.images) if config.images.enabled else None,
        )

    # --- Entry point ---

    def generate(
        self,
        location: str,
        user_id: str,
        should_apply: Callable[[], bool] | None = None,
        enforce_quota: bool = True,
        is_public: bool = True,
    ) -> GenerationResult:
        """Generate, assemble and save a story for a location.

        should_apply is checked after generation finishes; if it returns False
        (the requester went away) the result is discarded: nothing is saved and
        images stored during this run are deleted.

        Raises:
            ValueError: empty location.
            QuotaExceededError: the user has no generations left today.
            PersistenceError: the story row could not be written.
        """
        location = location.strip()
        if not location:
            raise ValueError("Location is required")

        quota: QuotaStatus | None = None
        if enforce_quota:
            quota = self.db.check_and_update_tokens(
                user_id,
                daily_limit=self.config.quota.daily_limit,
                reset_hours=self.config.quota.reset_hours,
            )
            if not quota.can_generate:
                raise QuotaExceededError(quota.tokens_used, quota.next_reset)

        logger.info("Generating story for %s (user %s)", location, user_id)
        messages = render_prompt(
            STORY_PROMPT, location=location, min_words=150, max_words=200, insights=[],
        )
        document = self.generate_document(location, messages)

        if document.provenance == Provenance.GENERATED:
            document = document.model_copy(
                update={"cultural_insights": self.generate_insights(location)}
            )
            image_urls = illustrate(
                document, location, self.images, self.media, self.config.images,
            )
        else:
            image_urls = []
        document = assemble(document, image_urls, self.config.images, self.rng)

        if should_apply is not None and not should_apply():
            logger.info("Discarding story for %s: requester no longer waiting", location)
            self.discard_media(image_urls)
            return GenerationResult(document=document, quota=quota, applied=False)

        _, user_prompt = split_system(messages)
        story = self.assembler.persist(
            document, location, user_id,
            generation_prompt=f"[{prompt_version(STORY_PROMPT)}] {user_prompt}",
            is_public=is_public,
        )

        if enforce_quota:
            try:
                self.db.increment_tokens(user_id)
                quota = self.db.check_and_update_tokens(
                    user_id,
                    daily_limit=self.config.quota.daily_limit,
                    reset_hours=self.config.quota.reset_hours,
                )
            except sqlite3.Error:
                logger.exception("Failed to increment generation tokens for %s", user_id)

        result = GenerationResult(document=document, story=story, quota=quota)
        logger.info("Generation complete: %s", result)
        return result

    # --- Steps ---

    def generate_document(self, location: str, messages: list[dict[str, str]]) -> StoryDocument:
        """Completion → parsed document, or a fallback document. Never raises."""
        system, user = split_system(messages)
        try:
            completion = self.complete(user, system)
        except RemoteCallError as e:
            logger.warning("Story completion for %s failed: %s", location, e)
            return self.fallback.resolve(location, e)

        outcome = parse_narrative(completion, image=self.config.images.placeholder_url)
        if outcome.document is not None:
            return outcome.document

        error = outcome.error or ParseError("unparseable completion")
        logger.warning("Story completion for %s could not be parsed: %s", location, error)
        return self.fallback.resolve(location, error)

    def discard_media(self, urls: list[str | None]) -> None:
        """Delete images this run stored; fallback and stock URLs are left alone."""
        for url in urls:
            if not url:
                continue
            try:
                self.media.delete(url)
            except PersistenceError:
                logger.exception("Failed to delete discarded image %s", url)

    def complete(self, prompt: str, system: str | None = None) -> str:
        """One text completion within the configured attempt budget."""
        attempts = self.config.llm.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self.text.complete(prompt, system=system)
            except RemoteCallError as e:
                if attempt >= attempts:
                    raise
                delay = self.config.llm.retry_backoff_seconds * attempt
                logger.warning(
                    "Completion attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt, attempts, e, delay,
                )
                self._sleep(delay)
        raise RemoteCallError(self.text.name, "no attempts made")

    def generate_insights(self, location: str) -> list[str]:
        """Best-effort cultural facts; generic facts if the call fails or says nothing."""
        count = self.config.llm.insights_count
        messages = render_prompt(INSIGHTS_PROMPT, location=location, count=count)
        system, user = split_system(messages)
        try:
            completion = self.text.complete(user, system=system)
        except RemoteCallError as e:
            logger.warning("Cultural insights for %s unavailable: %s", location, e)
            return generic_insights(location)

        facts = [_LIST_MARKER.sub("", line).strip() for line in split_lines(completion)]
        facts = [f for f in facts if f][:count]
        return facts or generic_insights(location)
