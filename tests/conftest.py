"""Shared test fixtures for storyscape tests."""

import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from storyscape.config import Config, ImageConfig, LLMConfig
from storyscape.db import StoryDB, sqlite_timestamp
from storyscape.errors import RemoteCallError
from storyscape.models import Choice, Provenance, StoryDocument, StoryInsert, StorySegment
from storyscape.providers.base import ImageGenerator, SpeechSynthesizer, TextGenerator
from storyscape.storage import MediaStore

KYOTO_COMPLETION = """Title: The Lantern Keeper of Gion
Evening settles over the wooden teahouses of Gion.
A paper lantern flickers although there is no wind.
A. Follow the lantern into the alley
B. Ask the teahouse owner about it
C. Climb the steps to Yasaka Shrine
"""


class FakeText(TextGenerator):
    """Returns queued completions in order; Exception entries are raised."""

    name = "fake-text"

    def __init__(self, *responses: str | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str | None]] = []

    def complete(self, prompt: str, system: str | None = None) -> str:
        self.calls.append((prompt, system))
        if not self.responses:
            return ""
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeImages(ImageGenerator):
    name = "fake-image"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> bytes:
        self.prompts.append(prompt)
        if self.fail:
            raise RemoteCallError(self.name, "image quota exhausted", 429)
        return b"\x89PNG fake image bytes"


class FakeSpeech(SpeechSynthesizer):
    name = "fake-speech"

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def synthesize(self, text: str, voice_id: str) -> bytes:
        self.calls.append((text, voice_id))
        return b"ID3 fake audio"


def make_document(
    title: str = "The Lantern Keeper of Gion",
    provenance: Provenance = Provenance.GENERATED,
    image: str = "https://img.example/gion.png",
) -> StoryDocument:
    return StoryDocument(
        title=title,
        segments=[
            StorySegment(
                id=1,
                text="Evening settles over the teahouses of Gion.",
                image=image,
                choices=[
                    Choice(id="A", text="Follow the lantern", next_segment=2),
                    Choice(id="B", text="Ask the owner", next_segment=3),
                ],
            ),
            StorySegment(id=2, text="The alley opens onto a moonlit garden.", image=image),
        ],
        cultural_insights=["Gion is Kyoto's best-known geisha district."],
        provenance=provenance,
    )


def make_insert(
    document: StoryDocument,
    location: str,
    user_id: str = "alice",
    upvotes: int = 1,
    is_public: bool = True,
) -> StoryInsert:
    return StoryInsert(
        user_id=user_id,
        title=document.title,
        location=location,
        content=json.dumps(document.to_content()),
        cultural_insights=json.dumps(document.cultural_insights),
        image_urls=json.dumps([s.image for s in document.segments]),
        is_public=is_public,
        upvotes=upvotes,
        ai_generated_story=document.provenance == Provenance.GENERATED,
        used_fallback_story=document.is_fallback,
    )


@pytest.fixture()
def config(tmp_path):
    """Config pointing DB and media at the temp dir, with one stock image for determinism."""
    return Config(
        db_path=str(tmp_path / "test.db"),
        media_dir=str(tmp_path / "media"),
        media_base_url="/media",
        llm=LLMConfig(max_attempts=1, retry_backoff_seconds=0),
        images=ImageConfig(stock_pool=["https://stock.example/one.jpg"]),
    )


@pytest.fixture()
def tmp_db(config):
    """Create a StoryDB backed by a temp file."""
    db = StoryDB(config)
    db.init_db()
    yield db
    db.close()


@pytest.fixture()
def media(config):
    return MediaStore.from_config(config)


@pytest.fixture()
def rng():
    return random.Random(7)


@pytest.fixture()
def populated_db(tmp_db):
    """DB with 4 public stories (one old, one fallback) and 1 private story.

    Upvotes: Kyoto 5, Lisbon 3, Cairo (30 days old) 9, Oslo fallback 0, private Rome 20.
    """
    db = tmp_db
    now = datetime.now(timezone.utc)

    db.insert_story(
        make_insert(make_document("The Lantern Keeper of Gion"), "Kyoto, Japan", upvotes=5),
        created_at=sqlite_timestamp(now - timedelta(days=2)),
    )
    db.insert_story(
        make_insert(make_document("Tiles of the Alfama"), "Lisbon, Portugal", upvotes=3),
        created_at=sqlite_timestamp(now - timedelta(days=1)),
    )
    db.insert_story(
        make_insert(make_document("Sands of Giza"), "Cairo, Egypt", upvotes=9),
        created_at=sqlite_timestamp(now - timedelta(days=30)),
    )
    db.insert_story(
        make_insert(
            make_document("The Enchanted Tales of Oslo", provenance=Provenance.FALLBACK_GENERIC),
            "Oslo", upvotes=0,
        ),
        created_at=sqlite_timestamp(now - timedelta(hours=1)),
    )
    db.insert_story(
        make_insert(make_document("Roman Holiday"), "Rome", upvotes=20, is_public=False),
        created_at=sqlite_timestamp(now - timedelta(hours=2)),
    )
    return db
