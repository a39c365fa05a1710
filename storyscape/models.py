"""Pydantic models for storyscape."""

import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Provenance(str, Enum):
    GENERATED = "generated"
    FALLBACK_CACHED = "fallback-cached"
    FALLBACK_GENERIC = "fallback-generic"


class VoteType(str, Enum):
    UPVOTE = "upvote"


class FeedFilter(str, Enum):
    POPULAR = "popular"
    RECENT = "recent"
    TRENDING = "trending"


# --- Story document (immutable once assembled) ---


class Choice(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    text: str
    next_segment: int = Field(alias="nextSegment")


class StorySegment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(ge=1)
    text: str
    image: str = ""
    choices: list[Choice] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("segment text must not be empty")
        return v

    @property
    def is_terminal(self) -> bool:
        return not self.choices


class StoryDocument(BaseModel):
    """A branching story: segments linked by choices, rooted at segment 1."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    segments: list[StorySegment]
    cultural_insights: list[str] = Field(default_factory=list, alias="culturalInsights")
    provenance: Provenance = Provenance.GENERATED
    error_log: str | None = Field(default=None, alias="errorLog")

    @model_validator(mode="after")
    def _check_graph_root(self) -> "StoryDocument":
        if not self.segments:
            raise ValueError("a story needs at least one segment")
        ids = [s.id for s in self.segments]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate segment ids: {ids}")
        if 1 not in ids:
            raise ValueError("segment 1 (the story root) is missing")
        return self

    def segment(self, segment_id: int) -> StorySegment | None:
        for s in self.segments:
            if s.id == segment_id:
                return s
        return None

    @property
    def root(self) -> StorySegment:
        return self.segment(1)  # type: ignore[return-value]

    @property
    def is_fallback(self) -> bool:
        return self.provenance != Provenance.GENERATED

    def to_content(self) -> dict:
        """Serialise with the camelCase keys used in stored story content."""
        return self.model_dump(mode="json", by_alias=True)


# --- Row models (what comes out of the DB) ---


class StoryRow(BaseModel):
    id: int
    user_id: str
    title: str
    location: str
    content: str  # JSON StoryDocument
    cultural_insights: str | None = None  # JSON
    image_urls: str | None = None  # JSON
    audio_url: str | None = None
    generation_prompt: str | None = None
    is_public: bool = True
    upvotes: int = 0
    ai_generated_story: bool = False
    used_fallback_story: bool = False
    story_error_log: str | None = None
    tokens_used: int = 0
    created_at: str
    updated_at: str

    @property
    def document(self) -> StoryDocument:
        return StoryDocument.model_validate_json(self.content)

    @property
    def image_url_list(self) -> list[str]:
        return json.loads(self.image_urls) if self.image_urls else []

    def summary(self) -> dict[str, object]:
        """Feed card shape: no full content, just a preview of the opening."""
        preview = ""
        try:
            preview = self.document.root.text
        except ValueError:
            preview = "An enchanting story awaits..."
        images = self.image_url_list
        return {
            "id": self.id,
            "title": self.title,
            "location": self.location,
            "upvotes": self.upvotes,
            "created_at": self.created_at,
            "thumbnail": images[0] if images else None,
            "preview": preview,
            "used_fallback_story": self.used_fallback_story,
            "ai_generated_story": self.ai_generated_story,
        }


class VoteRow(BaseModel):
    id: int
    user_id: str
    story_id: int
    vote_type: VoteType
    created_at: str


class InteractionRow(BaseModel):
    id: int
    user_id: str
    story_id: int
    choices_made: str | None = None  # JSON
    completed_at: str | None = None


class AudioSegmentRow(BaseModel):
    id: int
    story_id: int
    segment_index: int
    voice_id: str
    audio_url: str
    created_at: str


class QuotaStatus(BaseModel):
    tokens_used: int
    tokens_remaining: int
    can_generate: bool
    next_reset: str


# --- Insert models (what goes into the DB) ---


class StoryInsert(BaseModel):
    """Story data ready to insert into the database."""
    user_id: str
    title: str
    location: str
    content: str
    cultural_insights: str | None = None
    image_urls: str | None = None
    generation_prompt: str | None = None
    is_public: bool = True
    upvotes: int = 1
    ai_generated_story: bool = False
    used_fallback_story: bool = False
    story_error_log: str | None = None
    tokens_used: int = 1
