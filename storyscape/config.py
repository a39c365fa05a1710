"""Configuration loading for storyscape."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

PLACEHOLDER_IMAGE_URL = (
    "https://images.unsplash.com/photo-1506905925346-21bda4d32df4?w=400&h=300&fit=crop&q=80"
)


class LLMConfig(BaseModel):
    model: str = "gemini-2.5-flash"
    temperature: float = 0.8
    max_output_tokens: int = 2000
    timeout_seconds: float = 60.0
    max_attempts: int = Field(default=1, ge=1)
    retry_backoff_seconds: float = 2.0
    insights_count: int = 3


class ImageConfig(BaseModel):
    enabled: bool = True
    model: str = "gemini-2.5-flash-image"
    size: int = 1024  # edge length generated images are normalised to
    timeout_seconds: float = 90.0
    fallback_url: str = PLACEHOLDER_IMAGE_URL
    placeholder_url: str = PLACEHOLDER_IMAGE_URL
    stock_pool: list[str] = Field(default_factory=lambda: [
        "https://images.unsplash.com/photo-1470813740244-df37b8c1edcb?w=400&h=300&fit=crop",
        "https://images.unsplash.com/photo-1500673922987-e212871fec22?w=400&h=300&fit=crop",
        "https://images.unsplash.com/photo-1426604966848-d7adac402bff?w=400&h=300&fit=crop",
        "https://images.unsplash.com/photo-1472396961693-142e6e269027?w=400&h=300&fit=crop",
        "https://images.unsplash.com/photo-1582562124811-c09040d0a901?w=400&h=300&fit=crop",
    ])


class SpeechConfig(BaseModel):
    api_base: str = "https://api.elevenlabs.io/v1"
    model_id: str = "eleven_monolingual_v1"
    stability: float = 0.5
    similarity_boost: float = 0.75
    timeout_seconds: float = 60.0
    voices: dict[str, str] = Field(default_factory=lambda: {
        "Alice": "Xb7hH8MSUJpSbSDYk0k2",
        "Brian": "nPczCjzI2devNBz1zQrb",
        "Charlie": "IKne3meq5aSn9XLyUdCD",
        "Dorothy": "ThT5KcBeYPX3keUQqHPh",
    })


class FeedConfig(BaseModel):
    page_size: int = 9
    trending_days: int = 7
    search_limit: int = 10
    search_min_chars: int = 3


class QuotaConfig(BaseModel):
    daily_limit: int = 5
    reset_hours: int = 24


class Config(BaseModel):
    db_path: str = "data/storyscape.db"
    media_dir: str = "data/media"
    media_base_url: str = "/media"
    llm: LLMConfig = Field(default_factory=LLMConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)

    @property
    def resolved_db_path(self) -> Path:
        """Resolve db_path relative to project root."""
        p = Path(self.db_path)
        if p.is_absolute():
            return p
        return _project_root() / p

    @property
    def resolved_media_dir(self) -> Path:
        p = Path(self.media_dir).expanduser()
        if p.is_absolute():
            return p
        return _project_root() / p


def _project_root() -> Path:
    """Return the storyscape project root directory."""
    return Path(__file__).parent.parent


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML file. Falls back to defaults if file missing."""
    if config_path is None:
        config_path = _project_root() / "config.yaml"

    if config_path.exists():
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text()) or {}
        return Config(**raw)

    return Config()
