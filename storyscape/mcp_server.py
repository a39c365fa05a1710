#!/usr/bin/env python3
"""Storyscape MCP Server — generate, browse and read location stories."""

import json
import logging
import sys
from typing import Optional

from mcp.server.fastmcp import FastMCP

from storyscape import feed
from storyscape.config import Config, load_config
from storyscape.db import StoryDB
from storyscape.errors import (
    NavigationNoop,
    PersistenceError,
    QuotaExceededError,
    RemoteCallError,
)
from storyscape.traversal import available_choices, choose, current_segment, is_terminal, restore

mcp = FastMCP("storyscape")
logger = logging.getLogger(__name__)

# Redirect all logging to stderr so stdout stays clean for MCP stdio transport
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

_db: StoryDB | None = None
_config: Config | None = None


def _get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _get_db() -> StoryDB:
    global _db
    if _db is None:
        _db = StoryDB(_get_config())
        _db.init_db()
    return _db


@mcp.tool()
def generate_story(location: str, user_id: str, is_public: bool = True) -> str:
    """Generate an interactive story set in a location. Uses one of the user's daily generations."""
    from storyscape.generation.pipeline import StoryPipeline

    try:
        pipeline = StoryPipeline.from_config(_get_db(), _get_config())
        result = pipeline.generate(location, user_id, is_public=is_public)
    except QuotaExceededError as e:
        return json.dumps({
            "error": str(e),
            "tokens_used": e.tokens_used,
            "next_reset": e.next_reset,
        })
    except (ValueError, PersistenceError) as e:
        return json.dumps({"error": str(e)})

    return json.dumps({
        "story_id": result.story.id if result.story else None,
        "provenance": result.provenance.value,
        "content": result.document.to_content(),
        "quota": result.quota.model_dump() if result.quota else None,
    })


@mcp.tool()
def get_story(story_id: int, user_id: Optional[str] = None) -> str:
    """Get a story's full document, upvotes and narration. Pass user_id to see if they upvoted it."""
    try:
        return json.dumps(feed.story_detail(_get_db(), story_id, user_id=user_id), default=str)
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def list_stories(filter: str = "popular") -> str:
    """List community stories. filter: popular, recent, or trending (last 7 days by upvotes)."""
    try:
        return json.dumps(feed.list_stories(_get_db(), _get_config(), filter), default=str)
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def search_stories(query: str) -> str:
    """Search public stories by title or location (at least 3 characters)."""
    result = feed.search_stories(_get_db(), _get_config(), query)
    return json.dumps(result, default=str)


@mcp.tool()
def toggle_upvote(story_id: int, user_id: str) -> str:
    """Upvote a story, or remove the user's upvote if they already gave one."""
    try:
        return json.dumps(feed.toggle_upvote(_get_db(), user_id, story_id))
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def narrate_segment(story_id: int, segment_index: int = 0, voice: str = "Alice") -> str:
    """Narrate a story segment (0 = opening) with Alice, Brian, Charlie or Dorothy. Returns the audio URL."""
    from storyscape import narration
    from storyscape.providers.elevenlabs import ElevenLabsSynthesizer
    from storyscape.storage import MediaStore

    config = _get_config()
    try:
        url = narration.narrate_segment(
            _get_db(), config,
            ElevenLabsSynthesizer(config.speech),
            MediaStore.from_config(config),
            story_id,
            segment_index=segment_index,
            voice=voice,
        )
        return json.dumps({"audio_url": url})
    except (ValueError, RemoteCallError, PersistenceError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def advance_story(story_id: int, choice_id: str, path: Optional[list[int]] = None) -> str:
    """Follow a choice in a story. path is the list of segment ids visited so far (default: just the opening)."""
    try:
        document = feed.get_story(_get_db(), story_id).document
        state = restore(document, path or [1])
        state = choose(state, document, choice_id, strict=True)
    except NavigationNoop as e:
        return json.dumps({"error": str(e), "next_segment": e.next_segment})
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})

    segment = current_segment(state, document)
    return json.dumps({
        "path": list(state.path),
        "segment": segment.model_dump(mode="json", by_alias=True) if segment else None,
        "choices": [c.model_dump(by_alias=True) for c in available_choices(state, document)],
        "is_terminal": is_terminal(state, document),
    })


if __name__ == "__main__":
    mcp.run()
