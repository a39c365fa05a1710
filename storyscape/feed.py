"""Community feed — listings, search, upvotes and read records."""

import logging
from datetime import datetime, timedelta, timezone

from storyscape.config import Config
from storyscape.db import StoryDB, sqlite_timestamp
from storyscape.errors import NotFoundError
from storyscape.models import FeedFilter, StoryRow
from storyscape.traversal import TraversalState, choices_made

logger = logging.getLogger(__name__)


def list_stories(
    db: StoryDB,
    config: Config,
    filter: FeedFilter | str = FeedFilter.POPULAR,
    now: datetime | None = None,
) -> list[dict[str, object]]:
    """Feed cards for one tab: popular, recent, or trending (popular within the last N days)."""
    filter = FeedFilter(filter)
    limit = config.feed.page_size
    if filter == FeedFilter.RECENT:
        rows = db.list_public_stories(order_by="created_at", limit=limit)
    elif filter == FeedFilter.TRENDING:
        now = now or datetime.now(timezone.utc)
        since = sqlite_timestamp(now - timedelta(days=config.feed.trending_days))
        rows = db.list_public_stories(order_by="upvotes", since=since, limit=limit)
    else:
        rows = db.list_public_stories(order_by="upvotes", limit=limit)
    return [r.summary() for r in rows]


def search_stories(db: StoryDB, config: Config, query: str) -> list[dict[str, object]]:
    """Title/location search. Queries shorter than the minimum return nothing."""
    query = query.strip()
    if len(query) < config.feed.search_min_chars:
        return []
    rows = db.search_stories(query, limit=config.feed.search_limit)
    logger.debug("Search %r matched %d stories", query, len(rows))
    return [r.summary() for r in rows]


def get_story(db: StoryDB, story_id: int) -> StoryRow:
    story = db.get_story(story_id)
    if story is None:
        raise NotFoundError(f"Story not found: {story_id}")
    return story


def story_detail(db: StoryDB, story_id: int, user_id: str | None = None) -> dict[str, object]:
    """Everything a reader needs: the document, counters, and whether this user upvoted it."""
    story = get_story(db, story_id)
    document = story.document
    return {
        "id": story.id,
        "title": story.title,
        "location": story.location,
        "upvotes": story.upvotes,
        "created_at": story.created_at,
        "audio_url": story.audio_url,
        "used_fallback_story": story.used_fallback_story,
        "ai_generated_story": story.ai_generated_story,
        "has_upvoted": bool(user_id and db.get_vote(user_id, story_id)),
        "content": document.to_content(),
        "audio_segments": [
            {"segment_index": a.segment_index, "voice_id": a.voice_id, "audio_url": a.audio_url}
            for a in db.get_audio_segments(story_id)
        ],
    }


def toggle_upvote(db: StoryDB, user_id: str, story_id: int) -> dict[str, object]:
    """Upvote if the user hasn't, otherwise clear their vote.

    Returns {"upvoted": bool, "upvotes": int} after the change.
    """
    get_story(db, story_id)
    if db.get_vote(user_id, story_id):
        db.remove_upvote(user_id, story_id)
        upvoted = False
    else:
        upvoted = db.add_upvote(user_id, story_id)
    story = get_story(db, story_id)
    logger.info(
        "User %s %s story %d (%d upvotes)",
        user_id, "upvoted" if upvoted else "cleared vote on", story_id, story.upvotes,
    )
    return {"upvoted": upvoted, "upvotes": story.upvotes}


def record_reading(
    db: StoryDB,
    user_id: str,
    story_id: int,
    state: TraversalState,
) -> int:
    """Log the path a reader took. completed_at is set when they reached an ending."""
    story = get_story(db, story_id)
    document = story.document
    segment = document.segment(state.current_segment_id)
    completed_at = None
    if segment is not None and segment.is_terminal:
        completed_at = sqlite_timestamp(datetime.now(timezone.utc))
    return db.insert_interaction(
        user_id, story_id,
        choices_made=choices_made(state, document),
        completed_at=completed_at,
    )
