"""SQLite database setup and operations for storyscape."""

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from storyscape.config import Config
from storyscape.models import (
    AudioSegmentRow,
    InteractionRow,
    QuotaStatus,
    StoryInsert,
    StoryRow,
    VoteRow,
    VoteType,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS stories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    location TEXT NOT NULL,
    content TEXT NOT NULL,
    cultural_insights TEXT,
    image_urls TEXT,
    audio_url TEXT,
    generation_prompt TEXT,
    is_public INTEGER NOT NULL DEFAULT 1,
    upvotes INTEGER NOT NULL DEFAULT 0,
    ai_generated_story INTEGER NOT NULL DEFAULT 0,
    used_fallback_story INTEGER NOT NULL DEFAULT 0,
    story_error_log TEXT,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS story_votes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    story_id INTEGER NOT NULL REFERENCES stories(id) ON DELETE CASCADE,
    vote_type TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE(user_id, story_id)
);

CREATE TABLE IF NOT EXISTS story_interactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    story_id INTEGER NOT NULL REFERENCES stories(id) ON DELETE CASCADE,
    choices_made TEXT,
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS audio_segments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id INTEGER NOT NULL REFERENCES stories(id) ON DELETE CASCADE,
    segment_index INTEGER NOT NULL,
    voice_id TEXT NOT NULL,
    audio_url TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE(story_id, segment_index, voice_id)
);

CREATE TABLE IF NOT EXISTS generation_tokens (
    user_id TEXT PRIMARY KEY,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    last_reset TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_stories_location ON stories(location);
CREATE INDEX IF NOT EXISTS idx_stories_public_upvotes ON stories(is_public, upvotes);
CREATE INDEX IF NOT EXISTS idx_stories_public_created ON stories(is_public, created_at);
CREATE INDEX IF NOT EXISTS idx_votes_story ON story_votes(story_id);
CREATE INDEX IF NOT EXISTS idx_interactions_story ON story_interactions(story_id);
"""

SQLITE_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def sqlite_timestamp(dt: datetime) -> str:
    """Format a datetime the way SQLite's datetime('now') does (UTC, no zone)."""
    return dt.astimezone(timezone.utc).strftime(SQLITE_TS_FORMAT)


class StoryDB:
    """SQLite database wrapper for storyscape."""

    def __init__(self, config: Config) -> None:
        self.db_path = config.resolved_db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._conn

    def init_db(self) -> None:
        """Create database and tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(SCHEMA_SQL)
        logger.info("Database initialized at %s", self.db_path)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    # --- Story operations ---

    def insert_story(self, story: StoryInsert, created_at: str | None = None) -> int:
        """Insert a story row. Returns story ID."""
        columns = [
            "user_id", "title", "location", "content", "cultural_insights",
            "image_urls", "generation_prompt", "is_public", "upvotes",
            "ai_generated_story", "used_fallback_story", "story_error_log", "tokens_used",
        ]
        values: list[object] = [
            story.user_id,
            story.title,
            story.location,
            story.content,
            story.cultural_insights,
            story.image_urls,
            story.generation_prompt,
            int(story.is_public),
            story.upvotes,
            int(story.ai_generated_story),
            int(story.used_fallback_story),
            story.story_error_log,
            story.tokens_used,
        ]
        if created_at is not None:
            columns.extend(["created_at", "updated_at"])
            values.extend([created_at, created_at])
        placeholders = ", ".join("?" * len(columns))
        cursor = self.conn.execute(
            f"INSERT INTO stories ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        self.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def get_story(self, story_id: int) -> StoryRow | None:
        row = self.conn.execute(
            "SELECT * FROM stories WHERE id = ?", (story_id,)
        ).fetchone()
        if row:
            return StoryRow(**dict(row))
        return None

    def find_generated_stories(self, location: str, limit: int = 1) -> list[StoryRow]:
        """AI-generated (non-fallback) stories for a location, most recent first.

        Location matching is case-insensitive and ignores surrounding whitespace.
        """
        rows = self.conn.execute(
            """SELECT * FROM stories
               WHERE LOWER(TRIM(location)) = LOWER(TRIM(?))
                 AND ai_generated_story = 1
                 AND used_fallback_story = 0
               ORDER BY created_at DESC, id DESC
               LIMIT ?""",
            (location, limit),
        ).fetchall()
        return [StoryRow(**dict(r)) for r in rows]

    def list_public_stories(
        self,
        order_by: str = "upvotes",
        since: str | None = None,
        limit: int = 9,
    ) -> list[StoryRow]:
        """List public stories ordered by upvotes or created_at (both descending)."""
        if order_by not in ("upvotes", "created_at"):
            raise ValueError(f"Unsupported ordering: {order_by}")
        clauses = ["is_public = 1"]
        params: list[str | int] = []
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(since)
        tiebreak = "created_at DESC, id DESC" if order_by == "upvotes" else "id DESC"
        rows = self.conn.execute(
            f"""SELECT * FROM stories WHERE {' AND '.join(clauses)}
                ORDER BY {order_by} DESC, {tiebreak} LIMIT ?""",
            [*params, limit],
        ).fetchall()
        return [StoryRow(**dict(r)) for r in rows]

    def search_stories(self, query: str, limit: int = 10) -> list[StoryRow]:
        """Case-insensitive LIKE search over title and location of public stories."""
        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        rows = self.conn.execute(
            """SELECT * FROM stories
               WHERE is_public = 1
                 AND (LOWER(title) LIKE ? ESCAPE '\\' OR LOWER(location) LIKE ? ESCAPE '\\')
               ORDER BY upvotes DESC, id DESC
               LIMIT ?""",
            (pattern, pattern, limit),
        ).fetchall()
        return [StoryRow(**dict(r)) for r in rows]

    def count_stories(self, location: str | None = None) -> int:
        if location:
            row = self.conn.execute(
                "SELECT COUNT(*) as cnt FROM stories WHERE LOWER(TRIM(location)) = LOWER(TRIM(?))",
                (location,),
            ).fetchone()
        else:
            row = self.conn.execute("SELECT COUNT(*) as cnt FROM stories").fetchone()
        return row["cnt"] if row else 0

    def set_story_audio(self, story_id: int, audio_url: str) -> None:
        self.conn.execute(
            "UPDATE stories SET audio_url = ?, updated_at = datetime('now') WHERE id = ?",
            (audio_url, story_id),
        )
        self.conn.commit()

    # --- Vote operations ---

    def get_vote(self, user_id: str, story_id: int) -> VoteRow | None:
        row = self.conn.execute(
            "SELECT * FROM story_votes WHERE user_id = ? AND story_id = ?",
            (user_id, story_id),
        ).fetchone()
        if row:
            return VoteRow(**dict(row))
        return None

    def insert_vote(
        self, user_id: str, story_id: int, vote_type: VoteType = VoteType.UPVOTE
    ) -> int | None:
        """Insert a vote row without touching the counter. None if already voted."""
        try:
            cursor = self.conn.execute(
                "INSERT INTO story_votes (user_id, story_id, vote_type) VALUES (?, ?, ?)",
                (user_id, story_id, vote_type.value),
            )
        except sqlite3.IntegrityError:
            # one vote per (user, story)
            return None
        self.conn.commit()
        return cursor.lastrowid

    def increment_upvotes(self, story_id: int) -> None:
        self.conn.execute(
            "UPDATE stories SET upvotes = upvotes + 1 WHERE id = ?", (story_id,)
        )

    def decrement_upvotes(self, story_id: int) -> None:
        self.conn.execute(
            "UPDATE stories SET upvotes = MAX(upvotes - 1, 0) WHERE id = ?", (story_id,)
        )

    def add_upvote(self, user_id: str, story_id: int) -> bool:
        """Record an upvote and bump the counter in one transaction.

        Returns False if the user had already upvoted.
        """
        with self.conn:
            try:
                self.conn.execute(
                    "INSERT INTO story_votes (user_id, story_id, vote_type) VALUES (?, ?, ?)",
                    (user_id, story_id, VoteType.UPVOTE.value),
                )
            except sqlite3.IntegrityError:
                return False
            self.increment_upvotes(story_id)
        return True

    def remove_upvote(self, user_id: str, story_id: int) -> bool:
        """Clear a user's vote and decrement the counter. False if there was none."""
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM story_votes WHERE user_id = ? AND story_id = ?",
                (user_id, story_id),
            )
            if cursor.rowcount == 0:
                return False
            self.decrement_upvotes(story_id)
        return True

    # --- Interaction operations ---

    def insert_interaction(
        self,
        user_id: str,
        story_id: int,
        choices_made: dict[str, str] | None = None,
        completed_at: str | None = None,
    ) -> int:
        cursor = self.conn.execute(
            """INSERT INTO story_interactions (user_id, story_id, choices_made, completed_at)
               VALUES (?, ?, ?, ?)""",
            (
                user_id,
                story_id,
                json.dumps(choices_made) if choices_made is not None else None,
                completed_at,
            ),
        )
        self.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def get_interactions(
        self, story_id: int, user_id: str | None = None
    ) -> list[InteractionRow]:
        if user_id is not None:
            rows = self.conn.execute(
                "SELECT * FROM story_interactions WHERE story_id = ? AND user_id = ? ORDER BY id",
                (story_id, user_id),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM story_interactions WHERE story_id = ? ORDER BY id",
                (story_id,),
            ).fetchall()
        return [InteractionRow(**dict(r)) for r in rows]

    # --- Audio operations ---

    def upsert_audio_segment(
        self, story_id: int, segment_index: int, voice_id: str, audio_url: str
    ) -> int:
        """Insert or replace the narration for one segment/voice. Returns row ID."""
        row = self.conn.execute(
            """SELECT id FROM audio_segments
               WHERE story_id = ? AND segment_index = ? AND voice_id = ?""",
            (story_id, segment_index, voice_id),
        ).fetchone()
        if row:
            self.conn.execute(
                "UPDATE audio_segments SET audio_url = ? WHERE id = ?",
                (audio_url, row["id"]),
            )
            self.conn.commit()
            return row["id"]

        cursor = self.conn.execute(
            """INSERT INTO audio_segments (story_id, segment_index, voice_id, audio_url)
               VALUES (?, ?, ?, ?)""",
            (story_id, segment_index, voice_id, audio_url),
        )
        self.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def get_audio_segments(self, story_id: int) -> list[AudioSegmentRow]:
        rows = self.conn.execute(
            "SELECT * FROM audio_segments WHERE story_id = ? ORDER BY segment_index, voice_id",
            (story_id,),
        ).fetchall()
        return [AudioSegmentRow(**dict(r)) for r in rows]

    # --- Generation quota ---

    def check_and_update_tokens(
        self,
        user_id: str,
        daily_limit: int,
        reset_hours: int = 24,
        now: datetime | None = None,
    ) -> QuotaStatus:
        """Return the user's quota, resetting the counter once the window has passed."""
        now = now or datetime.now(timezone.utc)
        window = timedelta(hours=reset_hours)
        row = self.conn.execute(
            "SELECT tokens_used, last_reset FROM generation_tokens WHERE user_id = ?",
            (user_id,),
        ).fetchone()

        if row is None:
            tokens_used, last_reset = 0, now
            self.conn.execute(
                "INSERT INTO generation_tokens (user_id, tokens_used, last_reset) VALUES (?, 0, ?)",
                (user_id, now.isoformat()),
            )
        else:
            tokens_used = row["tokens_used"]
            last_reset = datetime.fromisoformat(row["last_reset"])
            if now - last_reset >= window:
                tokens_used, last_reset = 0, now
                self.conn.execute(
                    "UPDATE generation_tokens SET tokens_used = 0, last_reset = ? WHERE user_id = ?",
                    (now.isoformat(), user_id),
                )
        self.conn.commit()

        remaining = max(daily_limit - tokens_used, 0)
        return QuotaStatus(
            tokens_used=tokens_used,
            tokens_remaining=remaining,
            can_generate=remaining > 0,
            next_reset=(last_reset + window).isoformat(),
        )

    def increment_tokens(self, user_id: str) -> None:
        self.conn.execute(
            "UPDATE generation_tokens SET tokens_used = tokens_used + 1 WHERE user_id = ?",
            (user_id,),
        )
        self.conn.commit()
