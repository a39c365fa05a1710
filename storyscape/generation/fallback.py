"""Fallback resolver — always produces a usable story when generation fails."""

import logging
from collections.abc import Callable

from storyscape.db import StoryDB
from storyscape.models import Provenance, StoryDocument, StorySegment

logger = logging.getLogger(__name__)

StoryLookup = Callable[[str], StoryDocument | None]


def place_name(location: str) -> str:
    """'Kyoto, Japan' -> 'Kyoto'."""
    return location.split(",")[0].strip() or "a Distant Land"


def generic_insights(location: str) -> list[str]:
    where = location.strip() or "This place"
    return [
        f"{where} has a rich cultural heritage spanning centuries.",
        "Local traditions are deeply woven into daily life.",
        "The architecture tells stories of different historical periods.",
    ]


def generic_story(location: str, placeholder_image: str, error_log: str | None = None) -> StoryDocument:
    """Fixed single-segment story used when nothing better is available."""
    place = place_name(location)
    text = (
        f"As twilight descends upon {place}, you find yourself standing before an "
        "ancient marketplace. The cobblestones beneath your feet seem to whisper "
        "stories of centuries past, and every lantern-lit doorway hints at a tale "
        "still waiting to be told."
    )
    return StoryDocument(
        title=f"The Enchanted Tales of {place}",
        segments=[StorySegment(id=1, text=text, image=placeholder_image, choices=[])],
        cultural_insights=generic_insights(location),
        provenance=Provenance.FALLBACK_GENERIC,
        error_log=error_log,
    )


def describe_error(error: BaseException | str | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {error}"
    return error


class FallbackResolver:
    """Picks a substitute story: a cached AI story for the location, else a generic one.

    resolve() never raises. A failing lookup is logged and treated as a miss.
    """

    def __init__(self, lookup: StoryLookup, placeholder_image: str) -> None:
        self._lookup = lookup
        self.placeholder_image = placeholder_image

    @classmethod
    def from_db(cls, db: StoryDB, placeholder_image: str) -> "FallbackResolver":
        def lookup(location: str) -> StoryDocument | None:
            rows = db.find_generated_stories(location, limit=1)
            return rows[0].document if rows else None

        return cls(lookup, placeholder_image)

    def resolve(self, location: str, error: BaseException | str | None = None) -> StoryDocument:
        error_log = describe_error(error)

        try:
            cached = self._lookup(location)
        except Exception:
            logger.warning(
                "Cached story lookup failed for %r, using generic story", location,
                exc_info=True,
            )
            cached = None

        if cached is not None:
            logger.warning("Serving cached story %r for %r (%s)", cached.title, location, error_log)
            return cached.model_copy(update={
                "provenance": Provenance.FALLBACK_CACHED,
                "error_log": error_log,
            })

        logger.warning("Serving generic story for %r (%s)", location, error_log)
        return generic_story(location, self.placeholder_image, error_log)
