"""Narrative parser — loosely formatted completion text → single-segment story document.

Expected input shape (the model is asked for it but nothing enforces it):

    Title: The Lantern District
    You wander past glowing lanterns.
    A. Enter the shrine
    B. Visit the tea house
    C. Follow the river

The first non-empty line is the title. Lines before the first enumerated line
("A.", "b:", "1.", "2)") are narrative; that line and everything after it are
choices. Parsing never raises: callers get a ParseOutcome and must check it.
"""

import logging
import re
from dataclasses import dataclass
from string import ascii_uppercase

from pydantic import ValidationError

from storyscape.errors import ParseError
from storyscape.models import Choice, Provenance, StoryDocument, StorySegment

logger = logging.getLogger(__name__)

MAX_CHOICES = 3
MIN_CHOICES = 3
FIRST_BRANCH_SEGMENT = 2
UNTITLED = "An Untitled Tale"

DEFAULT_CHOICE_TEXTS = (
    "Explore the mysterious alleyways",
    "Visit the local marketplace",
    "Seek out the town's historian",
)

_TITLE_PREFIX = re.compile(r"^title\s*:\s*", re.IGNORECASE)
# space after the marker is optional unless a digit follows ("3.14", "10:30")
_ENUMERATOR = re.compile(r"^(?:[-*•]\s*)?\(?(?:[A-Za-z]|\d{1,2})[.:)](?:\s+|(?=[^\d\s]))(?P<text>\S.*)$")
_FENCE = re.compile(r"^`{3}")


@dataclass(frozen=True)
class ParseOutcome:
    """Either a parsed document or the reason parsing failed."""

    document: StoryDocument | None = None
    error: ParseError | None = None

    @property
    def ok(self) -> bool:
        return self.document is not None

    def unwrap(self) -> StoryDocument:
        if self.document is None:
            raise self.error or ParseError("no document")
        return self.document


def default_choices() -> list[Choice]:
    return [
        Choice(id=ascii_uppercase[i], text=text, next_segment=FIRST_BRANCH_SEGMENT + i)
        for i, text in enumerate(DEFAULT_CHOICE_TEXTS)
    ]


def _clean_title(line: str) -> str:
    title = _strip_markup(line.lstrip("#").strip())
    title = _TITLE_PREFIX.sub("", title)
    return _strip_markup(title).strip("\"'").strip()


def _strip_markup(text: str) -> str:
    return text.replace("**", "").replace("__", "").strip()


def _choice_text(line: str) -> str:
    match = _ENUMERATOR.match(line)
    text = match.group("text") if match else line
    return _strip_markup(text)


def split_lines(text: str) -> list[str]:
    """Non-empty stripped lines, with markdown code fences removed."""
    return [
        stripped for raw in text.splitlines()
        if (stripped := raw.strip()) and not _FENCE.match(stripped)
    ]


def parse_narrative(text: str, image: str = "") -> ParseOutcome:
    """Parse a completion into a one-segment StoryDocument.

    Fewer than three recognisable choice lines are replaced by the generic
    default choices. An input with no lines at all is a ParseError.
    """
    lines = split_lines(text or "")
    if not lines:
        return ParseOutcome(error=ParseError("completion is empty"))

    title = _clean_title(lines[0]) or UNTITLED
    body = lines[1:]

    first_choice = next(
        (i for i, line in enumerate(body) if _ENUMERATOR.match(line)), len(body)
    )
    narrative_lines = body[:first_choice]
    choice_lines = body[first_choice:]

    narrative = " ".join(_strip_markup(line) for line in narrative_lines).strip()
    if not narrative:
        # title-only completions still need readable segment text
        narrative = title

    if len(choice_lines) >= MIN_CHOICES:
        choices = [
            Choice(
                id=ascii_uppercase[i],
                text=_choice_text(line),
                next_segment=FIRST_BRANCH_SEGMENT + i,
            )
            for i, line in enumerate(choice_lines[:MAX_CHOICES])
        ]
    else:
        logger.debug(
            "Only %d choice lines found, using default choices", len(choice_lines)
        )
        choices = default_choices()

    try:
        document = StoryDocument(
            title=title,
            segments=[StorySegment(id=1, text=narrative, image=image, choices=choices)],
            provenance=Provenance.GENERATED,
        )
    except ValidationError as e:
        return ParseOutcome(error=ParseError(f"completion did not form a valid story: {e}"))

    return ParseOutcome(document=document)
