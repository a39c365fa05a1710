"""Traversal engine — reader position within a story document.

TraversalState is a client-side value: it is never stored with the story and
can always be rebuilt from (document, path).
"""

import logging
from dataclasses import dataclass

from storyscape.errors import NavigationNoop
from storyscape.models import Choice, StoryDocument, StorySegment

logger = logging.getLogger(__name__)

ROOT_SEGMENT = 1


@dataclass(frozen=True)
class TraversalState:
    current_segment_id: int = ROOT_SEGMENT
    path: tuple[int, ...] = (ROOT_SEGMENT,)

    @property
    def chapter(self) -> int:
        """1-based count of segments visited, revisits included."""
        return len(self.path)


def start(document: StoryDocument) -> TraversalState:
    return TraversalState()


def current_segment(state: TraversalState, document: StoryDocument) -> StorySegment | None:
    return document.segment(state.current_segment_id)


def available_choices(state: TraversalState, document: StoryDocument) -> list[Choice]:
    segment = current_segment(state, document)
    return list(segment.choices) if segment else []


def is_terminal(state: TraversalState, document: StoryDocument) -> bool:
    return not available_choices(state, document)


def advance(
    state: TraversalState,
    document: StoryDocument,
    choice: Choice,
    strict: bool = False,
) -> TraversalState:
    """Follow a choice.

    If the choice's target segment does not exist the state is returned
    unchanged, or NavigationNoop is raised when strict=True. Cycles are
    allowed and every visit is recorded in the path.
    """
    if document.segment(choice.next_segment) is None:
        logger.debug(
            "Choice %s on segment %d points to missing segment %d",
            choice.id, state.current_segment_id, choice.next_segment,
        )
        if strict:
            raise NavigationNoop(choice.next_segment)
        return state
    return TraversalState(
        current_segment_id=choice.next_segment,
        path=(*state.path, choice.next_segment),
    )


def choose(
    state: TraversalState,
    document: StoryDocument,
    choice_id: str,
    strict: bool = False,
) -> TraversalState:
    """advance() by choice label on the current segment ("A", "b", ...)."""
    wanted = choice_id.strip().upper()
    for choice in available_choices(state, document):
        if choice.id.upper() == wanted:
            return advance(state, document, choice, strict=strict)
    raise ValueError(
        f"No choice {choice_id!r} on segment {state.current_segment_id}"
    )


def restore(document: StoryDocument, path: list[int] | tuple[int, ...]) -> TraversalState:
    """Rebuild state from a saved path, keeping the longest valid prefix.

    Each hop must be reachable by some choice of the previous segment.
    """
    state = start(document)
    if not path or path[0] != ROOT_SEGMENT:
        return state
    for next_id in path[1:]:
        segment = current_segment(state, document)
        hop = next(
            (c for c in (segment.choices if segment else []) if c.next_segment == next_id),
            None,
        )
        if hop is None:
            break
        moved = advance(state, document, hop)
        if moved is state:
            break
        state = moved
    return state


def choices_made(state: TraversalState, document: StoryDocument) -> dict[str, str]:
    """Summarise a path as {"segment_<id>": "<choice label>"} for the interaction log.

    One entry per segment: on a revisited segment the latest choice replaces
    the earlier one. state.path keeps the full ordered history.
    """
    made: dict[str, str] = {}
    for here, there in zip(state.path, state.path[1:]):
        segment = document.segment(here)
        if segment is None:
            continue
        for choice in segment.choices:
            if choice.next_segment == there:
                made[f"segment_{here}"] = choice.id
                break
    return made
