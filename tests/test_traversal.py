"""Tests for the traversal engine."""

import pytest

from storyscape.errors import NavigationNoop
from storyscape.models import Choice, StoryDocument, StorySegment
from storyscape.traversal import (
    TraversalState,
    advance,
    available_choices,
    choices_made,
    choose,
    current_segment,
    is_terminal,
    restore,
    start,
)


@pytest.fixture()
def two_segment_doc():
    """Segment 1 offers A → 2 and B → 7 (missing). Segment 2 loops back to 1."""
    return StoryDocument(
        title="Crossroads",
        segments=[
            StorySegment(
                id=1,
                text="You stand at a crossroads.",
                choices=[
                    Choice(id="A", text="Go left", next_segment=2),
                    Choice(id="B", text="Go right", next_segment=7),
                ],
            ),
            StorySegment(
                id=2,
                text="A quiet well.",
                choices=[Choice(id="A", text="Go back", next_segment=1)],
            ),
        ],
    )


class TestAdvance:
    def test_start_at_root(self, two_segment_doc):
        state = start(two_segment_doc)
        assert state == TraversalState(current_segment_id=1, path=(1,))
        assert current_segment(state, two_segment_doc).text == "You stand at a crossroads."

    def test_valid_choice_moves_and_appends(self, two_segment_doc):
        state = start(two_segment_doc)
        go_left = available_choices(state, two_segment_doc)[0]
        moved = advance(state, two_segment_doc, go_left)
        assert moved.current_segment_id == 2
        assert moved.path == (1, 2)
        assert state.path == (1,)  # original unchanged

    def test_dangling_choice_leaves_state_unchanged(self, two_segment_doc):
        state = start(two_segment_doc)
        go_right = available_choices(state, two_segment_doc)[1]
        assert advance(state, two_segment_doc, go_right) == state

    def test_dangling_choice_strict_raises(self, two_segment_doc):
        state = start(two_segment_doc)
        go_right = available_choices(state, two_segment_doc)[1]
        with pytest.raises(NavigationNoop) as exc:
            advance(state, two_segment_doc, go_right, strict=True)
        assert exc.value.next_segment == 7

    def test_revisits_recorded(self, two_segment_doc):
        state = start(two_segment_doc)
        for label in ["A", "A", "A"]:
            state = choose(state, two_segment_doc, label)
        assert state.path == (1, 2, 1, 2)
        assert state.chapter == 4

    def test_choose_unknown_label(self, two_segment_doc):
        with pytest.raises(ValueError):
            choose(start(two_segment_doc), two_segment_doc, "Z")

    def test_choose_is_case_insensitive(self, two_segment_doc):
        assert choose(start(two_segment_doc), two_segment_doc, " a ").current_segment_id == 2


class TestTerminal:
    def test_single_segment_story_is_terminal(self):
        doc = StoryDocument(title="End", segments=[StorySegment(id=1, text="Fin.")])
        state = start(doc)
        assert is_terminal(state, doc)
        assert available_choices(state, doc) == []

    def test_branching_segment_not_terminal(self, two_segment_doc):
        assert not is_terminal(start(two_segment_doc), two_segment_doc)


class TestRestore:
    def test_restore_valid_path(self, two_segment_doc):
        state = restore(two_segment_doc, [1, 2, 1])
        assert state.path == (1, 2, 1)
        assert state.current_segment_id == 1

    def test_restore_drops_invalid_tail(self, two_segment_doc):
        state = restore(two_segment_doc, [1, 2, 2, 1])
        assert state.path == (1, 2)

    def test_restore_bad_root(self, two_segment_doc):
        assert restore(two_segment_doc, [2, 1]) == start(two_segment_doc)
        assert restore(two_segment_doc, []) == start(two_segment_doc)


class TestChoicesMade:
    def test_summarises_path(self, two_segment_doc):
        state = restore(two_segment_doc, [1, 2, 1])
        assert choices_made(state, two_segment_doc) == {"segment_1": "A", "segment_2": "A"}

    def test_revisited_segment_keeps_latest_choice(self):
        doc = StoryDocument(
            title="Loop",
            segments=[
                StorySegment(
                    id=1,
                    text="A fork.",
                    choices=[
                        Choice(id="A", text="Left", next_segment=2),
                        Choice(id="B", text="Right", next_segment=3),
                    ],
                ),
                StorySegment(id=2, text="Dead end.", choices=[Choice(id="A", text="Back", next_segment=1)]),
                StorySegment(id=3, text="Open road."),
            ],
        )
        state = start(doc)
        for label in ["A", "A", "B"]:
            state = choose(state, doc, label)
        assert state.path == (1, 2, 1, 3)
        assert choices_made(state, doc) == {"segment_1": "B", "segment_2": "A"}

    def test_fresh_state_has_no_choices(self, two_segment_doc):
        assert choices_made(start(two_segment_doc), two_segment_doc) == {}
