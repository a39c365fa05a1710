"""CLI entry point for storyscape."""

import argparse
import logging

from storyscape import feed
from storyscape.config import Config, load_config
from storyscape.db import StoryDB
from storyscape.errors import NavigationNoop, StoryscapeError
from storyscape.models import FeedFilter, StoryDocument
from storyscape.storage import MediaStore
from storyscape.traversal import (
    TraversalState,
    available_choices,
    choose,
    current_segment,
    is_terminal,
    start,
)


def main() -> None:
    parser = argparse.ArgumentParser(description="Storyscape — location-based interactive stories")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # generate command
    gen_parser = sub.add_parser("generate", help="Generate a story for a location")
    gen_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    gen_parser.add_argument("location", help="Place name, e.g. 'Kyoto, Japan'")
    gen_parser.add_argument("--user", required=True, help="User id the story belongs to")
    gen_parser.add_argument(
        "--private", action="store_true", help="Keep the story out of the community feed",
    )

    # read command
    read_parser = sub.add_parser("read", help="Read a story interactively")
    read_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    read_parser.add_argument("story_id", type=int)
    read_parser.add_argument("--user", default=None, help="Record the reading for this user")

    # feed command
    feed_parser = sub.add_parser("feed", help="List community stories")
    feed_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    feed_parser.add_argument(
        "--filter", choices=[f.value for f in FeedFilter], default=FeedFilter.POPULAR.value,
    )

    # search command
    search_parser = sub.add_parser("search", help="Search stories by title or location")
    search_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    search_parser.add_argument("query")

    # upvote command
    upvote_parser = sub.add_parser("upvote", help="Toggle your upvote on a story")
    upvote_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    upvote_parser.add_argument("story_id", type=int)
    upvote_parser.add_argument("--user", required=True)

    # narrate command
    narrate_parser = sub.add_parser("narrate", help="Generate narration audio for a segment")
    narrate_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    narrate_parser.add_argument("story_id", type=int)
    narrate_parser.add_argument(
        "--segment", type=int, default=0, help="Segment position (0 = opening)",
    )
    narrate_parser.add_argument("--voice", default="Alice", help="Alice, Brian, Charlie or Dorothy")

    # quota command
    quota_parser = sub.add_parser("quota", help="Show remaining generations for today")
    quota_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    quota_parser.add_argument("--user", required=True)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    db = StoryDB(config)
    db.init_db()

    try:
        if args.command == "generate":
            from storyscape.generation.pipeline import StoryPipeline

            pipeline = StoryPipeline.from_config(db, config)
            result = pipeline.generate(args.location, args.user, is_public=not args.private)
            print(result)
            print_document(result.document)
            if result.quota:
                print(f"\n{result.quota.tokens_remaining} generation(s) left today")

        elif args.command == "read":
            story = feed.get_story(db, args.story_id)
            state = read_interactively(story.document)
            if args.user:
                feed.record_reading(db, args.user, story.id, state)

        elif args.command == "feed":
            cards = feed.list_stories(db, config, args.filter)
            if not cards:
                print("No stories yet.")
                return
            for card in cards:
                print_card(card)

        elif args.command == "search":
            cards = feed.search_stories(db, config, args.query)
            if not cards:
                print(f"No stories match {args.query!r}")
                return
            for card in cards:
                print_card(card)

        elif args.command == "upvote":
            result = feed.toggle_upvote(db, args.user, args.story_id)
            state = "Upvoted" if result["upvoted"] else "Removed upvote from"
            print(f"{state} story {args.story_id} ({result['upvotes']} upvotes)")

        elif args.command == "narrate":
            from storyscape.narration import narrate_segment
            from storyscape.providers.elevenlabs import ElevenLabsSynthesizer

            url = narrate_segment(
                db, config,
                ElevenLabsSynthesizer(config.speech),
                MediaStore.from_config(config),
                args.story_id,
                segment_index=args.segment,
                voice=args.voice,
            )
            print(f"Audio: {url}")
            print(f"File:  {MediaStore.from_config(config).resolve(url)}")

        elif args.command == "quota":
            print_quota(db, config, args.user)

        else:
            parser.print_help()
    except (StoryscapeError, ValueError) as e:
        print(f"Error: {e}")
    finally:
        db.close()


def print_card(card: dict[str, object]) -> None:
    flag = " (fallback)" if card["used_fallback_story"] else ""
    print(f"  [{card['id']}] {card['title']} — {card['location']} ({card['upvotes']} upvotes){flag}")


def print_document(document: StoryDocument) -> None:
    print(f"\n{document.title}\n")
    for segment in document.segments:
        print(segment.text)
        for choice in segment.choices:
            print(f"  {choice.id}. {choice.text}")
    if document.cultural_insights:
        print("\nDid you know?")
        for fact in document.cultural_insights:
            print(f"  - {fact}")


def print_quota(db: StoryDB, config: Config, user_id: str) -> None:
    quota = db.check_and_update_tokens(
        user_id, config.quota.daily_limit, config.quota.reset_hours,
    )
    print(
        f"{user_id}: {quota.tokens_used} used, {quota.tokens_remaining} remaining "
        f"(resets {quota.next_reset})"
    )


def read_interactively(document: StoryDocument) -> TraversalState:
    """Walk the story on the terminal until an ending or 'q'."""
    state = start(document)
    print(f"\n{document.title}")
    while True:
        segment = current_segment(state, document)
        if segment is None:
            break
        print(f"\n--- Chapter {state.chapter} ---\n{segment.text}")
        if is_terminal(state, document):
            print("\nThe End.")
            break
        choices = available_choices(state, document)
        for choice in choices:
            print(f"  {choice.id}. {choice.text}")
        answer = input("\nChoose (q to quit): ").strip().upper()
        if answer == "Q":
            break
        try:
            state = choose(state, document, answer, strict=True)
        except NavigationNoop:
            print("That path has not been written yet. Pick another.")
        except ValueError as e:
            print(e)
    return state


if __name__ == "__main__":
    main()
