"""CLI interface for Flashcard SRS.

Usage:
    python -m flashcard_srs review              Start a review session
    python -m flashcard_srs stats               Show your statistics
    python -m flashcard_srs add "front" "back"  Add a new flashcard
    python -m flashcard_srs due                 Show how many cards are due
    python -m flashcard_srs preview 12          Show the intervals each rating would give
"""

import argparse
import asyncio
import logging
import time
from datetime import timedelta

from backend.config import settings, utcnow
from backend.database import async_session, init_db
from backend.srs.card import Rating
from backend.srs.errors import ConcurrentModificationConflict, FlashcardNotFound, SRSError
from backend.srs.parameters import Parameters
from backend.srs.queue import QueueConfig, build_queue, get_stats
from backend.srs.scheduler import IntervalPreview, Scheduler
from backend.srs.session import start_session
from backend.srs.store import create_flashcard, get_flashcard, load_card


def format_interval(delay: timedelta) -> str:
    """Human-readable delay: minutes under an hour, hours under a day, else days."""
    seconds = delay.total_seconds()
    if seconds < 3600:
        return f"{max(1, round(seconds / 60))}m"
    if seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    return f"{round(seconds / 86400)}d"


def format_previews(previews: dict[Rating, IntervalPreview]) -> str:
    """One line listing each rating with the delay it would schedule."""
    return "  ".join(
        f"{rating.value}={rating.name.title()} ({format_interval(previews[rating].delay)})"
        for rating in Rating
    )


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    await init_db()
    user_id = args.user
    config = QueueConfig(limit=args.max_cards, new_cards_limit=args.new_cards)

    async with async_session() as db:
        review_session = await start_session(db, user_id, config)
        queue = review_session.queue

        if queue.total == 0:
            print("\nNo cards due for review. You're all caught up!")
            return

        print("\n  Review Session")
        print(f"  {len(queue.due_cards)} due + {len(queue.new_cards)} new = {queue.total} cards\n")
        print("  Type 'q' to quit\n")

        while not review_session.is_complete:
            try:
                row = await get_flashcard(db, review_session.current_id, user_id)
            except FlashcardNotFound:
                review_session.skip()
                continue

            position = queue.total - review_session.remaining + 1
            card_label = f"  [{position}/{queue.total}]"
            if row.reps == 0:
                card_label += " (NEW)"
            print(card_label)
            print(f"  {row.front}")

            start_time = time.time()
            if input("\n  Press enter to show the answer: ").strip().lower() == "q":
                print("\n  Session ended early.")
                break
            print(f"  {row.back}\n")

            try:
                previews = await review_session.preview(db, utcnow())
            except SRSError as exc:
                print(f"  Cannot schedule this card: {exc}\n")
                review_session.skip()
                continue
            print(f"  {format_previews(previews)}")
            rate_input = input("  Rate [1-4]: ").strip()
            if rate_input.lower() == "q":
                print("\n  Session ended early.")
                break
            time_ms = int((time.time() - start_time) * 1000)

            try:
                outcome = await review_session.submit_rating(db, int(rate_input), time_ms)
            except ValueError:
                # Also covers InvalidRating; nothing was recorded
                print("  Please enter 1, 2, 3 or 4.\n")
                continue
            except ConcurrentModificationConflict:
                print("  Rating not recorded: the card changed elsewhere. Try again.\n")
                continue
            except SRSError as exc:
                print(f"  Rating not recorded: {exc}\n")
                review_session.skip()
                continue

            card = outcome.result.card
            print(f"  Next review in {format_interval(card.due - outcome.result.log.review)}\n")

    s = review_session.stats
    print("\n  Session Complete!")
    print(
        f"  Reviewed: {s.cards_reviewed}  Again: {s.again}  Hard: {s.hard}  "
        f"Good: {s.good}  Easy: {s.easy}\n"
    )


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show review statistics."""
    await init_db()
    async with async_session() as db:
        stats = await get_stats(db, args.user)

    print("\n  Flashcard SRS Statistics")
    print(f"  {'Due today:':<20} {stats.due_today}")
    print(f"  {'Overdue:':<20} {stats.due_overdue}")
    print(f"  {'New (unseen):':<20} {stats.new_cards}")
    print(f"  {'Reviews today:':<20} {stats.total_reviews_today}")
    print()


async def cmd_add(args: argparse.Namespace) -> None:
    """Add a new flashcard."""
    await init_db()
    async with async_session() as db:
        row = await create_flashcard(db, args.user, args.front, args.back, args.type, args.tag)
    print(f"  Added flashcard {row.id} (ready for review).")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    await init_db()
    async with async_session() as db:
        queue = await build_queue(db, args.user)
    print(f"  {len(queue.due_cards)} cards due, {len(queue.new_cards)} new cards available")


async def cmd_preview(args: argparse.Namespace) -> None:
    """Show the interval each rating would give a card, without reviewing it."""
    await init_db()
    async with async_session() as db:
        try:
            _, card = await load_card(db, args.flashcard_id, args.user)
        except FlashcardNotFound as exc:
            print(f"  {exc}")
            return
    previews = Scheduler(Parameters.from_settings()).preview(card, utcnow())
    print(f"  {format_previews(previews)}")


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="flashcard_srs",
        description="Flashcard spaced repetition (FSRS)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-u", "--user", default=settings.default_user_id, help="User id")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review
    review_parser = subparsers.add_parser("review", help="Start a review session")
    review_parser.add_argument(
        "--max-cards", type=int, default=settings.max_reviews_per_session, help="Max cards per session"
    )
    review_parser.add_argument(
        "--new-cards", type=int, default=settings.max_new_cards_per_session, help="Max new cards"
    )

    # stats
    subparsers.add_parser("stats", help="Show your statistics")

    # add
    add_parser = subparsers.add_parser("add", help="Add a new flashcard")
    add_parser.add_argument("front", help="Question side")
    add_parser.add_argument("back", help="Answer side")
    add_parser.add_argument("--type", default="QnA", choices=["QnA", "Definition", "Cloze"])
    add_parser.add_argument("-t", "--tag", action="append", default=[], help="Tag (repeatable)")

    # due
    subparsers.add_parser("due", help="Show cards due for review")

    # preview
    preview_parser = subparsers.add_parser("preview", help="Show upcoming intervals for a card")
    preview_parser.add_argument("flashcard_id", type=int, help="Flashcard id")

    return parser


def main() -> None:
    """Entry point for the Flashcard SRS CLI application."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "review": cmd_review,
        "stats": cmd_stats,
        "add": cmd_add,
        "due": cmd_due,
        "preview": cmd_preview,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
