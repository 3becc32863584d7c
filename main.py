"""
Trending Statuses — batch job entry point

Commands:
  migrate          Create/upgrade the database schema
  refresh          Rescore candidates and commit a new trending snapshot
  request-review   Flag authors of unapproved statuses above the review boundary
  top              Print the current trending list
  rank ID          Print score and rank of one status
  schedule         Run refresh and request-review on their intervals, forever

Usage:
  python main.py refresh
  python main.py top --locale de --limit 10
  python main.py schedule
"""

import argparse
import logging
import sys
import time

import config
from database_migrations import migrate_all
from refresh_tracker import RefreshTracker
from trends.engine import TrendingStatuses, build_engine
from trends.errors import RefreshInProgressError, TrendsError

logger = logging.getLogger("trends")


def setup_logging():
    """Configure console logging with timestamps."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(argv=None):
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Trending Statuses — decayed engagement ranking with review gating"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="Create or upgrade the database schema")
    sub.add_parser("refresh", help="Rebuild the trending snapshot")
    sub.add_parser("request-review", help="Flag statuses pending review")

    top = sub.add_parser("top", help="Print the trending list")
    top.add_argument("--locale", default=None, help="Preferred language (e.g. en, de)")
    top.add_argument("--limit", type=int, default=config.API_DEFAULT_LIMIT)
    top.add_argument("--offset", type=int, default=0)
    top.add_argument(
        "--all",
        action="store_true",
        help="Include statuses not yet approved for trending",
    )

    rank = sub.add_parser("rank", help="Print score and rank of a status")
    rank.add_argument("status_id", type=int)

    sub.add_parser("schedule", help="Run refresh/review on their intervals")

    return parser.parse_args(argv)


def run_refresh(engine: TrendingStatuses, tracker: RefreshTracker) -> dict:
    """
    Refresh under the cross-process guard, recording the outcome.

    Raises:
        RefreshInProgressError: If another process is refreshing.
        TrendsError: If the refresh failed (nothing was committed).
    """
    tracker.start()
    try:
        stats = engine.refresh()
    except Exception as e:
        tracker.error(str(e))
        raise
    tracker.complete(stats)
    return stats


def run_review(engine: TrendingStatuses) -> int:
    flagged = engine.request_review()
    for status in flagged:
        logger.info(
            f"  Review requested: status {status.id} by account {status.account_id} "
            f"(score {engine.score(status.id) or 0:.2f})"
        )
    return len(flagged)


def print_top(engine: TrendingStatuses, locale, limit: int, offset: int, include_all: bool):
    query = engine.query().in_locale(locale).offset_by(offset).limited_to(limit)
    if not include_all:
        query = query.allowed()

    records = engine.records(query)
    if not records:
        print("No trending statuses.")
        return

    for position, record in enumerate(records, offset + 1):
        flag = "" if record.allowed else "  [pending]"
        print(f"{position:>3}. {record.id:<20} {record.score:>10.3f}  {record.language or '-'}{flag}")


def schedule(engine: TrendingStatuses, tracker: RefreshTracker):
    """Loop forever: refresh every REFRESH_INTERVAL, review every REVIEW_INTERVAL."""
    refresh_every = config.REFRESH_INTERVAL_MINUTES * 60
    review_every = config.REVIEW_INTERVAL_MINUTES * 60
    next_refresh = next_review = time.monotonic()

    logger.info(
        f"Scheduler started: refresh every {config.REFRESH_INTERVAL_MINUTES}m, "
        f"review every {config.REVIEW_INTERVAL_MINUTES}m"
    )

    while True:
        now = time.monotonic()

        if now >= next_refresh:
            next_refresh = now + refresh_every
            try:
                run_refresh(engine, tracker)
            except RefreshInProgressError as e:
                logger.warning(f"Skipping refresh: {e}")
            except Exception as e:
                logger.error(f"Refresh failed, will retry next cycle: {e}")

        if now >= next_review:
            next_review = now + review_every
            try:
                run_review(engine)
            except Exception as e:
                logger.error(f"Review request failed, will retry next cycle: {e}")

        time.sleep(max(1.0, min(next_refresh, next_review) - time.monotonic()))


def main(argv=None) -> int:
    setup_logging()
    args = parse_args(argv)

    if args.command == "migrate":
        migrate_all()
        logger.info("Migrations complete")
        return 0

    engine = build_engine()
    tracker = RefreshTracker()

    try:
        if args.command == "refresh":
            stats = run_refresh(engine, tracker)
            print(
                f"Refreshed at {stats['refreshed_at']}: {stats['candidates']} candidates, "
                f"{stats['upserted']} upserted, {stats['pruned']} pruned"
            )
        elif args.command == "request-review":
            count = run_review(engine)
            print(f"Requested review for {count} statuses")
        elif args.command == "top":
            print_top(engine, args.locale, args.limit, args.offset, args.all)
        elif args.command == "rank":
            score = engine.score(args.status_id)
            if score is None:
                print(f"Status {args.status_id} is not trending")
                return 1
            rank = engine.rank(args.status_id)
            rank_label = f"#{rank}" if rank is not None else "not allowed"
            print(f"Status {args.status_id}: score {score:.3f}, rank {rank_label}")
        elif args.command == "schedule":
            schedule(engine, tracker)
    except TrendsError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
