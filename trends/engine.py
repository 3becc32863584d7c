"""
TrendingStatuses -- the trends engine facade.

Wires usage tracking, scoring, the snapshot store, ranking and the review
gate behind the operations the rest of the platform calls:

    register(status)            on every interaction with a status
    refresh()                   periodic batch job (single-flight)
    request_review()            periodic moderation escalation
    query() / statuses_for()    trending lists for the API
    score(id) / rank(id)        point lookups
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional

import config
from trends.eligibility import is_eligible
from trends.models import Status, TrendRecord
from trends.options import TrendsOptions, load_options
from trends.query import TrendQuery
from trends.ranker import Ranker
from trends.repositories import (
    AccountRepository, ExclusionFilter, StatusRepository,
    SqliteAccountRepository, SqliteExclusionFilter, SqliteStatusRepository,
)
from trends.review import ReviewGate
from trends.scorer import compute_score
from trends.store import TrendStore
from trends.usage import MemoryUsageTracker, RedisUsageTracker, UsageTracker

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrendingStatuses:
    """Trending statuses engine."""

    def __init__(self, options: TrendsOptions, store: TrendStore, tracker: UsageTracker,
                 statuses: StatusRepository, accounts: AccountRepository,
                 exclusions: Optional[ExclusionFilter] = None,
                 workers: int = 1, parallel_min_candidates: int = 500):
        self.options = options
        self.store = store
        self.tracker = tracker
        self.statuses = statuses
        self.accounts = accounts
        self.workers = max(1, workers)
        self.parallel_min_candidates = parallel_min_candidates

        self.ranker = Ranker(store, options, statuses, exclusions)
        self.review_gate = ReviewGate(store, self.ranker, options, statuses, accounts)
        self._refresh_lock = threading.Lock()

    # ── Usage ──

    def register(self, status: Status, at: Optional[datetime] = None) -> bool:
        """
        Record an interaction with a status.

        Reshares count toward their original. Returns True if the usage
        was recorded, False if the status is not eligible for trending.
        """
        status = status.proper
        if not is_eligible(status):
            return False
        return self.tracker.record(status.id, at or utcnow())

    # ── Refresh ──

    def refresh(self, at: Optional[datetime] = None) -> Dict:
        """
        Rescore every candidate and commit the new snapshot.

        Candidates are the recently used ids plus everything currently in
        the store. Overlapping calls are serialized. On failure nothing is
        committed and the usage window is left untouched, so the refresh
        can simply be retried.

        Returns:
            Stats dict: candidates, resolved, upserted, pruned.

        Raises:
            TrendStoreError: If the store could not be read or the snapshot
                could not be committed.
            UsageTrackerError: If recent usage could not be read.
        """
        at = at or utcnow()

        with self._refresh_lock:
            tracked_ids = self.store.ids()
            candidate_ids = self.tracker.recently_used(at) | tracked_ids
            statuses = self.statuses.find_by_ids(candidate_ids)

            gone = candidate_ids - {s.id for s in statuses}
            if gone:
                logger.debug(f"Dropped {len(gone)} candidates that no longer resolve")

            records = self._score_all(statuses, at)
            upserted, pruned = self.store.apply(
                records, self.options.decay_threshold, removed_ids=gone & tracked_ids
            )
            try:
                self.tracker.trim(at)
            except Exception as e:
                # Snapshot is committed; the next refresh trims again
                logger.warning(f"Failed to trim usage after refresh: {e}")

        stats = {
            "refreshed_at": at.isoformat(),
            "candidates": len(candidate_ids),
            "resolved": len(statuses),
            "upserted": upserted,
            "pruned": pruned,
        }
        logger.info(
            f"Trends refreshed: {stats['candidates']} candidates, "
            f"{upserted} upserted, {pruned} pruned"
        )
        return stats

    def _score_all(self, statuses: List[Status], at: datetime) -> List[TrendRecord]:
        def _score(status: Status) -> TrendRecord:
            return TrendRecord(
                id=status.id,
                account_id=status.account_id,
                score=compute_score(status, at, self.options),
                language=status.language,
                allowed=status.trendable,
            )

        if self.workers > 1 and len(statuses) >= self.parallel_min_candidates:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                return list(executor.map(_score, statuses))
        return [_score(s) for s in statuses]

    # ── Review ──

    def request_review(self, at: Optional[datetime] = None) -> List[Status]:
        return self.review_gate.request_review(at or utcnow())

    def at_review_threshold(self) -> Optional[TrendRecord]:
        return self.review_gate.at_review_threshold()

    # ── Reads ──

    def query(self) -> TrendQuery:
        return self.ranker.query()

    def records(self, query: TrendQuery) -> List[TrendRecord]:
        return self.ranker.records(query)

    def statuses_for(self, query: TrendQuery) -> List[Status]:
        return self.ranker.statuses_for(query)

    def score(self, status_id: int) -> Optional[float]:
        return self.ranker.score(status_id)

    def rank(self, status_id: int) -> Optional[int]:
        return self.ranker.rank(status_id)

    def currently_trending_ids(self, allowed: bool, limit: int) -> List[int]:
        return self.ranker.currently_trending_ids(allowed, limit)


def build_engine(db_path=None, options: Optional[TrendsOptions] = None,
                 redis_url: Optional[str] = None) -> TrendingStatuses:
    """
    Build an engine from the environment-driven config.

    Args:
        db_path: SQLite database (defaults to config.DB_PATH).
        options: Engine options (defaults to config.TRENDS_OPTIONS_PATH).
        redis_url: Redis for usage tracking (defaults to config.REDIS_URL;
                   falls back to an in-process tracker when unset).
    """
    db_path = db_path or config.DB_PATH
    options = options or load_options(config.TRENDS_OPTIONS_PATH)
    redis_url = redis_url or config.REDIS_URL

    if redis_url:
        tracker = RedisUsageTracker(options.usage_window, redis_url=redis_url)
    else:
        logger.warning("REDIS_URL not set; usage is tracked in-process only")
        tracker = MemoryUsageTracker(options.usage_window)

    return TrendingStatuses(
        options=options,
        store=TrendStore(db_path),
        tracker=tracker,
        statuses=SqliteStatusRepository(db_path),
        accounts=SqliteAccountRepository(db_path),
        exclusions=SqliteExclusionFilter(db_path),
        workers=config.REFRESH_WORKERS,
        parallel_min_candidates=config.REFRESH_PARALLEL_MIN_CANDIDATES,
    )
