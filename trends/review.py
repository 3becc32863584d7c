"""
Review Gate -- escalate unapproved statuses that would trend.

The review boundary is the score at rank `review_threshold` among allowed
records. An unapproved status scoring strictly above it would push into
the visible list, so its author is flagged for moderator attention.

Failure policy: abort and surface. All accounts of one pass are written
in a single transaction; if that write fails, ReviewRequestError
propagates and no account is marked.
"""

import logging
from datetime import datetime
from typing import List, Optional

from trends.models import Status, TrendRecord
from trends.options import TrendsOptions
from trends.ranker import Ranker
from trends.repositories import AccountRepository, StatusRepository
from trends.store import TrendStore

logger = logging.getLogger(__name__)


class ReviewGate:

    def __init__(self, store: TrendStore, ranker: Ranker, options: TrendsOptions,
                 statuses: StatusRepository, accounts: AccountRepository):
        self.store = store
        self.ranker = ranker
        self.options = options
        self.statuses = statuses
        self.accounts = accounts

    def score_at_rank(self, rank: int) -> Optional[float]:
        return self.ranker.score_at_rank(rank)

    def at_review_threshold(self) -> Optional[TrendRecord]:
        """The allowed record currently sitting on the review boundary."""
        return self.ranker.record_at_rank(self.options.review_threshold)

    def boundary(self) -> float:
        """
        Score a pending status must exceed to be escalated.

        With fewer allowed records than review_threshold the visible list
        is not full yet, so any positive score qualifies.
        """
        score = self.score_at_rank(self.options.review_threshold)
        return score if score is not None else 0.0

    def pending(self, boundary: Optional[float] = None) -> List[Status]:
        """Unapproved statuses above the boundary whose authors need a review notification."""
        if boundary is None:
            boundary = self.boundary()
        above = [r for r in self.store.records() if r.score > boundary]
        if not above:
            return []

        by_id = {s.id: s for s in self.statuses.find_by_ids(r.id for r in above)}
        pending = []
        for record in above:
            status = by_id.get(record.id)
            if status is None:
                continue
            if not status.trendable and status.requires_review_notification:
                pending.append(status)
        return pending

    def request_review(self, now: datetime) -> List[Status]:
        """
        Flag the authors of pending statuses as review-requested at `now`.

        Returns:
            The statuses that triggered a review request.

        Raises:
            ReviewRequestError: If the account write fails (nothing is marked).
        """
        boundary = self.boundary()
        pending = self.pending(boundary)
        if not pending:
            logger.info("No trending statuses require review")
            return []

        account_ids = sorted({s.account_id for s in pending})
        self.accounts.mark_review_requested(account_ids, now)

        logger.info(
            f"Requested review for {len(pending)} trending statuses "
            f"from {len(account_ids)} accounts (boundary {boundary:.3f})"
        )
        return pending
