"""
Ranker -- ordered views and point queries over the committed snapshot.

Ranks are computed on demand from the allowed subset, never during a
refresh: rank 1 is the highest score, equal scores are ordered by status
id ascending.
"""

import logging
from typing import List, Optional

from trends.models import Status, TrendRecord
from trends.options import TrendsOptions
from trends.query import TrendQuery
from trends.repositories import ExclusionFilter, StatusRepository
from trends.store import TrendStore

logger = logging.getLogger(__name__)


def rank_order(record: TrendRecord):
    """Sort key: score descending, then id ascending."""
    return (-record.score, record.id)


class Ranker:
    """Read side of the trends engine."""

    def __init__(self, store: TrendStore, options: TrendsOptions,
                 statuses: Optional[StatusRepository] = None,
                 exclusions: Optional[ExclusionFilter] = None):
        self.store = store
        self.options = options
        self.statuses = statuses
        self.exclusions = exclusions

    def query(self) -> TrendQuery:
        """A fresh, unfiltered query to refine with the builder methods."""
        return TrendQuery()

    def records(self, query: TrendQuery) -> List[TrendRecord]:
        excluded = None
        if query.viewer_id is not None:
            if self.exclusions is None:
                raise ValueError("Query is filtered for a viewer but no exclusion filter is configured")
            excluded = self.exclusions.excluded_account_ids(query.viewer_id)
        return self.store.query(query, self.options.default_locale, excluded)

    def statuses_for(self, query: TrendQuery) -> List[Status]:
        """
        Resolve a query to statuses, keeping the ranked order.

        Statuses deleted since the last refresh are skipped.
        """
        if self.statuses is None:
            raise ValueError("No status repository configured")

        records = self.records(query)
        by_id = {s.id: s for s in self.statuses.find_by_ids(r.id for r in records)}
        return [by_id[r.id] for r in records if r.id in by_id]

    def ranked_allowed(self) -> List[TrendRecord]:
        """Allowed records in rank order."""
        return sorted(self.store.records(allowed=True), key=rank_order)

    def rank(self, status_id: int) -> Optional[int]:
        """1-based rank among allowed records, or None if not allowed/tracked."""
        for position, record in enumerate(self.ranked_allowed(), 1):
            if record.id == status_id:
                return position
        return None

    def score(self, status_id: int) -> Optional[float]:
        record = self.store.get(status_id)
        return record.score if record else None

    def record_at_rank(self, rank: int) -> Optional[TrendRecord]:
        if rank < 1:
            return None
        ranked = self.ranked_allowed()
        return ranked[rank - 1] if rank <= len(ranked) else None

    def score_at_rank(self, rank: int) -> Optional[float]:
        record = self.record_at_rank(rank)
        return record.score if record else None

    def currently_trending_ids(self, allowed: bool, limit: int) -> List[int]:
        """First `limit` ids in store order; cheaper than a ranked read."""
        return self.store.ids_where_allowed(allowed, limit)
