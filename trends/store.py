"""
Trend Store -- the committed snapshot of trending scores.

A refresh replaces the snapshot through `apply()`: every freshly scored
record is upserted and everything below the decay floor is deleted inside
one SQLite transaction, so other connections see either the previous
snapshot or the new one.
"""

import json
import logging
import sqlite3
from typing import Iterable, List, Optional, Set, Tuple

import config
from trends.errors import TrendStoreError
from trends.models import TrendRecord
from trends.query import TrendQuery

logger = logging.getLogger(__name__)


UPSERT_SQL = """
    INSERT INTO trending_statuses (id, account_id, score, language, allowed)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        account_id = excluded.account_id,
        score = excluded.score,
        language = excluded.language,
        allowed = excluded.allowed
"""


class TrendStore:
    """SQLite-backed trending_statuses table."""

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH

    def _get_conn(self):
        """Get database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        return conn

    def apply(self, records: Iterable[TrendRecord], decay_threshold: float,
              removed_ids: Iterable[int] = ()) -> Tuple[int, int]:
        """
        Upsert all records, then prune everything below `decay_threshold`.

        Args:
            records: Freshly scored records for this cycle.
            decay_threshold: Prune floor.
            removed_ids: Statuses that no longer exist; their records are
                deleted in the same transaction.

        Returns:
            (records upserted, records pruned)

        Raises:
            TrendStoreError: If anything fails; nothing is committed.
        """
        rows = [
            (r.id, r.account_id, float(r.score), r.language, int(r.allowed))
            for r in records
        ]
        removed = json.dumps(sorted({int(i) for i in removed_ids}))

        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise TrendStoreError(f"Trending store unavailable: {e}") from e
        conn.isolation_level = None  # explicit transaction control
        try:
            conn.execute("BEGIN IMMEDIATE")
            if rows:
                conn.executemany(UPSERT_SQL, rows)
            pruned = conn.execute("""
                DELETE FROM trending_statuses
                WHERE score < ? OR id IN (SELECT value FROM json_each(?))
            """, (decay_threshold, removed)).rowcount
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise TrendStoreError(f"Failed to apply trending refresh: {e}") from e
        finally:
            conn.close()

        return len(rows), pruned

    # ── Reads ──

    def _fetch(self, sql: str, params=()) -> List[sqlite3.Row]:
        """Run one read query, wrapping database errors."""
        try:
            conn = self._get_conn()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise TrendStoreError(f"Failed to read trending store: {e}") from e

    def get(self, status_id: int) -> Optional[TrendRecord]:
        rows = self._fetch("SELECT * FROM trending_statuses WHERE id = ?", (status_id,))
        return _to_record(rows[0]) if rows else None

    def ids(self) -> Set[int]:
        return {row["id"] for row in self._fetch("SELECT id FROM trending_statuses")}

    def records(self, allowed: Optional[bool] = None) -> List[TrendRecord]:
        """All records (optionally filtered by allowed), in store order."""
        sql = "SELECT * FROM trending_statuses"
        params = ()
        if allowed is not None:
            sql += " WHERE allowed = ?"
            params = (int(allowed),)
        sql += " ORDER BY rowid"
        return [_to_record(row) for row in self._fetch(sql, params)]

    def ids_where_allowed(self, allowed: bool, limit: int) -> List[int]:
        rows = self._fetch("""
            SELECT id FROM trending_statuses
            WHERE allowed = ?
            ORDER BY rowid
            LIMIT ?
        """, (int(allowed), limit))
        return [row["id"] for row in rows]

    def count(self) -> int:
        return self._fetch("SELECT COUNT(*) FROM trending_statuses")[0][0]

    def query(self, query: TrendQuery, default_locale: str,
              excluded_account_ids: Optional[Set[int]] = None) -> List[TrendRecord]:
        """
        Run a TrendQuery as one ordered SELECT.

        With a locale, records are tiered (exact language 2, platform
        default 1, other 0) before score; ties fall back to id ascending.
        """
        where = []
        params = []
        order_params = []

        if query.allowed_only:
            where.append("allowed = 1")
        if excluded_account_ids:
            where.append("account_id NOT IN (SELECT value FROM json_each(?))")
            params.append(json.dumps(sorted(excluded_account_ids)))

        if query.locale:
            order = """
                CASE WHEN language = ? THEN 2
                     WHEN language = ? THEN 1
                     ELSE 0 END DESC, score DESC, id ASC
            """
            order_params = [query.locale, default_locale]
        else:
            order = "score DESC, id ASC"

        sql = "SELECT * FROM trending_statuses"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" ORDER BY {order} LIMIT ? OFFSET ?"

        limit = -1 if query.limit is None else query.limit
        rows = self._fetch(sql, params + order_params + [limit, query.offset])
        return [_to_record(row) for row in rows]


def _to_record(row: sqlite3.Row) -> TrendRecord:
    return TrendRecord(
        id=row["id"],
        account_id=row["account_id"],
        score=row["score"],
        language=row["language"],
        allowed=bool(row["allowed"]),
    )
