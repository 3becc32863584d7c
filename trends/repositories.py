"""
Repositories -- the engine's view of the platform's content database.

The engine depends only on the abstract interfaces below. The SQLite
adapters read the tables created by database_migrations.py.
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

import config
from trends.errors import RepositoryError, ReviewRequestError
from trends.models import Account, Status

logger = logging.getLogger(__name__)


class StatusRepository(ABC):
    """Fetches statuses (with their authors) by id."""

    @abstractmethod
    def find_by_ids(self, ids: Iterable[int]) -> List[Status]:
        """
        Return every resolvable status among `ids`; missing ids are skipped.

        Raises:
            RepositoryError: If the statuses could not be read.
        """
        ...

    def find(self, status_id: int) -> Optional[Status]:
        found = self.find_by_ids([status_id])
        return found[0] if found else None


class AccountRepository(ABC):
    """Writes moderation bookkeeping on accounts."""

    @abstractmethod
    def mark_review_requested(self, account_ids: Iterable[int], at: datetime) -> int:
        """
        Set requested_review_at on every account, all or nothing.

        Raises:
            ReviewRequestError: If the write could not be committed.
        """
        ...


class ExclusionFilter(ABC):
    """Whose statuses a viewer must not see."""

    @abstractmethod
    def excluded_account_ids(self, viewer_id: int) -> Set[int]:
        """Authors blocked, muted, blocking the viewer, or on a blocked domain."""
        ...


def _ids_param(ids: Iterable[int]) -> str:
    """Encode ids as one JSON array parameter (expanded with json_each)."""
    return json.dumps(sorted({int(i) for i in ids}))


def _parse_ts(ts_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp string to a UTC datetime."""
    if not ts_str:
        return None
    dt = datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_bool(value) -> Optional[bool]:
    return None if value is None else bool(value)


class SqliteStatusRepository(StatusRepository):
    """Loads statuses joined with their accounts; reshares resolve their original."""

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH

    def _get_conn(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def find_by_ids(self, ids: Iterable[int]) -> List[Status]:
        ids = list(ids)
        if not ids:
            return []

        try:
            conn = self._get_conn()
            try:
                rows = self._fetch_rows(conn, ids)
                reblog_ids = {r["reblog_of_id"] for r in rows if r["reblog_of_id"] is not None}
                originals = {}
                if reblog_ids:
                    originals = {
                        r["id"]: self._build_status(r, {})
                        for r in self._fetch_rows(conn, reblog_ids)
                    }
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RepositoryError(f"Failed to load {len(ids)} statuses: {e}") from e

        statuses = []
        for row in rows:
            # A reshare whose original is gone cannot be resolved either
            if row["reblog_of_id"] is not None and row["reblog_of_id"] not in originals:
                continue
            statuses.append(self._build_status(row, originals))
        return statuses

    def _fetch_rows(self, conn, ids: Iterable[int]) -> List[sqlite3.Row]:
        return conn.execute("""
            SELECT s.id, s.account_id, s.created_at, s.reblogs_count,
                   s.favourites_count, s.language, s.visibility, s.sensitive,
                   s.spoiler_text, s.in_reply_to_id, s.reblog_of_id,
                   s.trendable AS status_trendable,
                   a.username, a.domain, a.discoverable, a.silenced,
                   a.trendable AS account_trendable, a.reviewed_at,
                   a.requested_review_at
            FROM statuses s
            JOIN accounts a ON a.id = s.account_id
            WHERE s.id IN (SELECT value FROM json_each(?))
              AND s.deleted_at IS NULL
            ORDER BY s.id
        """, (_ids_param(ids),)).fetchall()

    def _build_status(self, row: sqlite3.Row, originals: Dict[int, Status]) -> Status:
        account = Account(
            id=row["account_id"],
            username=row["username"],
            domain=row["domain"],
            discoverable=bool(row["discoverable"]),
            silenced=bool(row["silenced"]),
            trendable=_optional_bool(row["account_trendable"]),
            reviewed_at=_parse_ts(row["reviewed_at"]),
            requested_review_at=_parse_ts(row["requested_review_at"]),
        )
        return Status(
            id=row["id"],
            account=account,
            created_at=_parse_ts(row["created_at"]),
            reblogs_count=row["reblogs_count"] or 0,
            favourites_count=row["favourites_count"] or 0,
            language=row["language"],
            visibility=row["visibility"],
            sensitive=bool(row["sensitive"]),
            spoiler_text=row["spoiler_text"] or "",
            in_reply_to_id=row["in_reply_to_id"],
            reblog=originals.get(row["reblog_of_id"]),
            trendable_flag=_optional_bool(row["status_trendable"]),
        )


class SqliteAccountRepository(AccountRepository):

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH

    def mark_review_requested(self, account_ids: Iterable[int], at: datetime) -> int:
        account_ids = list(account_ids)
        if not account_ids:
            return 0

        conn = sqlite3.connect(str(self.db_path))
        try:
            with conn:
                result = conn.execute("""
                    UPDATE accounts SET requested_review_at = ?
                    WHERE id IN (SELECT value FROM json_each(?))
                """, (at.isoformat(), _ids_param(account_ids)))
            return result.rowcount
        except sqlite3.Error as e:
            raise ReviewRequestError(
                f"Failed to mark review requested for {len(account_ids)} accounts: {e}"
            ) from e
        finally:
            conn.close()


class SqliteExclusionFilter(ExclusionFilter):

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH

    def excluded_account_ids(self, viewer_id: int) -> Set[int]:
        try:
            conn = sqlite3.connect(str(self.db_path))
            try:
                rows = conn.execute("""
                    SELECT target_account_id FROM blocks WHERE account_id = ?
                    UNION
                    SELECT account_id FROM blocks WHERE target_account_id = ?
                    UNION
                    SELECT target_account_id FROM mutes WHERE account_id = ?
                    UNION
                    SELECT a.id FROM accounts a
                    JOIN account_domain_blocks d ON d.domain = a.domain
                    WHERE d.account_id = ?
                """, (viewer_id, viewer_id, viewer_id, viewer_id)).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RepositoryError(f"Failed to load exclusions for viewer {viewer_id}: {e}") from e
        return {row[0] for row in rows}
