"""
Value types shared across the trends engine.

Account and Status mirror the platform's content model; the engine only
reads them. TrendRecord is the one row type the engine owns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


PUBLIC_VISIBILITY = "public"


@dataclass
class Account:
    """An account as seen by the trends engine."""
    id: int
    username: str = ""
    domain: Optional[str] = None        # None for local accounts
    discoverable: bool = False
    silenced: bool = False
    trendable: Optional[bool] = None    # None = never reviewed
    reviewed_at: Optional[datetime] = None
    requested_review_at: Optional[datetime] = None

    @property
    def requires_review(self) -> bool:
        return self.reviewed_at is None

    @property
    def requested_review(self) -> bool:
        return self.requested_review_at is not None

    @property
    def requires_review_notification(self) -> bool:
        """Unreviewed, and moderators have not been asked about it yet."""
        return self.requires_review and not self.requested_review


@dataclass
class Status:
    """A status (post) with the counters and flags trending needs."""
    id: int
    account: Account
    created_at: datetime
    reblogs_count: int = 0
    favourites_count: int = 0
    language: Optional[str] = None
    visibility: str = PUBLIC_VISIBILITY
    sensitive: bool = False
    spoiler_text: str = ""
    in_reply_to_id: Optional[int] = None
    reblog: Optional["Status"] = None
    trendable_flag: Optional[bool] = None   # per-status moderation override

    @property
    def account_id(self) -> int:
        return self.account.id

    @property
    def proper(self) -> "Status":
        """The canonical status: the original for a reshare, else itself."""
        return self.reblog if self.reblog is not None else self

    @property
    def is_reply(self) -> bool:
        return self.in_reply_to_id is not None

    @property
    def trendable(self) -> bool:
        """Whether the status may appear in the public trending list."""
        if self.trendable_flag is not None:
            return self.trendable_flag
        return bool(self.account.trendable)

    @property
    def requires_review_notification(self) -> bool:
        return self.trendable_flag is None and self.account.requires_review_notification


@dataclass(frozen=True)
class TrendRecord:
    """One row of the trending snapshot."""
    id: int
    account_id: int
    score: float
    language: Optional[str]
    allowed: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "score": self.score,
            "language": self.language,
            "allowed": self.allowed,
        }
