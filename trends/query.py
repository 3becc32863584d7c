"""Immutable, chainable trending query."""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class TrendQuery:
    """
    What slice of the trending snapshot to read, and in which order.

    Each builder method returns a modified copy, so a base query can be
    shared and refined per request:

        query.in_locale("de").allowed().filtered_for(viewer_id).limited_to(20)

    Attributes:
        locale: Preferred language; enables the three-tier ordering
            (exact match, platform default locale, everything else).
        allowed_only: Only records approved for public trending.
        viewer_id: Account whose blocks, mutes and domain blocks apply.
        offset: Records to skip.
        limit: Maximum records to return (None = no limit).
    """
    locale: Optional[str] = None
    allowed_only: bool = False
    viewer_id: Optional[int] = None
    offset: int = 0
    limit: Optional[int] = None

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")

    def in_locale(self, locale: Optional[str]) -> "TrendQuery":
        return replace(self, locale=locale or None)

    def allowed(self, allowed_only: bool = True) -> "TrendQuery":
        return replace(self, allowed_only=allowed_only)

    def filtered_for(self, viewer_id: Optional[int]) -> "TrendQuery":
        return replace(self, viewer_id=viewer_id)

    def offset_by(self, offset: int) -> "TrendQuery":
        return replace(self, offset=offset)

    def limited_to(self, limit: Optional[int]) -> "TrendQuery":
        return replace(self, limit=limit)
