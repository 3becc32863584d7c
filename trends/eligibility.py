"""Eligibility filter: which statuses may be tracked as trending candidates."""

from trends.models import PUBLIC_VISIBILITY, Status


def is_eligible(status: Status) -> bool:
    """
    Check whether a status can be recorded as a usage candidate.

    A status qualifies when it is public, its author is discoverable and
    not silenced, and it carries no content warning, sensitive flag or
    reply context.
    """
    account = status.account
    return (
        status.visibility == PUBLIC_VISIBILITY
        and account.discoverable
        and not account.silenced
        and not (status.spoiler_text or "").strip()
        and not status.sensitive
        and not status.is_reply
    )
