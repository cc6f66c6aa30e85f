"""Search criteria construction for passcode emails."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Optional

from otpinbox.services.session import MailSession, quote
from otpinbox.utils.logging import get_logger


_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def imap_date(value: dt.date) -> str:
    # IMAP wants English month names regardless of locale.
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year}"


@dataclass(frozen=True)
class SearchCriteria:
    """Header filters sent to the server. Matching is the server's substring match."""

    subject: Optional[str] = None
    sender: Optional[str] = None
    since: Optional[dt.date] = None

    def to_imap(self) -> List[str]:
        tokens: List[str] = []
        if self.subject:
            tokens += ["HEADER", "Subject", quote(self.subject)]
        if self.sender:
            tokens += ["HEADER", "From", quote(self.sender)]
        if self.since:
            tokens += ["SINCE", imap_date(self.since)]
        return tokens or ["ALL"]


class SearchPlanner:
    """Selects the mailbox read-only and resolves a filter to message identifiers."""

    def __init__(self, session: MailSession, *, mailbox: str = "INBOX", since_days: Optional[int] = None) -> None:
        self._session = session
        self.mailbox = mailbox
        self.since_days = since_days
        self.logger = get_logger("SearchPlanner")

    def criteria(self, subject_filter: Optional[str], sender_filter: Optional[str] = None) -> SearchCriteria:
        since = None
        if self.since_days:
            since = dt.date.today() - dt.timedelta(days=self.since_days)
        return SearchCriteria(subject=subject_filter, sender=sender_filter, since=since)

    async def select(self) -> int:
        """Open the mailbox read-only; raises SelectionError."""
        count = await self._session.select_mailbox(self.mailbox, read_only=True)
        self.logger.info("Mailbox: %s, Messages: %d", self.mailbox, count)
        return count

    async def plan(self, subject_filter: Optional[str], sender_filter: Optional[str] = None) -> List[str]:
        """Return identifiers of matching messages; raises SearchError.

        The mailbox must already be selected.
        """
        criteria = self.criteria(subject_filter, sender_filter)
        identifiers = await self._session.search(criteria)
        self.logger.info("Found %d messages matching criteria", len(identifiers))
        return list(identifiers)
