"""Passcode pipeline: search, fetch, extract, order."""

from __future__ import annotations

from typing import List, Optional

from otpinbox.core.models import MessageRecord, RawMessage
from otpinbox.core.settings import PasscodeSettings
from otpinbox.services.extractor import MarkerExtractor
from otpinbox.services.fetcher import MessageFetcher
from otpinbox.services.search import SearchPlanner
from otpinbox.services.session import MailSession
from otpinbox.utils.logging import get_logger


def sender_of(message: RawMessage) -> str:
    """First "from" address: display name if present, otherwise ``mailbox@host``."""
    if not message.envelope.from_:
        return ""
    return message.envelope.from_[0].display()


def sort_newest_first(records: List[MessageRecord]) -> List[MessageRecord]:
    # sorted() is stable, so equal dates keep fetch order.
    return sorted(records, key=lambda record: record.date, reverse=True)


class PasscodePipeline:
    """Turns a subject (and optional sender) filter into passcode records, newest first.

    ``SelectionError``, ``SearchError`` and ``FetchError`` from the session
    propagate unchanged. A message without a marker pair still yields a
    record, with an empty body.
    """

    def __init__(
        self,
        settings: Optional[PasscodeSettings] = None,
        *,
        mailbox: str = "INBOX",
        max_queue: int = 10,
    ) -> None:
        self.settings = settings or PasscodeSettings()
        self.mailbox = mailbox
        self.max_queue = max_queue
        self.extractor = MarkerExtractor(self.settings.start_marker, self.settings.end_marker)
        self.logger = get_logger("PasscodePipeline")

    def build_record(self, message: RawMessage) -> MessageRecord:
        self.logger.debug(
            "Processing message %s from %s: %s",
            message.identifier,
            message.envelope.date,
            message.envelope.subject,
        )
        body = self.extractor.passcode(message.parts)
        if body:
            self.logger.debug("Extracted passcode: %s", body)
        return MessageRecord(
            subject=message.envelope.subject,
            date=message.envelope.date,
            sender=sender_of(message),
            body=body,
        )

    async def run(
        self,
        session: MailSession,
        subject_filter: Optional[str] = None,
        sender_filter: Optional[str] = None,
    ) -> List[MessageRecord]:
        """Search by subject (defaults to the configured one) and optional sender."""
        if subject_filter is None:
            subject_filter = self.settings.subject
        if sender_filter is None:
            sender_filter = self.settings.sender
        return await self._collect(session, subject_filter, sender_filter)

    async def records_from_sender(self, session: MailSession, sender: str) -> List[MessageRecord]:
        """Same pipeline filtered on the From header only."""
        return await self._collect(session, None, sender)

    async def _collect(
        self,
        session: MailSession,
        subject_filter: Optional[str],
        sender_filter: Optional[str],
    ) -> List[MessageRecord]:
        planner = SearchPlanner(session, mailbox=self.mailbox, since_days=self.settings.since_days)
        await planner.select()
        identifiers = await planner.plan(subject_filter, sender_filter)
        if not identifiers:
            return []

        fetcher = MessageFetcher(session, max_queue=self.max_queue)
        records: List[MessageRecord] = []
        async for message in fetcher.stream(identifiers):
            records.append(self.build_record(message))

        records = sort_newest_first(records)
        if self.settings.max_results:
            records = records[: self.settings.max_results]
        self.logger.info("Returning %d processed emails", len(records))
        return records
