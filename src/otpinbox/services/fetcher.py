"""Batched message retrieval streamed through a bounded queue."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Sequence, Union

from otpinbox.core.errors import FetchError
from otpinbox.core.models import RawMessage
from otpinbox.services.session import FETCH_ITEMS, MailSession
from otpinbox.utils.logging import get_logger


_DONE = object()


class MessageFetcher:
    """Runs one FETCH for a set of identifiers on a producer task.

    Entries are handed over through an ``asyncio.Queue`` of ``max_queue``
    slots. The consumer drains the queue until the producer closes it and
    only then looks at the producer's outcome, so entries delivered before a
    transport failure are never lost.
    """

    def __init__(self, session: MailSession, *, items: str = FETCH_ITEMS, max_queue: int = 10) -> None:
        self._session = session
        self.items = items
        self.max_queue = max_queue
        self.logger = get_logger("MessageFetcher")

    async def _produce(
        self,
        identifiers: Sequence[str],
        queue: "asyncio.Queue[Union[RawMessage, object]]",
    ) -> None:
        try:
            await self._session.fetch(identifiers, self.items, queue)
        finally:
            await queue.put(_DONE)

    async def stream(self, identifiers: Sequence[str]) -> AsyncIterator[RawMessage]:
        """Yield fetched entries in delivery order; raises FetchError after the last one."""
        if not identifiers:
            return

        queue: "asyncio.Queue[Union[RawMessage, object]]" = asyncio.Queue(self.max_queue)
        producer = asyncio.create_task(self._produce(list(identifiers), queue), name="imap-fetch")
        delivered: List[RawMessage] = []
        drained = False
        try:
            while True:
                entry = await queue.get()
                if entry is _DONE:
                    drained = True
                    break
                delivered.append(entry)
                yield entry
        finally:
            if not drained:
                # Consumer went away early. The FETCH runs in a worker thread that
                # cannot be cancelled, so discard entries until it finishes; the
                # session must be idle before anyone logs out.
                while await queue.get() is not _DONE:
                    pass
                try:
                    await producer
                except Exception as exc:
                    self.logger.debug("Fetch after early exit ended with: %s", exc)

        try:
            await producer
        except FetchError as exc:
            exc.entries = list(delivered)
            self.logger.warning("Fetch failed after %d messages: %s", len(delivered), exc)
            raise
        except Exception as exc:
            self.logger.warning("Fetch failed after %d messages: %s", len(delivered), exc)
            raise FetchError(f"failed to fetch messages: {exc}", entries=delivered) from exc

    async def fetch(self, identifiers: Sequence[str]) -> List[RawMessage]:
        """Collect all entries; on failure the partial list rides on ``FetchError.entries``."""
        entries: List[RawMessage] = []
        async for entry in self.stream(identifiers):
            entries.append(entry)
        return entries
