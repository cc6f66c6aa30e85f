"""IMAP mailbox session used by the passcode pipeline."""

from __future__ import annotations

import asyncio
import datetime as dt
import imaplib
import re
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, List, Optional, Protocol, Sequence, Tuple, Union

from otpinbox.core.errors import FetchError, LoginError, SearchError, SelectionError
from otpinbox.core.models import RawMessage
from otpinbox.core.settings import MailboxSettings
from otpinbox.services.mime import build_raw_message
from otpinbox.utils.logging import get_logger

if TYPE_CHECKING:
    from otpinbox.services.search import SearchCriteria


FETCH_ITEMS = "(FLAGS INTERNALDATE BODY.PEEK[])"

_FLAGS_RE = re.compile(rb"FLAGS \(([^)]*)\)")
_INTERNALDATE_RE = re.compile(rb'INTERNALDATE "([^"]+)"')


def quote(value: str) -> str:
    """Render a value as an IMAP quoted string."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class MailSession(Protocol):
    """Mailbox capability the pipeline calls into."""

    async def select_mailbox(self, name: str, *, read_only: bool = True) -> int:
        ...

    async def search(self, criteria: "SearchCriteria") -> Sequence[str]:
        ...

    async def fetch(self, identifiers: Sequence[str], items: str, sink: "asyncio.Queue[RawMessage]") -> None:
        """Write every fetched entry into ``sink``; raise on transport failure."""
        ...

    async def close(self) -> None:
        ...


def parse_internaldate(value: bytes) -> Optional[dt.datetime]:
    try:
        return dt.datetime.strptime(value.decode("ascii").strip(), "%d-%b-%Y %H:%M:%S %z")
    except (UnicodeDecodeError, ValueError):
        return None


def split_fetch_response(data: Sequence[object]) -> List[Tuple[bytes, bytes, bytes]]:
    """Group imaplib FETCH data into ``(meta, literal, trailer)`` triples.

    imaplib returns a literal as a ``(meta, literal)`` tuple followed by the
    remainder of that response line as plain bytes (``b')'`` or e.g.
    ``b' FLAGS (\\Seen))'`` when the server lists flags after the body).
    """
    entries: List[List[bytes]] = []
    current: Optional[List[bytes]] = None
    for item in data:
        if isinstance(item, tuple) and len(item) >= 2:
            current = [item[0], item[1], b""]
            entries.append(current)
        elif isinstance(item, bytes) and current is not None:
            if item[:1].isdigit():
                # Unsolicited FETCH without a literal (flag update).
                current = None
                continue
            current[2] += item
    return [(meta, literal, trailer) for meta, literal, trailer in entries]


def parse_fetch_entry(meta: bytes, literal: bytes, trailer: bytes = b"") -> RawMessage:
    identifier = meta.split(b" ", 1)[0].decode("ascii", errors="replace")
    attributes = meta + trailer
    flags: Tuple[str, ...] = ()
    flags_match = _FLAGS_RE.search(attributes)
    if flags_match:
        flags = tuple(flag.decode("ascii", errors="replace") for flag in flags_match.group(1).split())
    internal_date = None
    date_match = _INTERNALDATE_RE.search(attributes)
    if date_match:
        internal_date = parse_internaldate(date_match.group(1))
    return build_raw_message(identifier, literal, flags=flags, internal_date=internal_date)


class ImapMailSession:
    """Async facade over a logged-in ``imaplib`` connection.

    Blocking protocol calls run in worker threads. A session must not be
    shared between concurrent requests.
    """

    def __init__(self, connection: imaplib.IMAP4) -> None:
        self._connection = connection
        self._selected = False
        self.logger = get_logger("ImapMailSession")

    @classmethod
    @asynccontextmanager
    async def open(cls, settings: MailboxSettings) -> AsyncIterator["ImapMailSession"]:
        """Connect and log in; always logs out on exit."""
        connection = await asyncio.to_thread(cls._connect, settings)
        session = cls(connection)
        try:
            yield session
        finally:
            await session.close()

    @staticmethod
    def _connect(settings: MailboxSettings) -> imaplib.IMAP4:
        try:
            if settings.use_ssl:
                connection = imaplib.IMAP4_SSL(settings.host, settings.port)
            else:
                connection = imaplib.IMAP4(settings.host, settings.port)
        except OSError as exc:
            raise LoginError(f"failed to connect to IMAP server: {exc}") from exc
        try:
            connection.login(settings.username, settings.password)
        except (imaplib.IMAP4.error, OSError) as exc:
            try:
                connection.shutdown()
            except OSError:
                pass
            raise LoginError(f"failed to login: {exc}") from exc
        return connection

    async def select_mailbox(self, name: str, *, read_only: bool = True) -> int:
        try:
            status, data = await asyncio.to_thread(self._connection.select, quote(name), read_only)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise SelectionError(f"failed to select {name}: {exc}") from exc
        if status != "OK":
            raise SelectionError(f"failed to select {name}: {_describe(data)}")
        self._selected = True
        try:
            return int(data[0])
        except (IndexError, TypeError, ValueError):
            return 0

    async def search(self, criteria: "SearchCriteria") -> List[str]:
        tokens = criteria.to_imap()
        try:
            status, data = await asyncio.to_thread(self._connection.search, None, *tokens)
        except (imaplib.IMAP4.error, OSError, UnicodeEncodeError) as exc:
            raise SearchError(f"failed to search messages: {exc}") from exc
        if status != "OK":
            raise SearchError(f"failed to search messages: {_describe(data)}")
        if not data or not data[0]:
            return []
        return [item.decode("ascii") for item in data[0].split()]

    async def fetch(self, identifiers: Sequence[str], items: str, sink: "asyncio.Queue[RawMessage]") -> None:
        message_set = ",".join(identifiers)
        data, failure = await asyncio.to_thread(self._fetch_blocking, message_set, items)

        for meta, literal, trailer in split_fetch_response(data):
            await sink.put(parse_fetch_entry(meta, literal, trailer))

        if isinstance(failure, BaseException):
            raise FetchError(f"failed to fetch messages: {failure}") from failure
        if failure is not None:
            raise FetchError(f"failed to fetch messages: {failure}")

    def _fetch_blocking(self, message_set: str, items: str) -> Tuple[List[object], Union[None, str, BaseException]]:
        """Run FETCH; on failure return whatever the server sent before it gave up.

        imaplib hands back only the tagged text for ``NO`` and raises for
        ``BAD``. The untagged FETCH data stays queued on the connection.
        """
        try:
            status, data = self._connection.fetch(message_set, items)
        except (imaplib.IMAP4.error, OSError) as exc:
            return self._pending_fetch_data(), exc
        if status != "OK":
            return self._pending_fetch_data(), _describe(data)
        return list(data or []), None

    def _pending_fetch_data(self) -> List[object]:
        try:
            _, data = self._connection.response("FETCH")
        except (imaplib.IMAP4.error, OSError):
            return []
        return [item for item in data or [] if item is not None]

    async def close(self) -> None:
        await asyncio.to_thread(self._logout)

    def _logout(self) -> None:
        try:
            if self._selected:
                self._connection.close()
            self._connection.logout()
        except (imaplib.IMAP4.error, OSError) as exc:
            self.logger.debug("Ignoring error while logging out: %s", exc)


def _describe(data: object) -> str:
    if isinstance(data, list) and data and isinstance(data[0], bytes):
        return data[0].decode("utf-8", errors="replace")
    return str(data)
