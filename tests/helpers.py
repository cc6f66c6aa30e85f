from __future__ import annotations

import asyncio
import datetime as dt
import socketserver
import threading
from typing import List, Optional, Sequence

from otpinbox.core.models import Address, Envelope, RawMessage


START = "Please enter the following passcode in the app to log in:"
END = "This passcode will expire in 15 minutes."


def passcode_body(code: str) -> str:
    return f"<html><body>Hello,{START}<p>  {code}  </p>{END} Thanks</body></html>"


def make_message(
    identifier: str,
    *,
    subject: str = "Your Login passcode for milesAI is",
    date: Optional[dt.datetime] = None,
    parts: Optional[List[str]] = None,
    sender: Optional[Address] = None,
) -> RawMessage:
    return RawMessage(
        identifier=identifier,
        envelope=Envelope(
            subject=subject,
            date=date or dt.datetime(2025, 1, 11, 12, 0, tzinfo=dt.timezone.utc),
            from_=[sender] if sender else [Address(personal_name="milesAI", mailbox_name="noreply", host_name="miles.ai")],
        ),
        parts=parts if parts is not None else [passcode_body("123456")],
    )


class FakeMailSession:
    """In-memory stand-in for ImapMailSession."""

    def __init__(
        self,
        messages: Sequence[RawMessage] = (),
        *,
        identifiers: Optional[Sequence[str]] = None,
        select_error: Optional[Exception] = None,
        search_error: Optional[Exception] = None,
        fetch_error: Optional[Exception] = None,
    ) -> None:
        self.messages = list(messages)
        self.identifiers = list(identifiers) if identifiers is not None else [m.identifier for m in self.messages]
        self.select_error = select_error
        self.search_error = search_error
        self.fetch_error = fetch_error
        self.selected: List[tuple] = []
        self.searches: list = []
        self.fetch_calls: List[tuple] = []
        self.sink_maxsize: Optional[int] = None
        self.closed = False

    async def select_mailbox(self, name: str, *, read_only: bool = True) -> int:
        self.selected.append((name, read_only))
        if self.select_error:
            raise self.select_error
        return len(self.messages)

    async def search(self, criteria) -> List[str]:
        self.searches.append(criteria)
        if self.search_error:
            raise self.search_error
        return list(self.identifiers)

    async def fetch(self, identifiers, items: str, sink: "asyncio.Queue[RawMessage]") -> None:
        self.fetch_calls.append((list(identifiers), items))
        self.sink_maxsize = sink.maxsize
        for message in self.messages:
            await sink.put(message)
        if self.fetch_error:
            raise self.fetch_error

    async def close(self) -> None:
        self.closed = True




class _ScriptedImapHandler(socketserver.StreamRequestHandler):
    timeout = 5

    def handle(self) -> None:
        self.wfile.write(b"* OK scripted IMAP server ready\r\n")
        for line in self.rfile:
            tag, _, rest = line.rstrip(b"\r\n").partition(b" ")
            command = rest.split(b" ", 1)[0].upper()
            self.server.commands.append(command.decode("ascii"))
            self.wfile.write(self.server.reply(tag, command))
            if command == b"LOGOUT":
                return


class ScriptedImapServer(socketserver.TCPServer):
    """Single-connection IMAP server on localhost with a canned FETCH answer.

    ``fetch_untagged`` is sent verbatim before the tagged ``fetch_status`` line,
    which is how a server reports a partially failed FETCH.
    """

    allow_reuse_address = True

    def __init__(self, fetch_untagged: bytes, fetch_status: bytes) -> None:
        super().__init__(("127.0.0.1", 0), _ScriptedImapHandler)
        self.fetch_untagged = fetch_untagged
        self.fetch_status = fetch_status
        self.commands: List[str] = []
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)

    @property
    def port(self) -> int:
        return self.server_address[1]

    def __enter__(self) -> "ScriptedImapServer":
        self._thread.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
        self.server_close()
        self._thread.join(timeout=5)

    def reply(self, tag: bytes, command: bytes) -> bytes:
        if command == b"CAPABILITY":
            return b"* CAPABILITY IMAP4rev1\r\n" + tag + b" OK CAPABILITY completed\r\n"
        if command in (b"SELECT", b"EXAMINE"):
            return b"* 1 EXISTS\r\n* 0 RECENT\r\n" + tag + b" OK [READ-ONLY] EXAMINE completed\r\n"
        if command == b"FETCH":
            return self.fetch_untagged + tag + b" " + self.fetch_status + b"\r\n"
        if command == b"LOGOUT":
            return b"* BYE logging out\r\n" + tag + b" OK LOGOUT completed\r\n"
        return tag + b" OK " + command + b" completed\r\n"


def untagged_fetch(identifier: str, raw: bytes) -> bytes:
    """One ``* n FETCH`` response carrying ``raw`` as the BODY[] literal."""
    head = f'* {identifier} FETCH (FLAGS (\\Seen) INTERNALDATE "11-Jan-2025 10:15:00 +0000" BODY[] {{{len(raw)}}}\r\n'
    return head.encode("ascii") + raw + b")\r\n"
