"""Turning raw RFC 822 bytes into envelope metadata and content parts."""

from __future__ import annotations

import datetime as dt
import email
import email.errors
import email.policy
import email.utils
from email.message import EmailMessage, Message
from typing import List, Optional, Sequence

from otpinbox.core.models import Address, Envelope, RawMessage
from otpinbox.utils.logging import get_logger


logger = get_logger("Mime")

FALLBACK_CHARSETS = ("utf-8", "iso-8859-1")


def decode_part(part: Message) -> Optional[str]:
    """Decode a single MIME part to text, or None when it cannot be read."""
    try:
        payload = part.get_payload(decode=True)
    except (ValueError, LookupError, AssertionError) as exc:
        logger.debug("Skipping undecodable part %s: %s", part.get_content_type(), exc)
        return None
    if payload is None:
        return None

    charset = part.get_content_charset() or "utf-8"
    for encoding in (charset, *FALLBACK_CHARSETS):
        try:
            return payload.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    return payload.decode("utf-8", errors="replace")


def content_parts(message: Message, raw: bytes) -> List[str]:
    """Text parts in enumeration order, then the raw source as a last resort."""
    parts: List[str] = []
    for part in message.walk():
        if part.is_multipart() or part.get_content_maintype() != "text":
            continue
        text = decode_part(part)
        if text is not None:
            parts.append(text)
    parts.append(raw.decode("utf-8", errors="replace"))
    return parts


def parse_addresses(message: EmailMessage, header: str = "From") -> List[Address]:
    try:
        field = message[header]
    except (IndexError, ValueError, email.errors.HeaderParseError):
        # Header registry rejects some malformed values outright.
        field = None
    if field is None:
        return []

    addresses = getattr(field, "addresses", None)
    if addresses is not None:
        return [
            Address(
                personal_name=addr.display_name or "",
                mailbox_name=addr.username or "",
                host_name=addr.domain or "",
            )
            for addr in addresses
        ]

    result = []
    for name, addr in email.utils.getaddresses([str(field)]):
        mailbox, _, host = addr.partition("@")
        result.append(Address(personal_name=name, mailbox_name=mailbox, host_name=host))
    return result


def parse_date(value: Optional[str], fallback: Optional[dt.datetime] = None) -> Optional[dt.datetime]:
    if not value:
        return fallback
    try:
        return email.utils.parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        logger.debug("Unparseable Date header %r", value)
        return fallback


def parse_envelope(message: EmailMessage, internal_date: Optional[dt.datetime] = None) -> Envelope:
    subject = message.get("Subject", "") or ""
    return Envelope(
        subject=str(subject).strip(),
        date=parse_date(message.get("Date"), internal_date),
        from_=parse_addresses(message),
    )


def build_raw_message(
    identifier: str,
    raw: bytes,
    *,
    flags: Sequence[str] = (),
    internal_date: Optional[dt.datetime] = None,
) -> RawMessage:
    """Parse one fetched message into the entry the pipeline consumes."""
    message = email.message_from_bytes(raw, policy=email.policy.default)
    return RawMessage(
        identifier=identifier,
        flags=tuple(flags),
        envelope=parse_envelope(message, internal_date),
        parts=content_parts(message, raw),
    )

