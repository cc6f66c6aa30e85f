from __future__ import annotations

import datetime as dt
import email
import email.policy
from email.message import EmailMessage

from helpers import END, START
from otpinbox.services.mime import build_raw_message, decode_part


def _multipart(from_header: str = "milesAI <noreply@miles.ai>") -> bytes:
    msg = EmailMessage()
    msg["Subject"] = "Your Login passcode for milesAI is"
    msg["From"] = from_header
    msg["To"] = "appstorereview@icloud.com"
    msg["Date"] = "Sat, 11 Jan 2025 10:15:00 +0100"
    msg.set_content("Use the passcode in the HTML version.")
    msg.add_alternative(
        f'<html><body>{START}<p style="font-size: 18px; font-weight: bold;">482913</p>{END}</body></html>',
        subtype="html",
    )
    return msg.as_bytes()


def test_parts_follow_enumeration_order_and_end_with_raw_source():
    raw = _multipart()

    message = build_raw_message("5", raw, flags=("\\Seen",))

    assert message.identifier == "5"
    assert message.flags == ("\\Seen",)
    assert len(message.parts) == 3
    assert message.parts[0].startswith("Use the passcode")
    assert "482913" in message.parts[1]
    assert "Subject: Your Login passcode" in message.parts[2]


def test_envelope_from_headers():
    message = build_raw_message("1", _multipart())

    envelope = message.envelope
    assert envelope.subject == "Your Login passcode for milesAI is"
    assert envelope.date == dt.datetime(2025, 1, 11, 9, 15, tzinfo=dt.timezone.utc)
    assert envelope.from_[0].personal_name == "milesAI"
    assert envelope.from_[0].mailbox_name == "noreply"
    assert envelope.from_[0].host_name == "miles.ai"


def test_bare_address_has_no_display_name():
    message = build_raw_message("1", _multipart("svc@example.com"))

    assert message.envelope.from_[0].personal_name == ""
    assert message.envelope.from_[0].display() == "svc@example.com"


def test_missing_headers_fall_back():
    raw = b"Subject: hi\r\n\r\nbody text\r\n"
    internal = dt.datetime(2025, 2, 1, 8, 0, tzinfo=dt.timezone.utc)

    message = build_raw_message("9", raw, internal_date=internal)

    assert message.envelope.from_ == []
    assert message.envelope.date == internal
    assert message.parts[0].strip() == "body text"


def test_bad_date_header_without_internal_date_is_none():
    raw = b"Subject: hi\r\nDate: not a date\r\n\r\nbody\r\n"

    message = build_raw_message("9", raw)

    assert message.envelope.date is None


def test_decode_part_falls_back_to_latin1():
    raw = b"Content-Type: text/plain; charset=utf-8\r\nContent-Transfer-Encoding: 8bit\r\n\r\ncaf\xe9\r\n"
    msg = email.message_from_bytes(raw, policy=email.policy.default)

    assert decode_part(msg).strip() == "caf\xe9"
