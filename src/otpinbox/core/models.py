"""Data models shared across the passcode pipeline and web layer."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


EPOCH = dt.datetime.min.replace(tzinfo=dt.timezone.utc)


def normalize_date(value: Optional[dt.datetime]) -> dt.datetime:
    """Make a timestamp comparable: naive values are UTC, missing ones sort last."""
    if value is None:
        return EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class Address(BaseModel):
    """One address of an envelope field."""

    personal_name: str = ""
    mailbox_name: str = ""
    host_name: str = ""

    def display(self) -> str:
        if self.personal_name:
            return self.personal_name
        return f"{self.mailbox_name}@{self.host_name}"


class Envelope(BaseModel):
    """Protocol-level message metadata."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str = ""
    date: Optional[dt.datetime] = None
    from_: List[Address] = Field(default_factory=list, alias="from")


class RawMessage(BaseModel):
    """A fetched message as delivered by the mail session."""

    identifier: str
    flags: Tuple[str, ...] = ()
    envelope: Envelope = Field(default_factory=Envelope)
    parts: List[str] = Field(default_factory=list)


class MessageRecord(BaseModel):
    """Passcode email as shown on the page. Lives for one request only."""

    subject: str
    date: dt.datetime
    sender: str = ""
    body: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value: object) -> object:
        if value is None or isinstance(value, dt.datetime):
            return normalize_date(value)
        return value


class PageData(BaseModel):
    emails: List[MessageRecord]
    subject: str
    generated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
