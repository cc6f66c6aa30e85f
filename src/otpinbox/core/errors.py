"""Error taxonomy for mailbox access and the passcode pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from otpinbox.core.models import RawMessage


class MailboxError(RuntimeError):
    """Base class for failures talking to the mail server."""


class LoginError(MailboxError):
    """Connecting or authenticating to the mail server failed."""


class SelectionError(MailboxError):
    """The mailbox could not be opened."""


class SearchError(MailboxError):
    """The search query could not be executed."""


class FetchError(MailboxError):
    """Batched retrieval reported a transport error.

    Raised only after every entry delivered before the failure was drained;
    those entries are kept on :attr:`entries`.
    """

    def __init__(self, message: str, *, entries: Optional[Sequence["RawMessage"]] = None) -> None:
        super().__init__(message)
        self.entries: List["RawMessage"] = list(entries or [])


class SettingsError(ValueError):
    """Runtime configuration is missing or invalid."""
