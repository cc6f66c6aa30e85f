"""Core models, settings and the passcode pipeline."""

from .errors import FetchError, LoginError, MailboxError, SearchError, SelectionError, SettingsError
from .models import Address, Envelope, MessageRecord, RawMessage

__all__ = [
    "Address",
    "Envelope",
    "MessageRecord",
    "RawMessage",
    "MailboxError",
    "LoginError",
    "SelectionError",
    "SearchError",
    "FetchError",
    "SettingsError",
]
