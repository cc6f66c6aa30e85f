"""Mailbox access and passcode extraction services."""

from .extractor import MarkerExtractor
from .fetcher import MessageFetcher
from .search import SearchCriteria, SearchPlanner
from .session import ImapMailSession, MailSession
from .tag_stripper import strip_tags

__all__ = [
    "MarkerExtractor",
    "MessageFetcher",
    "SearchCriteria",
    "SearchPlanner",
    "ImapMailSession",
    "MailSession",
    "strip_tags",
]
