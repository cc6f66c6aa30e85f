"""Helpers for extracting one-time passcodes from message bodies."""

from __future__ import annotations

from typing import Iterable, Optional

from otpinbox.core.settings import DEFAULT_END_MARKER, DEFAULT_START_MARKER
from otpinbox.services.tag_stripper import strip_tags
from otpinbox.utils.logging import get_logger


logger = get_logger("MarkerExtractor")


class MarkerExtractor:
    """Cuts the passcode out of a body using a fixed pair of text markers."""

    def __init__(
        self,
        start_marker: str = DEFAULT_START_MARKER,
        end_marker: str = DEFAULT_END_MARKER,
    ) -> None:
        if not start_marker or not end_marker:
            raise ValueError("Both markers must be non-empty")
        self.start_marker = start_marker
        self.end_marker = end_marker

    def extract(self, raw: str, start: Optional[str] = None, end: Optional[str] = None) -> Optional[str]:
        """Return the text strictly between the first start marker and the next end marker."""
        if start is None:
            start = self.start_marker
        if end is None:
            end = self.end_marker
        if not start or not end:
            raise ValueError("Both markers must be non-empty")

        start_idx = raw.find(start)
        if start_idx == -1:
            return None
        content_start = start_idx + len(start)
        end_idx = raw.find(end, content_start)
        if end_idx == -1:
            return None
        return raw[content_start:end_idx]

    def first_match(self, parts: Iterable[str]) -> Optional[str]:
        """Extract from each part in order; the first part with a marker pair wins."""
        for index, part in enumerate(parts):
            found = self.extract(part)
            if found is not None:
                logger.debug("Marker pair found in content part %d", index)
                return found
        return None

    def passcode(self, parts: Iterable[str]) -> str:
        """Sanitized passcode for a message, or an empty string when none is present."""
        found = self.first_match(parts)
        if found is None:
            return ""
        return strip_tags(found)
