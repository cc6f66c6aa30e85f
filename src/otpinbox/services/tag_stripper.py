"""Removal of the handful of HTML tags that wrap passcodes in our emails."""

from __future__ import annotations

from typing import Tuple


# Literal tokens, removed in this order. Anything else is left untouched.
STRIPPED_TAGS: Tuple[str, ...] = (
    "</p>",
    "<p>",
    "</pre>",
    "<pre>",
    "</code>",
    "<code>",
    '<p style="font-size: 18px; font-weight: bold;">',
)


def _remove_tags(text: str) -> str:
    for tag in STRIPPED_TAGS:
        text = text.replace(tag, "")
    return text


def strip_tags(text: str) -> str:
    """Drop the known tag tokens and surrounding whitespace.

    Removal repeats until nothing changes, so tokens that only appear once an
    inner token is gone (``"<<p>p>"``) are removed too and the result is stable.
    """
    previous = None
    while text != previous:
        previous = text
        text = _remove_tags(text)
    return text.strip()
