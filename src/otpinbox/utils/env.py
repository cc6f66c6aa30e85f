"""Environment helper utilities."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv


_FALSE_VALUES = {"0", "false", "no", "off"}


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a ``.env`` file into the process environment without overriding it."""
    if path is not None:
        return load_dotenv(path, override=False)
    return load_dotenv(find_dotenv(usecwd=True), override=False)


def get_env(name: str, *, default: Optional[str] = None) -> Optional[str]:
    """Return a stripped environment value, treating blank values as unset."""
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


def get_bool_env(name: str, *, default: bool = False) -> bool:
    """Return True/False for an environment flag."""
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if not value:
        return default
    return value not in _FALSE_VALUES
