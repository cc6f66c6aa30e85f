from __future__ import annotations

import datetime as dt

import pytest

from helpers import FakeMailSession, make_message
from otpinbox.core.errors import FetchError


@pytest.fixture
def utc():
    def _at(day: int, hour: int = 12) -> dt.datetime:
        return dt.datetime(2025, 1, day, hour, 0, tzinfo=dt.timezone.utc)

    return _at


@pytest.fixture
def failing_fetch_session() -> FakeMailSession:
    return FakeMailSession(
        [make_message("1"), make_message("2")],
        fetch_error=FetchError("connection reset"),
    )
