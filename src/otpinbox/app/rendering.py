"""HTML rendering of passcode records."""

from __future__ import annotations

import datetime as dt
from pathlib import Path

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from otpinbox.core.models import EPOCH, PageData


TEMPLATES_DIR = Path(__file__).parent / "templates"


def format_datetime(value: dt.datetime) -> str:
    if value == EPOCH:
        return "unknown"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["datetime"] = format_datetime


def render_emails(request: Request, page: PageData) -> HTMLResponse:
    """Render the passcode table; an empty list renders the empty-state view."""
    return templates.TemplateResponse(request, "emails.html", {"page": page})
