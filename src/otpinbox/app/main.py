"""FastAPI application serving the passcode page behind basic auth."""

from __future__ import annotations

import secrets
from typing import AsyncContextManager, Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from otpinbox import __version__
from otpinbox.app.rendering import render_emails
from otpinbox.core.errors import MailboxError
from otpinbox.core.models import MessageRecord, PageData
from otpinbox.core.pipeline import PasscodePipeline
from otpinbox.core.settings import MailboxSettings, RuntimeSettings, config_path_from_env
from otpinbox.services.session import ImapMailSession, MailSession
from otpinbox.utils.logging import get_logger


logger = get_logger("PasscodeAPI")

SessionFactory = Callable[[MailboxSettings], AsyncContextManager[MailSession]]


def create_app(
    settings: Optional[RuntimeSettings] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
) -> FastAPI:
    settings = settings or RuntimeSettings.from_file(config_path_from_env())
    open_session: SessionFactory = session_factory or ImapMailSession.open
    pipeline = PasscodePipeline(settings.passcode, mailbox=settings.mailbox.folder)
    security = HTTPBasic(realm=settings.auth.realm, auto_error=False)

    def require_user(credentials: Optional[HTTPBasicCredentials] = Depends(security)) -> str:
        expected_user = settings.auth.username.encode("utf-8")
        expected_pass = settings.auth.password.encode("utf-8")
        if credentials is not None and expected_user and expected_pass:
            user_ok = secrets.compare_digest(credentials.username.encode("utf-8"), expected_user)
            pass_ok = secrets.compare_digest(credentials.password.encode("utf-8"), expected_pass)
            if user_ok and pass_ok:
                return credentials.username
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": f'Basic realm="{settings.auth.realm}"'},
        )

    async def load_records() -> List[MessageRecord]:
        # One mailbox session per request; nothing is shared between requests.
        async with open_session(settings.mailbox) as session:
            return await pipeline.run(session)

    app = FastAPI(title="Passcode Inbox", version=__version__)

    @app.exception_handler(MailboxError)
    async def mailbox_error_handler(request: Request, exc: MailboxError) -> PlainTextResponse:
        logger.error("Mailbox request failed: %s", exc)
        return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.get("/", response_class=HTMLResponse)
    async def emails_page(request: Request, user: str = Depends(require_user)) -> HTMLResponse:
        records = await load_records()
        page = PageData(emails=records, subject=settings.passcode.subject)
        return render_emails(request, page)

    @app.get("/api/passcodes", response_model=List[MessageRecord])
    async def passcodes(user: str = Depends(require_user)) -> List[MessageRecord]:
        return await load_records()

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    @app.get("/favicon.ico")
    async def favicon() -> Response:
        return Response(status_code=204)

    return app


def __getattr__(name: str) -> FastAPI:
    # Default ASGI app for `uvicorn otpinbox.app.main:app`, built on first access
    # so importing create_app never reads OTPINBOX_CONFIG.
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
