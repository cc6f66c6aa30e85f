"""CLI entrypoint: serve the passcode page or print passcodes once."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from otpinbox.app.rendering import format_datetime
from otpinbox.core.errors import MailboxError, SettingsError
from otpinbox.core.models import MessageRecord
from otpinbox.core.pipeline import PasscodePipeline
from otpinbox.core.settings import RuntimeSettings, config_path_from_env
from otpinbox.services.session import ImapMailSession
from otpinbox.utils.logging import get_logger


logger = get_logger("PasscodeCLI")


def _load_settings(path: Optional[Path]) -> RuntimeSettings:
    return RuntimeSettings.from_file(path if path is not None else config_path_from_env())


async def fetch_once(settings: RuntimeSettings, *, subject: Optional[str] = None, sender: Optional[str] = None) -> List[MessageRecord]:
    pipeline = PasscodePipeline(settings.passcode, mailbox=settings.mailbox.folder)
    async with ImapMailSession.open(settings.mailbox) as session:
        return await pipeline.run(session, subject, sender)


def print_records(records: Sequence[MessageRecord], console: Console) -> None:
    if not records:
        console.print("[dim]No passcode emails found.[/dim]")
        return
    table = Table(title="Login passcodes")
    table.add_column("Date")
    table.add_column("Passcode", style="bold")
    table.add_column("From")
    table.add_column("Subject")
    for record in records:
        table.add_row(format_datetime(record.date), record.body or "-", record.sender, record.subject)
    console.print(table)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from otpinbox.app.main import create_app

    settings = _load_settings(args.config)
    settings.require_credentials()
    app = create_app(settings)
    host = args.host or settings.server.host
    port = args.port or settings.server.port
    logger.info("Server starting on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)
    return 0


def _fetch(args: argparse.Namespace) -> int:
    settings = _load_settings(args.config)
    if not settings.mailbox.username or not settings.mailbox.password:
        raise SettingsError("Missing mailbox username/password (set them in the config file or environment)")
    records = asyncio.run(fetch_once(settings, subject=args.subject, sender=args.sender))
    if args.json:
        print(json.dumps([record.model_dump(mode="json") for record in records], indent=2))
    else:
        print_records(records, Console())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="otpinbox", description="Read login passcodes from a mailbox.")
    parser.add_argument("--config", type=Path, default=None, help="Path to settings YAML (default: $OTPINBOX_CONFIG)")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Serve the passcode page behind basic auth")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(handler=_serve)

    fetch = commands.add_parser("fetch", help="Print the most recent passcodes once")
    fetch.add_argument("--subject", default=None, help="Override the configured subject filter")
    fetch.add_argument("--sender", default=None, help="Also filter on the From header")
    fetch.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    fetch.set_defaults(handler=_fetch)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (SettingsError, MailboxError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
