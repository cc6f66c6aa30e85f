"""Runtime settings loader."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from otpinbox.core.errors import SettingsError
from otpinbox.utils.env import get_env, load_env_file


DEFAULT_START_MARKER = "Please enter the following passcode in the app to log in:"
DEFAULT_END_MARKER = "This passcode will expire in 15 minutes."
DEFAULT_SUBJECT = "Your Login passcode for milesAI is"


class MailboxSettings(BaseModel):
    host: str = "imap.mail.me.com"
    port: int = 993
    username: str = ""
    password: str = ""
    folder: str = "INBOX"
    use_ssl: bool = True


class PasscodeSettings(BaseModel):
    subject: str = DEFAULT_SUBJECT
    sender: Optional[str] = None
    start_marker: str = Field(default=DEFAULT_START_MARKER, min_length=1)
    end_marker: str = Field(default=DEFAULT_END_MARKER, min_length=1)
    max_results: Optional[int] = Field(default=None, ge=1)
    since_days: Optional[int] = Field(default=None, ge=1)


class AuthSettings(BaseModel):
    """Basic-auth credentials guarding the web page."""

    username: str = ""
    password: str = ""
    realm: str = "Restricted"


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 9090


class RuntimeSettings(BaseModel):
    mailbox: MailboxSettings = Field(default_factory=MailboxSettings)
    passcode: PasscodeSettings = Field(default_factory=PasscodeSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @classmethod
    def from_file(cls, path: Optional[Path]) -> "RuntimeSettings":
        """Load YAML settings (optional) and apply environment overrides."""
        data: dict = {}
        if path is not None:
            if not path.exists():
                raise SettingsError(f"Settings file not found: {path}")
            data = yaml.safe_load(path.read_text()) or {}
            load_env_file(path.parent / ".env")
        load_env_file()
        try:
            settings = cls.model_validate(data)
        except ValidationError as exc:
            raise SettingsError(f"Invalid runtime settings: {exc}") from exc
        return settings.with_env_overrides()

    def with_env_overrides(self) -> "RuntimeSettings":
        mailbox = self.mailbox.model_copy(
            update={
                "username": get_env("OTPINBOX_IMAP_USERNAME", default=self.mailbox.username),
                "password": get_env("OTPINBOX_IMAP_PASSWORD", default=self.mailbox.password),
            }
        )
        auth = self.auth.model_copy(
            update={
                "username": get_env("OTPINBOX_WEB_USERNAME", default=self.auth.username),
                "password": get_env("OTPINBOX_WEB_PASSWORD", default=self.auth.password),
            }
        )
        return self.model_copy(update={"mailbox": mailbox, "auth": auth})

    def require_credentials(self) -> None:
        """Fail fast when the mailbox or web credentials are blank."""
        missing = []
        if not self.mailbox.username or not self.mailbox.password:
            missing.append("mailbox username/password")
        if not self.auth.username or not self.auth.password:
            missing.append("web auth username/password")
        if missing:
            raise SettingsError("Missing " + " and ".join(missing) + " (set them in the config file or environment)")


def config_path_from_env(default: str = "config/otpinbox.yml") -> Optional[Path]:
    """Explicit $OTPINBOX_CONFIG, else the default path when it exists."""
    raw = get_env("OTPINBOX_CONFIG")
    if raw:
        return Path(raw)
    path = Path(default)
    return path if path.exists() else None
