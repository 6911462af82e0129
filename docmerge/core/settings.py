from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


load_dotenv(override=False)

HOME_ENV = "DOCMERGE_HOME"
TIMEZONE_ENV = "DOCMERGE_TIMEZONE"
RENDER_DPI_ENV = "DOCMERGE_RENDER_DPI"

DEFAULT_TIMEZONE = "UTC"
DEFAULT_RENDER_DPI = 96.0
DEFAULT_FONT_NAME = "Helvetica"
DEFAULT_SUBJECT = "Document {documentNumber}"
DEFAULT_BODY = "Please find attached document {documentNumber}."


@dataclass
class SmtpSettings:
    """Outgoing mail server used by the e-mail delivery channel."""

    host: str = "localhost"
    port: int = 587
    username: str | None = None
    password: str | None = None
    sender: str | None = None
    starttls: bool = True
    timeout_sec: float = 30.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SmtpSettings":
        data = dict(data or {})
        env = os.environ
        try:
            return cls(
                host=env.get("SMTP_HOST") or str(data.get("host", cls.host)),
                port=int(env.get("SMTP_PORT") or data.get("port", cls.port)),
                username=env.get("SMTP_USER") or data.get("username"),
                password=env.get("SMTP_PASSWORD") or data.get("password"),
                sender=env.get("SMTP_FROM") or data.get("sender"),
                starttls=_as_bool(env.get("SMTP_STARTTLS", data.get("starttls", cls.starttls))),
                timeout_sec=float(env.get("SMTP_TIMEOUT") or data.get("timeout_sec", cls.timeout_sec)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid smtp settings: {e}") from e


@dataclass
class Settings:
    """Runtime settings for DocMerge.

    Attributes:
        home: Workspace root holding templates/, out/, store/ and logs/.
        timezone: IANA zone used when rendering date values.
        render_dpi: DPI the mapping coordinates were authored at.
        font_name: Default font for overlay text.
        font_path: Optional TrueType file registered under ``font_name``.
        default_subject: Delivery subject used when a mapping set has none.
        default_body: Delivery body used when a mapping set has none.
        smtp: Outgoing mail server settings.
    """

    home: Path
    timezone: str = DEFAULT_TIMEZONE
    render_dpi: float = DEFAULT_RENDER_DPI
    font_name: str = DEFAULT_FONT_NAME
    font_path: Path | None = None
    default_subject: str = DEFAULT_SUBJECT
    default_body: str = DEFAULT_BODY
    smtp: SmtpSettings = field(default_factory=SmtpSettings)

    @property
    def templates_dir(self) -> Path:
        return self.home / "templates"

    @property
    def out_dir(self) -> Path:
        return self.home / "out"

    @property
    def sources_dir(self) -> Path:
        return self.home / "sources"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    @property
    def reports_dir(self) -> Path:
        return self.home / "reports"


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _config_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "config"


def _work_dir() -> Path:
    env = os.getenv(HOME_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / "DocMerge"


def ensure_work_dirs(home: Path | None = None) -> dict[str, Path]:
    base = home or _work_dir()
    dirs = {
        "templates": base / "templates",
        "sources": base / "sources",
        "out": base / "out",
        "reports": base / "reports",
        "store": base / "store",
        "logs": base / "logs",
    }
    for p in dirs.values():
        p.mkdir(parents=True, exist_ok=True)
    return dirs


def validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {name}") from e
    return name


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from settings.yaml, applying environment overrides.

    Returns a Settings instance; raises ConfigError when a value is invalid.
    """
    cfg_path = Path(path) if path else _config_dir() / "settings.yaml"
    data: dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"settings file must contain a mapping: {cfg_path}")
    elif path is not None:
        raise ConfigError(f"settings file not found: {cfg_path}")

    home_raw = os.getenv(HOME_ENV) or data.get("home")
    home = Path(home_raw).expanduser() if home_raw else _work_dir()

    font = data.get("font") or {}
    delivery = data.get("delivery") or {}
    try:
        render_dpi = float(os.getenv(RENDER_DPI_ENV) or data.get("render_dpi", DEFAULT_RENDER_DPI))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid render_dpi: {e}") from e
    if render_dpi <= 0:
        raise ConfigError("render_dpi must be positive")

    font_path = font.get("path")
    return Settings(
        home=home,
        timezone=validate_timezone(os.getenv(TIMEZONE_ENV) or str(data.get("timezone", DEFAULT_TIMEZONE))),
        render_dpi=render_dpi,
        font_name=str(font.get("name", DEFAULT_FONT_NAME)),
        font_path=Path(font_path).expanduser() if font_path else None,
        default_subject=str(delivery.get("subject", DEFAULT_SUBJECT)),
        default_body=str(delivery.get("body", DEFAULT_BODY)),
        smtp=SmtpSettings.from_mapping(data.get("smtp")),
    )
