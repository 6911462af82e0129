from __future__ import annotations

from pathlib import Path

import pytest

from docmerge.core.errors import ConfigError
from docmerge.core.settings import ensure_work_dirs, load_settings


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_packaged_defaults(monkeypatch) -> None:
    monkeypatch.delenv("DOCMERGE_TIMEZONE", raising=False)
    monkeypatch.delenv("DOCMERGE_RENDER_DPI", raising=False)
    settings = load_settings()
    assert settings.timezone == "UTC"
    assert settings.render_dpi == 96
    assert settings.font_name == "Helvetica"
    assert "{documentNumber}" in settings.default_subject


def test_file_values_and_env_overrides(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DOCMERGE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("DOCMERGE_RENDER_DPI", "72")
    monkeypatch.setenv("SMTP_HOST", "smtp.internal")
    monkeypatch.setenv("SMTP_STARTTLS", "false")
    path = _write(
        tmp_path,
        "timezone: Europe/Berlin\n"
        "render_dpi: 150\n"
        "delivery:\n  subject: 'Doc {documentNumber}'\n"
        "smtp:\n  host: ignored\n  port: 2525\n",
    )
    settings = load_settings(path)
    assert settings.home == tmp_path / "home"
    assert settings.timezone == "Europe/Berlin"
    assert settings.render_dpi == 72
    assert settings.default_subject == "Doc {documentNumber}"
    assert settings.smtp.host == "smtp.internal"
    assert settings.smtp.port == 2525
    assert settings.smtp.starttls is False
    assert settings.reports_dir == tmp_path / "home" / "reports"


@pytest.mark.parametrize(
    "text",
    ["timezone: Mars/Olympus\n", "render_dpi: -1\n", "render_dpi: lots\n", "- just\n- a list\n"],
)
def test_invalid_settings(tmp_path: Path, monkeypatch, text: str) -> None:
    monkeypatch.delenv("DOCMERGE_TIMEZONE", raising=False)
    monkeypatch.delenv("DOCMERGE_RENDER_DPI", raising=False)
    with pytest.raises(ConfigError):
        load_settings(_write(tmp_path, text))


def test_missing_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "absent.yaml")


def test_ensure_work_dirs(tmp_path: Path) -> None:
    dirs = ensure_work_dirs(tmp_path)
    assert set(dirs) == {"templates", "sources", "out", "reports", "store", "logs"}
    assert all(p.is_dir() for p in dirs.values())
