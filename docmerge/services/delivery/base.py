from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from docmerge.core.errors import ConfigError, EmptyRecipient
from docmerge.services.storage.base import FileRef, IDocumentStore


def require_recipient(recipient: str | None) -> str:
    """Return the trimmed recipient or raise EmptyRecipient."""

    cleaned = (recipient or "").strip()
    if not cleaned:
        raise EmptyRecipient("recipient is empty")
    return cleaned


class IDelivery(ABC):
    """Interface for channels that transmit a generated document."""

    @abstractmethod
    def deliver(
        self,
        recipient: str,
        subject: str,
        body: str,
        file_ref: FileRef,
        cc: Sequence[str] | None = None,
        bcc: Sequence[str] | None = None,
    ) -> None:
        """Send ``file_ref`` to ``recipient``; raises DeliveryError on failure."""


def delivery_from_config(cfg: dict[str, Any] | None, *, settings: Any, store: IDocumentStore) -> IDelivery:
    dtype = (cfg or {}).get("type", "smtp").lower()
    if dtype in {"smtp", "email", "mail"}:
        from .smtp import SmtpDelivery

        return SmtpDelivery(settings.smtp, store)
    raise ConfigError(f"unknown delivery channel: {dtype}")
