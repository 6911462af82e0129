from __future__ import annotations

import logging
import mimetypes
import smtplib
from email.message import EmailMessage
from typing import Sequence

from docmerge.core.errors import DeliveryError, StorageFailure
from docmerge.core.logger import get_logger
from docmerge.core.settings import SmtpSettings
from docmerge.services.storage.base import FileRef, IDocumentStore

from .base import IDelivery, require_recipient


class SmtpDelivery(IDelivery):
    """Sends each document as an e-mail attachment through an SMTP server."""

    def __init__(
        self,
        settings: SmtpSettings,
        store: IDocumentStore,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.logger = logger or get_logger()

    def build_message(
        self,
        recipient: str,
        subject: str,
        body: str,
        file_ref: FileRef,
        data: bytes,
        cc: Sequence[str] | None = None,
        bcc: Sequence[str] | None = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.sender or self.settings.username or "docmerge@localhost"
        msg["To"] = recipient
        if cc:
            msg["Cc"] = ", ".join(cc)
        if bcc:
            msg["Bcc"] = ", ".join(bcc)
        msg["Subject"] = subject
        msg.set_content(body)
        mime, _ = mimetypes.guess_type(file_ref.name)
        maintype, subtype = (mime or "application/octet-stream").split("/", 1)
        msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=file_ref.name)
        return msg

    def deliver(
        self,
        recipient: str,
        subject: str,
        body: str,
        file_ref: FileRef,
        cc: Sequence[str] | None = None,
        bcc: Sequence[str] | None = None,
    ) -> None:
        to_addr = require_recipient(recipient)
        try:
            data = self.store.read(file_ref)
        except StorageFailure as e:
            raise DeliveryError(f"cannot load attachment {file_ref.id}: {e}") from e

        msg = self.build_message(to_addr, subject, body, file_ref, data, cc, bcc)
        cfg = self.settings
        try:
            with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout_sec) as server:
                if cfg.starttls:
                    server.starttls()
                if cfg.username and cfg.password:
                    server.login(cfg.username, cfg.password)
                # send_message drops the Bcc header but still delivers to it.
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery to {to_addr} failed: {e}") from e
        self.logger.info("Delivered %s to %s", file_ref.name, to_addr)
