# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Outbound mail transports.

Two variants share the :class:`Transport` interface and are chosen once at
startup by :func:`create_transport`:

- :class:`SMTPTransport` delivers through an SMTP server with aiosmtplib.
- :class:`SimulatedTransport` only logs the message and always succeeds;
  it is used when SMTP credentials are incomplete.

Callers treat a raised exception exactly like a failed :class:`SendResult`.
"""

from __future__ import annotations

import asyncio
import html
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

import aiosmtplib

from .config import Settings
from .logger import get_logger
from .models import SendResult


def build_confirmation_message(
    sender: Optional[str],
    recipient: str,
    display_name: str,
    code: str,
) -> EmailMessage:
    """Render the fixed confirmation-code message.

    The message carries a plain-text part and an HTML alternative; the display
    name and code are HTML-escaped in the latter.
    """
    msg = EmailMessage()
    if sender:
        msg["From"] = sender
    msg["To"] = recipient
    msg["Subject"] = f"Confirmation code for {display_name}"
    domain = sender.rsplit("@", 1)[-1] if sender and "@" in sender else None
    msg["Message-ID"] = make_msgid(domain=domain)
    msg.set_content(f"Hello, {display_name}!\n\nYour confirmation code: {code}\n")
    safe_name = html.escape(display_name)
    safe_code = html.escape(code)
    msg.add_alternative(
        f"<p>Hello, {safe_name}!</p>"
        f"<p>Your confirmation code: <b>{safe_code}</b></p>"
        "<p>If you did not request this code, ignore this email.</p>",
        subtype="html",
    )
    return msg


class Transport:
    """Capability to hand one message to the outside world."""

    simulated = False

    async def send(self, message: EmailMessage) -> SendResult:
        raise NotImplementedError


class SimulatedTransport(Transport):
    """Log-only transport used when SMTP is not configured."""

    simulated = True

    def __init__(self, logger=None):
        self.logger = logger or get_logger("CodeMailer.transport")

    async def send(self, message: EmailMessage) -> SendResult:
        self.logger.info(
            "[SIMULATION] send-code to=%s subject=%s", message.get("To"), message.get("Subject")
        )
        return SendResult(ok=True, info=message.get("Message-ID"))


class SMTPTransport(Transport):
    """Deliver messages through an SMTP server, one connection per message.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS when
    the server offers it. Connection, login and delivery are each bounded by
    ``timeout`` so a stuck server cannot hang a request forever.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        *,
        timeout: float = 10.0,
        use_tls: Optional[bool] = None,
        logger=None,
    ):
        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.timeout = float(timeout)
        self.use_tls = self.port == 465 if use_tls is None else bool(use_tls)
        self.logger = logger or get_logger("CodeMailer.transport")

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            use_tls=self.use_tls,
            start_tls=False if self.use_tls else None,
            timeout=self.timeout,
        )

    async def _deliver(self, message: EmailMessage):
        smtp = self._client()
        await smtp.connect()
        try:
            if self.username and self.password:
                await smtp.login(self.username, self.password)
            return await smtp.send_message(message)
        finally:
            try:
                await smtp.quit()
            except (aiosmtplib.SMTPException, OSError):
                smtp.close()

    async def send(self, message: EmailMessage) -> SendResult:
        """Send ``message``; SMTP and network errors become failed results."""
        try:
            # Outer bound in case aiosmtplib's per-command timeout is not honoured.
            errors, response = await asyncio.wait_for(self._deliver(message), timeout=self.timeout * 3)
        except (aiosmtplib.SMTPException, asyncio.TimeoutError, OSError) as exc:
            return SendResult(ok=False, error=exc)
        if errors:
            refused = ", ".join(sorted(errors))
            return SendResult(ok=False, error=aiosmtplib.SMTPException(f"Recipients refused: {refused}"))
        return SendResult(ok=True, info=message.get("Message-ID") or response)


def create_transport(settings: Settings, logger=None) -> Transport:
    """Select the transport variant for ``settings``."""
    log = logger or get_logger("CodeMailer.transport")
    if not settings.smtp_configured:
        log.warning(
            "SMTP credentials are not fully set; running in SIMULATION mode (no real emails sent). "
            "Set ACM_SMTP_HOST, ACM_SMTP_USER and ACM_SMTP_PASSWORD to enable real sending."
        )
        return SimulatedTransport(logger=log)
    return SMTPTransport(
        settings.smtp_host or "",
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        timeout=settings.smtp_timeout,
        logger=log,
    )
