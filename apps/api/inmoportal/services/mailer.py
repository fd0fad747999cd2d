"""HTML email rendering and SMTP delivery for the server-side email handlers."""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.config import Settings, settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


@lru_cache
def get_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )


def render_template(template_name: str, **context: Any) -> str:
    template = get_template_env().get_template(template_name)
    return template.render(**context)


class Mailer:
    """Send HTML mail through an SMTP relay (SendGrid by default)."""

    def __init__(self, config: Settings) -> None:
        self._config = config

    def _build_message(self, to: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self._config.smtp_from
        message["To"] = to
        message.attach(MIMEText(text_body, "plain", "utf-8"))
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message

    def _send_sync(self, message: MIMEMultipart) -> None:
        config = self._config
        with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=30) as server:
            if config.smtp_use_tls:
                server.starttls()
            if config.smtp_username and config.smtp_password:
                server.login(config.smtp_username, config.smtp_password)
            server.send_message(message)

    async def send(self, to: str, subject: str, html_body: str, *, text_body: str = "") -> None:
        """Deliver one message; SMTP and socket errors propagate to the caller."""

        message = self._build_message(to, subject, html_body, text_body or subject)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_sync, message)
        logger.info("Email sent to %s: %s", to, subject)


@lru_cache
def get_mailer() -> Mailer:
    return Mailer(settings)
