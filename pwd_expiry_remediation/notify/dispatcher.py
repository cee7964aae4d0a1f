"""
Notification dispatcher — Renders and sends the post-remediation email.
Bodies are Jinja2 templates with a `displayName` variable.
"""

from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from typing import Callable

from jinja2 import Environment, Template, TemplateError, select_autoescape

from ..models import AccountRecord, NotificationRequest, NotificationSettings

logger = logging.getLogger("pwd_expiry_remediation.notify")

# Older templates use a single-brace {displayName} placeholder
_LEGACY_PLACEHOLDER = re.compile(r"(?<!\{)\{\s*displayName\s*\}(?!\})")

_env = Environment(autoescape=select_autoescape(default_for_string=True))


class NotificationError(Exception):
    """Raised when a message could not be rendered or delivered."""

    def __init__(self, recipient: str, message: str):
        self.recipient = recipient
        super().__init__(f"Notification to '{recipient}' failed: {message}")


def compile_template(body_template: str) -> Template:
    """Compile a body template, accepting the legacy single-brace placeholder."""
    source = _LEGACY_PLACEHOLDER.sub("{{ displayName }}", body_template)
    return _env.from_string(source)


class NotificationDispatcher:
    """
    Sends one high-priority HTML message per remediated account.
    The sender is blind-copied on every message.
    """

    def __init__(self, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self._smtp_factory = smtp_factory
        self._templates: dict[str, Template] = {}
        self._sent_count = 0

    def build_request(self, record: AccountRecord, settings: NotificationSettings) -> NotificationRequest:
        """Render the message for one account."""
        if not record.mail_address:
            raise NotificationError(record.identifier, "account has no mail address")

        try:
            template = self._templates.get(settings.body_template)
            if template is None:
                template = compile_template(settings.body_template)
                self._templates[settings.body_template] = template
            body = template.render(displayName=record.display_name or record.identifier)
        except TemplateError as e:
            raise NotificationError(record.mail_address, f"template error: {e}") from e

        return NotificationRequest(
            recipient=record.mail_address,
            sender=settings.sender,
            bcc=settings.sender,
            subject=settings.subject,
            body=body,
        )

    def notify(self, record: AccountRecord, settings: NotificationSettings) -> NotificationRequest:
        """
        Render and deliver the notification for one account.
        Raises NotificationError on any rendering or transport failure.
        """
        request = self.build_request(record, settings)

        try:
            msg = EmailMessage()
            msg["Subject"] = request.subject
            msg["From"] = request.sender
            msg["To"] = request.recipient
            msg["X-Priority"] = "1"
            msg["Importance"] = "High"
            msg.set_content(request.body, subtype="html")
        except ValueError as e:
            raise NotificationError(request.recipient, f"invalid message header: {e}") from e

        try:
            with self._smtp_factory(
                settings.smtp_server, settings.smtp_port, timeout=settings.timeout
            ) as smtp:
                refused = smtp.send_message(
                    msg,
                    from_addr=request.sender,
                    to_addrs=[request.recipient, request.bcc],
                )
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(request.recipient, f"{type(e).__name__}: {e}") from e

        # smtplib only raises when every recipient is refused; the Bcc may still be accepted
        if refused and request.recipient in refused:
            code, reply = refused[request.recipient]
            if isinstance(reply, bytes):
                reply = reply.decode("utf-8", errors="replace")
            raise NotificationError(request.recipient, f"recipient refused ({code} {reply})")
        if refused:
            logger.warning(f"Recipients refused for {request.recipient}: {sorted(refused)}")

        self._sent_count += 1
        logger.info(f"Notification sent to {request.recipient} via {settings.smtp_server}")
        return request

    def get_stats(self) -> dict:
        return {"messages_sent": self._sent_count}
