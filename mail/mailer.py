"""
mail/mailer.py -- SMTP delivery for transactional email.

SmtpMailer satisfies auth.interfaces.Mailer. When SMTP_HOST is not set
(local dev, tests) the message is logged instead of sent.

Delivery failures are logged and reported as False, never raised: the auth
core treats mail as fire-and-forget, and a registration must not fail
because the SMTP relay is down.

Recipient addresses are redacted in logs to avoid PII leakage.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from auth.models import EmailMessage
from core.config import Settings

logger = logging.getLogger("userhub.mail")


def redact_email(address: str) -> str:
    if "@" not in address:
        return "redacted"
    local, domain = address.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpMailer:
    def __init__(
        self,
        *,
        host: str = "",
        port: int = 587,
        user: str = "",
        password: str = "",
        use_tls: bool = True,
        from_addr: str = "UserHub <no-reply@localhost>",
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_addr = from_addr
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_addr=settings.mail_from,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def send_email(self, message: EmailMessage) -> bool:
        """Send one message. Returns True on success (or dev-mode log), False on failure."""
        to = redact_email(message.to)
        if not self.is_configured:
            logger.info("Email not sent (SMTP not configured) to=%s subject=%r", to, message.subject)
            logger.debug("Email body preview: %s", message.text[:200])
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.from_addr
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        try:
            context = ssl.create_default_context()
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    self._login(server)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    self._login(server)
                    server.send_message(msg)
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed host=%s user=%s: %s", self.host, self.user, exc)
            return False
        except smtplib.SMTPRecipientsRefused as exc:
            logger.error("SMTP recipient refused to=%s: %s", to, exc)
            return False
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            logger.error(
                "Email delivery failed to=%s host=%s:%d (%s): %s",
                to,
                self.host,
                self.port,
                type(exc).__name__,
                exc,
            )
            return False

        logger.info("Email sent to=%s subject=%r", to, message.subject)
        return True

    def _login(self, server: smtplib.SMTP) -> None:
        if self.user and self.password:
            server.login(self.user, self.password)
