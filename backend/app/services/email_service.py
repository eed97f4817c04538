"""SMTP delivery for work-order emails.

Connection settings come from the company settings row, with ``SMTP_*``
environment values filling any gaps.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
import time
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.services.catalog_service import get_company_settings
from app.utils.alerting import alert_tracker

logger = logging.getLogger(__name__)


class EmailConfigError(RuntimeError):
    """SMTP settings are incomplete; nothing was sent."""


class EmailSendError(RuntimeError):
    """Delivery failed after all attempts."""


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int
    user: str
    password: str
    secure: bool
    from_name: str
    from_email: str
    timeout_seconds: float = 15.0

    @property
    def from_header(self) -> str:
        return formataddr((self.from_name, self.from_email)) if self.from_name else self.from_email


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    maintype: str = "application"
    subtype: str = "pdf"


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str = ""
    attachments: list[EmailAttachment] = field(default_factory=list)


def _redact_email(value: str) -> str:
    if not value or "@" not in value:
        return "***"
    local, _, domain = value.partition("@")
    return f"{local[:1]}***@{domain}"


def load_smtp_config(db: Optional[Session] = None) -> SmtpConfig:
    """Resolve SMTP settings, failing fast when the essentials are missing."""
    settings = get_settings()
    company = get_company_settings(db) if db is not None else None

    host = (company.smtp_host if company and company.smtp_host else settings.smtp_host) or ""
    port = (company.smtp_port if company and company.smtp_port else settings.smtp_port) or 0
    user = (company.smtp_user if company and company.smtp_user else settings.smtp_user) or ""
    password = (company.smtp_password if company and company.smtp_password else settings.smtp_password) or ""
    if company and company.smtp_host and company.smtp_secure is not None:
        secure = bool(company.smtp_secure)
    else:
        secure = settings.smtp_secure

    missing = [
        name
        for name, value in (
            ("smtp_host", host),
            ("smtp_port", port),
            ("smtp_user", user),
            ("smtp_password", password),
        )
        if not value
    ]
    if missing:
        raise EmailConfigError(f"Email configuration is incomplete: missing {', '.join(missing)}")

    from_name = (
        (company.smtp_from_name if company else None)
        or settings.smtp_from_name
        or (company.name if company else None)
        or settings.company_display_name
    )
    from_email = (company.smtp_from_email if company else None) or settings.smtp_from_email or user

    return SmtpConfig(
        host=host.strip(),
        port=int(port),
        user=user,
        password=password,
        secure=secure,
        from_name=from_name,
        from_email=from_email,
        timeout_seconds=settings.smtp_timeout_seconds,
    )


def build_message(smtp: SmtpConfig, email: OutgoingEmail) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = smtp.from_header
    msg["To"] = email.to
    msg["Subject"] = email.subject
    msg["Message-ID"] = make_msgid(domain=smtp.from_email.partition("@")[2] or None)
    msg.set_content(email.text or "This message requires an HTML-capable email client.")
    msg.add_alternative(email.html, subtype="html")

    for attachment in email.attachments:
        msg.add_attachment(
            attachment.content,
            maintype=attachment.maintype,
            subtype=attachment.subtype,
            filename=attachment.filename,
        )
    return msg


def _open_connection(smtp: SmtpConfig) -> smtplib.SMTP:
    context = ssl.create_default_context()
    if smtp.secure or smtp.port == 465:
        return smtplib.SMTP_SSL(smtp.host, smtp.port, timeout=smtp.timeout_seconds, context=context)

    server = smtplib.SMTP(smtp.host, smtp.port, timeout=smtp.timeout_seconds)
    server.ehlo()
    if server.has_extn("starttls"):
        server.starttls(context=context)
        server.ehlo()
    return server


def send_email(smtp: SmtpConfig, email: OutgoingEmail, *, verify: Optional[bool] = None) -> None:
    """Single delivery attempt. Raises whatever smtplib raises."""
    if verify is None:
        verify = get_settings().smtp_verify_before_send

    msg = build_message(smtp, email)
    server = _open_connection(smtp)
    try:
        server.login(smtp.user, smtp.password)
        if verify:
            code, _ = server.noop()
            if code != 250:
                raise smtplib.SMTPResponseException(code, b"SMTP connection verification failed")
        server.send_message(msg)
    finally:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            pass
    logger.info("Email sent to=%s via=%s:%s", _redact_email(email.to), smtp.host, smtp.port)


def compute_retry_delay(attempt: int, base_seconds: float) -> float:
    # base, 2*base, 4*base, ...
    return max(0.0, base_seconds) * (2 ** max(0, attempt - 1))


def send_email_with_retry(
    smtp: SmtpConfig,
    email: OutgoingEmail,
    *,
    max_attempts: Optional[int] = None,
    base_delay_seconds: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Deliver with bounded exponential backoff. Returns the attempt that succeeded."""
    settings = get_settings()
    attempts = int(max(1, max_attempts if max_attempts is not None else settings.email_max_attempts))
    base = base_delay_seconds if base_delay_seconds is not None else settings.email_retry_base_seconds

    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            send_email(smtp, email)
            return attempt
        except smtplib.SMTPAuthenticationError as exc:
            # Bad credentials will not get better on retry.
            last_exc = exc
            logger.error("SMTP authentication failed host=%s user=%s", smtp.host, smtp.user)
            break
        except (smtplib.SMTPException, OSError) as exc:
            last_exc = exc
            logger.warning(
                "Email attempt %s/%s to=%s failed: %s",
                attempt,
                attempts,
                _redact_email(email.to),
                exc,
            )
            if attempt < attempts:
                sleep(compute_retry_delay(attempt, base))

    alert_tracker.record("EMAIL_SEND_FAILED", {"host": smtp.host})
    raise EmailSendError(f"Email delivery failed: {last_exc}") from last_exc
