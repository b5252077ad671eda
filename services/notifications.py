"""
Outbound email for application events.

The dispatcher is built from an explicit MailConfig and reports every outcome
as a DeliveryResult instead of raising, so callers decide what a failed email
means for them. `verify()` is the health check for the SMTP settings.
"""
from __future__ import annotations

import html
import logging
import smtplib
import ssl
from dataclasses import asdict, dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Callable, Optional

from fastapi.concurrency import run_in_threadpool

from config import MailConfig
from models import Application
from utils.numbers import plain_number

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = {
    "EMAIL_HOST": "host",
    "EMAIL_PORT": "port",
    "EMAIL_USER": "user",
    "EMAIL_PASS": "password",
}


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    missing: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, [])}


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str
    text: str


def classify_error(err: Exception, config: MailConfig) -> list[str]:
    """Troubleshooting hints for common SMTP failures."""
    suggestions: list[str] = []
    message = str(err)
    if isinstance(err, smtplib.SMTPAuthenticationError):
        suggestions.append("Invalid EMAIL_USER or EMAIL_PASS")
        if (config.host or "").lower().endswith("gmail.com"):
            suggestions.append("If Gmail: create a 16-char App Password (account > Security)")
    elif isinstance(err, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected, ConnectionError)):
        suggestions.append("Check EMAIL_HOST / EMAIL_PORT reachability")
        suggestions.append("Firewall or network block possible")
    if isinstance(err, ssl.SSLError) and "self signed certificate" in message.lower():
        suggestions.append("Provide a valid TLS cert or use a trusted SMTP host")
    if isinstance(err, TimeoutError) or "timed out" in message.lower():
        suggestions.append("Port/security mismatch (try 587 STARTTLS or 465 secure)")
    return suggestions


class EmailDispatcher:
    def __init__(self, config: MailConfig, smtp_factory: Optional[Callable[[MailConfig], smtplib.SMTP]] = None):
        self.config = config
        self._smtp_factory = smtp_factory or self._connect

    def preflight(self) -> tuple[list[str], Optional[str]]:
        """Missing settings, plus a hint when a Gmail host is paired with a normal password."""
        missing = [env for env, attr in REQUIRED_SETTINGS.items() if getattr(self.config, attr) in (None, "")]
        hint = None
        if (self.config.host or "").lower().endswith("gmail.com") and len(self.config.password or "") < 16:
            hint = "Gmail requires a 16-char App Password (not your login password)."
        return missing, hint

    @staticmethod
    def _connect(config: MailConfig) -> smtplib.SMTP:
        if config.use_ssl:
            client: smtplib.SMTP = smtplib.SMTP_SSL(config.host, config.port, timeout=config.timeout)
        else:
            client = smtplib.SMTP(config.host, config.port, timeout=config.timeout)
            client.ehlo()
            if client.has_extn("starttls"):
                client.starttls(context=ssl.create_default_context())
                client.ehlo()
        if config.debug:
            client.set_debuglevel(1)
        return client

    def _open(self) -> smtplib.SMTP:
        client = self._smtp_factory(self.config)
        if self.config.user:
            client.login(self.config.user, self.config.password or "")
        return client

    def _deliver(self, message: EmailMessage) -> None:
        client = self._open()
        try:
            client.send_message(message)
        finally:
            client.quit()

    def _check(self) -> None:
        client = self._open()
        try:
            client.noop()
        finally:
            client.quit()

    def _failed(self, err: Exception) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            error=str(err) or err.__class__.__name__,
            code=err.__class__.__name__,
            suggestions=classify_error(err, self.config),
        )

    async def verify(self) -> DeliveryResult:
        missing, hint = self.preflight()
        if missing:
            return DeliveryResult(
                success=False,
                error="Missing/empty: " + ", ".join(missing),
                code="ENV_MISSING",
                missing=missing,
                suggestions=[hint] if hint else [],
            )
        try:
            await run_in_threadpool(self._check)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP verification failed: %s", e)
            return self._failed(e)
        return DeliveryResult(success=True)

    async def send_email(self, to: Optional[str], subject: str, html: str, text: Optional[str] = None) -> DeliveryResult:
        missing, hint = self.preflight()
        if missing:
            logger.warning("Email %r not sent: SMTP config incomplete (%s)", subject, ", ".join(missing))
            return DeliveryResult(
                success=False,
                error="SMTP config incomplete",
                code="ENV_MISSING",
                missing=missing,
                suggestions=[hint] if hint else [],
            )
        if not to:
            return DeliveryResult(success=False, error="No recipient address", code="NO_RECIPIENT")

        message = EmailMessage()
        message["From"] = self.config.sender or self.config.user
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(text or subject)
        message.add_alternative(html, subtype="html")
        try:
            await run_in_threadpool(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Email %r to %s failed: %s", subject, to, e)
            return self._failed(e)
        logger.info("Email %r sent to %s", subject, to)
        return DeliveryResult(success=True, message_id=message["Message-ID"])


def _amount(value: Any) -> str:
    if isinstance(value, (int, float)):
        return f"{plain_number(value):,}"
    return str(value or "")


def _wrap(heading: str, colour: str, paragraphs: list[str]) -> str:
    body = "\n".join(f'<p style="color:#666;">{p}</p>' for p in paragraphs)
    return (
        '<div style="font-family: Arial, sans-serif; max-width:600px; margin:0 auto; padding:20px;">\n'
        f'<h2 style="color:{colour};">{heading}</h2>\n{body}\n</div>'
    )


def _applicant(application: Application) -> str:
    return html.escape((application.personal_info or {}).get("full_name") or "Applicant")


def submission_email(application: Application) -> EmailContent:
    amount = _amount((application.loan_details or {}).get("loan_amount"))
    return EmailContent(
        subject="Loan Application Submitted",
        html=_wrap("Loan Application Submitted", "#333", [
            f"Dear {_applicant(application)},",
            "Your loan application has been submitted successfully.",
            f"<strong>Application Number:</strong> {application.application_number}",
            f"<strong>Loan Type:</strong> {html.escape(application.loan_type or '')}",
            f"<strong>Loan Amount:</strong> ₹{amount}",
            "We will review your application and get back to you soon.",
        ]),
        text=f"Your loan application {application.application_number} has been submitted.",
    )


def approval_email(application: Application) -> EmailContent:
    amount = _amount((application.loan_details or {}).get("loan_amount"))
    return EmailContent(
        subject="Loan Application Approved",
        html=_wrap("Loan Application Approved!", "#28a745", [
            f"Dear {_applicant(application)},",
            "Congratulations! Your loan application has been approved.",
            f"<strong>Application Number:</strong> {application.application_number}",
            f"<strong>Loan Amount:</strong> ₹{amount}",
            "Our team will contact you shortly to proceed with the disbursement.",
        ]),
        text=f"Your loan application {application.application_number} for ₹{amount} has been approved.",
    )


def rejection_email(application: Application) -> EmailContent:
    reason = html.escape(application.rejection_reason or "")
    return EmailContent(
        subject="Loan Application Status",
        html=_wrap("Loan Application Status", "#dc3545", [
            f"Dear {_applicant(application)},",
            "We regret to inform you that your loan application has been rejected.",
            f"<strong>Application Number:</strong> {application.application_number}",
            f"<strong>Reason:</strong> {reason}",
            "Please feel free to contact us if you have any questions.",
        ]),
        text=(
            f"Your loan application {application.application_number} has been rejected. "
            f"Reason: {application.rejection_reason}"
        ),
    )
