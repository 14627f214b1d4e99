"""
Outbound email notifications for the application workflow and the overdue sweep.

Services never send mail themselves: they return NotificationEvent values and the
caller delivers them once the transaction has committed. A failed send is logged
and reported as False; it never fails or rolls back the operation that emitted it.
"""
from __future__ import annotations

import html
import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Iterable, Protocol

from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

ORG_NAME = "Community Loan Desk"

APPLICATION_RECEIVED = "application_received"
CONDITIONALLY_APPROVED = "conditionally_approved"
APPROVED = "approved"
REJECTED = "rejected"
PAYMENT_REMINDER = "payment_reminder"


@dataclass(frozen=True)
class NotificationEvent:
    kind: str
    recipient: str
    data: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    def send(self, kind: str, recipient: str, data: dict[str, Any]) -> bool: ...


def _money(value: Any) -> str:
    return f"${float(value):,.2f}"


def _wrap(heading: str, body: str) -> str:
    return (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f"<h1>{html.escape(heading)}</h1>{body}"
        f"<p>Best regards,<br/><strong>{ORG_NAME} Team</strong></p></div>"
    )


def render(kind: str, data: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, html) for a notification kind."""
    name = html.escape(str(data.get("name", "")))
    if kind == APPLICATION_RECEIVED:
        body = (
            f"<p>Dear {name},</p>"
            f"<p>Thank you for submitting your loan application for <strong>{_money(data['loan_amount'])}</strong>. "
            "Our team will review it within 2-3 business days and may reach out for additional documents.</p>"
        )
        return f"Loan Application Received - {ORG_NAME}", _wrap("Application Received", body)

    if kind in (CONDITIONALLY_APPROVED, APPROVED):
        conditions = data.get("conditions")
        body = (
            f"<p>Dear {name},</p>"
            f"<p>Your loan application for <strong>{_money(data['loan_amount'])}</strong> has been approved"
            f"{' subject to the conditions below' if conditions else ''}.</p>"
        )
        if conditions:
            body += f"<p><strong>Conditions:</strong> {html.escape(conditions)}</p>"
            documents = data.get("required_documents") or []
            if documents:
                items = "".join(f"<li>{html.escape(d)}</li>" for d in documents)
                body += f"<p><strong>Required documents:</strong></p><ul>{items}</ul>"
        body += "<p>Our team will be in touch shortly about the next steps.</p>"
        return f"Your Loan Has Been Approved - {ORG_NAME}", _wrap("Congratulations!", body)

    if kind == REJECTED:
        reason = data.get("reason")
        body = (
            f"<p>Dear {name},</p>"
            "<p>After careful review we are unable to approve your application at this time.</p>"
        )
        if reason:
            body += f"<p><strong>Reason:</strong> {html.escape(reason)}</p>"
        body += "<p>This decision does not prevent you from applying again in the future.</p>"
        return f"Loan Application Update - {ORG_NAME}", _wrap("Loan Application Update", body)

    if kind == PAYMENT_REMINDER:
        body = (
            f"<p>Dear {name},</p>"
            f"<p>A payment of <strong>{_money(data['amount_due'])}</strong> on your loan of "
            f"{_money(data['loan_amount'])} was due on <strong>{html.escape(str(data['due_date']))}</strong>.</p>"
            "<p>If you need to discuss your payment, please contact us.</p>"
        )
        return f"Payment Reminder - {ORG_NAME}", _wrap("Payment Reminder", body)

    raise ValueError(f"Unknown notification kind: {kind}")


class EmailNotifier:
    """Sends rendered notifications over SMTP."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings

    def send(self, kind: str, recipient: str, data: dict[str, Any]) -> bool:
        s = self.settings
        if not s.email_enabled:
            logger.warning("Email credentials not configured; %s email to %s not sent", kind, recipient)
            return False
        try:
            subject, body = render(kind, data)
            message = MIMEMultipart("alternative")
            message["Subject"] = subject
            message["From"] = s.mail_from
            message["To"] = recipient
            message.attach(MIMEText(body, "html"))

            if s.smtp_use_tls:
                server = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30)
                server.starttls()
            else:
                server = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=30)
            with server:
                server.login(s.smtp_username, s.smtp_password)
                server.sendmail(s.mail_from, [recipient], message.as_string())
        except (smtplib.SMTPException, OSError, ValueError, KeyError):
            logger.exception("Failed to send %s email to %s", kind, recipient)
            return False
        logger.info("Sent %s email to %s", kind, recipient)
        return True


def deliver_events(notifier: Notifier, events: Iterable[NotificationEvent]) -> int:
    """Send each event; failures are logged and skipped. Returns the number sent."""
    sent = 0
    for event in events:
        try:
            ok = notifier.send(event.kind, event.recipient, event.data)
        except Exception:
            logger.exception("Notifier raised while sending %s to %s", event.kind, event.recipient)
            continue
        if ok:
            sent += 1
        else:
            logger.warning("Notification %s to %s was not delivered", event.kind, event.recipient)
    return sent


def get_notifier() -> Notifier:
    """FastAPI dependency; tests override it with a recording notifier."""
    return EmailNotifier()
