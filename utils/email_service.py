"""SMTP-backed notification sender for complaint confirmations and status emails."""
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Dict, List, Optional

from flask import render_template


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None


SUBJECTS: Dict[str, str] = {
    "confirmation": "Complaint Received - Thank You for Reaching Out",
    "update": "Update on your complaint #{reference}",
    "resolution": "Your complaint #{reference} has been resolved",
}

TEMPLATES: Dict[str, str] = {
    "confirmation": "email/complaint_confirmation.html",
    "update": "email/complaint_update.html",
    "resolution": "email/complaint_resolved.html",
}


def _display_date(value) -> str:
    moment = value if isinstance(value, datetime) else datetime.now()
    return moment.strftime("%B %d, %Y %I:%M %p")


def _text_body(kind: str, snapshot: Dict, sender_name: str, sender_email: str, support_phone: str) -> str:
    name = snapshot.get("name") or "Customer"
    reference = snapshot.get("reference") or "N/A"
    if kind == "confirmation":
        intro = (
            "Thank you for submitting your complaint. We have successfully received your request regarding "
            f"{snapshot.get('category') or 'your issue'} and our support team is reviewing it. "
            "We aim to respond within 24-48 hours."
        )
        details = (
            "Your Submission Details:\n"
            f"- Name: {snapshot.get('name') or 'N/A'}\n"
            f"- Company: {snapshot.get('company') or 'N/A'}\n"
            f"- Category: {snapshot.get('category') or 'General'}\n"
            f"- Contact: {snapshot.get('contact') or 'N/A'}\n"
            f"- Date: {_display_date(snapshot.get('created_at'))}\n\n"
            f"Your complaint reference number is #{reference}. Please keep this for your records."
        )
    elif kind == "resolution":
        intro = f"Your complaint #{reference} has been marked as resolved."
        details = f"Resolution:\n{snapshot.get('resolution') or 'No additional details were provided.'}"
    else:
        intro = f"There is an update on your complaint #{reference}."
        details = f"Current status: {snapshot.get('status') or 'pending'}"
    return (
        f"Dear {name},\n\n{intro}\n\n{details}\n\n"
        f"For urgent assistance, call our support line at {support_phone}.\n\n"
        f"Best regards,\n{sender_name}\n{sender_email}\n\n"
        "This is an automated message. Please do not reply directly to this email."
    )


def _dispatch_email(
    subject: str,
    text_body: str,
    html_body: Optional[str],
    sender: str,
    recipients: List[str],
    *,
    host: str,
    port: int,
    username: str = "",
    password: str = "",
    use_tls: bool = True,
    use_ssl: bool = False,
) -> str:
    if not recipients:
        raise EmailDeliveryError("No recipients resolved for email dispatch")
    if not host:
        raise EmailDeliveryError("MAIL_SERVER is not configured")
    if not sender:
        raise EmailDeliveryError("MAIL_DEFAULT_SENDER is not configured")

    message_id = make_msgid()
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = message_id
    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    try:
        if use_ssl:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(host, port, context=context) as server:
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(host, port) as server:
                server.ehlo()
                if use_tls:
                    server.starttls(context=ssl.create_default_context())
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
    except Exception as exc:  # pragma: no cover - external I/O
        raise EmailDeliveryError(str(exc)) from exc
    return message_id


class SmtpNotifier:
    """Process-wide email sender; returns a NotificationResult instead of raising on delivery failure."""

    def __init__(
        self,
        host: str,
        port: int = 25,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        use_ssl: bool = False,
        sender_email: str = "",
        sender_name: str = "Customer Support Team",
        support_phone: str = "",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.support_phone = support_phone
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config, logger: Optional[logging.Logger] = None) -> "SmtpNotifier":
        return cls(
            host=config.get("MAIL_SERVER", ""),
            port=int(config.get("MAIL_PORT", 25)),
            username=config.get("MAIL_USERNAME", ""),
            password=config.get("MAIL_PASSWORD", ""),
            use_tls=bool(config.get("MAIL_USE_TLS")),
            use_ssl=bool(config.get("MAIL_USE_SSL")),
            sender_email=config.get("MAIL_DEFAULT_SENDER", ""),
            sender_name=config.get("MAIL_SENDER_NAME", "Customer Support Team"),
            support_phone=config.get("SUPPORT_PHONE", ""),
            logger=logger,
        )

    @property
    def sender(self) -> str:
        if not self.sender_email:
            return ""
        return formataddr((self.sender_name, self.sender_email))

    def _deliver(self, subject: str, text_body: str, html_body: Optional[str], recipients: List[str]) -> str:
        return _dispatch_email(
            subject,
            text_body,
            html_body,
            self.sender,
            recipients,
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            use_ssl=self.use_ssl,
        )

    def send(self, kind: str, snapshot: Dict) -> NotificationResult:
        if kind not in SUBJECTS:
            raise ValueError(f"Unknown email type: {kind}")
        recipient = snapshot.get("email")
        subject = SUBJECTS[kind].format(reference=snapshot.get("reference") or "")
        text_body = _text_body(kind, snapshot, self.sender_name, self.sender_email, self.support_phone)
        html_body = render_template(
            TEMPLATES[kind],
            subject=subject,
            complaint=snapshot,
            submitted_on=_display_date(snapshot.get("created_at")),
            sender_name=self.sender_name,
            sender_email=self.sender_email,
            support_phone=self.support_phone,
        )
        try:
            message_id = self._deliver(subject, text_body, html_body, [recipient] if recipient else [])
        except EmailDeliveryError as exc:
            self.logger.warning(
                "Complaint email dispatch failed",
                extra={"kind": kind, "reference": snapshot.get("reference"), "error": str(exc)},
            )
            return NotificationResult(success=False, error_message=str(exc))
        self.logger.info(
            "Complaint email dispatched",
            extra={"kind": kind, "reference": snapshot.get("reference"), "message_id": message_id},
        )
        return NotificationResult(success=True, message_id=message_id)

    def send_confirmation(self, snapshot: Dict) -> NotificationResult:
        return self.send("confirmation", snapshot)

    def send_plain(self, to: str, subject: str, body: str) -> NotificationResult:
        html_body = render_template("email/plain_message.html", subject=subject, body=body, sender_name=self.sender_name)
        try:
            message_id = self._deliver(subject, body, html_body, [to])
        except EmailDeliveryError as exc:
            self.logger.warning("Email dispatch failed", extra={"to": to, "error": str(exc)})
            return NotificationResult(success=False, error_message=str(exc))
        return NotificationResult(success=True, message_id=message_id)
