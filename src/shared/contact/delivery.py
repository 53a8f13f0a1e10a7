"""Delivery of accepted contact submissions (log sink or SMTP relay)."""

import html
import smtplib
import logging
from abc import ABC, abstractmethod
from enum import Enum
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from src.shared.contact.config import ContactSettings, DELIVERY_SMTP
from src.shared.contact.schemas import ContactSubmission

SMTP_SSL_PORT = 465


class DeliveryStatus(str, Enum):
    SENT = "sent"
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"


class ContactDelivery(ABC):
    """Forwards one validated submission. Implementations must not raise."""

    @abstractmethod
    def deliver(self, submission: ContactSubmission) -> DeliveryStatus:
        raise NotImplementedError


class LogDelivery(ContactDelivery):
    """Writes submissions to the application log instead of sending them."""

    def deliver(self, submission: ContactSubmission) -> DeliveryStatus:
        logging.info(
            f"Contact form submission: name={submission.name!r}, "
            f"email={submission.email!r}, message={submission.message!r}"
        )
        return DeliveryStatus.SENT


def build_contact_email(submission: ContactSubmission, from_email: str, to_email: str) -> MIMEMultipart:
    """
    Build the notification email for a contact submission.

    Args:
        submission: Validated submission
        from_email: Envelope/header sender
        to_email: Recipient (the site owner)

    Returns:
        multipart/alternative message with plain text and HTML parts
    """
    msg = MIMEMultipart('alternative')
    msg['From'] = from_email
    msg['To'] = to_email
    msg['Reply-To'] = submission.email  # Reply goes straight to the sender
    # Header values must stay on one line
    subject_name = " ".join(submission.name.splitlines())
    msg['Subject'] = f"New contact form submission from {subject_name}"

    text_body = f"""
New contact form submission from your portfolio website:

Name: {submission.name}
Email: {submission.email}

Message:
{submission.message}

---
Reply directly to this email to respond to {submission.name} ({submission.email}).
"""

    name = html.escape(submission.name)
    email = html.escape(submission.email)
    message = html.escape(submission.message).replace("\r\n", "\n").replace("\n", "<br>")

    html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333;">
    <h2 style="margin-bottom: 20px;">New contact form submission</h2>
    <p><strong>Name:</strong> {name}</p>
    <p><strong>Email:</strong> <a href="mailto:{email}">{email}</a></p>
    <p><strong>Message:</strong></p>
    <p style="background: #f9fafb; padding: 12px; border-radius: 4px;">{message}</p>
</body>
</html>
"""

    msg.attach(MIMEText(text_body, 'plain'))
    msg.attach(MIMEText(html_body, 'html'))
    return msg


class SmtpDelivery(ContactDelivery):
    """Relays submissions to the site owner's inbox over SMTP."""

    def __init__(self, settings: ContactSettings):
        self.settings = settings

    def deliver(self, submission: ContactSubmission) -> DeliveryStatus:
        settings = self.settings
        missing = settings.missing_smtp_settings()
        if missing:
            logging.error(f"SMTP credentials not configured (missing: {', '.join(missing)})")
            return DeliveryStatus.NOT_CONFIGURED

        try:
            msg = build_contact_email(submission, settings.from_email, settings.to_email)

            if settings.smtp_port == SMTP_SSL_PORT:
                server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout)
            else:
                server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout)
            with server:
                if settings.smtp_port != SMTP_SSL_PORT:
                    server.starttls()  # Enable encryption
                server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(msg)

            logging.info(f"Contact form email sent successfully from {submission.email}")
            return DeliveryStatus.SENT

        except (smtplib.SMTPException, OSError) as e:
            logging.error(f"Failed to send contact form email: {str(e)}", exc_info=True)
            return DeliveryStatus.FAILED


def create_delivery(settings: ContactSettings) -> ContactDelivery:
    """Pick the delivery implementation named by the settings."""
    if settings.delivery_mode == DELIVERY_SMTP:
        return SmtpDelivery(settings)
    return LogDelivery()
