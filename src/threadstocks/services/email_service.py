"""Email service for building and sending transactional emails via SendGrid.

Learn: Building an email and delivering it are separate steps. Services
call the build_* methods and hand the resulting OutboundEmail to the
MailWorker queue; the worker calls send() off the request path.
send() raises on provider errors — the worker decides what to log.
"""

import base64
import html
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Attachment as SendGridAttachment,
    Disposition,
    FileContent,
    FileName,
    FileType,
    Mail,
    ReplyTo,
)

from threadstocks.attachments import Attachment
from threadstocks.config import Settings

logger = structlog.get_logger()


@dataclass
class OutboundEmail:
    kind: str
    to: str
    subject: str
    html_content: str
    reply_to: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)


class EmailService:
    """Handles composing and sending emails via SendGrid."""

    def __init__(self, settings: Settings):
        self.api_key = settings.sendgrid_api_key
        self.from_email = settings.mail_from
        self.app_name = settings.app_name
        self.frontend_url = settings.frontend_url.rstrip("/")
        self.contact_email = settings.contact_email

    # ─── Builders ───────────────────────────────────────

    def build_password_reset(self, to_email: str, username: str, token: str) -> OutboundEmail:
        reset_url = f"{self.frontend_url}/reset-password?token={token}"
        return OutboundEmail(
            kind="password_reset",
            to=to_email,
            subject=f"{self.app_name} - Reset your password",
            html_content=self._reset_email_html(username=username, reset_url=reset_url),
        )

    def build_contact(
        self,
        name: str,
        email: str,
        subject: str,
        message: str,
        attachment: Optional[Attachment] = None,
    ) -> OutboundEmail:
        """Contact form message addressed to the operator mailbox."""
        return OutboundEmail(
            kind="contact",
            to=self.contact_email,
            subject=f"New contact message: {subject}",
            html_content=self._contact_email_html(
                name=name, email=email, subject=subject, message=message
            ),
            reply_to=email,
            attachments=[attachment] if attachment else [],
        )

    # ─── Delivery ───────────────────────────────────────

    def send(self, email: OutboundEmail) -> None:
        """Deliver one email. Blocking — run it in a thread."""
        if not self.api_key:
            logger.warning("email.transport_disabled", kind=email.kind, to=email.to)
            return

        message = Mail(
            from_email=self.from_email,
            to_emails=email.to,
            subject=email.subject,
            html_content=email.html_content,
        )
        if email.reply_to:
            message.reply_to = ReplyTo(email.reply_to)
        for item in email.attachments:
            message.add_attachment(
                SendGridAttachment(
                    FileContent(base64.b64encode(item.data).decode("ascii")),
                    FileName(item.filename),
                    FileType(item.content_type),
                    Disposition("attachment"),
                )
            )

        response = SendGridAPIClient(self.api_key).send(message)
        logger.debug("email.provider_response", status_code=response.status_code)

    # ─── Templates ──────────────────────────────────────

    def _reset_email_html(self, *, username: str, reset_url: str) -> str:
        """Build HTML content for password reset email."""
        return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #4f46e5;">Password Reset</h2>
            <p>Hi {html.escape(username)},</p>
            <p>We received a request to reset the password of your {self.app_name} account.</p>
            <p>Click the button below to choose a new password. This link expires in 1 hour.</p>
            <p style="margin: 30px 0;">
                <a href="{html.escape(reset_url, quote=True)}"
                   style="background-color: #4f46e5; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 5px; font-weight: bold;">
                    Reset my password
                </a>
            </p>
            <p>If you did not request this change, you can safely ignore this email.</p>
        </div>
        """

    def _contact_email_html(self, *, name: str, email: str, subject: str, message: str) -> str:
        return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #4f46e5;">New Contact Message</h2>
            <p><strong>Name:</strong> {html.escape(name)}</p>
            <p><strong>Email:</strong> {html.escape(email)}</p>
            <p><strong>Subject:</strong> {html.escape(subject)}</p>
            <p><strong>Message:</strong></p>
            <div style="background-color: #f9fafb; padding: 15px; border: 1px solid #e5e7eb;">
                {html.escape(message)}
            </div>
            <p style="font-size: 12px; color: #888888;">Sent from the {self.app_name} contact form.</p>
        </div>
        """
