"""
Email service - account verification and password reset mail.
Supports Mock (development, logs the message) and SMTP.
"""
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, List
from abc import ABC, abstractmethod

from mdmc_crm.config import settings

logger = logging.getLogger(__name__)


class EmailService(ABC):
    """Base email service interface."""

    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        html: Optional[str] = None
    ) -> bool:
        """Send an email."""

    async def send_verification_email(self, to: str, token: str, base_url: str) -> bool:
        """Send email verification email."""
        verify_link = f"{base_url}/verify-email?token={token}"
        hours = settings.EMAIL_VERIFICATION_TOKEN_EXPIRE_HOURS

        subject = "Verify your MDMC Music Ads account"
        body = (
            "Hello,\n\n"
            "Please confirm your email address by opening the link below:\n\n"
            f"{verify_link}\n\n"
            f"This link expires in {hours} hours.\n\n"
            "MDMC Music Ads"
        )
        html = (
            "<html><body>"
            "<h2>Welcome to MDMC Music Ads</h2>"
            f'<p><a href="{verify_link}">Verify your email</a></p>'
            f"<p><small>This link expires in {hours} hours.</small></p>"
            "</body></html>"
        )
        return await self.send_email(to, subject, body, html)

    async def send_password_reset_email(self, to: str, token: str, base_url: str) -> bool:
        """Send password reset email."""
        reset_link = f"{base_url}/reset-password?token={token}"
        minutes = settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES

        subject = "Reset your MDMC Music Ads password"
        body = (
            "Hello,\n\n"
            "You requested a password reset. Open the link below to choose a new password:\n\n"
            f"{reset_link}\n\n"
            f"This link expires in {minutes} minutes. If you didn't request it, ignore this email.\n\n"
            "MDMC Music Ads"
        )
        html = (
            "<html><body>"
            "<h2>Password reset</h2>"
            f'<p><a href="{reset_link}">Reset your password</a></p>'
            f"<p><small>This link expires in {minutes} minutes.</small></p>"
            "</body></html>"
        )
        return await self.send_email(to, subject, body, html)


class MockEmailService(EmailService):
    """
    Mock email service for development and tests.
    Logs emails instead of sending them and keeps them in ``sent_emails``.
    """

    def __init__(self):
        self.sent_emails: List[dict] = []

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        html: Optional[str] = None
    ) -> bool:
        self.sent_emails.append({"to": to, "subject": subject, "body": body})
        logger.info("Mock email to %s: %s\n%s", to, subject, body)
        return True

    def get_last_email(self) -> Optional[dict]:
        """Get the last sent email (for testing)."""
        return self.sent_emails[-1] if self.sent_emails else None


class SMTPEmailService(EmailService):
    """
    SMTP email service for production.
    Configured through SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD and EMAIL_FROM.
    """

    def __init__(self):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        html: Optional[str] = None
    ) -> bool:
        """Send email via SMTP. Delivery failures are logged, not raised."""
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.from_email
        msg['To'] = to
        msg.attach(MIMEText(body, 'plain'))
        if html:
            msg.attach(MIMEText(html, 'html'))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.from_email, to, msg.as_string())
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email to %s: %s", to, subject)
            return False

        logger.info("Email sent to %s: %s", to, subject)
        return True


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get the email service instance."""
    global _email_service

    if _email_service is None:
        if settings.SMTP_HOST:
            logger.info("Using SMTP email service")
            _email_service = SMTPEmailService()
        else:
            logger.info("Using mock email service (emails are logged)")
            _email_service = MockEmailService()

    return _email_service


def set_email_service(service: Optional[EmailService]) -> None:
    """Set custom email service (for testing)."""
    global _email_service
    _email_service = service
