# bizhub/services/email_service.py

import asyncio
import re
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from html import escape
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel

from bizhub.core.config import Settings, settings

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class EmailResult(BaseModel):
    success: bool
    recipient: str
    message_id: Optional[str] = None
    code: Optional[str] = None
    error: Optional[str] = None


def is_valid_email(address: str) -> bool:
    return bool(address and EMAIL_REGEX.match(address.strip()))


def _wrap_html(title: str, body_html: str) -> str:
    return (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        f"<h2 style=\"color: #2563eb;\">{escape(title)}</h2>"
        f"{body_html}"
        "<hr style=\"border: none; border-top: 1px solid #e5e7eb;\"/>"
        f"<p style=\"color: #6b7280; font-size: 12px;\">Sent by {escape(settings.SMTP_FROM_NAME)}</p>"
        "</div>"
    )


class EmailService:
    """SMTP sender. Returns EmailResult with an error code instead of raising on provider errors."""

    def __init__(self, config: Settings = settings):
        self.config = config

    @property
    def configured(self) -> bool:
        return self.config.email_configured

    def missing_config(self) -> List[str]:
        return [key for key in ("SMTP_USER", "SMTP_PASS") if not getattr(self.config, key)]

    @property
    def from_address(self) -> str:
        return formataddr((self.config.SMTP_FROM_NAME or "AI Business Hub", self.config.SMTP_USER or ""))

    def _build_message(self, to: str, subject: str, html: Optional[str], text: Optional[str]) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=(self.config.SMTP_USER or "localhost").split("@")[-1])
        message.set_content(text or re.sub(r"<[^>]+>", "", html or ""))
        if html:
            message.add_alternative(html, subtype="html")
        return message

    def send_email_sync(self, to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None) -> EmailResult:
        """Blocking send; used directly by worker tasks and via a thread from async code."""
        log = logger.bind(service="EmailService", recipient=to)
        if not self.configured:
            log.warning("Email service not configured; skipping send.")
            return EmailResult(success=False, recipient=to, code="NOT_CONFIGURED", error="Email service not configured")
        if not is_valid_email(to):
            return EmailResult(success=False, recipient=to, code="INVALID_EMAIL", error=f"Invalid email address: {to}")

        message = self._build_message(to.strip(), subject, html, text)
        host, port = self.config.SMTP_HOST, self.config.SMTP_PORT
        timeout = self.config.SMTP_TIMEOUT_SECONDS
        try:
            if port == 465:
                server = smtplib.SMTP_SSL(host, port, timeout=timeout)
            else:
                server = smtplib.SMTP(host, port, timeout=timeout)
            with server:
                if port != 465:
                    server.starttls()
                server.login(self.config.SMTP_USER, self.config.SMTP_PASS)
                server.send_message(message)
        except smtplib.SMTPAuthenticationError as e:
            log.error(f"SMTP authentication failed: {e}")
            return EmailResult(success=False, recipient=to, code="AUTH_FAILED",
                               error="Email authentication failed. Check SMTP_USER and SMTP_PASS.")
        except TimeoutError as e:
            log.error(f"SMTP timeout: {e}")
            return EmailResult(success=False, recipient=to, code="TIMEOUT", error="Email server timed out.")
        except (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected) as e:
            log.error(f"SMTP connection failed: {e}")
            return EmailResult(success=False, recipient=to, code="CONNECTION_FAILED",
                               error=f"Could not connect to email server {host}:{port}.")
        except smtplib.SMTPException as e:
            log.error(f"SMTP error: {e}")
            return EmailResult(success=False, recipient=to, code="UNKNOWN_ERROR", error=str(e))
        except OSError as e:
            log.error(f"SMTP network error: {e}")
            return EmailResult(success=False, recipient=to, code="CONNECTION_FAILED",
                               error=f"Could not connect to email server {host}:{port}.")

        log.success(f"Email sent: {subject}")
        return EmailResult(success=True, recipient=to, message_id=message["Message-ID"])

    async def send_email(self, to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None) -> EmailResult:
        return await asyncio.to_thread(self.send_email_sync, to, subject, html, text)

    # --- Templates ---

    async def send_password_reset(self, to: str, name: str, reset_url: str) -> EmailResult:
        minutes = self.config.PASSWORD_RESET_EXPIRE_MINUTES
        body = (
            f"<p>Hi {escape(name)},</p>"
            "<p>We received a request to reset your password. Click the link below to choose a new one:</p>"
            f"<p><a href=\"{escape(reset_url)}\">Reset password</a></p>"
            f"<p>This link expires in {minutes} minutes. If you did not request it, ignore this email.</p>"
        )
        return await self.send_email(to, "Password Reset Request", _wrap_html("Reset your password", body))

    async def send_password_changed(self, to: str, name: str) -> EmailResult:
        body = (
            f"<p>Hi {escape(name)},</p>"
            "<p>Your password was changed successfully. If this wasn't you, contact support immediately.</p>"
        )
        return await self.send_email(to, "Your password has been changed", _wrap_html("Password changed", body))

    async def send_invitation(self, to: str, inviter_name: str, invite_url: str, expires_at: datetime) -> EmailResult:
        body = (
            f"<p><strong>{escape(inviter_name)}</strong> invited you to collaborate on "
            f"{escape(self.config.SMTP_FROM_NAME)}.</p>"
            f"<p><a href=\"{escape(invite_url)}\">Accept invitation</a></p>"
            f"<p>The invitation expires on {expires_at:%Y-%m-%d %H:%M} UTC.</p>"
        )
        return await self.send_email(to, f"{inviter_name} invited you to join their team", _wrap_html("You're invited!", body))

    def low_stock_alert_content(self, product_name: str, quantity: int, min_threshold: int) -> tuple[str, str]:
        body = (
            f"<p>The product <strong>{escape(product_name)}</strong> is running low.</p>"
            f"<p>Current stock: <strong>{quantity}</strong> (threshold {min_threshold}).</p>"
            "<p>Consider restocking soon.</p>"
        )
        return f"Low Stock Alert: {product_name}", _wrap_html("Low Stock Alert", body)

    def sale_notification_content(self, sale_ref: str, total: float, item_count: int, currency: str) -> tuple[str, str]:
        body = (
            f"<p>Sale <strong>{escape(sale_ref)}</strong> was recorded.</p>"
            f"<p>Items: {item_count}<br/>Total: {currency} {total:.2f}</p>"
        )
        return f"New Sale {sale_ref}", _wrap_html("New Sale Recorded", body)


email_service = EmailService()


async def get_email_service() -> EmailService:
    return email_service
