"""
OTP delivery.

Two interchangeable notifiers: SMTP when SMTP_USER and SMTP_PASS are set,
otherwise a development notifier that writes the code to the log. The OTP
flows in account_service.py only see the Notifier interface.

smtplib is blocking; sends run in a worker thread (asyncio.to_thread) so the
event loop keeps serving other requests.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from fastapi import Depends

from callisto.config import Settings, get_settings
from callisto.errors import DeliveryFailedError

logger = logging.getLogger(__name__)

SUBJECT = "Callisto - Email Verification OTP"


def render_otp_email(name: str, otp: str, ttl_minutes: int) -> tuple[str, str]:
    """(plain text, html) bodies for the verification email."""
    text = (
        f"Hi {name},\n\n"
        f"Thank you for signing up for Callisto! Your verification code is: {otp}\n\n"
        f"This code expires in {ttl_minutes} minutes. If you didn't request it, ignore this email.\n"
    )
    html = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #4f46e5;">Callisto</h1>
        <p>Hi {name},</p>
        <p>Thank you for signing up for Callisto! Please use the following OTP to verify your email address:</p>
        <h2 style="font-family: monospace; letter-spacing: 8px;">{otp}</h2>
        <p style="font-size: 14px;">This OTP will expire in {ttl_minutes} minutes.
        If you didn't request this, please ignore this email.</p>
      </div>
    """
    return text, html


class Notifier:
    """Delivers one-time passcodes. Raises DeliveryFailedError when delivery fails."""

    async def send_otp(self, email: str, name: str, otp: str) -> None:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Development delivery: the code goes to the server log."""

    async def send_otp(self, email: str, name: str, otp: str) -> None:
        logger.warning(
            "SMTP not configured; OTP for %s (%s) is %s. Set SMTP_USER and SMTP_PASS to send emails.",
            email,
            name,
            otp,
        )


class SmtpNotifier(Notifier):
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        sender: Optional[str] = None,
        ttl_minutes: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.ttl_minutes = ttl_minutes

    def _build_message(self, email: str, name: str, otp: str) -> EmailMessage:
        text, html = render_otp_email(name, otp, self.ttl_minutes)
        msg = EmailMessage()
        msg["Subject"] = SUBJECT
        msg["From"] = self.sender
        msg["To"] = email
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(msg)

    async def send_otp(self, email: str, name: str, otp: str) -> None:
        msg = self._build_message(email, name, otp)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Sending OTP email to %s failed: %s", email, e)
            logger.warning("OTP fallback for %s: %s", email, otp)
            raise DeliveryFailedError(
                details="Please check your SMTP configuration. OTP has been logged to server console."
            ) from e
        logger.info("OTP email sent to %s", email)


def get_notifier(settings: Settings = Depends(get_settings)) -> Notifier:
    """Dependency: SMTP delivery when configured, log delivery otherwise."""
    if settings.smtp_configured:
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            sender=settings.smtp_from,
            ttl_minutes=settings.otp_ttl_minutes,
        )
    return ConsoleNotifier()
