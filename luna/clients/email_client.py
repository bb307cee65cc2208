"""
SMTP client for verification mail.

smtplib is blocking, so each delivery attempt runs in a worker thread.
Delivery is retried `smtp_retries` times before EmailDeliveryError is raised.
With email_enabled=False nothing is sent and the OTP is only logged at DEBUG,
which is handy for local development.
"""
import asyncio
import logging
import smtplib
from email.message import EmailMessage

from luna.config import Settings, settings
from luna.telemetry import OTP_EMAILS_TOTAL

logger = logging.getLogger(__name__)

OTP_TEMPLATE = """\
Hi {name},

Your Luna verification code is: {otp}

The code expires in {ttl} minutes. If you didn't create a Luna account,
you can ignore this email.
"""


class EmailDeliveryError(Exception):
    pass


class EmailClient:
    def __init__(self, config: Settings):
        self.config = config

    def _build_otp_message(self, to_addr: str, otp: str, name: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = f'"{self.config.smtp_from_name}" <{self.config.smtp_user}>'
        msg["To"] = to_addr
        msg["Subject"] = "Verify Your Email - Luna"
        msg.set_content(
            OTP_TEMPLATE.format(name=name, otp=otp, ttl=self.config.otp_ttl_minutes)
        )
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(
            self.config.smtp_host, self.config.smtp_port, timeout=self.config.smtp_timeout
        ) as smtp:
            if self.config.smtp_use_tls:
                smtp.starttls()
            if self.config.smtp_password:
                smtp.login(self.config.smtp_user, self.config.smtp_password)
            smtp.send_message(msg)

    async def send_otp(self, to_addr: str, otp: str, name: str) -> None:
        if not self.config.email_enabled:
            logger.debug("Email disabled — OTP for %s is %s", to_addr, otp)
            OTP_EMAILS_TOTAL.labels(outcome="skipped").inc()
            return

        msg = self._build_otp_message(to_addr, otp, name)
        attempts = max(1, self.config.smtp_retries)
        last_exc = None
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.to_thread(self._send_blocking, msg)
                logger.info("OTP email sent to %s", to_addr)
                OTP_EMAILS_TOTAL.labels(outcome="sent").inc()
                return
            except (smtplib.SMTPException, OSError) as exc:
                last_exc = exc
                logger.warning(
                    "OTP email to %s failed (attempt %d/%d): %s",
                    to_addr, attempt, attempts, exc,
                )
                if attempt < attempts:
                    await asyncio.sleep(min(2 ** (attempt - 1), 5))

        OTP_EMAILS_TOTAL.labels(outcome="failed").inc()
        raise EmailDeliveryError(f"Could not deliver email to {to_addr}") from last_exc


def get_email_client() -> EmailClient:
    """FastAPI dependency — overridden in tests."""
    return EmailClient(settings)
