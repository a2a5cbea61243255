"""Outbound mail over SMTP (aiosmtplib).

Delivery is best-effort: failures are logged and reported as False, never
raised into the caller's batch.
"""

import logging
from email.message import EmailMessage
from email.utils import formataddr, formatdate

import aiosmtplib

from app.config import Settings

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _tls_options(self) -> dict:
        if not self.settings.email_secure:
            return {"use_tls": False, "start_tls": False}
        if self.settings.email_port not in (465, 587):
            raise ValueError("EMAIL_SECURE is enabled but EMAIL_PORT is not 465 or 587")
        return {"use_tls": self.settings.email_port == 465, "start_tls": self.settings.email_port == 587}

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not self.settings.has_smtp:
            logger.info("SMTP not configured — discarding mail | to=%s | subject=%s", to, subject)
            return False

        message = EmailMessage()
        message["From"] = formataddr((self.settings.app_name, self.settings.email_from))
        message["To"] = to
        message["Date"] = formatdate()
        message["Subject"] = subject
        message.set_content(body)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.email_host,
                port=self.settings.email_port,
                username=self.settings.email_user or None,
                password=self.settings.email_password or None,
                **self._tls_options(),
            )
        except Exception as e:
            logger.error("Failed to send email | to=%s | subject=%s | %s", to, subject, str(e)[:200])
            return False

        logger.info("Email sent | to=%s | subject=%s", to, subject)
        return True

    async def send_reaching_api_limit_email(self, email: str, name: str, percent: int) -> bool:
        return await self.send(
            email,
            "Reaching API Limit",
            f"Hi {name},\n\n"
            f"You have used {percent}% of your monthly API calls for {self.settings.app_name}.\n"
            "Your call count resets on the first day of next month.\n\n"
            f"The {self.settings.app_name} Team",
        )

    async def send_api_limit_reset_email(self, email: str, name: str) -> bool:
        return await self.send(
            email,
            "API Call Limit Reset",
            f"Hi {name},\n\n"
            "Your monthly API call count has been reset. Happy lifting!\n\n"
            f"The {self.settings.app_name} Team",
        )

    async def send_new_api_key_email(self, email: str, name: str, key: str) -> bool:
        return await self.send(
            email,
            f"New API key for {self.settings.app_name}",
            f"Hi {name},\n\n"
            "Here is your new API key. Every key issued before it has been revoked.\n\n"
            f"API Key: {key}\n\n"
            f"The {self.settings.app_name} Team",
        )
