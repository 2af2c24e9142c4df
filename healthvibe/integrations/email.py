# =============================================================================
# Email Delivery Integration (AWS SES)
# =============================================================================
#
# Setup:
#   1. Verify your sending email in AWS SES console
#   2. Set env vars:
#      - AWS_SES_FROM_EMAIL=noreply@yourdomain.com
#      - AWS_ACCESS_KEY_ID=...
#      - AWS_SECRET_ACCESS_KEY=...
#      - AWS_REGION=us-east-1
#
# Without credentials the service logs the recipient and subject and reports
# the message as not dispatched. Transport failures raise MailDeliveryError;
# nothing here retries.
#
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from healthvibe.auth.errors import MailDeliveryError
from healthvibe.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Email Templates
# =============================================================================

TEMPLATES = {
    "password_reset": {
        "subject": "Password Reset Request",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Reset Your Password</h1>
            <p>You are receiving this because you (or someone else) requested a password reset for your account.</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{reset_url}" style="background: #2E8B57; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Reset Password
                </a>
            </p>
            <p style="color: #666; font-size: 14px;">Or copy this link: {reset_url}</p>
            <p style="color: #666; font-size: 14px;">This link expires in {expires_minutes} minutes.</p>
            <p style="color: #666; font-size: 14px;">If you didn't request this, you can safely ignore this email.</p>
        </body>
        </html>
        """,
        "text": """
You are receiving this because you (or someone else) have requested a password reset for your account.
Please click on the following link, or paste it into your browser to complete the process:

{reset_url}

This link expires in {expires_minutes} minutes.

If you didn't request this, you can safely ignore this email.
        """,
    },
}


# =============================================================================
# Email Service
# =============================================================================

class EmailService:
    """Send emails via AWS SES."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client = None

    @property
    def client(self):
        """Lazy-load SES client."""
        if self._client is None and self.settings.use_aws:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
                config=BotoConfig(
                    connect_timeout=self.settings.mail_timeout_seconds,
                    read_timeout=self.settings.mail_timeout_seconds,
                    retries={"max_attempts": 1},
                ),
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return self.settings.use_aws and bool(self.settings.aws_ses_from_email)

    async def send(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> bool:
        """
        Send one email.

        Returns:
            True if handed to SES, False if email is not configured

        Raises:
            MailDeliveryError: SES rejected the message or could not be reached
        """
        if not self.is_configured:
            # Bodies carry reset links; only the envelope is logged
            logger.warning(f"Email not configured - would send '{subject}' to {to}")
            return False

        body: dict[str, Any] = {"Text": {"Data": text_body, "Charset": "UTF-8"}}
        if html_body:
            body["Html"] = {"Data": html_body, "Charset": "UTF-8"}

        try:
            response = await asyncio.to_thread(
                self.client.send_email,
                Source=self.settings.aws_ses_from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": body,
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            raise MailDeliveryError(str(e)) from e

        logger.info(f"Email sent to {to}: {subject} (MessageId: {response['MessageId']})")
        return True

    async def send_template(self, to: str, template: str, data: dict[str, Any]) -> bool:
        """Send an email using a named template."""
        tpl = TEMPLATES[template]
        return await self.send(
            to=to,
            subject=tpl["subject"],
            text_body=tpl["text"].format(**data),
            html_body=tpl["html"].format(**data),
        )

    async def send_password_reset(self, email: str, reset_url: str, expires_minutes: int) -> bool:
        """Send password reset email."""
        return await self.send_template(
            to=email,
            template="password_reset",
            data={"reset_url": reset_url, "expires_minutes": expires_minutes},
        )
