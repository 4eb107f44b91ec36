"""Mail sender backed by the Brevo transactional email API."""

import logging

import httpx

from instaclone.config import Settings, get_settings
from instaclone.errors import ExternalServiceFailure
from instaclone.services.mail_templates import (
    EmailTemplate,
    otp_verification_email,
    password_reset_email,
)

logger = logging.getLogger(__name__)


class MailSender:
    """Service for delivering transactional email."""

    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    def send(self, to_email: str, to_name: str, template: EmailTemplate) -> str | None:
        """
        Send a rendered template to one recipient.

        Returns the provider message id. Raises ExternalServiceFailure when
        the provider is not configured, unreachable or rejects the message.
        """
        if not self.settings.mail_configured:
            logger.warning("Brevo API key not configured, email not sent")
            raise ExternalServiceFailure("Email delivery is not configured")

        payload = {
            "sender": {
                "email": self.settings.brevo_sender_email,
                "name": self.settings.brevo_sender_name,
            },
            "to": [{"email": to_email, "name": to_name}],
            "subject": template.subject,
            "htmlContent": template.html_content,
            "textContent": template.text_content,
        }
        headers = {
            "api-key": self.settings.brevo_api_key,
            "accept": "application/json",
        }

        try:
            with httpx.Client(timeout=self.settings.mail_timeout_seconds, transport=self.transport) as client:
                response = client.post(self.settings.brevo_api_url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Brevo rejected email: HTTP {e.response.status_code}")
            raise ExternalServiceFailure("Email sending failed") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling Brevo: {type(e).__name__}: {e}")
            raise ExternalServiceFailure("Email sending failed") from e
        except ValueError as e:
            logger.error(f"Brevo returned a non-JSON response: {e}")
            raise ExternalServiceFailure("Email sending failed") from e

        if not isinstance(data, dict):
            logger.error(f"Unexpected Brevo response body: {type(data).__name__}")
            raise ExternalServiceFailure("Email sending failed")

        message_id = data.get("messageId")
        logger.info(f"Email sent successfully: {message_id}")
        return message_id

    def send_otp_email(self, to_email: str, user_name: str, otp: str) -> str | None:
        template = otp_verification_email(user_name, otp, self.settings.otp_expiry_minutes)
        return self.send(to_email, user_name, template)

    def send_password_reset_email(self, to_email: str, user_name: str, reset_link: str) -> str | None:
        template = password_reset_email(user_name, reset_link, self.settings.password_reset_expiry_minutes)
        return self.send(to_email, user_name, template)
