# newsletter_api/services/email_service.py - Postmark (HTTP) and AWS SES delivery
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import boto3
import httpx
from botocore.exceptions import ClientError

from newsletter_api.config import EmailClientSettings, EmailProvider

logger = logging.getLogger(__name__)

CONFIRMATION_SUBJECT = "Welcome to our newsletter!"


class EmailClient:
    """Common behaviour of the delivery backends; subclasses implement send_email"""

    def __init__(self, sender: str):
        self.sender = sender

    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    async def send_confirmation_email(
        self, email: str, name: str, confirmation_link: str
    ) -> Dict[str, Any]:
        """Send the double opt-in email carrying the confirmation link"""
        logger.info(f"Sending confirmation email to {email}")
        result = await self.send_email(
            recipient=email,
            subject=CONFIRMATION_SUBJECT,
            html_content=self._create_confirmation_email_html(name, confirmation_link),
            text_content=self._create_confirmation_email_text(name, confirmation_link),
        )
        logger.info(f"Confirmation email sent to {email}")
        return result

    async def close(self):
        pass

    def _create_confirmation_email_html(self, name: str, confirmation_link: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html lang="en">
        <head>
            <meta charset="UTF-8">
            <title>Confirm your subscription</title>
        </head>
        <body>
            <p>Hi {name},</p>
            <p>Welcome to our newsletter!</p>
            <p>Click <a href="{confirmation_link}">here</a> to confirm your subscription.</p>
        </body>
        </html>
        """

    def _create_confirmation_email_text(self, name: str, confirmation_link: str) -> str:
        return f"""
Hi {name},

Welcome to our newsletter!
Visit {confirmation_link} to confirm your subscription.
        """


class PostmarkEmailClient(EmailClient):
    """Deliver through Postmark's REST API"""

    def __init__(
        self,
        base_url: str,
        sender: str,
        authorization_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(sender)
        self.base_url = base_url
        self.authorization_token = authorization_token
        self.http_client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> Dict[str, Any]:
        request_body = {
            "From": self.sender,
            "To": recipient,
            "Subject": subject,
            "HtmlBody": html_content,
            "TextBody": text_content,
        }
        try:
            response = await self.http_client.post(
                "/email",
                json=request_body,
                headers={"X-Postmark-Server-Token": self.authorization_token},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Email API rejected message to {recipient}: "
                f"{e.response.status_code} {e.response.text[:200]}"
            )
            raise
        except httpx.HTTPError as e:
            logger.error(f"Email API request for {recipient} failed: {type(e).__name__}: {e}")
            raise

        return {"success": True, "to_email": recipient, "status_code": response.status_code}

    async def close(self):
        await self.http_client.aclose()


class SesEmailClient(EmailClient):
    """Deliver through AWS SES v2; boto3 is blocking so calls run in a thread pool"""

    def __init__(self, sender: str, region_name: Optional[str] = None, ses_client=None):
        super().__init__(sender)
        self.ses_client = ses_client or boto3.client("sesv2", region_name=region_name)
        self.executor = ThreadPoolExecutor(max_workers=5)

    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            self._send_email_ses,
            recipient,
            subject,
            html_content,
            text_content,
        )

    def _send_email_ses(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> Dict[str, Any]:
        email_params = {
            "FromEmailAddress": self.sender,
            "Destination": {"ToAddresses": [recipient]},
            "Content": {
                "Simple": {
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": html_content, "Charset": "UTF-8"},
                        "Text": {"Data": text_content, "Charset": "UTF-8"},
                    },
                }
            },
        }

        try:
            response = self.ses_client.send_email(**email_params)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]
            logger.error(f"SES error {error_code} sending to {recipient}: {error_message}")

            if error_code == "MessageRejected":
                raise ValueError(f"Email rejected: {error_message}")
            elif error_code == "MailFromDomainNotVerifiedException":
                raise ValueError("Sender domain not verified with AWS SES")
            elif error_code in ("SendingPausedException", "AccountSuspendedException"):
                raise ValueError("SES sending is paused - check your account status")
            else:
                raise ValueError(f"Email delivery failed: {error_message}")

        return {
            "success": True,
            "message_id": response.get("MessageId"),
            "to_email": recipient,
        }

    async def close(self):
        self.executor.shutdown(wait=False)


def build_email_client(settings: EmailClientSettings) -> EmailClient:
    if settings.provider == EmailProvider.SES:
        logger.info(f"Using AWS SES email delivery (region {settings.aws_region})")
        return SesEmailClient(sender=settings.sender_email, region_name=settings.aws_region)

    logger.info(f"Using Postmark email delivery at {settings.base_url}")
    return PostmarkEmailClient(
        base_url=settings.base_url,
        sender=settings.sender_email,
        authorization_token=settings.authorization_token.get_secret_value(),
        timeout=settings.timeout,
    )
