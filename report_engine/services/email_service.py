"""Report delivery over email (Resend).

ResendDeliveryChannel implements the DeliveryChannel contract used by the
report executor. The Resend SDK is synchronous, so each send runs in a worker
thread and is retried with backoff before the failure is surfaced.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

import resend
from jinja2 import Environment, FileSystemLoader

from report_engine.config import DeliveryConfig, Settings, get_settings
from report_engine.core.exceptions import DeliveryError
from report_engine.core.logging import get_logger
from report_engine.core.retry import RetryConfig, retry_with_backoff

logger = get_logger(__name__)

# Initialize Jinja2 environment for email templates
template_dir = Path(__file__).parent.parent / "emails" / "templates"
jinja_env = Environment(loader=FileSystemLoader(template_dir), autoescape=True)


@dataclass(frozen=True)
class DeliveryMessage:
    """A rendered report ready to be sent."""

    recipients: list[str]
    subject: str
    body: str
    attachment: bytes
    filename: str


class DeliveryChannel(Protocol):
    async def send_with_attachment(self, message: DeliveryMessage) -> None: ...


def build_subject(brand_name: str, report_type: str, when: datetime) -> str:
    return f"{brand_name} {report_type} Report - {when:%Y-%m-%d}"


def render_report_email(
    report_type: str,
    start_date: datetime,
    end_date: datetime,
    brand_name: str,
) -> str:
    """Render the HTML body that accompanies a report attachment."""
    try:
        template = jinja_env.get_template("report_ready.html")
        return template.render(
            report_type=report_type,
            start_date=f"{start_date:%Y-%m-%d}",
            end_date=f"{end_date:%Y-%m-%d}",
            brand_name=brand_name,
        )
    except Exception as e:
        logger.bind(error=str(e)).warning("report_email_template_fallback")
        # Fallback to simple HTML if template not found
        return f"<p>Your scheduled {report_type} report is attached.</p>"


class ResendDeliveryChannel:
    """Sends report attachments through the Resend API."""

    def __init__(
        self,
        settings: Settings | None = None,
        delivery: DeliveryConfig | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.retry_config = RetryConfig(
            max_attempts=delivery.max_attempts if delivery else 3,
            backoff_base=delivery.backoff_base_seconds if delivery else 1.0,
            backoff_max=delivery.backoff_max_seconds if delivery else 30.0,
        )

    def _is_configured(self) -> bool:
        return bool(self.settings.resend_api_key)

    def _payload(self, message: DeliveryMessage) -> dict:
        return {
            "from": f"{self.settings.email_from_name} <reports@{self.settings.email_domain}>",
            "to": message.recipients,
            "subject": message.subject,
            "html": message.body,
            "attachments": [
                {
                    "filename": message.filename,
                    "content": list(message.attachment),
                }
            ],
        }

    async def send_with_attachment(self, message: DeliveryMessage) -> None:
        """Send one report to all of its recipients.

        Raises:
            DeliveryError: If Resend is not configured, there are no
                recipients, or every attempt failed
        """
        if not self._is_configured():
            raise DeliveryError("RESEND_API_KEY not set")
        if not message.recipients:
            raise DeliveryError("No recipients configured")

        resend.api_key = self.settings.resend_api_key
        payload = self._payload(message)

        logger.bind(
            recipients=len(message.recipients),
            filename=message.filename,
            size=len(message.attachment),
        ).info("sending_report_email")

        try:
            await retry_with_backoff(
                lambda: asyncio.to_thread(resend.Emails.send, payload),
                config=self.retry_config,
                operation_name="resend:send_report",
            )
        except Exception as e:
            raise DeliveryError(f"Email delivery failed: {e}") from e

        logger.bind(recipients=len(message.recipients), filename=message.filename).info(
            "report_email_sent"
        )
