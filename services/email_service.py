"""Meeting summary notification email, sent through the Resend HTTP API."""
import os
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from models.extraction_models import ActionItem

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
SUMMARY_TEMPLATE = "meeting_summary_email.html"

_templates = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


class EmailServiceError(Exception):
    """Raised when the email provider rejects or fails a send."""
    pass


class EmailService:
    """Sends the post-meeting summary to the meeting owner."""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client
        self.api_key = os.getenv("EMAIL_API_KEY")
        self.from_email = os.getenv("FROM_EMAIL")
        self.from_name = os.getenv("FROM_NAME", "Meeting Notes")
        self.app_base_url = os.getenv("APP_BASE_URL", "").rstrip("/")

        if not self.is_configured:
            logger.warning("EMAIL_API_KEY or FROM_EMAIL not set; summary emails are disabled")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    async def send_meeting_summary(
        self,
        to_email: Optional[str],
        user_name: str,
        meeting_id: str,
        meeting_title: str,
        summary: str,
        action_items: List[ActionItem],
        meeting_date: Optional[datetime] = None
    ) -> bool:
        """Send the summary email.

        Returns:
            True if the provider accepted the email, False if sending is
            disabled or there is no recipient.

        Raises:
            EmailServiceError: If the provider request fails.
        """
        if not self.is_configured:
            return False
        if not to_email:
            logger.warning(f"Meeting owner has no email address: meeting_id={meeting_id}")
            return False

        payload = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [to_email],
            "subject": f"Meeting Summary: {meeting_title}",
            "html": self._render(user_name, meeting_id, meeting_title, summary, action_items, meeting_date),
        }

        try:
            response = await self.http_client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
                timeout=30,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise EmailServiceError(f"Failed to send summary email: {e}") from e

        logger.info(f"Summary email sent: meeting_id={meeting_id}")
        return True

    def _render(
        self,
        user_name: str,
        meeting_id: str,
        meeting_title: str,
        summary: str,
        action_items: List[ActionItem],
        meeting_date: Optional[datetime]
    ) -> str:
        meeting_url = f"{self.app_base_url}/meeting/{meeting_id}" if self.app_base_url else None
        return _templates.get_template(SUMMARY_TEMPLATE).render(
            user_name=user_name,
            meeting_title=meeting_title,
            meeting_date=meeting_date,
            summary=summary,
            action_items=action_items,
            meeting_url=meeting_url,
            from_name=self.from_name,
        )
