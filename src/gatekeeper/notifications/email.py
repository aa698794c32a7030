from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import requests
from jinja2 import Environment, FileSystemLoader

from gatekeeper.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmailMessage:
    to: str
    subject: str
    html: str


templates = Environment(
    loader=FileSystemLoader(str(Path(__file__).resolve().parent / "templates")),
    autoescape=True,
)


def render_application_receipt(job_title: str, candidate_name: str, career_page_url: str = "") -> tuple[str, str]:
    subject = f"Application Received: {job_title}"
    body = templates.get_template("application_receipt.html").render(
        subject=subject,
        job_title=job_title,
        candidate_name=candidate_name,
        career_page_url=career_page_url,
    )
    return subject, body


class ResendNotifier:
    """Sends transactional email through the Resend HTTP API."""

    def __init__(self, settings: Settings | None = None, *, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.settings.resend_api_key)

    async def send_application_receipt(self, email: str, job_title: str, candidate_name: str) -> None:
        subject, body = render_application_receipt(job_title, candidate_name, self.settings.career_page_url)
        await self.send(EmailMessage(to=email, subject=subject, html=body))

    async def send(self, message: EmailMessage) -> None:
        if not self.enabled:
            logger.info("Resend API key not configured; skipping email subject=%r", message.subject)
            return
        await asyncio.to_thread(self._post, message)

    def _post(self, message: EmailMessage) -> None:
        response = self.session.post(
            f"{self.settings.resend_base_url.rstrip('/')}/emails",
            headers={"Authorization": f"Bearer {self.settings.resend_api_key}"},
            json={
                "from": self.settings.resend_from,
                "to": [message.to],
                "subject": message.subject,
                "html": message.html,
            },
            timeout=self.settings.notification_timeout_sec,
        )
        response.raise_for_status()
        logger.info("Email sent subject=%r id=%s", message.subject, response.json().get("id", ""))
