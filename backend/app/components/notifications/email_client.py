"""
Resend email service for assignment notifications.

Developers are emailed when they land in a batch or receive a manual
invite; clients are emailed when a developer accepts their project.
"""

import logging

import resend

from ...platform.brand import BRAND_NAME, brand_email_from
from .templates import assignment_accepted_html, assignment_invitation_html

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails through Resend."""

    def __init__(self, api_key: str, from_email: str = brand_email_from()):
        resend.api_key = api_key
        self.from_email = from_email
        logger.info("EmailService initialised (from=%s)", self.from_email)

    def _send(self, to_email: str, subject: str, html_body: str) -> dict:
        email = resend.Emails.send({
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        })
        email_id = email.get("id", "") if isinstance(email, dict) else str(email)
        return {"success": True, "email_id": email_id}

    def send_assignment_invitation(
        self,
        developer_email: str,
        developer_name: str,
        project_title: str,
        invitation_link: str,
        deadline_text: str | None = None,
        client_message: str | None = None,
    ) -> dict:
        try:
            logger.info("Sending assignment invitation to %s for project '%s'", developer_email, project_title)
            html_body = assignment_invitation_html(
                developer_name=developer_name,
                project_title=project_title,
                invitation_link=invitation_link,
                deadline_text=deadline_text,
                client_message=client_message,
            )
            result = self._send(developer_email, f"{BRAND_NAME}: new project match ({project_title})", html_body)
            logger.info("Assignment invitation sent (email_id=%s, to=%s)", result["email_id"], developer_email)
            return result
        except Exception as e:
            logger.error("Failed to send assignment invitation to %s: %s", developer_email, str(e))
            return {"success": False, "email_id": "", "error": str(e)}

    def send_assignment_accepted(
        self,
        client_email: str,
        client_name: str,
        developer_name: str,
        project_title: str,
        project_link: str,
    ) -> dict:
        try:
            logger.info("Sending acceptance notification to %s for project '%s'", client_email, project_title)
            html_body = assignment_accepted_html(
                client_name=client_name,
                developer_name=developer_name,
                project_title=project_title,
                project_link=project_link,
            )
            result = self._send(client_email, f"{BRAND_NAME}: {developer_name} accepted {project_title}", html_body)
            logger.info("Acceptance notification sent (email_id=%s, to=%s)", result["email_id"], client_email)
            return result
        except Exception as e:
            logger.error("Failed to send acceptance notification to %s: %s", client_email, str(e))
            return {"success": False, "email_id": "", "error": str(e)}
