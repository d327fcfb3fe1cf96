"""Brevo transactional email client and message templates."""

import html
import logging
from typing import Any, Callable, Dict

import httpx

from tutorlink.core.config import Settings
from tutorlink.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"


def _text(value: Any) -> str:
    return html.escape(str(value)) if value is not None else ""


def _first_name(full_name: str | None) -> str:
    return _text((full_name or "").strip().split(" ")[0] or "there")


def _contact_initiated(params: Dict[str, Any]) -> tuple[str, str]:
    student = _text(params.get("student_name") or "A student")
    body = (
        f"<p>Hi {_first_name(params.get('recipient_name'))},</p>"
        f"<p>{student} has unlocked your contact details and may reach out soon.</p>"
    )
    if params.get("message"):
        body += f"<p>Their message: <em>{_text(params['message'])}</em></p>"
    return "A student wants to contact you", body


def _application_submitted(params: Dict[str, Any]) -> tuple[str, str]:
    teacher = _text(params.get("teacher_name") or "A tutor")
    body = (
        f"<p>Hi {_first_name(params.get('recipient_name'))},</p>"
        f"<p>{teacher} has applied to your tutoring request "
        f"<strong>{_text(params.get('post_summary', ''))}</strong>.</p>"
    )
    return "New tutor application", body


def _coins_purchased(params: Dict[str, Any]) -> tuple[str, str]:
    body = (
        f"<p>Hi {_first_name(params.get('recipient_name'))},</p>"
        f"<p>Your payment of ${_text(params.get('amount'))} has been confirmed.</p>"
        f"<p><strong>{_text(params.get('coins'))}</strong> coins were added to your wallet. "
        f"Your new balance is <strong>{_text(params.get('new_balance'))}</strong> coins.</p>"
    )
    return "Your coins have arrived", body


def _teacher_approval(params: Dict[str, Any]) -> tuple[str, str]:
    name = _first_name(params.get("recipient_name"))
    if params.get("is_approved"):
        return (
            "Your tutor profile is approved",
            f"<p>Hi {name},</p><p>Your tutor profile has been approved. "
            "Students can now contact you and you can apply to their requests.</p>",
        )
    return (
        "Your tutor profile needs attention",
        f"<p>Hi {name},</p><p>Your tutor profile is not approved at the moment. "
        "Please review your details and get in touch with us.</p>",
    )


TEMPLATES: Dict[str, Callable[[Dict[str, Any]], tuple[str, str]]] = {
    "contact_initiated": _contact_initiated,
    "application_submitted": _application_submitted,
    "coins_purchased": _coins_purchased,
    "teacher_approval": _teacher_approval,
}


def render_template(template: str, params: Dict[str, Any]) -> tuple[str, str]:
    """Subject and HTML body for a named template."""
    try:
        renderer = TEMPLATES[template]
    except KeyError:
        raise ValueError(f"Unknown email template: {template}")
    return renderer(params)


class BrevoEmailClient:
    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.BREVO_API_KEY
        self.sender_email = settings.BREVO_SENDER_EMAIL
        self.sender_name = settings.BREVO_SENDER_NAME
        self.timeout = settings.EMAIL_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.sender_email)

    def send(
        self,
        to_email: str,
        to_name: str | None,
        template: str,
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Send one templated message.

        Returns Brevo's response body, or an empty dict when delivery is
        skipped because Brevo is not configured.
        """
        subject, html_content = render_template(template, params)

        if not self.configured:
            logger.warning("Email '%s' to %s skipped: Brevo not configured", template, to_email)
            return {}

        payload = {
            "sender": {"email": self.sender_email, "name": self.sender_name},
            "to": [{"email": to_email, "name": to_name or to_email}],
            "subject": subject,
            "htmlContent": html_content,
        }
        headers = {
            "accept": "application/json",
            "api-key": self.api_key,
            "content-type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(BREVO_SEND_URL, headers=headers, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError("Brevo", str(e)) from e

        if not response.text:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}
