from typing import Dict, Optional, Tuple
import logging
import os

import resend

from . import models

logger = logging.getLogger(__name__)

RESEND_API_KEY = os.environ.get('RESEND_API_KEY', '')
CONTACT_FROM_EMAIL = os.environ.get('CONTACT_FROM_EMAIL', 'Pharmacy Store Contact <contact@pharmacy-store.com>')
# inbox for contact notifications; falls back to the seeded admin's address
CONTACT_TO_EMAIL = os.environ.get('CONTACT_TO_EMAIL') or os.environ.get('ADMIN_EMAIL', '')


def send_email(payload: Dict[str, object]) -> Tuple[bool, Optional[str]]:
    if not RESEND_API_KEY:
        return False, "Resend API key is not configured."

    resend.api_key = RESEND_API_KEY
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        return False, str(exc)

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)
    return True, None


def build_contact_text(message: models.ContactMessage) -> str:
    return (
        "New Contact Message\n\n"
        f"Name: {message.name}\n"
        f"Email: {message.email}\n"
        f"Phone: {message.phone or 'N/A'}\n"
        f"Subject: {message.subject or 'N/A'}\n\n"
        f"Message:\n{message.message}\n"
    )


def send_contact_notification(message: models.ContactMessage) -> Tuple[bool, Optional[str]]:
    if not CONTACT_TO_EMAIL:
        return False, "CONTACT_TO_EMAIL is not configured."

    payload = {
        "from": CONTACT_FROM_EMAIL,
        "to": [CONTACT_TO_EMAIL],
        "reply_to": message.email,
        "subject": message.subject or f"New contact message from {message.name}",
        "text": build_contact_text(message),
    }
    sent, error = send_email(payload)
    if not sent:
        logger.warning(f"Contact notification for message {message.id} not sent: {error}")
    return sent, error
