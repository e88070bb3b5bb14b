import logging
import re
from typing import List, Union

import requests

from app.config import settings
from app.models.user import User
from app.utils.template import render_template

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


def is_valid_email(email):
    if isinstance(email, list):
        return all(is_valid_email(e) for e in email)

    if not email:
        return False

    return re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


def send_email(to: Union[str, List[str]], subject: str, html: str) -> bool:
    """
    Send email via Brevo.

    Returns False instead of raising; callers never fail because mail did.
    """
    if isinstance(to, list):
        valid_emails = [e for e in to if is_valid_email(e)]
    else:
        valid_emails = [to] if is_valid_email(to) else []

    if not valid_emails:
        logger.warning(f"No valid emails found: {to}")
        return False

    if not settings.BREVO_API_KEY:
        logger.warning(f"BREVO_API_KEY not set, skipping email '{subject}'")
        return False

    payload = {
        "sender": {
            "email": settings.MAIL_FROM,
            "name": settings.STORE_NAME,
        },
        "to": [{"email": e} for e in valid_emails],
        "subject": subject,
        "htmlContent": html,
    }

    headers = {
        "api-key": settings.BREVO_API_KEY,
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            BREVO_API_URL,
            json=payload,
            headers=headers,
            timeout=10,
        )

        if response.status_code >= 400:
            logger.error(
                f"Brevo email failed ({response.status_code}): {response.text}"
            )
            return False

        logger.info(f"Brevo email sent to {valid_emails}")
        return True

    except requests.RequestException:
        logger.exception("Brevo email exception")
        return False


def send_author_welcome(author: User) -> bool:
    html = render_template(
        "user_emails/author_welcome.html",
        author=author,
        trial_days=settings.TRIAL_DAYS,
        fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
        payment_email=settings.ADMIN_PAYMENT_EMAIL,
    )
    return send_email(
        to=author.email,
        subject=f"Welcome to {settings.STORE_NAME}",
        html=html,
    )


def send_password_reset(user: User, reset_link: str) -> bool:
    html = render_template(
        "user_emails/password_reset.html",
        user=user,
        reset_link=reset_link,
    )
    return send_email(
        to=user.email,
        subject=f"Reset your {settings.STORE_NAME} password",
        html=html,
    )
