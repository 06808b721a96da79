"""
mail/messages.py -- Jinja2 rendering for transactional emails.

Templates live in mail/templates/ as an .html/.txt pair per message. HTML is
autoescaped, so a display name like "<script>" renders as text.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from auth.models import EmailMessage

_env = Environment(
    loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
)

VERIFY_SUBJECT = "Verify your UserHub email"


def verification_url(app_url: str, token: str) -> str:
    return f"{app_url.rstrip('/')}/verify-email?{urlencode({'token': token})}"


def build_verification_email(*, to: str, app_url: str, token: str, name: str, username: str) -> EmailMessage:
    """Render the account verification message for a newly registered user."""
    context = {
        "name": name,
        "username": username,
        "verify_url": verification_url(app_url, token),
    }
    return EmailMessage(
        to=to,
        subject=VERIFY_SUBJECT,
        html=_env.get_template("verify_email.html").render(**context),
        text=_env.get_template("verify_email.txt").render(**context),
        app_url=app_url,
    )
