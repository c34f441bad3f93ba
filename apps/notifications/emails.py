from dataclasses import dataclass

from django.conf import settings
from django.template.loader import render_to_string


@dataclass(frozen=True)
class EmailPayload:
    subject: str
    text: str
    html: str


def format_recipient_name(user, company_name=None):
    """Personal name first, then company, then a neutral greeting."""
    if user is not None:
        personal = " ".join(p for p in [user.first_name, user.last_name] if p).strip()
        if personal:
            return personal
    if company_name:
        return company_name
    return "there"


def app_url(path: str) -> str:
    base = getattr(settings, "FRONTEND_URL", "").rstrip("/")
    return f"{base}{path if path.startswith('/') else '/' + path}"


def build_milestone_submitted_email(*, recipient_name, milestone_title, contract_id, submitter_name) -> EmailPayload:
    title = milestone_title or "a milestone"
    subject = f"Milestone submitted: {title}"
    context = {
        "subject": subject,
        "recipient_name": recipient_name or "there",
        "milestone_title": title,
        "submitter_name": submitter_name or "Your freelancer",
        "review_url": app_url(f"/client/contracts/{contract_id}"),
        "signature": settings.DEFAULT_FROM_EMAIL,
    }
    return EmailPayload(
        subject=subject,
        text=render_to_string("emails/milestone_submitted.txt", context).strip(),
        html=render_to_string("emails/milestone_submitted.html", context),
    )
