import logging

from apps.notifications.emails import build_milestone_submitted_email, format_recipient_name
from apps.notifications.tasks import send_email

logger = logging.getLogger(__name__)


def notify_milestone_submitted(submission):
    """
    Email the contract's client that a submission arrived.
    Delivery problems are logged and never reach the caller.
    """
    milestone = submission.milestone
    contract = milestone.contract
    client = contract.client
    freelancer = contract.freelancer

    if not client.email:
        return False

    profile = getattr(client, "client_profile", None)
    payload = build_milestone_submitted_email(
        recipient_name=format_recipient_name(client, getattr(profile, "company_name", None)),
        milestone_title=milestone.title,
        contract_id=contract.id,
        submitter_name=freelancer.get_full_name().strip() or "Your freelancer",
    )

    try:
        send_email.delay(client.email, payload.subject, payload.text, payload.html)
    except Exception:
        logger.exception("Milestone-submitted email failed for submission %s", submission.id)
        return False
    return True
