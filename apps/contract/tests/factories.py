from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth import get_user_model

from apps.applications.models import Proposal, ProposalMilestone
from apps.billing.models import Payment
from apps.contract.models import Contract, Milestone, MilestoneSubmission

CONFIRMED_AT = datetime(2025, 1, 1, 9, 0, tzinfo=dt_timezone.utc)


def make_user(email, role="client", **extra):
    return get_user_model().objects.create_user(
        email=email,
        username=email.split("@")[0],
        password="pass",
        role=role,
        **extra,
    )


def make_proposal(client, freelancer, terms, currency="EGP", status="accepted"):
    """`terms` is a list of dicts of ProposalMilestone fields."""
    proposal = Proposal.objects.create(
        client=client,
        freelancer=freelancer,
        currency=currency,
        status=status,
    )
    for position, term in enumerate(terms, start=1):
        term = dict(term)
        term.setdefault("position", position)
        term.setdefault("title", f"Phase {position}")
        ProposalMilestone.objects.create(proposal=proposal, **term)
    return proposal


def make_contract(client, freelancer, proposal=None, currency="EGP", fee=None, grace_days=None,
                  confirmed_at=CONFIRMED_AT):
    return Contract.objects.create(
        proposal=proposal,
        client=client,
        freelancer=freelancer,
        currency=currency,
        platform_fee_percentage=fee,
        client_confirm_grace_days=grace_days,
        confirmed_at=confirmed_at,
    )


def make_held_milestone(contract, amount="1000.00", due_at=None, **fields):
    """A milestone with its held escrow payment, bypassing the schedule builder."""
    milestone = Milestone.objects.create(
        contract=contract,
        title=fields.pop("title", "Delivery"),
        amount_gross=Decimal(amount),
        due_at=due_at,
        **fields,
    )
    payment = Payment.objects.create(
        contract=contract,
        milestone=milestone,
        amount=Decimal(amount),
        currency=contract.currency or "EGP",
        status="held",
        captured_at=contract.confirmed_at,
    )
    return milestone, payment


def make_submission(milestone, submitted_at, version=1, status="submitted", **fields):
    fields.setdefault("submission_url", "https://files.example.test/delivery.zip")
    return MilestoneSubmission.objects.create(
        milestone=milestone,
        version=version,
        status=status,
        submitted_at=submitted_at,
        **fields,
    )
