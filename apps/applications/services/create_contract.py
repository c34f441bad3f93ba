from django.db import transaction

from apps.contract.models import Contract
from apps.contract.services.contracts import confirm_contract


@transaction.atomic
def create_contract_for_proposal(proposal, *, platform_fee_percentage=None, client_confirm_grace_days=None, confirm=True):
    """
    Create the contract only after the proposal was accepted.
    Confirming it queues the milestone schedule.
    """

    # Prevent duplicates
    existing = Contract.objects.filter(proposal=proposal).first()
    if existing is not None:
        return existing

    # Proposal must be accepted
    if proposal.status != "accepted":
        return None

    contract = Contract.objects.create(
        proposal=proposal,
        client=proposal.client,
        freelancer=proposal.freelancer,
        currency=proposal.currency,
        platform_fee_percentage=platform_fee_percentage,
        client_confirm_grace_days=client_confirm_grace_days,
    )

    if confirm:
        confirm_contract(contract)
    return contract
