import logging

from django.db import transaction
from django.utils import timezone

from apps.contract.tasks import build_contract_milestones

logger = logging.getLogger(__name__)


def confirm_contract(contract, now=None):
    """
    Mark the contract confirmed and queue its milestone schedule.
    The schedule clock is anchored to the first confirmation only.
    """
    if contract.confirmed_at is None:
        contract.confirmed_at = now or timezone.now()
        contract.save(update_fields=["confirmed_at", "updated_at"])
        logger.info("Contract %s confirmed at %s", contract.id, contract.confirmed_at)

    contract_id = contract.id
    transaction.on_commit(lambda: build_contract_milestones.delay(contract_id))
    return contract
