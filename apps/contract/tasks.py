import logging

from celery import shared_task

from apps.contract.services.schedule import build_milestone_schedule
from apps.cores.exceptions import StoreFailure

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(StoreFailure,),
    retry_backoff=10,
    retry_kwargs={"max_retries": 3},
)
def build_contract_milestones(self, contract_id):
    """
    Build the milestone schedule right after a contract is confirmed.
    Retried on storage errors; re-running is a no-op once scheduled.
    """
    result = build_milestone_schedule(contract_id)
    return {
        "inserted": result.inserted,
        "status": result.status,
        "payments_created": result.payments_created,
    }
