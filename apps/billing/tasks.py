import logging

from celery import shared_task

from apps.billing.settlement import MilestoneSettlementSweep

logger = logging.getLogger(__name__)


@shared_task
def auto_settle_milestones(limit=None):
    """
    Periodic settlement sweep (Celery beat). Safe to overlap with another
    run: each held payment is settled under row locks.
    """
    summary = MilestoneSettlementSweep(limit=limit).run()
    return summary.as_dict()
