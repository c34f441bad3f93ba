import logging
from dataclasses import dataclass
from datetime import timedelta, timezone as dt_timezone

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.applications.models import ProposalMilestone
from apps.billing.models import Payment
from apps.billing.money import clamp_int, normalize_currency, to_int, to_money
from apps.contract.models import Contract, Milestone
from apps.cores.exceptions import (
    MissingProposalLink,
    NoProposalMilestones,
    NotFound,
    StoreFailure,
)

logger = logging.getLogger(__name__)

# The schedule clock starts one day after confirmation
SCHEDULE_START_DELAY = timedelta(hours=24)
MAX_GRACE_DAYS = 30


@dataclass(frozen=True)
class ScheduleResult:
    inserted: int = 0
    status: str = "created"
    payments_created: int = 0

    @property
    def already_present(self):
        return self.status == "already_present"


@dataclass(frozen=True)
class PlannedMilestone:
    position: int
    title: str
    amount_gross: object
    start_offset_days: int
    end_offset_days: int
    due_at: object
    due_date: object
    client_confirm_deadline_at: object


def schedule_confirmed_at(contract, now=None):
    return contract.confirmed_at or contract.created_at or now or timezone.now()


def plan_milestones(terms, confirmed_at, grace_days=None):
    """
    Turn ordered proposal terms into concrete milestone dates.

    Pure: the same terms and confirmation instant always give the same plan.
    """
    base_start = confirmed_at + SCHEDULE_START_DELAY
    default_grace = getattr(settings, "ESCROW_DEFAULT_GRACE_DAYS", 3)
    grace = to_int(grace_days)
    grace = clamp_int(default_grace if grace is None else grace, 0, MAX_GRACE_DAYS)

    planned = []
    rolling_end = 0
    for index, term in enumerate(terms):
        duration_days = to_int(term.duration_days) or 0
        start_offset = to_int(term.start_offset_days)
        if start_offset is None:
            start_offset = rolling_end
        end_offset = to_int(term.end_offset_days)
        if end_offset is None:
            end_offset = start_offset + duration_days
        if end_offset < start_offset:
            end_offset = start_offset
        rolling_end = end_offset

        due_at = base_start + timedelta(days=end_offset)
        position = to_int(term.position)
        planned.append(PlannedMilestone(
            position=index + 1 if position is None else position,
            title=str(term.title or f"Milestone #{index + 1}"),
            amount_gross=to_money(term.amount_gross),
            start_offset_days=start_offset,
            end_offset_days=end_offset,
            due_at=due_at,
            due_date=due_at.astimezone(dt_timezone.utc).date(),
            client_confirm_deadline_at=due_at + timedelta(days=grace),
        ))
    return planned


def _ordered_terms(proposal_id):
    terms = list(ProposalMilestone.objects.filter(proposal_id=proposal_id))
    terms.sort(key=lambda t: (t.position is None, t.position or 0, t.id))
    return terms


def _hold_payments(contract, milestones, captured_at):
    currency = normalize_currency(contract.currency)
    payments = [
        Payment(
            contract=contract,
            milestone=milestone,
            provider="escrow",
            amount=to_money(milestone.amount_gross),
            currency=currency,
            status="held",
            captured_at=captured_at,
        )
        for milestone in milestones
    ]
    Payment.objects.bulk_create(payments)
    return len(payments)


def _backfill_missing_payments(contract, captured_at):
    """
    Held payments for open milestones that never got one (e.g. rows written
    before payments were created in the same transaction).
    """
    missing = list(
        Milestone.objects
        .filter(contract=contract, payment__isnull=True)
        .exclude(status__in=Milestone.TERMINAL_STATUSES)
    )
    if not missing:
        return 0
    return _hold_payments(contract, missing, captured_at)


def build_milestone_schedule(contract_id, now=None) -> ScheduleResult:
    """
    Create milestones and their escrow holds for a confirmed contract.
    Safe to re-invoke: an already-scheduled contract is a no-op apart from
    backfilling missing holds.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            contract = (
                Contract.objects
                .select_for_update()
                .filter(id=contract_id)
                .first()
            )
            if contract is None:
                raise NotFound("Contract not found")

            confirmed_at = schedule_confirmed_at(contract, now)

            if Milestone.objects.filter(contract=contract).exists():
                backfilled = _backfill_missing_payments(contract, confirmed_at)
                if backfilled:
                    logger.info("Backfilled %s held payments for contract %s", backfilled, contract.id)
                return ScheduleResult(status="already_present", payments_created=backfilled)

            if not contract.proposal_id:
                raise MissingProposalLink("Contract has no proposal_id")

            terms = _ordered_terms(contract.proposal_id)
            if not terms:
                raise NoProposalMilestones("No milestones found for proposal")

            planned = plan_milestones(terms, confirmed_at, contract.client_confirm_grace_days)
            milestones = Milestone.objects.bulk_create([
                Milestone(
                    contract=contract,
                    position=p.position,
                    title=p.title,
                    amount_gross=p.amount_gross,
                    start_offset_days=p.start_offset_days,
                    end_offset_days=p.end_offset_days,
                    due_at=p.due_at,
                    due_date=p.due_date,
                    client_confirm_deadline_at=p.client_confirm_deadline_at,
                    status="pending",
                )
                for p in planned
            ])
            # bulk_create does not return primary keys on every backend
            if any(m.pk is None for m in milestones):
                milestones = list(Milestone.objects.filter(contract=contract))

            payments_created = 0
            if not Payment.objects.filter(contract=contract).exists():
                payments_created = _hold_payments(contract, milestones, confirmed_at)
    except DatabaseError as exc:
        logger.exception("Schedule build failed for contract %s", contract_id)
        raise StoreFailure(f"Schedule build failed: {exc}") from exc

    logger.info(
        "Scheduled %s milestones (%s held payments) for contract %s",
        len(milestones), payments_created, contract_id,
    )
    return ScheduleResult(inserted=len(milestones), payments_created=payments_created)
