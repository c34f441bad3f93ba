import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone as dt_timezone
from decimal import Decimal
from typing import Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.contract.models import Contract, Milestone

from .models import Payment
from .money import clamp_int, to_int, to_money
from .services import EscrowService

logger = logging.getLogger(__name__)

RELEASE = "release"
REFUND = "refund"
SKIP = "skip"

CONFIRM_FALLBACK_DAYS = 3
APPROVED_SUBMISSION_STATUSES = ("approved", "accepted")

_EARLIEST = datetime.min.replace(tzinfo=dt_timezone.utc)


@dataclass(frozen=True)
class SubmissionFacts:
    version: int
    status: str
    submitted_at: Optional[datetime] = None


@dataclass(frozen=True)
class MilestoneFacts:
    """Snapshot of one held payment and the milestone it backs."""
    amount: Decimal
    status: str = "pending"
    due_at: Optional[datetime] = None
    due_date: Optional[object] = None
    client_confirm_deadline_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    submissions: Tuple[SubmissionFacts, ...] = field(default_factory=tuple)

    @classmethod
    def from_records(cls, payment, milestone):
        return cls(
            amount=to_money(payment.amount),
            status=milestone.status,
            due_at=milestone.due_at,
            due_date=milestone.due_date,
            client_confirm_deadline_at=milestone.client_confirm_deadline_at,
            submitted_at=milestone.submitted_at,
            approved_at=milestone.approved_at,
            submissions=tuple(
                SubmissionFacts(version=s.version, status=s.status, submitted_at=s.submitted_at)
                for s in milestone.submissions.all()
            ),
        )


@dataclass(frozen=True)
class SettlementDecision:
    action: str
    reason: str


@dataclass
class SettlementSummary:
    released: int = 0
    refunded: int = 0
    skipped: int = 0

    def as_dict(self):
        return {"released": self.released, "refunded": self.refunded, "skipped": self.skipped}


def resolve_due_at(facts: MilestoneFacts) -> Optional[datetime]:
    if facts.due_at is not None:
        return facts.due_at
    if facts.due_date is not None:
        return datetime.combine(facts.due_date, time.max, tzinfo=dt_timezone.utc)
    return None


def latest_submission(submissions) -> Optional[SubmissionFacts]:
    if not submissions:
        return None
    return max(submissions, key=lambda s: (s.submitted_at or _EARLIEST, s.version))


def decide_settlement(facts: MilestoneFacts, now: datetime) -> SettlementDecision:
    """
    Work out what the sweep should do with one held payment at `now`.

    Pure: reads only the snapshot, so the same facts and clock always give
    the same answer.
    """
    if facts.amount <= 0:
        return SettlementDecision(SKIP, "non_positive_amount")

    due_at = resolve_due_at(facts)
    latest = latest_submission(facts.submissions)
    submitted_at = latest.submitted_at if latest is not None else None
    if submitted_at is None:
        submitted_at = facts.submitted_at

    approved = facts.approved_at is not None or (
        latest is not None and (latest.status or "").lower() in APPROVED_SUBMISSION_STATUSES
    )

    if due_at is None:
        submitted_on_time = submitted_at is not None
    else:
        submitted_on_time = submitted_at is not None and submitted_at <= due_at

    confirm_deadline = facts.client_confirm_deadline_at
    if confirm_deadline is None and due_at is not None:
        confirm_deadline = due_at + timedelta(days=CONFIRM_FALLBACK_DAYS)

    due_passed = due_at is None or now >= due_at

    if approved and submitted_on_time and due_passed:
        decision = SettlementDecision(RELEASE, "approved")
    elif due_at is not None and now >= due_at and (submitted_at is None or submitted_at > due_at):
        decision = SettlementDecision(REFUND, "no_delivery")
    elif (
        confirm_deadline is not None
        and submitted_at is not None
        and now >= confirm_deadline
        and not approved
    ):
        # Client never decided an on-time delivery; funds go back to the client
        decision = SettlementDecision(REFUND, "confirmation_timeout")
    else:
        decision = SettlementDecision(SKIP, "awaiting")

    # Never resolve against a terminal status already recorded on the milestone
    if facts.status == "released" and decision.action != RELEASE:
        return SettlementDecision(SKIP, "already_released")
    if facts.status == "refunded":
        return SettlementDecision(SKIP, "already_refunded")
    return decision


class MilestoneSettlementSweep:
    """
    Resolve held escrow payments whose milestone is ready for it.

    Each payment is settled in its own transaction with the milestone and
    the payment locked, so a second sweep or a racing manual approval finds
    the payment no longer held and leaves it alone. One bad row is logged
    and counted as skipped; the rest of the batch still runs.
    """

    def __init__(self, now=None, limit=None):
        self.now = now or timezone.now()
        self.limit = self.clean_limit(limit)
        self._contracts = {}

    @staticmethod
    def clean_limit(limit):
        default = getattr(settings, "ESCROW_SETTLE_DEFAULT_LIMIT", 200)
        maximum = getattr(settings, "ESCROW_SETTLE_MAX_LIMIT", 1000)
        if to_int(limit) is None:
            limit = default
        return clamp_int(limit, 1, maximum)

    def run(self) -> SettlementSummary:
        summary = SettlementSummary()
        payment_ids = list(
            Payment.objects
            .filter(status="held", milestone__isnull=False)
            .exclude(milestone__status="refunded")
            .order_by("id")
            .values_list("id", flat=True)[: self.limit]
        )

        for payment_id in payment_ids:
            outcome = self._settle_payment(payment_id)
            if outcome == RELEASE:
                summary.released += 1
            elif outcome == REFUND:
                summary.refunded += 1
            else:
                summary.skipped += 1

        logger.info(
            "Settlement sweep at %s: scanned=%s released=%s refunded=%s skipped=%s",
            self.now.isoformat(), len(payment_ids),
            summary.released, summary.refunded, summary.skipped,
        )
        return summary

    def get_contract(self, contract_id):
        if contract_id not in self._contracts:
            self._contracts[contract_id] = Contract.objects.filter(id=contract_id).first()
        return self._contracts[contract_id]

    def _settle_payment(self, payment_id):
        try:
            with transaction.atomic():
                return self._settle_locked(payment_id)
        except Exception:
            logger.exception("Settlement failed for payment %s", payment_id)
            return SKIP

    def _settle_locked(self, payment_id):
        milestone_id = (
            Payment.objects.filter(id=payment_id).values_list("milestone_id", flat=True).first()
        )
        if milestone_id is None:
            logger.warning("Payment %s has no milestone; skipped", payment_id)
            return SKIP

        # Lock order: milestone, then payment
        milestone = Milestone.objects.select_for_update().filter(id=milestone_id).first()
        if milestone is None:
            return SKIP

        payment = Payment.objects.select_for_update().filter(id=payment_id).first()
        if payment is None or not payment.is_held:
            return SKIP

        contract = self.get_contract(payment.contract_id)
        if contract is None:
            logger.warning("Payment %s references missing contract %s", payment_id, payment.contract_id)
            return SKIP

        decision = decide_settlement(MilestoneFacts.from_records(payment, milestone), self.now)

        if decision.action == RELEASE:
            EscrowService.release(milestone, contract=contract, now=self.now, gross=payment.amount)
        elif decision.action == REFUND:
            EscrowService.refund(milestone, contract=contract, now=self.now, gross=payment.amount)
        else:
            logger.debug("Payment %s left held (%s)", payment_id, decision.reason)
            return SKIP

        logger.info("Payment %s settled: %s (%s)", payment_id, decision.action, decision.reason)
        return decision.action
