import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from apps.billing.services import EscrowService
from apps.contract.models import Milestone, MilestoneSubmission
from apps.cores.exceptions import (
    AlreadyFinal,
    Forbidden,
    InvalidInput,
    NotFound,
    StoreFailure,
    SubmissionMismatch,
)
from apps.notifications.services.milestones import notify_milestone_submitted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalResult:
    net_amount: Decimal
    fee_percent: Decimal


def _locked_milestone(milestone_id):
    milestone = (
        Milestone.objects
        .select_for_update()
        .select_related("contract")
        .filter(id=milestone_id)
        .first()
    )
    if milestone is None:
        raise NotFound("Milestone not found")
    return milestone


def _check_can_decide(user, contract):
    if user.id == contract.client_id or user.has_admin_access():
        return
    raise Forbidden("Only the contract's client or an admin can decide this milestone")


def _locked_submission(milestone, submission_id):
    submission = (
        MilestoneSubmission.objects
        .select_for_update()
        .filter(id=submission_id)
        .first()
    )
    if submission is None:
        raise NotFound("Submission not found")
    if submission.milestone_id != milestone.id:
        raise SubmissionMismatch()
    return submission


def submit_milestone(milestone_id, user, *, submission_url=None, notes=None, now=None) -> MilestoneSubmission:
    """
    Freelancer hands in work for a milestone. Each call adds a new version.
    """
    now = now or timezone.now()
    submission_url = str(submission_url or "").strip()
    notes = str(notes or "").strip()

    try:
        with transaction.atomic():
            milestone = _locked_milestone(milestone_id)
            contract = milestone.contract

            if user.id != contract.freelancer_id:
                raise Forbidden("Only the contract's freelancer can submit this milestone")

            if not submission_url and not notes:
                raise InvalidInput("Submission content is required")

            if milestone.is_final:
                raise AlreadyFinal(f"Milestone is already {milestone.status}")

            max_version = milestone.submissions.aggregate(v=Max("version"))["v"] or 0
            submission = MilestoneSubmission.objects.create(
                milestone=milestone,
                version=max_version + 1,
                submitted_by="freelancer",
                submission_url=submission_url or None,
                notes=notes or None,
                status="submitted",
                submitted_at=now,
            )

            milestone.status = "submitted"
            milestone.submitted_at = now
            milestone.save(update_fields=["status", "submitted_at", "updated_at"])
    except DatabaseError as exc:
        logger.exception("Submission failed for milestone %s", milestone_id)
        raise StoreFailure(f"Submission failed: {exc}") from exc

    logger.info("Milestone %s submitted (v%s)", milestone.id, submission.version)
    notify_milestone_submitted(submission)
    return submission


def approve_submission(milestone_id, submission_id, user, now=None) -> ApprovalResult:
    """
    Client (or admin) accepts a submission: the milestone is released and
    the freelancer is paid immediately, net of the platform fee.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            milestone = _locked_milestone(milestone_id)
            contract = milestone.contract
            _check_can_decide(user, contract)
            submission = _locked_submission(milestone, submission_id)

            if milestone.is_final:
                raise AlreadyFinal(f"Milestone is already {milestone.status}")

            submission.status = "approved"
            submission.decided_at = now
            submission.decided_by = "client"
            submission.decision_reason = None
            submission.save(update_fields=["status", "decided_at", "decided_by", "decision_reason"])

            result = EscrowService.release(milestone, contract=contract, now=now, manual=True)
    except DatabaseError as exc:
        logger.exception("Approval failed for milestone %s", milestone_id)
        raise StoreFailure(f"Approval failed: {exc}") from exc

    return ApprovalResult(net_amount=result.net_amount, fee_percent=result.fee_percent)


def reject_submission(milestone_id, submission_id, user, reason=None, now=None) -> MilestoneSubmission:
    """
    Client (or admin) turns a submission down. No money moves; the
    freelancer may submit a new version.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            milestone = _locked_milestone(milestone_id)
            contract = milestone.contract
            _check_can_decide(user, contract)
            submission = _locked_submission(milestone, submission_id)

            if milestone.is_final:
                raise AlreadyFinal(f"Milestone is already {milestone.status}")

            submission.status = "rejected"
            submission.decided_at = now
            submission.decided_by = "client"
            submission.decision_reason = str(reason or "").strip() or None
            submission.save(update_fields=["status", "decided_at", "decided_by", "decision_reason"])

            milestone.status = "pending"
            milestone.rejected_at = milestone.rejected_at or now
            milestone.save(update_fields=["status", "rejected_at", "updated_at"])
    except DatabaseError as exc:
        logger.exception("Rejection failed for milestone %s", milestone_id)
        raise StoreFailure(f"Rejection failed: {exc}") from exc

    logger.info("Milestone %s submission v%s rejected by user %s", milestone.id, submission.version, user.id)
    return submission
