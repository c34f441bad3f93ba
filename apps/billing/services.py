import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction

from apps.cores.exceptions import CurrencyMismatch

from .models import Payment
from .money import net_amount, normalize_currency, to_money
from .payouts import ensure_payout
from .wallets import credit_client, credit_freelancer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseResult:
    gross_amount: Decimal
    net_amount: Decimal
    fee_percent: Decimal
    payout_created: bool


@dataclass(frozen=True)
class RefundResult:
    gross_amount: Decimal


def _settlement_currency(contract, payment):
    return normalize_currency(contract.currency or (payment.currency if payment else None))


class EscrowService:
    """
    Money side of milestone resolution, shared by manual decisions and the
    settlement sweep. Every step runs in one transaction; a refused wallet
    credit raises CurrencyMismatch and rolls the whole resolution back.
    """

    @staticmethod
    @transaction.atomic
    def release(milestone, *, contract, now, gross=None, manual=False) -> ReleaseResult:
        payment = Payment.objects.select_for_update().filter(milestone=milestone).first()

        if gross is None:
            gross = milestone.amount_gross
        gross = to_money(gross)
        fee_percent = contract.fee_percent
        net = net_amount(gross, fee_percent)
        currency = _settlement_currency(contract, payment)

        payout_created = False
        if net > 0:
            _, payout_created = ensure_payout(
                contract=contract,
                milestone=milestone,
                amount=net,
                currency=currency,
                now=now,
            )
            # The payout row is the idempotency key for the freelancer credit
            if payout_created and not credit_freelancer(contract.freelancer_id, net, currency, now):
                raise CurrencyMismatch(
                    f"Freelancer wallet currency differs from {currency}; release aborted."
                )

        if payment is not None and payment.status != "released":
            payment.status = "released"
            payment.save(update_fields=["status", "updated_at"])

        milestone.status = "released"
        if manual:
            milestone.approved_at = now
            milestone.rejected_at = None
        else:
            milestone.approved_at = milestone.approved_at or now
        milestone.save(update_fields=["status", "approved_at", "rejected_at", "updated_at"])

        logger.info(
            "Released milestone %s: gross=%s net=%s fee=%s%% payout_created=%s",
            milestone.id, gross, net, fee_percent, payout_created,
        )
        return ReleaseResult(
            gross_amount=gross,
            net_amount=net,
            fee_percent=fee_percent,
            payout_created=payout_created,
        )

    @staticmethod
    @transaction.atomic
    def refund(milestone, *, contract, now, gross=None) -> RefundResult:
        payment = Payment.objects.select_for_update().filter(milestone=milestone).first()

        if gross is None:
            gross = payment.amount if payment is not None else milestone.amount_gross
        gross = to_money(gross)
        currency = _settlement_currency(contract, payment)

        # Refunds return the full gross; no platform fee
        if not credit_client(contract.client_id, gross, currency, now):
            raise CurrencyMismatch(
                f"Client wallet currency differs from {currency}; refund aborted."
            )

        if payment is not None and payment.status != "refunded":
            payment.status = "refunded"
            payment.save(update_fields=["status", "updated_at"])

        milestone.status = "refunded"
        milestone.rejected_at = milestone.rejected_at or now
        milestone.save(update_fields=["status", "rejected_at", "updated_at"])

        logger.info("Refunded milestone %s: gross=%s to client %s", milestone.id, gross, contract.client_id)
        return RefundResult(gross_amount=gross)
