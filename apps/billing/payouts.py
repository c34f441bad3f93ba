from abc import ABC, abstractmethod

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from .money import normalize_currency, to_money
from .models import Payout


class PayoutProcessor(ABC):
    provider = None

    @abstractmethod
    def process(self, payout: Payout, now=None):
        """Move the money for `payout` and record the result on it."""


class ManualPayoutProcessor(PayoutProcessor):
    """
    Simulated payout processor.
    Funds are moved by hand, so a payout is settled as soon as it exists.
    """
    provider = "manual"

    def process(self, payout: Payout, now=None):
        if payout.status == "settled":
            return payout
        if payout.status != "pending":
            raise ValidationError(
                f"Payout {payout.id} cannot be processed from status '{payout.status}'."
            )
        payout.mark_settled(now)
        return payout


def get_payout_processor() -> PayoutProcessor:
    path = getattr(settings, "ESCROW_PAYOUT_PROCESSOR", "apps.billing.payouts.ManualPayoutProcessor")
    return import_string(path)()


def ensure_payout(*, contract, milestone, amount, currency, now=None):
    """
    Return (payout, created). At most one payout exists per milestone:
    an insert that hits the one-to-one constraint means another writer
    already handled this milestone.
    """
    now = now or timezone.now()

    existing = Payout.objects.filter(milestone=milestone).first()
    if existing is not None:
        return existing, False

    processor = get_payout_processor()
    try:
        with transaction.atomic():
            payout = Payout.objects.create(
                contract=contract,
                milestone=milestone,
                provider=processor.provider or "manual",
                amount=to_money(amount),
                currency=normalize_currency(currency),
                status="pending",
            )
    except IntegrityError:
        return Payout.objects.get(milestone=milestone), False

    processor.process(payout, now)
    return payout, True
