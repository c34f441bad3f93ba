import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .money import normalize_currency, to_money
from .models import ClientWallet, FreelancerWallet

logger = logging.getLogger(__name__)


def credit_wallet(wallet_model, owner_id, amount, currency, now=None) -> bool:
    """
    Add `amount` to the owner's wallet, creating the wallet on first credit.

    Returns False (and changes nothing) when the stored wallet currency
    differs from `currency`. There is no conversion.
    Callers must treat False as "the credit did not happen".
    """
    now = now or timezone.now()
    amount = to_money(amount)
    currency = normalize_currency(currency)
    lookup = wallet_model.owner_lookup(owner_id)

    with transaction.atomic():
        wallet = wallet_model.objects.select_for_update().filter(**lookup).first()

        if wallet is None:
            try:
                with transaction.atomic():
                    wallet_model.objects.create(
                        **lookup,
                        balance=amount,
                        currency=currency,
                        updated_at=now,
                    )
                return True
            except IntegrityError:
                # Lost the creation race; credit the row the other writer made
                wallet = wallet_model.objects.select_for_update().get(**lookup)

        if wallet.currency and normalize_currency(wallet.currency) != currency:
            logger.warning(
                "Refused %s credit of %s %s for owner %s: wallet holds %s",
                wallet_model.__name__, amount, currency, owner_id, wallet.currency,
            )
            return False

        wallet_model.objects.filter(pk=wallet.pk).update(
            balance=F("balance") + amount,
            updated_at=now,
        )

    return True


def credit_freelancer(freelancer_id, amount, currency, now=None) -> bool:
    return credit_wallet(FreelancerWallet, freelancer_id, amount, currency, now)


def credit_client(client_id, amount, currency, now=None) -> bool:
    return credit_wallet(ClientWallet, client_id, amount, currency, now)
