from django.db.models import Count, Sum

from .models import ClientWallet, FreelancerWallet, Payment, Payout
from .money import ZERO, normalize_currency


RECENT_PAYOUT_COUNT = 20


class WalletSelector:
    """
    Read-only wallet views. A wallet is created on first credit, so a
    missing row reads as an empty balance.
    """
    @staticmethod
    def _balance(wallet_model, owner_id):
        wallet = wallet_model.objects.filter(**wallet_model.owner_lookup(owner_id)).first()
        if wallet is None:
            return {"balance": ZERO, "currency": normalize_currency(None), "updated_at": None}
        return {
            "balance": wallet.balance,
            "currency": wallet.currency,
            "updated_at": wallet.updated_at,
        }

    @staticmethod
    def freelancer_summary(user):
        data = WalletSelector._balance(FreelancerWallet, user.id)

        payouts = Payout.objects.filter(contract__freelancer=user)
        recent = payouts.order_by("-id")[:RECENT_PAYOUT_COUNT]
        totals = payouts.aggregate(total=Sum("amount"), count=Count("id"))

        pending = Payment.objects.filter(contract__freelancer=user, status="held")

        data.update({
            "payout_count": totals["count"] or 0,
            "total_paid_out": totals["total"] or ZERO,
            "held_in_escrow": pending.aggregate(total=Sum("amount"))["total"] or ZERO,
            "recent_payouts": list(recent),
        })
        return data

    @staticmethod
    def client_summary(user):
        data = WalletSelector._balance(ClientWallet, user.id)

        held = Payment.objects.filter(contract__client=user, status="held")
        refunded = Payment.objects.filter(contract__client=user, status="refunded")

        data.update({
            "held_in_escrow": held.aggregate(total=Sum("amount"))["total"] or ZERO,
            "total_refunded": refunded.aggregate(total=Sum("amount"))["total"] or ZERO,
        })
        return data
