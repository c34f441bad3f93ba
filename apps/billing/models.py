from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class Payment(models.Model):
    """
    Escrow hold backing one milestone. Created `held` for the full gross
    amount; moves to `released` or `refunded` exactly once.
    """
    STATUS_CHOICES = (
        ("held", "Held in escrow"),
        ("released", "Released"),
        ("refunded", "Refunded"),
    )

    contract = models.ForeignKey(
        "contract.Contract",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    milestone = models.OneToOneField(
        "contract.Milestone",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment",
    )

    provider = models.CharField(max_length=20, default="escrow")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=10)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="held",
    )

    captured_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["contract"]),
        ]

    def __str__(self):
        return f"Payment #{self.id} {self.amount} {self.currency} ({self.status})"

    @property
    def is_held(self):
        return self.status == "held"


class Payout(models.Model):
    STATUS_CHOICES = (
        ("pending", "Pending"),
        ("settled", "Settled"),
    )

    contract = models.ForeignKey(
        "contract.Contract",
        on_delete=models.PROTECT,
        related_name="payouts",
    )

    # One-to-one: the unique constraint is what makes releases idempotent
    milestone = models.OneToOneField(
        "contract.Milestone",
        on_delete=models.PROTECT,
        related_name="payout",
    )

    provider = models.CharField(max_length=20, default="manual")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=10)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="pending",
    )

    sent_at = models.DateTimeField(null=True, blank=True)
    settled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Payout #{self.id} → Milestone #{self.milestone_id} ({self.status})"

    def mark_settled(self, now=None):
        now = now or timezone.now()
        self.status = "settled"
        self.sent_at = self.sent_at or now
        self.settled_at = now
        self.save(update_fields=["status", "sent_at", "settled_at"])


class Wallet(models.Model):
    OWNER_FIELD = None

    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=10)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True

    @classmethod
    def owner_lookup(cls, owner_id):
        return {f"{cls.OWNER_FIELD}_id": owner_id}


class ClientWallet(Wallet):
    OWNER_FIELD = "client"

    client = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_wallet",
    )

    class Meta:
        db_table = "client_wallets"

    def __str__(self):
        return f"Client wallet {self.client_id}: {self.balance} {self.currency}"


class FreelancerWallet(Wallet):
    OWNER_FIELD = "freelancer"

    freelancer = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="freelancer_wallet",
    )

    class Meta:
        db_table = "freelancer_wallets"

    def __str__(self):
        return f"Freelancer wallet {self.freelancer_id}: {self.balance} {self.currency}"
