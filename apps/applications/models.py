from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Proposal(models.Model):
    STATUS_CHOICES = [
        ('submitted', 'Submitted'),
        ('countered', 'Countered'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('withdrawn', 'Withdrawn'),
    ]

    client = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="proposals_received"
    )

    freelancer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="proposals"
    )

    cover_letter = models.TextField(blank=True)
    currency = models.CharField(max_length=10, blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='submitted'
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Proposal #{self.id}: {self.freelancer} → {self.client}"

    @property
    def total_gross(self):
        return sum(
            (term.amount_gross or Decimal("0.00") for term in self.milestone_terms.all()),
            Decimal("0.00"),
        )


class ProposalMilestone(models.Model):
    """
    One negotiated milestone term. Offsets are days from the contract's
    schedule start; when absent they are derived from durations.
    """

    proposal = models.ForeignKey(
        Proposal,
        on_delete=models.CASCADE,
        related_name="milestone_terms"
    )

    position = models.PositiveIntegerField(null=True, blank=True)
    title = models.CharField(max_length=255, blank=True, default="")
    amount_gross = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    duration_days = models.IntegerField(null=True, blank=True)
    start_offset_days = models.IntegerField(null=True, blank=True)
    end_offset_days = models.IntegerField(null=True, blank=True)

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.title or 'Milestone'} ({self.amount_gross})"
