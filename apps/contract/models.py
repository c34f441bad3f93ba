from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.billing.money import to_percent

User = settings.AUTH_USER_MODEL


class Contract(models.Model):
    STATUS_CHOICES = (
        ("active", "Active"),
        ("completed", "Completed"),
        ("terminated", "Terminated"),
        ("disputed", "Disputed"),
    )

    # One contract per accepted proposal; nullable for manually created contracts
    proposal = models.OneToOneField(
        "applications.Proposal",
        on_delete=models.PROTECT,
        related_name="contract",
        null=True,
        blank=True,
    )

    client = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="client_contracts",
    )
    freelancer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="freelancer_contracts",
    )

    currency = models.CharField(max_length=10, blank=True, default="")

    # Null means "use the platform default" (10%)
    platform_fee_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True,
        help_text="Platform fee at the time of contract creation"
    )

    client_confirm_grace_days = models.PositiveIntegerField(
        null=True, blank=True,
        help_text="Days the client has after a due date to approve a submission"
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="active"
    )

    confirmed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"]),
        ]

    def __str__(self):
        return f"Contract #{self.id} | Client {self.client_id} | Freelancer {self.freelancer_id}"

    @property
    def fee_percent(self):
        return to_percent(self.platform_fee_percentage)

    def is_party(self, user):
        return user.id in (self.client_id, self.freelancer_id)


class Milestone(models.Model):
    STATUS_CHOICES = (
        ("pending", "Pending"),
        ("submitted", "Submitted"),
        ("released", "Released"),
        ("refunded", "Refunded"),
    )
    TERMINAL_STATUSES = ("released", "refunded")

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name="milestones",
    )

    position = models.PositiveIntegerField(default=1)
    title = models.CharField(max_length=255)
    amount_gross = models.DecimalField(max_digits=12, decimal_places=2)

    start_offset_days = models.IntegerField(default=0)
    end_offset_days = models.IntegerField(default=0)

    due_at = models.DateTimeField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    client_confirm_deadline_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="pending",
    )

    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["position", "id"]
        indexes = [
            models.Index(fields=["contract", "position"]),
            models.Index(fields=["status"]),
        ]

    def __str__(self):
        return f"Milestone #{self.id} ({self.title}) | Contract #{self.contract_id}"

    @property
    def is_final(self):
        return self.status in self.TERMINAL_STATUSES


class MilestoneSubmission(models.Model):
    STATUS_CHOICES = (
        ("submitted", "Submitted"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
    )

    milestone = models.ForeignKey(
        Milestone,
        on_delete=models.CASCADE,
        related_name="submissions",
    )

    version = models.PositiveIntegerField()
    submitted_by = models.CharField(max_length=20, default="freelancer")

    submission_url = models.CharField(max_length=2048, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="submitted",
    )

    submitted_at = models.DateTimeField(default=timezone.now)
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.CharField(max_length=20, blank=True, null=True)
    decision_reason = models.TextField(blank=True, null=True)

    class Meta:
        ordering = ["-submitted_at", "-version"]
        constraints = [
            models.UniqueConstraint(
                fields=["milestone", "version"],
                name="uniq_submission_version_per_milestone",
            ),
        ]

    def __str__(self):
        return f"Submission v{self.version} → Milestone #{self.milestone_id}"
