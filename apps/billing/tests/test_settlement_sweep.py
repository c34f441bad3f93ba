from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.billing.models import ClientWallet, FreelancerWallet, Payment, Payout
from apps.billing.settlement import MilestoneSettlementSweep
from apps.billing.tasks import auto_settle_milestones
from apps.contract.models import Contract
from apps.contract.services.submissions import approve_submission
from apps.contract.tests.factories import (
    make_contract,
    make_held_milestone,
    make_submission,
    make_user,
)


class SettlementSweepTestBase(TestCase):
    def setUp(self):
        self.now = timezone.now().replace(microsecond=0)
        self.due = self.now - timedelta(days=1)
        self.client_user = make_user("owner@example.test", role="client")
        self.freelancer = make_user("dev@example.test", role="freelancer")
        self.contract = make_contract(self.client_user, self.freelancer, fee=Decimal("12"))

    def approved_milestone(self, amount="1000.00"):
        milestone, payment = make_held_milestone(
            self.contract,
            amount=amount,
            due_at=self.due,
            status="submitted",
            approved_at=self.due - timedelta(hours=2),
        )
        make_submission(milestone, submitted_at=self.due - timedelta(days=1), status="approved")
        return milestone, payment

    def sweep(self, **kwargs):
        return MilestoneSettlementSweep(now=self.now, **kwargs).run()


class SweepReleaseTests(SettlementSweepTestBase):
    def test_approved_on_time_milestone_pays_freelancer_net_of_fee(self):
        milestone, payment = self.approved_milestone()
        approved_at = milestone.approved_at

        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 1, "refunded": 0, "skipped": 0})
        wallet = FreelancerWallet.objects.get(freelancer=self.freelancer)
        self.assertEqual(wallet.balance, Decimal("880.00"))

        payout = Payout.objects.get(milestone=milestone)
        self.assertEqual(payout.amount, Decimal("880.00"))
        self.assertEqual(payout.status, "settled")
        self.assertEqual(payout.settled_at, self.now)

        payment.refresh_from_db()
        milestone.refresh_from_db()
        self.assertEqual(payment.status, "released")
        self.assertEqual(milestone.status, "released")
        self.assertEqual(milestone.approved_at, approved_at)
        self.assertFalse(ClientWallet.objects.exists())

    def test_replaying_the_sweep_pays_once(self):
        milestone, _ = self.approved_milestone()

        self.sweep()
        second = self.sweep()

        self.assertEqual(second.as_dict(), {"released": 0, "refunded": 0, "skipped": 0})
        self.assertEqual(Payout.objects.filter(milestone=milestone).count(), 1)
        self.assertEqual(
            FreelancerWallet.objects.get(freelancer=self.freelancer).balance, Decimal("880.00")
        )

    def test_existing_payout_is_not_paid_again(self):
        milestone, payment = self.approved_milestone()
        Payout.objects.create(
            contract=self.contract,
            milestone=milestone,
            amount=Decimal("880.00"),
            currency="EGP",
            status="settled",
        )

        summary = self.sweep()

        self.assertEqual(summary.released, 1)
        self.assertEqual(Payout.objects.count(), 1)
        self.assertFalse(FreelancerWallet.objects.exists())
        payment.refresh_from_db()
        self.assertEqual(payment.status, "released")

    def test_manual_approval_then_sweep_pays_once(self):
        milestone, _ = make_held_milestone(self.contract, due_at=self.due, status="submitted")
        submission = make_submission(milestone, submitted_at=self.due - timedelta(days=1))

        approve_submission(milestone.id, submission.id, self.client_user, now=self.now)
        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 0, "skipped": 0})
        self.assertEqual(Payout.objects.filter(milestone=milestone).count(), 1)
        self.assertEqual(
            FreelancerWallet.objects.get(freelancer=self.freelancer).balance, Decimal("880.00")
        )

    def test_currency_mismatch_leaves_payment_held(self):
        milestone, payment = self.approved_milestone()
        FreelancerWallet.objects.create(freelancer=self.freelancer, balance=Decimal("5.00"), currency="USD")

        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 0, "skipped": 1})
        self.assertFalse(Payout.objects.exists())
        payment.refresh_from_db()
        milestone.refresh_from_db()
        self.assertEqual(payment.status, "held")
        self.assertEqual(milestone.status, "submitted")
        self.assertEqual(
            FreelancerWallet.objects.get(freelancer=self.freelancer).balance, Decimal("5.00")
        )


class SweepRefundTests(SettlementSweepTestBase):
    def test_nothing_delivered_refunds_full_gross_to_client(self):
        milestone, payment = make_held_milestone(self.contract, due_at=self.due)

        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 1, "skipped": 0})
        self.assertEqual(ClientWallet.objects.get(client=self.client_user).balance, Decimal("1000.00"))
        payment.refresh_from_db()
        milestone.refresh_from_db()
        self.assertEqual(payment.status, "refunded")
        self.assertEqual(milestone.status, "refunded")
        self.assertEqual(milestone.rejected_at, self.now)
        self.assertFalse(Payout.objects.exists())

    def test_unanswered_on_time_delivery_is_refunded_to_client(self):
        """
        Current policy: an on-time delivery the client never decided is
        refunded to the client once the confirmation deadline passes.
        """
        milestone, payment = make_held_milestone(
            self.contract,
            due_at=self.now - timedelta(days=5),
            client_confirm_deadline_at=self.now - timedelta(days=2),
            status="submitted",
        )
        make_submission(milestone, submitted_at=self.now - timedelta(days=6))

        summary = self.sweep()

        self.assertEqual(summary.refunded, 1)
        self.assertEqual(ClientWallet.objects.get(client=self.client_user).balance, Decimal("1000.00"))
        self.assertFalse(FreelancerWallet.objects.exists())

    def test_existing_rejected_at_is_preserved(self):
        rejected_at = self.now - timedelta(days=3)
        milestone, _ = make_held_milestone(self.contract, due_at=self.due, rejected_at=rejected_at)

        self.sweep()

        milestone.refresh_from_db()
        self.assertEqual(milestone.rejected_at, rejected_at)


class SweepBatchTests(SettlementSweepTestBase):
    def test_milestone_inside_window_stays_held(self):
        _, payment = make_held_milestone(self.contract, due_at=self.now + timedelta(days=2))

        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 0, "skipped": 1})
        payment.refresh_from_db()
        self.assertEqual(payment.status, "held")

    def test_limit_bounds_the_batch(self):
        for _ in range(3):
            make_held_milestone(self.contract, due_at=self.due)

        summary = self.sweep(limit=2)

        self.assertEqual(summary.refunded, 2)
        self.assertEqual(Payment.objects.filter(status="held").count(), 1)

    def test_limit_is_clamped(self):
        self.assertEqual(MilestoneSettlementSweep(limit=None).limit, 200)
        self.assertEqual(MilestoneSettlementSweep(limit="junk").limit, 200)
        self.assertEqual(MilestoneSettlementSweep(limit=0).limit, 1)
        self.assertEqual(MilestoneSettlementSweep(limit=5000).limit, 1000)

    @override_settings(ESCROW_SETTLE_DEFAULT_LIMIT=25)
    def test_default_limit_comes_from_settings(self):
        self.assertEqual(MilestoneSettlementSweep().limit, 25)

    def test_payment_without_milestone_is_not_scanned(self):
        Payment.objects.create(contract=self.contract, amount=Decimal("10.00"), currency="EGP")
        make_held_milestone(self.contract, due_at=self.due)

        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 1, "skipped": 0})

    def test_zero_amount_payment_is_skipped(self):
        _, payment = make_held_milestone(self.contract, amount="0.00", due_at=self.due)

        summary = self.sweep()

        self.assertEqual(summary.skipped, 1)
        payment.refresh_from_db()
        self.assertEqual(payment.status, "held")

    def test_refunded_milestone_with_held_payment_is_not_refunded_twice(self):
        _, payment = make_held_milestone(self.contract, due_at=self.due, status="refunded")

        summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 0, "skipped": 0})
        self.assertFalse(ClientWallet.objects.exists())
        payment.refresh_from_db()
        self.assertEqual(payment.status, "held")

    def test_unresolvable_rows_do_not_starve_due_milestones(self):
        for _ in range(3):
            Payment.objects.create(contract=self.contract, amount=Decimal("10.00"), currency="EGP")
            make_held_milestone(self.contract, due_at=self.due, status="refunded")
        _, due_payment = make_held_milestone(self.contract, amount="300.00", due_at=self.due)

        summary = self.sweep(limit=2)

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 1, "skipped": 0})
        due_payment.refresh_from_db()
        self.assertEqual(due_payment.status, "refunded")
        self.assertEqual(ClientWallet.objects.get(client=self.client_user).balance, Decimal("300.00"))

    def test_one_failure_does_not_stop_the_batch(self):
        make_held_milestone(self.contract, due_at=self.due)
        make_held_milestone(self.contract, due_at=self.due)

        with mock.patch(
            "apps.billing.settlement.EscrowService.refund",
            side_effect=[RuntimeError("boom"), None],
        ):
            summary = self.sweep()

        self.assertEqual(summary.as_dict(), {"released": 0, "refunded": 1, "skipped": 1})

    def test_contract_is_fetched_once_per_run(self):
        for _ in range(3):
            make_held_milestone(self.contract, due_at=self.due)

        with mock.patch.object(Contract.objects, "filter", wraps=Contract.objects.filter) as lookup:
            summary = self.sweep()

        self.assertEqual(summary.refunded, 3)
        self.assertEqual(lookup.call_count, 1)

    def test_fee_defaults_to_ten_percent(self):
        self.contract.platform_fee_percentage = None
        self.contract.save()
        self.approved_milestone(amount="250.00")

        self.sweep()

        self.assertEqual(
            FreelancerWallet.objects.get(freelancer=self.freelancer).balance, Decimal("225.00")
        )


class SweepEntryPointTests(SettlementSweepTestBase):
    def test_celery_task_returns_counts(self):
        make_held_milestone(self.contract, due_at=self.due)

        result = auto_settle_milestones.delay(limit=10)

        self.assertEqual(result.get(), {"released": 0, "refunded": 1, "skipped": 0})

    def test_management_command(self):
        make_held_milestone(self.contract, due_at=self.due)
        out = StringIO()

        call_command("settle_milestones", "--limit", "5", stdout=out)

        self.assertIn("Released 0, refunded 1, skipped 0.", out.getvalue())
        self.assertIn("Scanned up to 5", out.getvalue())
