from datetime import timedelta
from decimal import Decimal

from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.billing.models import ClientWallet, FreelancerWallet, Payout
from apps.contract.tests.factories import make_contract, make_held_milestone, make_user


class AutoSettleApiTests(APITestCase):
    def setUp(self):
        self.url = reverse("milestones-auto-settle")
        self.client_user = make_user("owner@example.test", role="client")
        self.freelancer = make_user("dev@example.test", role="freelancer")
        self.contract = make_contract(self.client_user, self.freelancer)
        self.due = timezone.now() - timedelta(days=1)

    def test_open_when_no_secret_configured(self):
        make_held_milestone(self.contract, due_at=self.due)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"ok": True, "released": 0, "refunded": 1, "skipped": 0})

    @override_settings(CRON_SECRET="s3cret")
    def test_secret_header_required_when_configured(self):
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.post(self.url, HTTP_X_CRON_SECRET="wrong")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(CRON_SECRET="s3cret")
    def test_valid_secret_runs_the_sweep(self):
        make_held_milestone(self.contract, due_at=self.due)

        response = self.client.post(self.url, HTTP_X_CRON_SECRET="s3cret")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["refunded"], 1)

    def test_limit_query_param(self):
        for _ in range(3):
            make_held_milestone(self.contract, due_at=self.due)

        response = self.client.post(f"{self.url}?limit=2")

        self.assertEqual(response.data["refunded"], 2)

    def test_get_is_not_allowed(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)


class WalletApiTests(APITestCase):
    def setUp(self):
        self.client_user = make_user("owner@example.test", role="client")
        self.freelancer = make_user("dev@example.test", role="freelancer")
        self.contract = make_contract(self.client_user, self.freelancer)

    def test_requires_authentication(self):
        response = self.client.get(reverse("freelancer-wallet"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_freelancer_without_wallet_reads_empty_balance(self):
        self.client.force_authenticate(self.freelancer)

        response = self.client.get(reverse("freelancer-wallet"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance"], "0.00")
        self.assertEqual(response.data["currency"], "EGP")
        self.assertEqual(response.data["payout_count"], 0)

    def test_freelancer_summary(self):
        FreelancerWallet.objects.create(freelancer=self.freelancer, balance=Decimal("880.00"), currency="EGP")
        make_held_milestone(self.contract, amount="300.00", due_at=timezone.now() + timedelta(days=5))
        self.client.force_authenticate(self.freelancer)

        response = self.client.get(reverse("freelancer-wallet"))

        self.assertEqual(response.data["balance"], "880.00")
        self.assertEqual(response.data["held_in_escrow"], "300.00")
        self.assertEqual(response.data["recent_payouts"], [])

    def test_freelancer_summary_lists_recent_payouts(self):
        first, _ = make_held_milestone(self.contract, amount="100.00")
        second, _ = make_held_milestone(self.contract, amount="200.00")
        for milestone, amount in ((first, "90.00"), (second, "180.00")):
            Payout.objects.create(
                contract=self.contract, milestone=milestone, amount=Decimal(amount),
                currency="EGP", status="settled", settled_at=timezone.now(),
            )
        self.client.force_authenticate(self.freelancer)

        response = self.client.get(reverse("freelancer-wallet"))

        self.assertEqual(response.data["payout_count"], 2)
        self.assertEqual(response.data["total_paid_out"], "270.00")
        payouts = response.data["recent_payouts"]
        self.assertEqual([p["milestone"] for p in payouts], [second.id, first.id])
        self.assertEqual(payouts[0]["amount"], "180.00")
        self.assertEqual(payouts[0]["provider"], "manual")

    def test_client_summary(self):
        ClientWallet.objects.create(client=self.client_user, balance=Decimal("1000.00"), currency="EGP")
        self.client.force_authenticate(self.client_user)

        response = self.client.get(reverse("client-wallet"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance"], "1000.00")
        self.assertEqual(response.data["total_refunded"], "0.00")

    def test_roles_are_enforced(self):
        self.client.force_authenticate(self.client_user)
        self.assertEqual(
            self.client.get(reverse("freelancer-wallet")).status_code, status.HTTP_403_FORBIDDEN
        )

        self.client.force_authenticate(self.freelancer)
        self.assertEqual(
            self.client.get(reverse("client-wallet")).status_code, status.HTTP_403_FORBIDDEN
        )
